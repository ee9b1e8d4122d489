import smtplib
from datetime import timedelta

import pytest
from cryptography.fernet import Fernet
from sqlalchemy import select

from password_recovery.models.smtp_config import SmtpConfig
from password_recovery.utils import crypto
from password_recovery.utils.security import create_access_token
from tests.conftest import create_smtp_config

pytestmark = pytest.mark.anyio

CONFIG = {
    "host": "smtp.example.com",
    "port": 587,
    "username": "mailer",
    "password": "smtp-secret",
    "from_email": "noreply@example.com",
}


async def all_configs(session_factory):
    async with session_factory() as session:
        result = await session.execute(select(SmtpConfig).order_by(SmtpConfig.id))
        return result.scalars().all()


async def test_admin_endpoints_require_token(client):
    resp = await client.get("/admin/smtp-config")
    assert resp.status_code == 401
    assert resp.json()["error_type"] == "unauthorized"

    resp = await client.post("/admin/smtp-config", json=CONFIG)
    assert resp.status_code == 401


async def test_admin_endpoints_reject_invalid_token(client):
    resp = await client.get("/admin/smtp-config", headers={"Authorization": "Bearer not-a-jwt"})
    assert resp.status_code == 401


async def test_admin_endpoints_reject_expired_token(client):
    token = create_access_token({"sub": "root", "scope": "admin"}, expires_delta=timedelta(minutes=-1))
    resp = await client.get("/admin/smtp-config", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 401


async def test_admin_endpoints_require_admin_scope(client):
    token = create_access_token({"sub": "someone", "scope": "user"})
    resp = await client.get("/admin/smtp-config", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 403
    assert resp.json()["error_type"] == "forbidden"


async def test_get_config_when_none_configured(client, admin_headers):
    resp = await client.get("/admin/smtp-config", headers=admin_headers)
    assert resp.status_code == 404
    assert resp.json()["error_type"] == "not_found"
    assert resp.json()["status"] == "error"


async def test_saving_config_activates_only_the_newest(client, session_factory, admin_headers):
    first = await client.post("/admin/smtp-config", json=CONFIG, headers=admin_headers)
    second = await client.post(
        "/admin/smtp-config",
        json={**CONFIG, "host": "smtp2.example.com", "port": 465},
        headers=admin_headers,
    )
    assert first.status_code == 200
    assert second.status_code == 200

    configs = await all_configs(session_factory)
    assert [c.is_active for c in configs] == [False, True]

    resp = await client.get("/admin/smtp-config", headers=admin_headers)
    body = resp.json()
    assert body["id"] == second.json()["id"]
    assert body["host"] == "smtp2.example.com"
    assert body["port"] == 465
    assert body["has_password"] is True
    assert "password" not in body


async def test_saving_config_marks_smtp_configured(client, admin_headers):
    resp = await client.get("/api/status")
    assert resp.json()["smtp_configured"] is False

    await client.post("/admin/smtp-config", json=CONFIG, headers=admin_headers)

    resp = await client.get("/api/status")
    assert resp.json()["smtp_configured"] is True

    await client.delete("/admin/smtp-config", headers=admin_headers)

    resp = await client.get("/api/status")
    assert resp.json()["smtp_configured"] is False


async def test_saving_config_validates_payload(client, admin_headers):
    resp = await client.post(
        "/admin/smtp-config",
        json={**CONFIG, "from_email": "not-an-email"},
        headers=admin_headers,
    )
    assert resp.status_code == 400
    assert resp.json()["error_type"] == "validation"

    resp = await client.post("/admin/smtp-config", json={**CONFIG, "port": 70000}, headers=admin_headers)
    assert resp.status_code == 400


async def test_password_encrypted_at_rest_when_key_configured(client, session_factory, admin_headers, monkeypatch):
    monkeypatch.setattr(crypto.settings, "smtp_encryption_key", Fernet.generate_key().decode())

    resp = await client.post("/admin/smtp-config", json=CONFIG, headers=admin_headers)
    assert resp.status_code == 200

    stored = (await all_configs(session_factory))[0]
    assert stored.password.startswith(crypto.ENCRYPTED_PREFIX)
    assert "smtp-secret" not in stored.password
    assert crypto.decrypt_secret(stored.password) == "smtp-secret"


async def test_update_keeps_password_when_omitted(client, session_factory, admin_headers):
    await client.post("/admin/smtp-config", json=CONFIG, headers=admin_headers)
    saved = (await all_configs(session_factory))[0]

    update = {k: v for k, v in CONFIG.items() if k != "password"}
    resp = await client.put(
        "/admin/smtp-config",
        json={**update, "host": "mail.example.com"},
        headers=admin_headers,
    )
    assert resp.status_code == 200
    assert resp.json()["host"] == "mail.example.com"

    configs = await all_configs(session_factory)
    assert len(configs) == 1
    assert configs[0].password == saved.password


async def test_update_without_active_config_needs_password(client, admin_headers):
    update = {k: v for k, v in CONFIG.items() if k != "password"}
    resp = await client.put("/admin/smtp-config", json=update, headers=admin_headers)
    assert resp.status_code == 400

    resp = await client.put("/admin/smtp-config", json=CONFIG, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["is_active"] is True


async def test_delete_config(client, session_factory, admin_headers):
    await client.post("/admin/smtp-config", json=CONFIG, headers=admin_headers)

    resp = await client.delete("/admin/smtp-config", headers=admin_headers)
    assert resp.status_code == 200
    assert await all_configs(session_factory) == []

    resp = await client.delete("/admin/smtp-config", headers=admin_headers)
    assert resp.status_code == 200

    resp = await client.get("/admin/smtp-config", headers=admin_headers)
    assert resp.status_code == 404


async def test_connection_test_success_does_not_send_mail(client, smtp, admin_headers):
    resp = await client.post("/admin/smtp-config/test", json=CONFIG, headers=admin_headers)

    assert resp.status_code == 200
    assert resp.json()["success"] is True
    assert smtp.last.commands == ["ehlo", "starttls", "ehlo", "login", "mail", "quit"]


async def test_connection_test_reports_failed_stage(client, smtp, admin_headers):
    smtp.failures["login"] = smtplib.SMTPAuthenticationError(535, b"bad credentials")

    resp = await client.post("/admin/smtp-config/test", json={**CONFIG, "port": 465}, headers=admin_headers)

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is False
    assert body["error_type"] == "transport"
    assert body["stage"] == "auth"
    assert "smtp-secret" not in body["message"]


async def test_connection_test_rejects_unsupported_port(client, smtp, admin_headers):
    resp = await client.post("/admin/smtp-config/test", json={**CONFIG, "port": 25}, headers=admin_headers)

    body = resp.json()
    assert body["success"] is False
    assert body["error_type"] == "unsupported_port"
    assert smtp.sessions == []


async def test_connection_test_falls_back_to_saved_password(client, session_factory, smtp, admin_headers):
    update = {k: v for k, v in CONFIG.items() if k != "password"}

    resp = await client.post("/admin/smtp-config/test", json=update, headers=admin_headers)
    assert resp.status_code == 400

    await create_smtp_config(session_factory, password="saved-secret")
    resp = await client.post("/admin/smtp-config/test", json=update, headers=admin_headers)

    assert resp.json()["success"] is True
    login = next(call for call in smtp.last.calls if call[0] == "login")
    assert login == ("login", "mailer", "saved-secret")


async def test_connection_test_does_not_change_saved_config(client, session_factory, smtp, admin_headers):
    await create_smtp_config(session_factory, host="saved.example.com")

    await client.post(
        "/admin/smtp-config/test",
        json={**CONFIG, "host": "candidate.example.com"},
        headers=admin_headers,
    )

    configs = await all_configs(session_factory)
    assert [c.host for c in configs] == ["saved.example.com"]
