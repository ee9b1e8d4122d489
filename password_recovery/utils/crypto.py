from typing import Optional
from cryptography.fernet import Fernet, InvalidToken

from password_recovery.config import get_settings

settings = get_settings()

ENCRYPTED_PREFIX = "enc:"


def get_fernet() -> Optional[Fernet]:
    if not settings.smtp_encryption_key:
        return None
    try:
        return Fernet(settings.smtp_encryption_key.encode())
    except (TypeError, ValueError):
        return None


def is_encrypted(value: str) -> bool:
    return value.startswith(ENCRYPTED_PREFIX)


def encrypt_secret(secret: str) -> str:
    fernet = get_fernet()
    if not fernet:
        return secret
    token = fernet.encrypt(secret.encode()).decode()
    return f"{ENCRYPTED_PREFIX}{token}"


def decrypt_secret(value: str) -> str:
    if not value:
        return ""
    if not is_encrypted(value):
        return value
    fernet = get_fernet()
    if not fernet:
        raise RuntimeError("SMTP_ENCRYPTION_KEY is not configured")
    token = value[len(ENCRYPTED_PREFIX):]
    try:
        return fernet.decrypt(token.encode()).decode()
    except InvalidToken as exc:
        raise RuntimeError("Failed to decrypt SMTP password") from exc
