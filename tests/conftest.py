import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from password_recovery.database import Base, get_db
from password_recovery.main import app
from password_recovery.models.user import User
from password_recovery.routers.password_reset import send_code_limiter
from password_recovery.services import mail_transport
from password_recovery.services.setup_state import SetupStateStore
from password_recovery.services.smtp_config_store import activate_config
from password_recovery.utils.security import ADMIN_SCOPE, create_access_token, hash_password, pwd_context


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)

    await engine.dispose()


@pytest.fixture
async def client(session_factory):
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def no_rate_limit():
        return None

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[send_code_limiter] = no_rate_limit
    app.state.setup_state = SetupStateStore()

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_headers():
    token = create_access_token({"sub": "root", "scope": ADMIN_SCOPE})
    return {"Authorization": f"Bearer {token}"}


def password_matches(plain: str, stored: str) -> bool:
    """存储值可能是 bcrypt 哈希，也可能是 plaintext 模式下的原文"""
    if pwd_context.identify(stored) is None:
        return plain == stored
    return pwd_context.verify(plain, stored)


async def create_user(session_factory, email: str, password: str = "old-password") -> User:
    async with session_factory() as session:
        user = User(email=email, password=hash_password(password))
        session.add(user)
        await session.commit()
        return user


async def create_smtp_config(session_factory, port: int = 587, **overrides):
    values = {
        "host": "smtp.example.com",
        "port": port,
        "username": "mailer",
        "password": "smtp-secret",
        "from_email": "noreply@example.com",
    }
    values.update(overrides)
    async with session_factory() as session:
        config = await activate_config(session, **values)
        await session.commit()
        return config


class SmtpBehavior:
    """控制假 SMTP 服务器的行为，并记录所有会话"""

    def __init__(self):
        self.sessions = []
        self.advertise_starttls = True
        self.failures = {}
        self.replies = {}

    def maybe_fail(self, command: str) -> None:
        exc = self.failures.get(command)
        if exc is not None:
            raise exc

    @property
    def last(self):
        return self.sessions[-1]


class FakeSMTPServer:
    implicit_tls = False

    def __init__(self, behavior: SmtpBehavior, host, port, timeout=None, context=None):
        self.behavior = behavior
        self.host = host
        self.port = port
        self.timeout = timeout
        self.context = context
        self.calls = []
        self.tls = self.implicit_tls
        self.closed = False
        behavior.sessions.append(self)
        behavior.maybe_fail("connect")

    @property
    def commands(self):
        return [call[0] for call in self.calls]

    def _command(self, name, *args):
        self.calls.append((name,) + args)
        self.behavior.maybe_fail(name)
        return self.behavior.replies.get(name, (250, b"OK"))

    def ehlo(self):
        return self._command("ehlo")

    def has_extn(self, name):
        return name.lower() == "starttls" and self.behavior.advertise_starttls

    def starttls(self, context=None):
        reply = self._command("starttls")
        self.tls = True
        return reply

    def login(self, user, password):
        return self._command("login", user, password)

    def mail(self, sender):
        return self._command("mail", sender)

    def rcpt(self, recipient):
        return self._command("rcpt", recipient)

    def data(self, message):
        return self._command("data", message)

    def quit(self):
        return self._command("quit")

    def close(self):
        self.closed = True


@pytest.fixture
def smtp(monkeypatch):
    behavior = SmtpBehavior()

    class FakeSMTP(FakeSMTPServer):
        def __init__(self, host, port, timeout=None):
            super().__init__(behavior, host, port, timeout)

    class FakeSMTPSSL(FakeSMTPServer):
        implicit_tls = True

        def __init__(self, host, port, timeout=None, context=None):
            super().__init__(behavior, host, port, timeout, context)

    monkeypatch.setattr(mail_transport.smtplib, "SMTP", FakeSMTP)
    monkeypatch.setattr(mail_transport.smtplib, "SMTP_SSL", FakeSMTPSSL)
    return behavior
