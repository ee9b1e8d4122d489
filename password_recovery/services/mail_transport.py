"""
邮件发送服务 - 按端口选择 SMTP 加密方式

- 587: 明文连接后，服务器声明 STARTTLS 时升级为 TLS；未加密时只允许向本机认证
- 465: 连接建立即进行 TLS 握手（隐式 TLS）
- 其他端口: 不建立连接，直接报错

每次发送都重新读取当前启用的 SMTP 配置，只尝试一次，不做重试。
"""
import asyncio
import logging
import smtplib
import ssl
from dataclasses import dataclass, field
from email.mime.text import MIMEText
from typing import Callable, Optional, Tuple, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from password_recovery.config import get_settings
from password_recovery.errors import (
    NoActiveTransport,
    TransportError,
    TransportStage,
    UnsupportedPort,
)
from password_recovery.models.smtp_config import SmtpConfig
from password_recovery.services.smtp_config_store import get_active_config
from password_recovery.utils.crypto import decrypt_secret
from password_recovery.utils.metrics import SMTP_SEND_TOTAL
from password_recovery.utils.request_context import sanitize_log_input

settings = get_settings()
logger = logging.getLogger(__name__)

STARTTLS_PORT = 587
IMPLICIT_TLS_PORT = 465
LOCAL_HOSTS = ("localhost", "127.0.0.1", "::1")

T = TypeVar("T")


@dataclass(frozen=True)
class TransportSettings:
    """单次发送使用的 SMTP 参数（不可变）"""
    host: str
    port: int
    username: str
    password: str = field(repr=False)
    from_email: str

    @classmethod
    def from_model(cls, config: SmtpConfig) -> "TransportSettings":
        return cls(
            host=config.host,
            port=config.port,
            username=config.username,
            password=decrypt_secret(config.password),
            from_email=config.from_email,
        )

    @property
    def address(self) -> str:
        return f"{self.host}:{self.port}"


def build_message(from_email: str, to_email: str, subject: str, body: str) -> str:
    """构造纯文本邮件"""
    msg = MIMEText(body, "plain", "utf-8")
    msg["From"] = from_email
    msg["To"] = to_email
    msg["Subject"] = subject
    return msg.as_string()


def _tls_context() -> ssl.SSLContext:
    context = ssl.create_default_context()
    if not settings.smtp_tls_verify:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
    return context


def _connect_error(transport: TransportSettings) -> TransportError:
    return TransportError(
        TransportStage.CONNECT,
        f"无法连接到 SMTP 服务器 {transport.address}",
    )


def _connect_starttls(transport: TransportSettings) -> Tuple[smtplib.SMTP, bool]:
    """返回 (会话, 是否已升级为 TLS)"""
    try:
        server = smtplib.SMTP(transport.host, transport.port, timeout=settings.smtp_timeout_seconds)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("SMTP connect failed to %s: %s", transport.address, type(exc).__name__)
        raise _connect_error(transport) from exc

    try:
        server.ehlo()
    except (smtplib.SMTPException, OSError) as exc:
        server.close()
        logger.error("SMTP EHLO failed on %s: %s", transport.address, type(exc).__name__)
        raise _connect_error(transport) from exc

    try:
        if server.has_extn("starttls"):
            server.starttls(context=_tls_context())
            server.ehlo()
            return server, True
        if settings.smtp_require_starttls:
            raise TransportError(TransportStage.TLS, "SMTP 服务器未声明 STARTTLS，已拒绝明文发送")
        logger.warning("SMTP server %s does not advertise STARTTLS, continuing unencrypted", transport.address)
        return server, False
    except TransportError:
        server.close()
        raise
    except (smtplib.SMTPException, OSError) as exc:
        server.close()
        logger.error("STARTTLS negotiation failed with %s: %s", transport.address, type(exc).__name__)
        raise TransportError(TransportStage.TLS) from exc


def _connect_implicit_tls(transport: TransportSettings) -> smtplib.SMTP:
    try:
        return smtplib.SMTP_SSL(
            transport.host,
            transport.port,
            timeout=settings.smtp_timeout_seconds,
            context=_tls_context(),
        )
    except ssl.SSLError as exc:
        logger.error("TLS handshake failed with %s: %s", transport.address, type(exc).__name__)
        raise TransportError(TransportStage.TLS) from exc
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("SMTP connect failed to %s: %s", transport.address, type(exc).__name__)
        raise _connect_error(transport) from exc


def open_session(transport: TransportSettings) -> smtplib.SMTP:
    """建立连接、完成加密协商与认证，返回可提交信封的会话"""
    if transport.port == STARTTLS_PORT:
        server, encrypted = _connect_starttls(transport)
    elif transport.port == IMPLICIT_TLS_PORT:
        server, encrypted = _connect_implicit_tls(transport), True
    else:
        raise UnsupportedPort(transport.port)

    # 明文连接只允许向本机认证，其他主机不发送凭据
    if not encrypted and transport.host not in LOCAL_HOSTS:
        server.close()
        logger.error("Refusing SMTP auth over unencrypted connection to %s", transport.address)
        raise TransportError(TransportStage.AUTH, "SMTP 连接未加密，拒绝发送认证信息")

    try:
        server.login(transport.username, transport.password)
    except (smtplib.SMTPException, OSError) as exc:
        server.close()
        logger.error("SMTP auth failed on %s: %s", transport.address, type(exc).__name__)
        raise TransportError(TransportStage.AUTH) from exc

    return server


def close_session(server: smtplib.SMTP) -> None:
    """发送 QUIT 后关闭连接；QUIT 失败不影响已完成的投递结果"""
    try:
        server.quit()
    except (smtplib.SMTPException, OSError) as exc:
        logger.debug("SMTP QUIT failed: %s", type(exc).__name__)
    finally:
        server.close()


def _run_stage(stage: TransportStage, accepted: Tuple[int, ...], command: Callable[..., T], *args) -> T:
    try:
        reply = command(*args)
    except (smtplib.SMTPException, OSError) as exc:
        logger.error("SMTP %s stage failed: %s", stage.value, type(exc).__name__)
        raise TransportError(stage) from exc

    code = reply[0]
    if code not in accepted:
        logger.error("SMTP %s stage rejected with code %s", stage.value, code)
        raise TransportError(stage)
    return reply


def _submit_envelope(
    server: smtplib.SMTP,
    from_email: str,
    to_email: Optional[str] = None,
    message: Optional[str] = None,
) -> None:
    """MAIL FROM → RCPT TO → DATA；未提供收件人时在发件人被接受后停止"""
    _run_stage(TransportStage.SENDER, (250,), server.mail, from_email)
    if to_email is None:
        return
    _run_stage(TransportStage.RECIPIENT, (250, 251), server.rcpt, to_email)
    _run_stage(TransportStage.DATA, (250,), server.data, message)


def deliver(transport: TransportSettings, to_email: str, subject: str, body: str) -> None:
    """同步发送一封邮件（阻塞调用，在工作线程中执行）"""
    message = build_message(transport.from_email, to_email, subject, body)
    server = open_session(transport)
    try:
        _submit_envelope(server, transport.from_email, to_email, message)
    finally:
        close_session(server)


def probe(transport: TransportSettings) -> None:
    """连接测试：与真实发送走相同的端口与加密流程，在发件人被接受后停止"""
    server = open_session(transport)
    try:
        _submit_envelope(server, transport.from_email)
    finally:
        close_session(server)


def _record(stage: str, result: str) -> None:
    if settings.metrics_enabled:
        SMTP_SEND_TOTAL.labels(stage, result).inc()


class MailTransport:
    """使用当前启用的 SMTP 配置发送邮件"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def send(self, to_email: str, subject: str, body: str) -> None:
        sanitized_email = sanitize_log_input(to_email)

        config = await get_active_config(self.db)
        if config is None:
            logger.error("[邮件] 邮件服务未配置: 收件人=%s", sanitized_email)
            _record("config", "failure")
            raise NoActiveTransport()

        transport = TransportSettings.from_model(config)
        logger.info("[邮件] 准备发送邮件: 收件人=%s, 服务器=%s", sanitized_email, transport.address)

        try:
            await asyncio.to_thread(deliver, transport, to_email, subject, body)
        except TransportError as exc:
            _record(exc.stage.value, "failure")
            logger.error("[邮件] 发送失败: 收件人=%s, 阶段=%s", sanitized_email, exc.stage.value)
            raise
        except UnsupportedPort:
            _record("config", "failure")
            logger.error("[邮件] 不支持的端口: %s", transport.port)
            raise

        _record("done", "success")
        logger.info("[邮件] 发送成功: 收件人=%s", sanitized_email)


async def check_connection(transport: TransportSettings) -> None:
    """使用调用方提供的配置做连接测试，失败时抛出 TransportError / UnsupportedPort"""
    await asyncio.to_thread(probe, transport)
    logger.info("SMTP connectivity test succeeded for %s", transport.address)
