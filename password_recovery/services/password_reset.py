"""
密码重置流程：发送验证码 → 校验验证码 → 重置密码

流程状态全部保存在验证码表与用户表中，服务本身不持有状态。
"""
import logging
from typing import Optional, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from password_recovery.config import get_settings
from password_recovery.errors import AccountNotFound, EmailMismatch, StoreError
from password_recovery.models.reset_code import ResetCode
from password_recovery.models.user import User
from password_recovery.services.mail_transport import MailTransport
from password_recovery.services.reset_codes import ResetCodeLedger
from password_recovery.utils.request_context import sanitize_log_input
from password_recovery.utils.security import hash_password

settings = get_settings()
logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    """邮箱规范化：去除首尾空白并转为小写"""
    return email.strip().lower()


def build_reset_email(code: str) -> Tuple[str, str]:
    """返回 (主题, 正文)"""
    subject = f"【{settings.app_name}】密码重置验证码"
    body = (
        f"您的密码重置验证码是: {code}\n\n"
        f"验证码有效期为 {settings.reset_code_expire_minutes} 分钟，请尽快使用。\n"
        "如果这不是您的操作，请忽略此邮件。"
    )
    return subject, body


class PasswordResetService:
    def __init__(
        self,
        db: AsyncSession,
        ledger: Optional[ResetCodeLedger] = None,
        transport: Optional[MailTransport] = None,
    ):
        self.db = db
        self.ledger = ledger or ResetCodeLedger(db)
        self.transport = transport or MailTransport(db)

    async def issue_code(self, email: str) -> ResetCode:
        """为邮箱对应的账号生成验证码并发送邮件

        验证码在发送邮件前提交；邮件发送失败时错误会上抛，但验证码仍然有效。
        """
        normalized = normalize_email(email)
        result = await self.db.execute(select(User).where(User.email == normalized))
        user = result.scalar_one_or_none()
        if user is None:
            logger.info("Reset code requested for unknown email %s", sanitize_log_input(normalized))
            raise AccountNotFound()

        reset_code = await self.ledger.issue(user.id)
        await self.db.commit()

        subject, body = build_reset_email(reset_code.code)
        await self.transport.send(normalized, subject, body)
        return reset_code

    async def _check_code_owner(self, email: str, code: str) -> User:
        reset_code = await self.ledger.lookup_valid(code)

        user = await self.db.get(User, reset_code.user_id)
        if user is None:
            logger.error("Reset code %s references missing user_id=%s", reset_code.id, reset_code.user_id)
            raise StoreError("验证用户邮箱时出错")

        # 不透露是邮箱错误还是验证码属于其他账号
        if normalize_email(user.email) != normalize_email(email):
            raise EmailMismatch()
        return user

    async def verify_code(self, email: str, code: str) -> None:
        """校验验证码与邮箱是否匹配（不会消耗验证码）"""
        await self._check_code_owner(email, code)

    async def reset_password(self, email: str, code: str, new_password: str) -> None:
        """校验通过后覆盖密码，再尽力删除验证码"""
        user = await self._check_code_owner(email, code)

        user.password = hash_password(new_password)
        await self.db.commit()
        logger.info("Password reset for user_id=%s", user.id)

        await self.ledger.consume(code, user_id=user.id)
