"""
密码重置验证码台账

负责验证码的生成、有效性查询与销毁。过期验证码不会被主动清理，
有效性只在读取时通过时间比较判定。
"""
import logging
import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional

from sqlalchemy import select, delete
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from password_recovery.config import get_settings
from password_recovery.errors import CodeNotFoundOrExpired
from password_recovery.models.reset_code import ResetCode
from password_recovery.utils.metrics import RESET_CODES_ISSUED
from password_recovery.utils.timezone import utc_now_naive

settings = get_settings()
logger = logging.getLogger(__name__)

CODE_LENGTH = 8
CODE_SPACE = 10 ** CODE_LENGTH


def generate_code() -> str:
    """生成 8 位数字验证码（密码学安全随机数，左侧补零保持定长）"""
    return f"{secrets.randbelow(CODE_SPACE):0{CODE_LENGTH}d}"


class ResetCodeLedger:
    def __init__(
        self,
        db: AsyncSession,
        now: Callable[[], datetime] = utc_now_naive,
        ttl: Optional[timedelta] = None,
    ):
        self.db = db
        self.now = now
        self.ttl = ttl or timedelta(minutes=settings.reset_code_expire_minutes)

    async def issue(self, user_id: int) -> ResetCode:
        """为账号生成新验证码。不会作废该账号此前未使用的验证码。"""
        issued_at = self.now()
        reset_code = ResetCode(
            user_id=user_id,
            code=generate_code(),
            expiration_time=issued_at + self.ttl,
            created_at=issued_at,
        )
        self.db.add(reset_code)
        await self.db.flush()
        RESET_CODES_ISSUED.inc()
        logger.info("Reset code issued for user_id=%s, expires_at=%s", user_id, reset_code.expiration_time.isoformat())
        return reset_code

    async def lookup_valid(self, code: str) -> ResetCode:
        """查询未过期的验证码；不存在和已过期抛出同一个错误

        验证码按值查找，不区分账号。两个账号恰好持有相同的有效验证码时取最新签发的一条，
        另一账号会得到邮箱不匹配。
        """
        result = await self.db.execute(
            select(ResetCode)
            .where(
                ResetCode.code == code,
                ResetCode.expiration_time > self.now(),
            )
            .order_by(ResetCode.created_at.desc())
            .limit(1)
        )
        reset_code = result.scalar_one_or_none()
        if reset_code is None:
            raise CodeNotFoundOrExpired()
        return reset_code

    async def consume(self, code: str, user_id: Optional[int] = None) -> None:
        """删除验证码（尽力而为）：记录不存在时无操作，删除失败只记录日志

        提供 user_id 时只删除该账号名下的记录。
        """
        try:
            stmt = delete(ResetCode).where(ResetCode.code == code)
            if user_id is not None:
                stmt = stmt.where(ResetCode.user_id == user_id)
            await self.db.execute(stmt)
            await self.db.commit()
        except SQLAlchemyError as exc:
            await self.db.rollback()
            logger.warning("Failed to delete consumed reset code: %s", type(exc).__name__)
