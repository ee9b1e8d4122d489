"""
密码重置验证码模型
"""
from datetime import datetime
from sqlalchemy import String, Integer, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column
from password_recovery.database import Base
from password_recovery.utils.timezone import utc_now_naive


class ResetCode(Base):
    """密码重置验证码表"""
    __tablename__ = "reset_codes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("users.id"), nullable=False
    )
    code: Mapped[str] = mapped_column(String(10), index=True)  # 定长数字字符串，保留前导零
    expiration_time: Mapped[datetime] = mapped_column(DateTime, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now_naive
    )

    def __repr__(self):
        return f"<ResetCode(id={self.id}, user_id={self.user_id}, expiration_time={self.expiration_time})>"
