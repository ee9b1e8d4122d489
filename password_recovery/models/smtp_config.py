"""
SMTP 邮件配置模型
"""
from datetime import datetime
from sqlalchemy import String, Boolean, DateTime, Integer
from sqlalchemy.orm import Mapped, mapped_column
from password_recovery.database import Base
from password_recovery.utils.timezone import utc_now_naive


class SmtpConfig(Base):
    """SMTP 邮件配置表

    同一时间只有一条 is_active=True 的记录，由激活流程在同一事务内保证，
    表结构本身不做唯一约束。
    """
    __tablename__ = "smtp_config"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    host: Mapped[str] = mapped_column(String(100))  # SMTP 服务器地址
    port: Mapped[int] = mapped_column(Integer)  # 587 (STARTTLS) 或 465 (SSL)
    username: Mapped[str] = mapped_column(String(100))
    password: Mapped[str] = mapped_column(String(500))  # 配置了密钥时加密存储
    from_email: Mapped[str] = mapped_column(String(100))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now_naive
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now_naive, onupdate=utc_now_naive
    )

    def __repr__(self):
        return f"<SmtpConfig(id={self.id}, host={self.host}, port={self.port}, is_active={self.is_active})>"
