"""
用户模型
"""
from datetime import datetime
from sqlalchemy import String, Integer, DateTime
from sqlalchemy.orm import Mapped, mapped_column
from password_recovery.database import Base
from password_recovery.utils.timezone import utc_now_naive


class User(Base):
    """用户表（邮箱以去空格、小写后的形式存储）"""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    email: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    password: Mapped[str] = mapped_column(String(255))  # 哈希或明文，取决于 password_storage
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now_naive
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utc_now_naive, onupdate=utc_now_naive
    )

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email})>"
