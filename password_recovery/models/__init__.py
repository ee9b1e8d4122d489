"""
数据库模型
"""
from password_recovery.models.user import User
from password_recovery.models.reset_code import ResetCode
from password_recovery.models.smtp_config import SmtpConfig

__all__ = [
    "User",
    "ResetCode",
    "SmtpConfig",
]
