"""
安全相关工具：密码存储、管理端 JWT
"""
from datetime import datetime, timedelta
from typing import Optional
import secrets
import logging
from jose import JWTError, jwt
from passlib.context import CryptContext
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from password_recovery.config import get_settings
from password_recovery.errors import Unauthorized, Forbidden

settings = get_settings()
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)

ADMIN_SCOPE = "admin"


def hash_password(password: str) -> str:
    """按 password_storage 配置生成待存储的密码"""
    if settings.password_storage == "plaintext":
        return password
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """创建 JWT Token"""
    to_encode = data.copy()
    if "jti" not in to_encode:
        to_encode["jti"] = secrets.token_urlsafe(16)
    expire = datetime.utcnow() + (
        expires_delta or timedelta(minutes=settings.admin_token_expire_minutes)
    )
    to_encode.update({"exp": expire})
    return jwt.encode(
        to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm
    )


def decode_token(token: str) -> dict:
    """解码 JWT Token"""
    try:
        return jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
    except JWTError:
        raise Unauthorized("无效的认证令牌")


async def get_admin_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> str:
    """管理端接口依赖：校验 Bearer 令牌并返回管理员用户名"""
    if not credentials or not credentials.credentials:
        raise Unauthorized()

    payload = decode_token(credentials.credentials)
    if payload.get("scope") != ADMIN_SCOPE:
        logger.warning("Token without admin scope used on admin endpoint")
        raise Forbidden()

    subject = payload.get("sub")
    if not subject:
        raise Unauthorized("无效的认证令牌")
    return subject
