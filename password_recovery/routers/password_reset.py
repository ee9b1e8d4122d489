"""
密码找回路由：发送验证码、校验验证码、重置密码
"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from password_recovery.config import get_settings
from password_recovery.database import get_db
from password_recovery.schemas.common import MessageResponse
from password_recovery.schemas.password_reset import (
    SendCodeRequest,
    VerifyCodeRequest,
    ResetPasswordRequest,
)
from password_recovery.services.password_reset import PasswordResetService
from password_recovery.utils.rate_limiter import RateLimiter

router = APIRouter()
settings = get_settings()

# 限制发送验证码：每 IP 每分钟 send_code_rate_limit 次
send_code_limiter = RateLimiter(
    times=settings.send_code_rate_limit,
    seconds=settings.send_code_rate_window_seconds,
)


def get_password_reset_service(db: AsyncSession = Depends(get_db)) -> PasswordResetService:
    return PasswordResetService(db)


@router.post("/send-code", response_model=MessageResponse, dependencies=[Depends(send_code_limiter)])
async def send_code(
    data: SendCodeRequest,
    service: PasswordResetService = Depends(get_password_reset_service),
):
    """发送密码重置验证码"""
    await service.issue_code(data.email)
    return {"message": "验证码已发送，请查收邮箱"}


@router.post("/verify-code", response_model=MessageResponse)
async def verify_code(
    data: VerifyCodeRequest,
    service: PasswordResetService = Depends(get_password_reset_service),
):
    """校验验证码"""
    await service.verify_code(data.email, data.code)
    return {"message": "验证码校验成功"}


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    data: ResetPasswordRequest,
    service: PasswordResetService = Depends(get_password_reset_service),
):
    """通过验证码重置密码"""
    await service.reset_password(data.email, data.code, data.new_password)
    return {"message": "密码重置成功，请使用新密码登录"}
