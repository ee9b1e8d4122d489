"""
密码找回请求结构
"""
from pydantic import BaseModel, ConfigDict, Field


class SendCodeRequest(BaseModel):
    """发送验证码请求"""
    email: str = Field(..., min_length=3, max_length=255)


class VerifyCodeRequest(BaseModel):
    """校验验证码请求"""
    email: str = Field(..., min_length=3, max_length=255)
    code: str = Field(..., min_length=1, max_length=32)


class ResetPasswordRequest(BaseModel):
    """重置密码请求（前端字段为 newPassword）"""
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(..., min_length=3, max_length=255)
    code: str = Field(..., min_length=1, max_length=32)
    new_password: str = Field(..., alias="newPassword", min_length=1, max_length=128)
