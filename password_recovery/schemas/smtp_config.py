"""
SMTP 配置请求与响应结构
"""
from typing import Optional
from pydantic import BaseModel, EmailStr, Field


class SmtpConfigCreate(BaseModel):
    """创建并启用 SMTP 配置"""
    host: str = Field(..., description="SMTP 服务器地址", min_length=1, max_length=100)
    port: int = Field(..., description="SMTP 端口（587 或 465）", ge=1, le=65535)
    username: str = Field(..., description="SMTP 用户名", min_length=1, max_length=100)
    password: str = Field(..., description="SMTP 密码", min_length=1, max_length=200)
    from_email: EmailStr = Field(..., description="发件人邮箱")


class SmtpConfigUpdate(BaseModel):
    """更新当前 SMTP 配置（密码留空则保留原密码）"""
    host: str = Field(..., min_length=1, max_length=100)
    port: int = Field(..., ge=1, le=65535)
    username: str = Field(..., min_length=1, max_length=100)
    password: Optional[str] = Field(None, max_length=200)
    from_email: EmailStr


class SmtpConfigResponse(BaseModel):
    """SMTP 配置响应（不返回密码，仅表示是否存在）"""
    id: int
    host: str
    port: int
    username: str
    from_email: str
    has_password: bool = False
    is_active: bool
    created_at: str
    updated_at: str


class SmtpTestResult(BaseModel):
    """连接测试结果"""
    success: bool
    message: str
    error_type: Optional[str] = None
    stage: Optional[str] = None
