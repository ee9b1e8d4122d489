"""
通用响应结构
"""
from typing import Optional
from pydantic import BaseModel


class MessageResponse(BaseModel):
    message: str


class ErrorResponse(BaseModel):
    """所有错误响应的固定结构"""
    status: str = "error"
    error_type: str
    message: str
    code: int
    stage: Optional[str] = None
