"""
业务错误类型

每种错误对应固定的 HTTP 状态码与响应结构，由 main.py 中的异常处理器统一输出。
"""
from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    ACCOUNT_NOT_FOUND = "account_not_found"
    CODE_NOT_FOUND_OR_EXPIRED = "code_not_found_or_expired"
    EMAIL_MISMATCH = "email_mismatch"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NO_ACTIVE_TRANSPORT = "no_active_transport"
    UNSUPPORTED_PORT = "unsupported_port"
    TRANSPORT = "transport"
    STORE = "store"
    SETUP_UNAVAILABLE = "setup_unavailable"
    NOT_FOUND = "not_found"
    METHOD_NOT_ALLOWED = "method_not_allowed"
    RATE_LIMITED = "rate_limited"
    INTERNAL = "internal"


STATUS_BY_KIND = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.ACCOUNT_NOT_FOUND: 404,
    ErrorKind.CODE_NOT_FOUND_OR_EXPIRED: 404,
    ErrorKind.EMAIL_MISMATCH: 400,
    ErrorKind.UNAUTHORIZED: 401,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.NO_ACTIVE_TRANSPORT: 500,
    ErrorKind.UNSUPPORTED_PORT: 500,
    ErrorKind.TRANSPORT: 500,
    ErrorKind.STORE: 500,
    ErrorKind.SETUP_UNAVAILABLE: 503,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.METHOD_NOT_ALLOWED: 405,
    ErrorKind.RATE_LIMITED: 429,
    ErrorKind.INTERNAL: 500,
}

# 框架抛出的 HTTPException（路由不存在、方法不允许等）按状态码归类
KIND_BY_HTTP_STATUS = {
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    405: ErrorKind.METHOD_NOT_ALLOWED,
    429: ErrorKind.RATE_LIMITED,
}


class TransportStage(str, Enum):
    """SMTP 会话中失败的阶段"""
    CONNECT = "connect"
    TLS = "tls"
    AUTH = "auth"
    SENDER = "sender"
    RECIPIENT = "recipient"
    DATA = "data"


class ServiceError(Exception):
    kind: ErrorKind = ErrorKind.STORE
    default_message: str = "服务内部错误"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]


class RequestInvalid(ServiceError):
    kind = ErrorKind.VALIDATION
    default_message = "请求参数无效"


class AccountNotFound(ServiceError):
    kind = ErrorKind.ACCOUNT_NOT_FOUND
    default_message = "邮箱未注册"


class CodeNotFoundOrExpired(ServiceError):
    """验证码不存在与已过期对外表现一致"""
    kind = ErrorKind.CODE_NOT_FOUND_OR_EXPIRED
    default_message = "验证码无效或已过期"


class EmailMismatch(ServiceError):
    kind = ErrorKind.EMAIL_MISMATCH
    default_message = "邮箱与验证码不匹配"


class Unauthorized(ServiceError):
    kind = ErrorKind.UNAUTHORIZED
    default_message = "未提供有效的认证信息"


class Forbidden(ServiceError):
    kind = ErrorKind.FORBIDDEN
    default_message = "没有访问权限"


class SetupUnavailable(ServiceError):
    kind = ErrorKind.SETUP_UNAVAILABLE
    default_message = "初始化凭据不可用"


class NotFound(ServiceError):
    kind = ErrorKind.NOT_FOUND
    default_message = "资源不存在"


class RateLimited(ServiceError):
    kind = ErrorKind.RATE_LIMITED
    default_message = "请求过于频繁，请稍后再试"


class StoreError(ServiceError):
    kind = ErrorKind.STORE
    default_message = "数据存储错误"


class NoActiveTransport(ServiceError):
    kind = ErrorKind.NO_ACTIVE_TRANSPORT
    default_message = "邮件服务未配置"


class UnsupportedPort(ServiceError):
    kind = ErrorKind.UNSUPPORTED_PORT

    def __init__(self, port: int):
        self.port = port
        super().__init__(f"不支持的 SMTP 端口: {port}（仅支持 587 和 465）")


STAGE_MESSAGES = {
    TransportStage.CONNECT: "无法连接到 SMTP 服务器",
    TransportStage.TLS: "TLS 加密协商失败",
    TransportStage.AUTH: "SMTP 认证失败：用户名或密码错误",
    TransportStage.SENDER: "SMTP 服务器拒绝了发件人地址",
    TransportStage.RECIPIENT: "SMTP 服务器拒绝了收件人地址",
    TransportStage.DATA: "邮件内容提交失败",
}


class TransportError(ServiceError):
    """SMTP 投递失败，附带失败阶段；消息中不包含任何凭据"""
    kind = ErrorKind.TRANSPORT

    def __init__(self, stage: TransportStage, message: Optional[str] = None):
        self.stage = stage
        super().__init__(message or STAGE_MESSAGES[stage])
