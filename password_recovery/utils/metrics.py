"""
Prometheus 指标

HTTP 请求指标由 main.py 中间件记录；SMTP 与验证码指标由对应服务记录。
"""
from prometheus_client import Counter, Histogram, Gauge

NAMESPACE = "password_recovery"

REQUEST_COUNT = Counter(
    "http_requests_total",
    "HTTP requests by route and status",
    ["method", "path", "status"],
    namespace=NAMESPACE,
)
REQUEST_LATENCY = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency by route",
    ["method", "path"],
    namespace=NAMESPACE,
)
IN_PROGRESS = Gauge(
    "http_requests_in_progress",
    "HTTP requests currently being handled",
    namespace=NAMESPACE,
)
# stage: connect/tls/auth/sender/recipient/data，另有 config（无配置或端口不支持）与 done（成功）
SMTP_SEND_TOTAL = Counter(
    "smtp_send_total",
    "SMTP delivery attempts by stage and result",
    ["stage", "result"],
    namespace=NAMESPACE,
)
RESET_CODES_ISSUED = Counter(
    "reset_codes_issued_total",
    "Password reset codes issued",
    namespace=NAMESPACE,
)


def get_route_name(scope: dict) -> str:
    """按路由模板打标签，未匹配路由时退回原始路径"""
    route = scope.get("route")
    return getattr(route, "path", None) or scope.get("path", "unknown")
