"""
请求上下文与结构化日志
"""
import json
import logging
from contextvars import ContextVar
from typing import Iterable
from datetime import datetime, timezone

request_id_ctx_var: ContextVar[str] = ContextVar("request_id", default="-")


class RequestIdFilter(logging.Filter):
    """将当前请求 ID 注入日志记录"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_ctx_var.get()
        return True


class JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def sanitize_log_input(value: str) -> str:
    """清理邮箱地址等用户输入用于日志记录，防止日志注入"""
    if not value:
        return "(empty)"
    # 移除潜在的换行符和其他控制字符
    return ''.join(char for char in value if char.isprintable())[:100]


def configure_logging(level: str, logger_names: Iterable[str] = ("uvicorn", "uvicorn.error", "uvicorn.access")) -> logging.Handler:
    """根日志器与 uvicorn 日志器统一输出单行 JSON，并带上请求 ID"""
    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    handler.addFilter(RequestIdFilter())

    targets = [logging.getLogger()] + [logging.getLogger(name) for name in logger_names]
    for target in targets:
        target.handlers = [handler]
        target.setLevel(level)
    for target in targets[1:]:
        target.propagate = False
    return handler
