"""
FastAPI 主入口
"""
import logging
import time
import uuid
from typing import Optional
from contextlib import asynccontextmanager
from fastapi import FastAPI, Response, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.exc import SQLAlchemyError
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
import sentry_sdk
from sentry_sdk.integrations.fastapi import FastApiIntegration

from password_recovery import __version__
from password_recovery.config import get_settings
from password_recovery.database import AsyncSessionLocal, init_db
from password_recovery.errors import (
    KIND_BY_HTTP_STATUS,
    ErrorKind,
    NotFound,
    RequestInvalid,
    ServiceError,
    StoreError,
    TransportError,
)
from password_recovery.routers import password_reset, setup, smtp_config
from password_recovery.schemas.common import ErrorResponse
from password_recovery.services.setup_state import SetupStateStore
from password_recovery.services.smtp_config_store import get_active_config
from password_recovery.utils.request_context import configure_logging, request_id_ctx_var
from password_recovery.utils.metrics import REQUEST_COUNT, REQUEST_LATENCY, IN_PROGRESS, get_route_name

settings = get_settings()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    settings.validate_secrets()
    # 数据库不可达时 init_db 抛出异常，进程启动失败
    await init_db()
    await app.state.setup_state.update(db_configured=True, tables_created=True)

    async with AsyncSessionLocal() as session:
        active = await get_active_config(session)
    await app.state.setup_state.update(smtp_configured=active is not None)
    yield


app = FastAPI(
    title="Password Recovery API",
    description="密码找回与 SMTP 配置服务",
    version=__version__,
    lifespan=lifespan,
)
app.state.setup_state = SetupStateStore()


def _error_response(status_code: int, kind: str, message: str, stage: Optional[str] = None) -> JSONResponse:
    body = ErrorResponse(error_type=kind, message=message, code=status_code, stage=stage)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(ServiceError)
async def service_error_handler(request: Request, exc: ServiceError):
    stage = exc.stage.value if isinstance(exc, TransportError) else None
    if exc.status_code >= 500:
        logger.error("Request failed: kind=%s stage=%s path=%s", exc.kind.value, stage, request.url.path)
    return _error_response(exc.status_code, exc.kind.value, exc.message, stage)


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("Database error on %s: %s", request.url.path, type(exc).__name__, exc_info=True)
    error = StoreError()
    return _error_response(error.status_code, error.kind.value, error.message)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    default = ErrorKind.VALIDATION if exc.status_code < 500 else ErrorKind.INTERNAL
    kind = KIND_BY_HTTP_STATUS.get(exc.status_code, default)
    return _error_response(exc.status_code, kind.value, str(exc.detail))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # 不回显字段细节，统一返回通用提示
    error = RequestInvalid()
    return _error_response(error.status_code, ErrorKind.VALIDATION.value, error.message)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error("Unhandled error on %s: %s", request.url.path, type(exc).__name__, exc_info=True)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorKind.INTERNAL.value, "Internal Server Error")


@app.middleware("http")
async def request_context_middleware(request, call_next):
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    request.state.request_id = request_id
    token = request_id_ctx_var.set(request_id)
    response = None
    start = time.perf_counter()
    if settings.metrics_enabled:
        IN_PROGRESS.inc()

    try:
        response = await call_next(request)
        return response
    finally:
        duration = time.perf_counter() - start
        path = get_route_name(request.scope)
        status_code = response.status_code if response else 500
        if settings.metrics_enabled:
            REQUEST_COUNT.labels(request.method, path, str(status_code)).inc()
            REQUEST_LATENCY.labels(request.method, path).observe(duration)
            IN_PROGRESS.dec()
        request_id_ctx_var.reset(token)
        if response is not None:
            response.headers["X-Request-ID"] = request_id


app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "OPTIONS"],
    allow_headers=["Origin", "Content-Type", "Accept", "Authorization", "X-Request-ID"],
    expose_headers=["Content-Length", "X-Request-ID"],
    max_age=12 * 3600,
)

app.include_router(password_reset.router, tags=["密码找回"])
app.include_router(smtp_config.router, tags=["SMTP 配置"])
app.include_router(setup.router, prefix="/api", tags=["初始化"])


@app.get("/api/health")
async def health_check():
    """健康检查端点"""
    return {
        "status": "ok",
        "service": "password-recovery",
        "version": __version__,
    }


@app.get("/metrics")
async def metrics():
    """Prometheus 指标端点"""
    if not settings.metrics_enabled:
        raise NotFound("Metrics disabled")
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


def init_sentry() -> None:
    if settings.sentry_dsn:
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            environment=settings.environment,
            integrations=[FastApiIntegration()],
            traces_sample_rate=settings.sentry_traces_sample_rate,
        )


configure_logging(settings.log_level)
init_sentry()
