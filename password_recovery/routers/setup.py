"""
初始化状态与管理员登录
"""
import logging
from fastapi import APIRouter, Depends, Request

from password_recovery.config import get_settings
from password_recovery.errors import Unauthorized
from password_recovery.schemas.setup import SetupLoginRequest, SetupStatusResponse, TokenResponse
from password_recovery.services.secret_provider import SettingsSecretProvider
from password_recovery.services.setup_state import SetupStateStore
from password_recovery.utils.request_context import sanitize_log_input
from password_recovery.utils.security import ADMIN_SCOPE, create_access_token

logger = logging.getLogger(__name__)

router = APIRouter()


def get_setup_state(request: Request) -> SetupStateStore:
    return request.app.state.setup_state


def get_secret_provider() -> SettingsSecretProvider:
    return SettingsSecretProvider(get_settings())


@router.get("/status", response_model=SetupStatusResponse)
async def get_status(setup_state: SetupStateStore = Depends(get_setup_state)):
    """查询系统初始化状态"""
    status = setup_state.snapshot()
    return SetupStatusResponse(
        setup=status.is_complete,
        db_configured=status.db_configured,
        tables_created=status.tables_created,
        smtp_configured=status.smtp_configured,
    )


@router.post("/login-setup", response_model=TokenResponse)
async def login_setup(
    data: SetupLoginRequest,
    provider: SettingsSecretProvider = Depends(get_secret_provider),
):
    """使用初始化凭据登录，获取管理端令牌"""
    if not provider.check(data.user, data.password):
        logger.warning("Setup login failed for user %s", sanitize_log_input(data.user))
        raise Unauthorized("用户名或密码错误")

    token = create_access_token({"sub": data.user, "scope": ADMIN_SCOPE})
    return TokenResponse(access_token=token)
