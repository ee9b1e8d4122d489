"""
SMTP 配置管理 API
"""
import logging
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from password_recovery.database import get_db
from password_recovery.errors import NotFound, RequestInvalid, TransportError, UnsupportedPort
from password_recovery.models.smtp_config import SmtpConfig
from password_recovery.routers.setup import get_setup_state
from password_recovery.schemas.common import MessageResponse
from password_recovery.schemas.smtp_config import (
    SmtpConfigCreate,
    SmtpConfigUpdate,
    SmtpConfigResponse,
    SmtpTestResult,
)
from password_recovery.services.mail_transport import TransportSettings, check_connection
from password_recovery.services.setup_state import SetupStateStore
from password_recovery.services.smtp_config_store import (
    activate_config,
    delete_active_config,
    get_active_config,
    update_active_config,
)
from password_recovery.utils.crypto import decrypt_secret
from password_recovery.utils.security import get_admin_principal

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/admin/smtp-config",
    dependencies=[Depends(get_admin_principal)],
)


def _map_config_to_response(config: SmtpConfig) -> SmtpConfigResponse:
    return SmtpConfigResponse(
        id=config.id,
        host=config.host,
        port=config.port,
        username=config.username,
        from_email=config.from_email,
        has_password=bool(config.password),
        is_active=config.is_active,
        created_at=config.created_at.isoformat(),
        updated_at=config.updated_at.isoformat(),
    )


@router.get("", response_model=SmtpConfigResponse)
async def get_config(db: AsyncSession = Depends(get_db)):
    """获取当前启用的 SMTP 配置"""
    config = await get_active_config(db)
    if not config:
        raise NotFound("SMTP 配置不存在")
    return _map_config_to_response(config)


@router.post("", response_model=SmtpConfigResponse)
async def create_config(
    data: SmtpConfigCreate,
    db: AsyncSession = Depends(get_db),
    setup_state: SetupStateStore = Depends(get_setup_state),
):
    """保存并启用新的 SMTP 配置，其他配置自动停用"""
    config = await activate_config(
        db,
        host=data.host,
        port=data.port,
        username=data.username,
        password=data.password,
        from_email=data.from_email,
    )
    await db.commit()
    await setup_state.update(smtp_configured=True)
    return _map_config_to_response(config)


@router.put("", response_model=SmtpConfigResponse)
async def update_config(
    data: SmtpConfigUpdate,
    db: AsyncSession = Depends(get_db),
    setup_state: SetupStateStore = Depends(get_setup_state),
):
    """更新当前启用的 SMTP 配置"""
    config = await update_active_config(
        db,
        host=data.host,
        port=data.port,
        username=data.username,
        from_email=data.from_email,
        password=data.password,
    )
    await db.commit()
    await setup_state.update(smtp_configured=True)
    return _map_config_to_response(config)


@router.delete("", response_model=MessageResponse)
async def delete_config(
    db: AsyncSession = Depends(get_db),
    setup_state: SetupStateStore = Depends(get_setup_state),
):
    """删除当前启用的 SMTP 配置"""
    deleted = await delete_active_config(db)
    await db.commit()
    await setup_state.update(smtp_configured=False)
    if not deleted:
        return {"message": "没有需要删除的 SMTP 配置"}
    return {"message": "SMTP 配置已删除"}


@router.post("/test", response_model=SmtpTestResult)
async def test_config(
    data: SmtpConfigUpdate,
    db: AsyncSession = Depends(get_db),
):
    """使用提交的配置测试 SMTP 连接（不发送邮件），返回诊断信息

    未提供密码时使用当前启用配置中保存的密码。
    """
    password = data.password
    if not password:
        active = await get_active_config(db)
        if not active:
            raise RequestInvalid("请提供 SMTP 密码")
        password = decrypt_secret(active.password)

    transport = TransportSettings(
        host=data.host,
        port=data.port,
        username=data.username,
        password=password,
        from_email=data.from_email,
    )

    try:
        await check_connection(transport)
    except TransportError as exc:
        logger.info("SMTP test failed: stage=%s", exc.stage.value)
        return SmtpTestResult(
            success=False,
            message=exc.message,
            error_type=exc.kind.value,
            stage=exc.stage.value,
        )
    except UnsupportedPort as exc:
        return SmtpTestResult(
            success=False,
            message=exc.message,
            error_type=exc.kind.value,
        )

    return SmtpTestResult(success=True, message="SMTP 连接测试成功")
