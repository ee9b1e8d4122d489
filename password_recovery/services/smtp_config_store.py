"""
SMTP 配置存取

同一时间只有一条启用的配置：激活新配置时，在同一事务内先停用其他配置再插入。
"""
import logging
from typing import Optional

from sqlalchemy import select, update, desc
from sqlalchemy.ext.asyncio import AsyncSession

from password_recovery.errors import RequestInvalid
from password_recovery.models.smtp_config import SmtpConfig
from password_recovery.utils.crypto import encrypt_secret

logger = logging.getLogger(__name__)


async def get_active_config(db: AsyncSession) -> Optional[SmtpConfig]:
    """读取当前启用的 SMTP 配置（不缓存，每次都查库）"""
    result = await db.execute(
        select(SmtpConfig)
        .where(SmtpConfig.is_active == True)  # noqa: E712
        .order_by(desc(SmtpConfig.updated_at), desc(SmtpConfig.id))
        .limit(1)
    )
    return result.scalar_one_or_none()


async def activate_config(
    db: AsyncSession,
    host: str,
    port: int,
    username: str,
    password: str,
    from_email: str,
) -> SmtpConfig:
    """停用所有已有配置并插入一条新的启用配置（调用方负责提交事务）"""
    await db.execute(
        update(SmtpConfig)
        .where(SmtpConfig.is_active == True)  # noqa: E712
        .values(is_active=False)
    )

    config = SmtpConfig(
        host=host,
        port=port,
        username=username,
        password=encrypt_secret(password),
        from_email=from_email,
        is_active=True,
    )
    db.add(config)
    await db.flush()
    await db.refresh(config)

    logger.info("Activated SMTP config: %s (%s:%s)", config.id, config.host, config.port)
    return config


async def update_active_config(
    db: AsyncSession,
    host: str,
    port: int,
    username: str,
    from_email: str,
    password: Optional[str] = None,
) -> SmtpConfig:
    """更新当前启用的配置；未提供密码时保留原密码。没有启用配置时新建一条。"""
    config = await get_active_config(db)
    if config is None:
        if not password:
            raise RequestInvalid("没有启用的 SMTP 配置时必须提供密码")
        return await activate_config(db, host, port, username, password, from_email)

    config.host = host
    config.port = port
    config.username = username
    config.from_email = from_email
    if password:
        config.password = encrypt_secret(password)

    await db.flush()
    await db.refresh(config)

    logger.info("Updated SMTP config: %s", config.id)
    return config


async def delete_active_config(db: AsyncSession) -> bool:
    """删除当前启用的配置，返回是否有记录被删除"""
    config = await get_active_config(db)
    if config is None:
        return False

    await db.delete(config)
    await db.flush()

    logger.info("Deleted SMTP config: %s", config.id)
    return True
