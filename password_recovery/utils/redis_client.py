"""
Redis 客户端
"""
import redis.asyncio as redis
from password_recovery.config import get_settings

settings = get_settings()

# 仅用于限流计数，连接失败时限流器放行
redis_client = redis.from_url(
    settings.redis_url,
    encoding="utf-8",
    decode_responses=True,
    max_connections=20,
    socket_timeout=2,             # 读写超时（秒）
    socket_connect_timeout=2,     # 连接超时（秒）
    health_check_interval=30,
)
