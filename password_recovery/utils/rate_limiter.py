"""
API 速率限制器

按客户端 IP 计数；Redis 不可用时放行，不影响找回密码主流程。
"""
import logging
from fastapi import Request
import redis.asyncio as redis

from password_recovery.errors import RateLimited
from password_recovery.utils.redis_client import redis_client

logger = logging.getLogger(__name__)


class RateLimiter:
    def __init__(self, times: int = 5, seconds: int = 60):
        """
        Args:
            times: 时间窗口内允许的请求次数
            seconds: 时间窗口（秒）
        """
        self.times = times
        self.seconds = seconds

    async def __call__(self, request: Request):
        key = f"rate_limit:{self._get_client_id(request)}:{request.url.path}"

        try:
            current = await redis_client.get(key)
            if current and int(current) >= self.times:
                raise RateLimited()

            async with redis_client.pipeline() as pipe:
                await pipe.incr(key)
                if not current:
                    await pipe.expire(key, self.seconds)
                await pipe.execute()
        except redis.RedisError as exc:
            logger.warning("Rate limiter unavailable, allowing request: %s", exc)

    def _get_client_id(self, request: Request) -> str:
        # X-Forwarded-For 可能包含多个 IP，取第一个
        ip = request.headers.get("X-Forwarded-For") or (request.client.host if request.client else "unknown")
        if "," in ip:
            ip = ip.split(",")[0].strip()
        return f"ip:{ip}"
