"""
时间工具：数据库中的时间一律为 naive UTC
"""
from datetime import datetime, timezone


def utc_now_naive() -> datetime:
    """当前 UTC 时间，去掉时区信息后写入 DateTime 列"""
    return datetime.now(timezone.utc).replace(tzinfo=None)
