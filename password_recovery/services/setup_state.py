"""
运行时初始化状态

读操作直接获取不可变快照，写操作在锁内整体替换快照。
"""
import asyncio
from dataclasses import dataclass, replace


@dataclass(frozen=True)
class SetupStatus:
    db_configured: bool = False
    tables_created: bool = False
    smtp_configured: bool = False

    @property
    def is_complete(self) -> bool:
        return self.db_configured and self.tables_created and self.smtp_configured


class SetupStateStore:
    def __init__(self):
        self._status = SetupStatus()
        self._lock = asyncio.Lock()

    def snapshot(self) -> SetupStatus:
        return self._status

    async def update(self, **changes: bool) -> SetupStatus:
        async with self._lock:
            self._status = replace(self._status, **changes)
            return self._status
