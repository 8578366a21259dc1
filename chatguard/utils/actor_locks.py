# chatguard/utils/actor_locks.py
"""
Реестр блокировок на уровне одного актёра.

Каждый актёр получает собственный asyncio.Lock, поэтому сообщения разных
актёров никогда не конкурируют за общую блокировку, а сообщения одного
актёра обрабатываются строго в порядке поступления (asyncio.Lock - FIFO).

Использование:
    async with locks.hold(actor_id):
        # изменение состояния актёра
        ...
"""
import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List


class ActorLocks:
    """Блокировки с подсчетом ссылок: простаивающие можно безопасно удалить."""

    def __init__(self) -> None:
        self._locks: Dict[str, asyncio.Lock] = {}
        self._holders: Dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, actor_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(actor_id)
        if lock is None:
            lock = self._locks[actor_id] = asyncio.Lock()
        self._holders[actor_id] = self._holders.get(actor_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            remaining = self._holders[actor_id] - 1
            if remaining:
                self._holders[actor_id] = remaining
            else:
                del self._holders[actor_id]

    def is_busy(self, actor_id: str) -> bool:
        return self._holders.get(actor_id, 0) > 0

    def discard(self, actor_id: str) -> bool:
        """Удаляет блокировку, если ее никто не держит и не ждет."""
        if self.is_busy(actor_id):
            return False
        return self._locks.pop(actor_id, None) is not None

    def actors(self) -> List[str]:
        return list(self._locks)

    def __len__(self) -> int:
        return len(self._locks)
