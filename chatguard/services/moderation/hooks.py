# chatguard/services/moderation/hooks.py
"""
Внешние точки интеграции движка модерации.

Все хуки необязательны и задаются один раз при создании движка. Вызовы
выполняются по принципу fire-and-forget: корутины запускаются отдельными
задачами, ошибки только логируются и никогда не влияют на уже принятое
решение.
"""
import asyncio
import inspect
from dataclasses import dataclass, fields
from typing import Any, Awaitable, Callable, Optional, Set, Union

from loguru import logger

from chatguard.utils.models import Decision, ModerationAction, MuteRecord, Violation

HookResult = Union[None, Awaitable[None]]


@dataclass(frozen=True)
class ModerationHooks:
    """
    Набор необязательных внешних обработчиков.

    Attributes:
        notify_actor: Сообщение пользователю о решении
        persist_violation: Сохранение нарушения
        persist_mute: Сохранение мута
        remove_mute: Удаление мута из хранилища
        record_action: Запись в журнал модерации
        request_kick: Запрос кика у сервера
        request_ban: Запрос бана у сервера
    """
    notify_actor: Optional[Callable[[str, Decision], HookResult]] = None
    persist_violation: Optional[Callable[[Violation], HookResult]] = None
    persist_mute: Optional[Callable[[MuteRecord], HookResult]] = None
    remove_mute: Optional[Callable[[str], HookResult]] = None
    record_action: Optional[Callable[[ModerationAction], HookResult]] = None
    request_kick: Optional[Callable[[str, str], HookResult]] = None
    request_ban: Optional[Callable[[str, str], HookResult]] = None

    def configured(self) -> list:
        return [f.name for f in fields(self) if getattr(self, f.name) is not None]


class HookDispatcher:
    """Запускает хуки, не дожидаясь их завершения."""

    def __init__(self, hooks: Optional[ModerationHooks] = None):
        self.hooks = hooks or ModerationHooks()
        self._pending: Set[asyncio.Task] = set()

    def fire(self, name: str, *args: Any) -> None:
        hook = getattr(self.hooks, name)
        if hook is None:
            return
        try:
            result = hook(*args)
        except Exception as e:
            logger.error(f"❌ Хук {name} завершился ошибкой: {e}")
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._pending.add(task)
            task.add_done_callback(self._make_done_callback(name))

    def _make_done_callback(self, name: str) -> Callable[[asyncio.Task], None]:
        def _done(task: asyncio.Task) -> None:
            self._pending.discard(task)
            if task.cancelled():
                return
            error = task.exception()
            if error is not None:
                logger.error(f"❌ Хук {name} завершился ошибкой: {error}")
        return _done

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Дожидается всех запущенных хуков (для тестов и остановки)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
            self._pending = {task for task in self._pending if not task.done()}
