# chatguard/services/moderation/rate_limiter.py
"""
Ограничение частоты сообщений: скользящее окно (сообщений в минуту)
и всплески (сообщения с интервалом меньше секунды).
"""
from typing import Dict, List

from loguru import logger

from chatguard.config.models import RateLimitConfig
from chatguard.services.moderation.models import RateVerdict, RateWindow


class RateLimiter:
    """
    Проверка допуска сообщения для одного актёра.

    - Всплеск: сообщение, пришедшее раньше чем через burst_interval_ms после
      предыдущего, продолжает текущий всплеск. Первое сообщение всплеска
      считается за 1, поэтому (burst_limit + 1)-е сообщение внутри секунды
      отклоняется.
    - Окно: после удаления отметок старше окна, если их уже
      messages_per_minute, сообщение отклоняется.

    Время последнего сообщения обновляется всегда, даже при отказе, чтобы
    серия быстрых попыток продолжала упираться в лимит всплеска. В окно
    попадают только допущенные сообщения.
    """

    def __init__(self, config: RateLimitConfig):
        self.config = config
        self._windows: Dict[str, RateWindow] = {}

    def reload(self, config: RateLimitConfig) -> None:
        self.config = config

    def check(self, actor_id: str, now: int) -> RateVerdict:
        cfg = self.config
        if not cfg.enabled:
            return RateVerdict.ALLOWED

        window = self._windows.get(actor_id)
        if window is None:
            window = self._windows[actor_id] = RateWindow()

        last = window.last_message_at
        window.last_message_at = now

        if last is not None and now - last < cfg.burst_interval_ms:
            window.burst_count += 1
        else:
            window.burst_count = 1

        if window.burst_count > cfg.burst_limit:
            logger.debug(
                f"⚡ Всплеск от {actor_id}: {window.burst_count} сообщений "
                f"(лимит {cfg.burst_limit})"
            )
            return RateVerdict.BURST_EXCEEDED

        self._prune(window, now)
        if len(window.sent) >= cfg.messages_per_minute:
            logger.debug(
                f"⏱️ Превышен лимит {cfg.messages_per_minute} сообщений/мин для {actor_id}"
            )
            return RateVerdict.RATE_EXCEEDED

        window.sent.append(now)
        return RateVerdict.ALLOWED

    def _prune(self, window: RateWindow, now: int) -> None:
        cutoff = now - self.config.window_seconds * 1000
        sent = window.sent
        while sent and sent[0] < cutoff:
            sent.popleft()

    def prune_inactive(self, actor_id: str, now: int) -> bool:
        """
        Удаляет состояние актёра, молчащего дольше окна.

        Returns:
            True если состояние удалено
        """
        window = self._windows.get(actor_id)
        if window is None:
            return False
        idle_ms = self.config.window_seconds * 1000
        if window.last_message_at is None or now - window.last_message_at > idle_ms:
            del self._windows[actor_id]
            return True
        self._prune(window, now)
        return False

    def forget(self, actor_id: str) -> None:
        self._windows.pop(actor_id, None)

    def window_size(self, actor_id: str) -> int:
        window = self._windows.get(actor_id)
        return len(window.sent) if window else 0

    def tracked_actors(self) -> List[str]:
        return list(self._windows)

    def __contains__(self, actor_id: str) -> bool:
        return actor_id in self._windows
