# chatguard/services/moderation/violation_ledger.py
"""
Журнал нарушений с подсчетом во временном окне.
"""
from typing import Dict, List

from loguru import logger

from chatguard.utils.models import Violation


class ViolationLedger:
    """
    Хранит нарушения каждого актёра не дольше окна хранения.

    Инвариант: после любой операции с актёром все его записи моложе
    retention_seconds. Старые записи удаляются лениво перед каждым запросом
    и принудительно уборщиком.

    Граница окна: запись учитывается, если timestamp > now - window.
    """

    def __init__(self, retention_seconds: int = 3600):
        self.retention_seconds = retention_seconds
        self._entries: Dict[str, List[Violation]] = {}

    def reload(self, retention_seconds: int) -> None:
        self.retention_seconds = retention_seconds

    def record(self, violation: Violation) -> None:
        entries = self._entries.get(violation.actor_id)
        if entries is None:
            entries = self._entries[violation.actor_id] = []
        else:
            self._prune_entries(entries, violation.timestamp)
        entries.append(violation)
        logger.debug(
            f"📝 Нарушение {violation.type.value} ({violation.severity.value}) "
            f"для {violation.actor_id} в #{violation.channel}"
        )

    def count_since(self, actor_id: str, now: int, window_seconds: int) -> int:
        """
        Количество нарушений за последние window_seconds.

        Args:
            actor_id: ID актёра
            now: Текущее время (мс)
            window_seconds: Окно подсчета

        Returns:
            Число записей с timestamp > now - window
        """
        return len(self._recent(actor_id, now, window_seconds))

    def recent_severity_weighted_score(self, actor_id: str, now: int, window_seconds: int) -> int:
        """Сумма весов тяжести (LOW=1, MEDIUM=2, HIGH=3) за окно."""
        return sum(v.severity.weight for v in self._recent(actor_id, now, window_seconds))

    def _recent(self, actor_id: str, now: int, window_seconds: int) -> List[Violation]:
        entries = self._entries.get(actor_id)
        if not entries:
            return []
        self._prune_entries(entries, now)
        cutoff = now - window_seconds * 1000
        return [v for v in entries if v.timestamp > cutoff]

    def _prune_entries(self, entries: List[Violation], now: int) -> int:
        cutoff = now - self.retention_seconds * 1000
        kept = [v for v in entries if v.timestamp > cutoff]
        removed = len(entries) - len(kept)
        if removed:
            entries[:] = kept
        return removed

    def prune(self, actor_id: str, now: int) -> int:
        """
        Удаляет устаревшие записи актёра; пустой журнал освобождается.

        Returns:
            Количество удаленных записей
        """
        entries = self._entries.get(actor_id)
        if entries is None:
            return 0
        removed = self._prune_entries(entries, now)
        if not entries:
            del self._entries[actor_id]
        return removed

    def entries(self, actor_id: str) -> List[Violation]:
        return list(self._entries.get(actor_id, ()))

    def clear(self, actor_id: str) -> int:
        removed = self._entries.pop(actor_id, [])
        return len(removed)

    def tracked_actors(self) -> List[str]:
        return list(self._entries)

    def __contains__(self, actor_id: str) -> bool:
        return actor_id in self._entries
