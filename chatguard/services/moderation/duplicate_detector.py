# chatguard/services/moderation/duplicate_detector.py
"""
Обнаружение повторов и почти-повторов сообщений.
"""
from collections import deque
from typing import Deque, Dict, List

from loguru import logger

from chatguard.config.models import SpamConfig
from chatguard.services.moderation.models import DuplicateVerdict, HistoryEntry
from chatguard.utils.similarity import similarity


class DuplicateDetector:
    """
    Хранит ограниченную историю последних нормализованных сообщений актёра
    и сообщает о повторах. Сам ничего не блокирует: решение принимает
    EscalationEngine.

    Стоимость проверки O(history_size * L^2), где L не превышает
    max_compare_length: более длинные тексты сравниваются по префиксу.
    """

    def __init__(self, config: SpamConfig):
        self.config = config
        self._history: Dict[str, Deque[HistoryEntry]] = {}

    def reload(self, config: SpamConfig) -> None:
        self.config = config

    def check(self, actor_id: str, normalized_text: str, now: int) -> DuplicateVerdict:
        cfg = self.config
        history = self._history.get(actor_id)
        if history is None:
            history = self._history[actor_id] = deque()

        self._prune(history, now)

        verdict = DuplicateVerdict.CLEAN
        exact = sum(1 for entry in history if entry.text == normalized_text)
        if exact >= cfg.duplicate_threshold:
            verdict = DuplicateVerdict.EXACT_DUPLICATE
        else:
            probe = normalized_text[:cfg.max_compare_length]
            similar = 0
            for entry in history:
                score = similarity(probe, entry.text[:cfg.max_compare_length])
                if score >= cfg.similarity_threshold:
                    similar += 1
                    if similar >= cfg.required_similar_count:
                        verdict = DuplicateVerdict.NEAR_DUPLICATE
                        break

        while len(history) >= cfg.history_size:
            history.popleft()
        history.append(HistoryEntry(text=normalized_text, timestamp=now))

        if verdict.is_spam:
            logger.debug(f"🔁 {verdict.value} от {actor_id}: {normalized_text[:50]!r}")
        return verdict

    def _prune(self, history: Deque[HistoryEntry], now: int) -> int:
        cutoff = now - self.config.window_seconds * 1000
        removed = 0
        while history and history[0].timestamp < cutoff:
            history.popleft()
            removed += 1
        return removed

    def prune(self, actor_id: str, now: int) -> int:
        """
        Удаляет устаревшие записи истории; пустая история освобождается.

        Returns:
            Количество удаленных записей
        """
        history = self._history.get(actor_id)
        if history is None:
            return 0
        removed = self._prune(history, now)
        if not history:
            del self._history[actor_id]
        return removed

    def history(self, actor_id: str) -> List[str]:
        return [entry.text for entry in self._history.get(actor_id, ())]

    def forget(self, actor_id: str) -> None:
        self._history.pop(actor_id, None)

    def tracked_actors(self) -> List[str]:
        return list(self._history)

    def __contains__(self, actor_id: str) -> bool:
        return actor_id in self._history
