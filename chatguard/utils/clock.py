# chatguard/utils/clock.py
"""
Источники времени. Все компоненты работают с целыми миллисекундами epoch.
"""
import time
from typing import Protocol


class Clock(Protocol):
    def now_ms(self) -> int:
        ...


class SystemClock:
    """Системные часы (time.time в миллисекундах)."""

    def now_ms(self) -> int:
        return int(time.time() * 1000)


class ManualClock:
    """
    Управляемые вручную часы для тестов и воспроизведения.

    Время только растет: `advance` с отрицательным шагом запрещен.
    """

    def __init__(self, start_ms: int = 0):
        self._now = int(start_ms)

    def now_ms(self) -> int:
        return self._now

    def advance(self, ms: int = 0, *, seconds: float = 0) -> int:
        step = int(ms + seconds * 1000)
        if step < 0:
            raise ValueError("ManualClock не умеет идти назад")
        self._now += step
        return self._now

    def set(self, now_ms: int) -> None:
        self._now = int(now_ms)
