# chatguard/services/moderation/models.py
"""
Рантайм-модели движка модерации.
"""
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, FrozenSet, List, Optional, Tuple


class RateVerdict(str, Enum):
    ALLOWED = "allowed"
    RATE_EXCEEDED = "rate_exceeded"
    BURST_EXCEEDED = "burst_exceeded"

    @property
    def exceeded(self) -> bool:
        return self is not RateVerdict.ALLOWED


class DuplicateVerdict(str, Enum):
    CLEAN = "clean"
    EXACT_DUPLICATE = "exact_duplicate"
    NEAR_DUPLICATE = "near_duplicate"

    @property
    def is_spam(self) -> bool:
        return self is not DuplicateVerdict.CLEAN


class MessageValidation(str, Enum):
    VALID = "valid"
    TOO_LONG = "too_long"
    MALICIOUS_CONTENT = "malicious_content"
    EXCESSIVE_SPECIAL_CHARS = "excessive_special_chars"


class PatternId:
    """Идентификаторы встроенных шаблонов рекламы."""
    IPV4 = "ipv4"
    DOMAIN = "domain"
    INVITE = "invite"


@dataclass(frozen=True)
class Message:
    """
    Сообщение в момент проверки.

    Attributes:
        actor_id: Отправитель
        raw_text: Исходный текст
        normalized_text: Текст в нижнем регистре без пробелов по краям
        channel: Канал чата
        timestamp: Время получения (мс)
    """
    actor_id: str
    raw_text: str
    normalized_text: str
    channel: str
    timestamp: int

    @classmethod
    def create(cls, actor_id: str, text: str, channel: str, timestamp: int) -> "Message":
        raw = text or ""
        return cls(
            actor_id=actor_id,
            raw_text=raw,
            normalized_text=raw.strip().lower(),
            channel=channel,
            timestamp=timestamp,
        )


@dataclass
class RateWindow:
    """Окно отправок одного актёра. Принадлежит RateLimiter."""
    sent: Deque[int] = field(default_factory=deque)
    last_message_at: Optional[int] = None
    burst_count: int = 0


@dataclass
class HistoryEntry:
    text: str
    timestamp: int


@dataclass
class ScanResult:
    """Результат проверки ContentFilter."""
    matched_words: FrozenSet[str] = frozenset()
    matched_patterns: FrozenSet[str] = frozenset()
    filtered_text: str = ""

    @property
    def has_advertising(self) -> bool:
        return bool(self.matched_patterns)


@dataclass
class WarningState:
    """Счетчик предупреждений актёра и время последнего из них (мс)."""
    count: int = 0
    last_warned_at: int = 0


@dataclass(frozen=True)
class ActorStats:
    """Диагностика по актёру (только чтение)."""
    violation_count: int
    weighted_score: int
    warnings: int
    muted: bool
    mute_ends_at: Optional[int]


@dataclass
class SweepReport:
    """Сколько записей освободил один проход уборщика."""
    actors_scanned: int = 0
    violations_pruned: int = 0
    history_pruned: int = 0
    mutes_expired: int = 0
    rate_windows_dropped: int = 0
    warnings_expired: int = 0
    locks_released: int = 0
    errors: List[str] = field(default_factory=list)

    @property
    def total_reclaimed(self) -> int:
        return (
            self.violations_pruned
            + self.history_pruned
            + self.mutes_expired
            + self.rate_windows_dropped
            + self.warnings_expired
        )


@dataclass
class DetectorOutcome:
    """Сигналы всех детекторов для одного сообщения."""
    duplicate: DuplicateVerdict = DuplicateVerdict.CLEAN
    scan: Optional[ScanResult] = None
    caps: bool = False
    repeated: bool = False
    toxic: bool = False
    errors: List[str] = field(default_factory=list)

    def error_tuple(self) -> Tuple[str, ...]:
        return tuple(self.errors)
