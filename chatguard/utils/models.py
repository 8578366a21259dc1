# chatguard/utils/models.py
from __future__ import annotations

from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


PERMANENT = -1


class Severity(str, Enum):
    """Тяжесть нарушения"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def weight(self) -> int:
        return SEVERITY_WEIGHTS[self]


SEVERITY_WEIGHTS = {
    Severity.LOW: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
}


class ViolationType(str, Enum):
    """Типы нарушений правил чата"""
    PROFANITY = "profanity"
    SEVERE_PROFANITY = "severe_profanity"
    SPAM = "spam"
    EXCESSIVE_CAPS = "excessive_caps"
    REPEATED_CHARACTERS = "repeated_characters"
    ADVERTISING = "advertising"
    TOXICITY = "toxicity"
    MALICIOUS_CONTENT = "malicious_content"

    @property
    def severity(self) -> Severity:
        return VIOLATION_SEVERITY[self]


VIOLATION_SEVERITY = {
    ViolationType.ADVERTISING: Severity.HIGH,
    ViolationType.MALICIOUS_CONTENT: Severity.HIGH,
    ViolationType.SEVERE_PROFANITY: Severity.HIGH,
    ViolationType.TOXICITY: Severity.MEDIUM,
    ViolationType.PROFANITY: Severity.MEDIUM,
    ViolationType.SPAM: Severity.MEDIUM,
    ViolationType.EXCESSIVE_CAPS: Severity.LOW,
    ViolationType.REPEATED_CHARACTERS: Severity.LOW,
}

# Типы, при которых сообщение блокируется сразу, без учета порогов
BLOCKING_TYPES = frozenset({
    ViolationType.ADVERTISING,
    ViolationType.SEVERE_PROFANITY,
    ViolationType.MALICIOUS_CONTENT,
})


class DecisionAction(str, Enum):
    """Действие, выбранное движком для сообщения"""
    ALLOW = "allow"
    FILTER = "filter"
    WARN = "warn"
    MUTE = "mute"
    KICK = "kick"
    BAN = "ban"
    BLOCK = "block"


class Violation(BaseModel):
    """Зафиксированное нарушение. Неизменяемо после создания."""
    model_config = ConfigDict(frozen=True)

    actor_id: str
    type: ViolationType
    severity: Severity
    channel: str = "global"
    message: str = ""
    timestamp: int

    @classmethod
    def create(
        cls,
        actor_id: str,
        violation_type: ViolationType,
        timestamp: int,
        channel: str = "global",
        message: str = "",
    ) -> "Violation":
        return cls(
            actor_id=actor_id,
            type=violation_type,
            severity=violation_type.severity,
            channel=channel,
            message=message,
            timestamp=timestamp,
        )


class MuteRecord(BaseModel):
    """Запись о муте. end_time == -1 означает бессрочный мут."""
    model_config = ConfigDict(frozen=True)

    actor_id: str
    end_time: int
    reason: str = ""
    issued_at: int
    issued_by: str = "system"

    @property
    def permanent(self) -> bool:
        return self.end_time == PERMANENT

    def is_active(self, now: int) -> bool:
        return self.permanent or self.end_time > now

    def remaining_ms(self, now: int) -> Optional[int]:
        """Оставшееся время мута; None для бессрочного."""
        if self.permanent:
            return None
        return max(0, self.end_time - now)


class ModerationAction(BaseModel):
    """Запись журнала модерации (мут, размут, предупреждение, кик, бан)."""
    model_config = ConfigDict(frozen=True)

    actor_id: str
    action: str
    moderator: str = "system"
    reason: str = ""
    timestamp: int
    duration_seconds: int = 0


class Decision(BaseModel):
    """Итоговое решение по одному сообщению."""
    model_config = ConfigDict(frozen=True)

    action: DecisionAction
    text: Optional[str] = None
    count: Optional[int] = None
    duration_seconds: Optional[int] = None
    violations: Tuple[ViolationType, ...] = ()
    reason: str = ""
    errors: Tuple[str, ...] = Field(default_factory=tuple)

    @property
    def delivered(self) -> bool:
        return self.action in (DecisionAction.ALLOW, DecisionAction.FILTER)

    @classmethod
    def allow(cls, text: str, errors: Tuple[str, ...] = ()) -> "Decision":
        return cls(action=DecisionAction.ALLOW, text=text, errors=errors)

    @classmethod
    def filter(cls, text: str, violations, errors: Tuple[str, ...] = ()) -> "Decision":
        return cls(
            action=DecisionAction.FILTER,
            text=text,
            violations=tuple(violations),
            errors=errors,
        )

    @classmethod
    def warn(cls, count: int, violations, reason: str = "", errors: Tuple[str, ...] = ()) -> "Decision":
        return cls(
            action=DecisionAction.WARN,
            count=count,
            violations=tuple(violations),
            reason=reason,
            errors=errors,
        )

    @classmethod
    def mute(cls, duration_seconds: int, violations, reason: str = "", errors: Tuple[str, ...] = ()) -> "Decision":
        return cls(
            action=DecisionAction.MUTE,
            duration_seconds=duration_seconds,
            violations=tuple(violations),
            reason=reason,
            errors=errors,
        )

    @classmethod
    def kick(cls, violations, reason: str = "", errors: Tuple[str, ...] = ()) -> "Decision":
        return cls(action=DecisionAction.KICK, violations=tuple(violations), reason=reason, errors=errors)

    @classmethod
    def ban(cls, violations, reason: str = "", errors: Tuple[str, ...] = ()) -> "Decision":
        return cls(action=DecisionAction.BAN, violations=tuple(violations), reason=reason, errors=errors)

    @classmethod
    def block(cls, violations=(), reason: str = "", errors: Tuple[str, ...] = ()) -> "Decision":
        return cls(action=DecisionAction.BLOCK, violations=tuple(violations), reason=reason, errors=errors)
