# chatguard/config/models/moderation.py
"""
Конфигурация движка модерации.

Конфигурация неизменяема во время работы: `EscalationEngine.reload()`
подменяет объект целиком, рантайм-состояние актёров при этом не трогается.
"""
from typing import Dict, List, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from chatguard.utils.models import DecisionAction, Severity


DEFAULT_TOXIC_KEYWORDS: List[str] = [
    "kys", "kill yourself", "hate", "stupid", "idiot", "noob",
    "trash", "garbage", "worthless", "useless",
]

DEFAULT_DOMAIN_TLDS: List[str] = ["net", "com", "org", "co", "me", "us", "eu"]


class RateLimitConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=(), frozen=True)

    enabled: bool = True
    messages_per_minute: int = Field(default=30, ge=1)
    burst_limit: int = Field(default=5, ge=1)
    burst_interval_ms: int = Field(default=1000, ge=1)
    window_seconds: int = Field(default=60, ge=1)


class SpamConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=(), frozen=True)

    history_size: int = Field(default=10, ge=1)
    window_seconds: int = Field(default=10, ge=1)
    duplicate_threshold: int = Field(default=2, ge=1)
    similarity_threshold: float = Field(default=0.8, ge=0.0, le=1.0)
    required_similar_count: int = Field(default=2, ge=1)
    max_compare_length: int = Field(default=256, ge=1)


class FilterConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=(), frozen=True)

    blocked_words: List[str] = Field(default_factory=list)
    allowed_words: List[str] = Field(default_factory=list)
    severity_levels: Dict[str, Severity] = Field(default_factory=dict)
    extra_patterns: Dict[str, str] = Field(default_factory=dict)
    allowed_domains: List[str] = Field(default_factory=list)
    domain_tlds: List[str] = Field(default_factory=lambda: list(DEFAULT_DOMAIN_TLDS))
    mask_char: str = "*"

    @field_validator("blocked_words", "allowed_words", "allowed_domains", "domain_tlds", mode="before")
    @classmethod
    def parse_word_list(cls, v):
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("severity_levels", mode="before")
    @classmethod
    def lower_severity_keys(cls, v):
        if isinstance(v, dict):
            return {
                str(word).lower(): (level.lower() if isinstance(level, str) else level)
                for word, level in v.items()
            }
        return v

    @field_validator("mask_char")
    @classmethod
    def single_mask_char(cls, v: str) -> str:
        if len(v) != 1:
            raise ValueError("mask_char должен быть ровно одним символом")
        return v


class ChecksConfig(BaseModel):
    """Включение отдельных проверок и их пороги."""

    model_config = ConfigDict(protected_namespaces=(), frozen=True)

    profanity: bool = True
    spam: bool = True
    caps: bool = True
    repeated_chars: bool = True
    advertising: bool = True
    toxicity: bool = True
    validation: bool = True

    caps_percentage: int = Field(default=70, ge=0, le=100)
    caps_min_letters: int = Field(default=5, ge=1)
    repeated_char_threshold: int = Field(default=5, ge=1)
    toxic_keywords: List[str] = Field(default_factory=lambda: list(DEFAULT_TOXIC_KEYWORDS))

    max_message_length: int = Field(default=2048, ge=1)
    special_char_ratio: float = Field(default=0.5, ge=0.0, le=1.0)
    special_char_min_length: int = Field(default=8, ge=1)


class EscalationConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=(), frozen=True)

    enabled: bool = True
    auto_mute: bool = True
    auto_kick: bool = True
    auto_ban: bool = True

    warn_at: int = Field(default=3, ge=1)
    mute_at: int = Field(default=5, ge=1)
    kick_at: int = Field(default=8, ge=1)
    ban_at: int = Field(default=10, ge=1)

    retention_seconds: int = Field(default=3600, ge=1)
    default_mute_seconds: int = Field(default=600, ge=1)
    warning_mute_seconds: int = Field(default=300, ge=1)
    use_weighted_score: bool = False

    @model_validator(mode="after")
    def check_threshold_order(self) -> "EscalationConfig":
        if not (self.warn_at <= self.mute_at <= self.kick_at <= self.ban_at):
            raise ValueError(
                "Пороги эскалации должны неубывать: warn_at <= mute_at <= kick_at <= ban_at"
            )
        return self

    def threshold_table(self) -> List[Tuple[int, DecisionAction]]:
        """
        Таблица порогов, упорядоченная от самого строгого действия.

        Отключенные строки (auto_* = False) в таблицу не попадают.
        """
        if not self.enabled:
            return []
        rows = [
            (self.ban_at, DecisionAction.BAN, self.auto_ban),
            (self.kick_at, DecisionAction.KICK, self.auto_kick),
            (self.mute_at, DecisionAction.MUTE, self.auto_mute),
            (self.warn_at, DecisionAction.WARN, True),
        ]
        return [(threshold, action) for threshold, action, on in rows if on]


class ModerationConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=(), frozen=True)

    enabled: bool = True
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    spam: SpamConfig = Field(default_factory=SpamConfig)
    filter: FilterConfig = Field(default_factory=FilterConfig)
    checks: ChecksConfig = Field(default_factory=ChecksConfig)
    escalation: EscalationConfig = Field(default_factory=EscalationConfig)
