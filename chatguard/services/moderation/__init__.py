# chatguard/services/moderation/__init__.py
"""
Модуль модерации чата.

Компоненты:
- EscalationEngine - главный сервис проверки сообщений и эскалации
- ModerationHooks - необязательные внешние обработчики
- JanitorSweep - периодическая очистка состояния
"""

from chatguard.services.moderation.engine import EscalationEngine
from chatguard.services.moderation.exceptions import (
    ConfigError,
    EvaluationError,
    InvalidDurationError,
    ModerationError,
)
from chatguard.services.moderation.hooks import ModerationHooks
from chatguard.services.moderation.janitor import JanitorSweep
from chatguard.services.moderation.models import ActorStats, RateVerdict, SweepReport
from chatguard.services.moderation.mute_registry import parse_duration

__all__ = [
    "EscalationEngine",
    "ModerationHooks",
    "JanitorSweep",
    "ActorStats",
    "RateVerdict",
    "SweepReport",
    "parse_duration",
    "ModerationError",
    "ConfigError",
    "InvalidDurationError",
    "EvaluationError",
]
