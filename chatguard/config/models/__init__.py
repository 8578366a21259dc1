# chatguard/config/models/__init__.py
from chatguard.config.models.core import JanitorConfig, LoggingConfig
from chatguard.config.models.moderation import (
    ChecksConfig,
    EscalationConfig,
    FilterConfig,
    ModerationConfig,
    RateLimitConfig,
    SpamConfig,
)

__all__ = [
    "JanitorConfig",
    "LoggingConfig",
    "ChecksConfig",
    "EscalationConfig",
    "FilterConfig",
    "ModerationConfig",
    "RateLimitConfig",
    "SpamConfig",
]
