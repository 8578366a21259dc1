# chatguard/config/settings.py
from typing import Any, Optional

from loguru import logger
from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from chatguard.config.models import JanitorConfig, LoggingConfig, ModerationConfig


class Settings(BaseSettings):
    REDIS_URL: Optional[str] = None

    log_level: str = "INFO"
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    moderation: ModerationConfig = Field(default_factory=ModerationConfig)
    janitor: JanitorConfig = Field(default_factory=JanitorConfig)

    @field_validator("REDIS_URL", mode="before")
    @classmethod
    def assemble_redis_dsn(cls, v: Any) -> Optional[str]:
        if v is None or (isinstance(v, str) and not v.strip()):
            return None
        if isinstance(v, str) and not v.startswith(("redis://", "rediss://", "unix://")):
            return f"redis://{v}"
        return v

    @property
    def redis_url(self) -> Optional[str]:
        return self.REDIS_URL

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )


try:
    settings = Settings()
    logger.debug("✅ Конфигурация успешно загружена и валидирована.")
except ValidationError as e:
    logger.critical(
        "❌ КРИТИЧЕСКАЯ ОШИБКА ВАЛИДАЦИИ НАСТРОЕК. Проверьте .env и переменные окружения.\n{}",
        e,
    )
    raise SystemExit("Ошибки валидации конфигурации.")
