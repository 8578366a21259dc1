# chatguard/config/models/core.py
from typing import List

from pydantic import BaseModel, ConfigDict, Field


class LoggingConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    json_enabled: bool = False
    service_name: str = "chatguard"
    debug_loggers: List[str] = []


class JanitorConfig(BaseModel):
    model_config = ConfigDict(protected_namespaces=())

    enabled: bool = True
    interval_seconds: int = Field(default=300, ge=1)
    misfire_grace_seconds: int = 60
