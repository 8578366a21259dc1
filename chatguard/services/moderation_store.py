# chatguard/services/moderation_store.py
"""
Хранение нарушений, мутов и журнала модерации в Redis.

Методы persist_violation, persist_mute, remove_mute и record_action
совпадают по сигнатуре с хуками движка и подключаются к нему напрямую.
"""
import json
from typing import List, Optional

from loguru import logger
from pydantic import ValidationError
from redis.asyncio import Redis

from chatguard.utils.keys import KeyFactory
from chatguard.utils.models import ModerationAction, MuteRecord, Violation


class ModerationStore:
    """
    Сохраняет состояние модерации между перезапусками.

    - Мут хранится строкой JSON с TTL, равным оставшемуся сроку
      (бессрочный мут хранится без TTL).
    - Нарушения актёра хранятся списком JSON и живут retention_seconds
      после последней записи.
    - Журнал модерации хранит последние max_log_entries действий.
    """

    def __init__(
        self,
        redis_client: Redis,
        retention_seconds: int = 3600,
        max_violations: int = 100,
        max_log_entries: int = 100,
    ):
        self.redis = redis_client
        self.keys = KeyFactory
        self.retention_seconds = retention_seconds
        self.max_violations = max_violations
        self.max_log_entries = max_log_entries
        logger.info("Сервис ModerationStore инициализирован.")

    # --- Нарушения ---

    async def persist_violation(self, violation: Violation) -> None:
        key = self.keys.actor_violations(violation.actor_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.rpush(key, violation.model_dump_json())
            pipe.ltrim(key, -self.max_violations, -1)
            pipe.expire(key, self.retention_seconds)
            await pipe.execute()

    async def get_violations(self, actor_id: str) -> List[Violation]:
        """Сохраненные нарушения актёра, старые первыми. Поврежденные записи пропускаются."""
        raw_items = await self.redis.lrange(self.keys.actor_violations(actor_id), 0, -1)
        violations = []
        for raw in raw_items:
            try:
                violations.append(Violation.model_validate_json(raw))
            except (ValidationError, json.JSONDecodeError):
                logger.warning(f"⚠️ Поврежденная запись нарушения для {actor_id} пропущена")
        return violations

    # --- Муты ---

    async def persist_mute(self, record: MuteRecord) -> None:
        """
        Сохраняет мут.

        Args:
            record: Запись о муте; TTL ключа равен оставшемуся сроку
        """
        key = self.keys.mute_record(record.actor_id)
        data = record.model_dump_json()
        if record.permanent:
            await self.redis.set(key, data)
        else:
            ttl_ms = record.end_time - record.issued_at
            if ttl_ms <= 0:
                return
            await self.redis.set(key, data, px=ttl_ms)
        logger.debug(f"💾 Мут {record.actor_id} сохранен")

    async def remove_mute(self, actor_id: str) -> bool:
        deleted_count = await self.redis.delete(self.keys.mute_record(actor_id))
        if deleted_count > 0:
            logger.info(f"Запись о муте для {actor_id} удалена.")
        return deleted_count > 0

    async def load_mute(self, actor_id: str) -> Optional[MuteRecord]:
        """Получает мут актёра; поврежденная запись удаляется."""
        key = self.keys.mute_record(actor_id)
        raw_data = await self.redis.get(key)
        if not raw_data:
            return None
        try:
            return MuteRecord.model_validate_json(raw_data)
        except (ValidationError, json.JSONDecodeError):
            await self.redis.delete(key)
            logger.warning(f"⚠️ Поврежденная запись мута для {actor_id} удалена")
            return None

    async def load_active_mutes(self, now: int) -> List[MuteRecord]:
        """
        Все муты, активные на момент now.

        Args:
            now: Текущее время (мс)

        Returns:
            Список активных записей (для EscalationEngine.restore_mutes)
        """
        records = []
        prefix_len = len(self.keys.mute_record(""))
        async for key in self.redis.scan_iter(match=self.keys.mute_pattern()):
            record = await self.load_mute(key[prefix_len:])
            if record is not None and record.is_active(now):
                records.append(record)
        logger.info(f"📥 Загружено активных мутов: {len(records)}")
        return records

    # --- Журнал модерации ---

    async def record_action(self, action: ModerationAction) -> None:
        key = self.keys.moderation_log(action.actor_id)
        async with self.redis.pipeline(transaction=True) as pipe:
            pipe.lpush(key, action.model_dump_json())
            pipe.ltrim(key, 0, self.max_log_entries - 1)
            await pipe.execute()

    async def get_history(self, actor_id: str, limit: int = 20) -> List[ModerationAction]:
        """Последние действия модерации, новые первыми."""
        raw_items = await self.redis.lrange(self.keys.moderation_log(actor_id), 0, limit - 1)
        history = []
        for raw in raw_items:
            try:
                history.append(ModerationAction.model_validate_json(raw))
            except (ValidationError, json.JSONDecodeError):
                logger.warning(f"⚠️ Поврежденная запись журнала для {actor_id} пропущена")
        return history
