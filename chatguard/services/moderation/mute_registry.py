# chatguard/services/moderation/mute_registry.py
"""
Реестр мутов и разбор длительности ("1h30m", "permanent").
"""
import re
from datetime import timedelta
from typing import Dict, List, Optional, Union

from loguru import logger

from chatguard.services.moderation.exceptions import InvalidDurationError
from chatguard.utils.models import PERMANENT, MuteRecord


DEFAULT_MUTE_SECONDS = 24 * 60 * 60

UNIT_SECONDS = {"s": 1, "m": 60, "h": 60 * 60, "d": 24 * 60 * 60}
TOKEN_RE = re.compile(r"(\d+)([smhd])")
FULL_RE = re.compile(r"(?:\d+[smhd])+")

DurationSpec = Union[str, int, timedelta, None]


def parse_duration(spec: DurationSpec) -> Optional[int]:
    """
    Разбирает длительность мута в секунды.

    Грамматика: один или несколько токенов `<int><s|m|h|d>` подряд,
    значения суммируются ("1h30m" -> 5400). "permanent" в любом регистре
    означает бессрочный мут.

    Политика по умолчанию: пустая строка или текст без единого токена
    ("soon") дают 24 часа. Смесь токенов с мусором ("1h30x") и нулевая
    сумма считаются ошибкой.

    Args:
        spec: Строка, число секунд или timedelta

    Returns:
        Длительность в секундах; None для бессрочного мута

    Raises:
        InvalidDurationError: если спецификация некорректна
    """
    if isinstance(spec, timedelta):
        spec = int(spec.total_seconds())
    if isinstance(spec, bool):
        raise InvalidDurationError(spec, "ожидается строка или число")
    if isinstance(spec, int):
        if spec <= 0:
            raise InvalidDurationError(spec, "длительность должна быть положительной")
        return spec

    text = (spec or "").strip().lower().replace(" ", "")
    if not text:
        logger.debug(f"Пустая длительность мута, используется значение по умолчанию {DEFAULT_MUTE_SECONDS}s")
        return DEFAULT_MUTE_SECONDS
    if text == "permanent":
        return None

    if not TOKEN_RE.search(text):
        logger.warning(
            f"⚠️ Не удалось разобрать длительность {spec!r}, "
            f"используется значение по умолчанию {DEFAULT_MUTE_SECONDS}s"
        )
        return DEFAULT_MUTE_SECONDS
    if not FULL_RE.fullmatch(text):
        raise InvalidDurationError(spec, "лишние символы")

    total = sum(int(amount) * UNIT_SECONDS[unit] for amount, unit in TOKEN_RE.findall(text))
    if total <= 0:
        raise InvalidDurationError(spec, "нулевая длительность")
    return total


class MuteRegistry:
    """
    Один актуальный мут на актёра. Новый мут перезаписывает предыдущий.

    Запись с end_time <= now считается отсутствующей и удаляется при
    первой же проверке.
    """

    def __init__(self) -> None:
        self._records: Dict[str, MuteRecord] = {}

    def mute(
        self,
        actor_id: str,
        duration_spec: DurationSpec,
        reason: str,
        now: int,
        issued_by: str = "system",
    ) -> MuteRecord:
        """
        Выдает мут.

        Raises:
            InvalidDurationError: если длительность некорректна
        """
        seconds = parse_duration(duration_spec)
        end_time = PERMANENT if seconds is None else now + seconds * 1000
        record = MuteRecord(
            actor_id=actor_id,
            end_time=end_time,
            reason=reason,
            issued_at=now,
            issued_by=issued_by,
        )
        self._records[actor_id] = record
        logger.info(
            f"🔇 Мут для {actor_id}: "
            f"{'навсегда' if record.permanent else f'{seconds}s'} ({reason})"
        )
        return record

    def restore(self, record: MuteRecord) -> None:
        self._records[record.actor_id] = record

    def get(self, actor_id: str, now: int) -> Optional[MuteRecord]:
        record = self._records.get(actor_id)
        if record is None:
            return None
        if not record.is_active(now):
            del self._records[actor_id]
            logger.debug(f"🔈 Мут {actor_id} истек")
            return None
        return record

    def is_muted(self, actor_id: str, now: int) -> bool:
        return self.get(actor_id, now) is not None

    def unmute(self, actor_id: str) -> bool:
        """Снимает мут. Повторный вызов ничего не делает."""
        removed = self._records.pop(actor_id, None)
        if removed is not None:
            logger.info(f"🔈 Мут снят с {actor_id}")
        return removed is not None

    def prune(self, actor_id: str, now: int) -> bool:
        """True если истекший мут удален."""
        record = self._records.get(actor_id)
        if record is not None and not record.is_active(now):
            del self._records[actor_id]
            return True
        return False

    def tracked_actors(self) -> List[str]:
        return list(self._records)

    def __contains__(self, actor_id: str) -> bool:
        return actor_id in self._records
