# chatguard/utils/keys.py
class KeyFactory:
    """Генерирует стандартизированные ключи для Redis."""

    PREFIX = "chatguard"

    # --- Муты ---
    @classmethod
    def mute_record(cls, actor_id: str) -> str:
        return f"{cls.PREFIX}:mute:{actor_id}"

    @classmethod
    def mute_pattern(cls) -> str:
        return f"{cls.PREFIX}:mute:*"

    # --- Нарушения ---
    @classmethod
    def actor_violations(cls, actor_id: str) -> str:
        """LIST с JSON-записями нарушений актёра."""
        return f"{cls.PREFIX}:violations:{actor_id}"

    # --- Журнал модерации ---
    @classmethod
    def moderation_log(cls, actor_id: str) -> str:
        """LIST последних действий модерации (новые в начале)."""
        return f"{cls.PREFIX}:modlog:{actor_id}"
