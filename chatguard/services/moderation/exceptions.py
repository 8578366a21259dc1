# chatguard/services/moderation/exceptions.py
"""
Иерархия ошибок движка модерации.

Ни одна из них не должна быть фатальной для встраивающего процесса:
ConfigError логируется и пропускается при загрузке, EvaluationError
попадает в Decision.errors, а не пробрасывается.
"""


class ModerationError(Exception):
    """Базовое исключение движка модерации."""
    pass


class ConfigError(ModerationError):
    """Некорректное правило конфигурации (regex, длительность)."""
    pass


class InvalidDurationError(ConfigError):
    """Строка длительности мута не соответствует грамматике."""

    def __init__(self, spec: object, detail: str = ""):
        self.spec = spec
        message = f"Некорректная длительность мута: {spec!r}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)


class EvaluationError(ModerationError):
    """Сбой одного детектора при проверке сообщения."""

    def __init__(self, detector: str, cause: BaseException):
        self.detector = detector
        self.cause = cause
        super().__init__(f"{detector}: {type(cause).__name__}: {cause}")
