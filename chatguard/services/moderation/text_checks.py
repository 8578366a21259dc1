# chatguard/services/moderation/text_checks.py
"""
Простые эвристики текста: базовая валидация, капс, повторы символов, токсичность.
"""
import inspect
import re
from typing import Awaitable, Callable, Iterable, Pattern, Tuple, Union

from chatguard.services.moderation.models import MessageValidation

ToxicityPredicate = Callable[[str], Union[bool, Awaitable[bool]]]


def caps_ratio(text: str) -> float:
    """Доля заглавных среди букв, 0.0 если букв нет."""
    letters = [ch for ch in text if ch.isalpha()]
    if not letters:
        return 0.0
    upper = sum(1 for ch in letters if ch.isupper())
    return upper / len(letters)


def is_excessive_caps(text: str, percentage: int = 70, min_letters: int = 5) -> bool:
    """
    Проверка на капс. Короткие сообщения (меньше min_letters букв) не проверяются.
    """
    letters = sum(1 for ch in text if ch.isalpha())
    if letters < min_letters:
        return False
    return caps_ratio(text) * 100 > percentage


def longest_run(text: str) -> int:
    """Длина самой длинной серии одинаковых непробельных символов."""
    best = run = 0
    previous = None
    for ch in text:
        if ch == previous and not ch.isspace():
            run += 1
        else:
            run = 1
            previous = ch
        if not ch.isspace():
            best = max(best, run)
    return best


def has_repeated_characters(text: str, threshold: int = 5) -> bool:
    return longest_run(text) > threshold


def collapse_repeats(text: str, threshold: int = 5) -> str:
    """Обрезает серии одинаковых символов до threshold штук."""
    pattern = re.compile(r"(\S)\1{%d,}" % threshold)
    return pattern.sub(lambda m: m.group(1) * threshold, text)


MALICIOUS_PATTERNS: Tuple[Pattern[str], ...] = (
    re.compile(r"javascript:", re.IGNORECASE),
    re.compile(r"data:text/html", re.IGNORECASE),
    re.compile(r"<script", re.IGNORECASE),
    # обработчик события внутри тега: <img onerror=...>
    re.compile(r"<[^>]*\bon\w+\s*=", re.IGNORECASE),
)


def special_char_count(text: str) -> int:
    """Символы, не являющиеся буквой, цифрой или пробелом."""
    return sum(1 for ch in text if not ch.isalnum() and not ch.isspace())


def validate_message(
    text: str,
    max_length: int = 2048,
    special_ratio: float = 0.5,
    special_min_length: int = 8,
) -> MessageValidation:
    """
    Базовая проверка сообщения до запуска остальных детекторов.

    Длина проверяется первой: слишком длинный текст дальше не сканируется.
    Доля спецсимволов учитывается только для сообщений не короче
    special_min_length, чтобы не отсекать смайлики вроде ":)".

    Args:
        text: Исходный текст
        max_length: Максимальная длина в символах
        special_ratio: Допустимая доля спецсимволов
        special_min_length: Минимальная длина для проверки доли спецсимволов

    Returns:
        MessageValidation.VALID или причина отклонения
    """
    if len(text) > max_length:
        return MessageValidation.TOO_LONG
    if any(pattern.search(text) for pattern in MALICIOUS_PATTERNS):
        return MessageValidation.MALICIOUS_CONTENT
    if len(text) >= special_min_length and special_char_count(text) > len(text) * special_ratio:
        return MessageValidation.EXCESSIVE_SPECIAL_CHARS
    return MessageValidation.VALID


class KeywordToxicityPredicate:
    """
    Статический список токсичных слов и фраз, проверка вхождения подстроки
    в текст в нижнем регистре ("hate" находится и в "hateful").

    Это предикат по умолчанию; вместо него можно передать любую функцию
    `(text) -> bool` или корутину `(text) -> Awaitable[bool]`.
    """

    def __init__(self, keywords: Iterable[str]):
        self.keywords = tuple(k.strip().lower() for k in keywords if k.strip())

    def __call__(self, text: str) -> bool:
        if not self.keywords or not text:
            return False
        lowered = text.lower()
        return any(keyword in lowered for keyword in self.keywords)


async def resolve_predicate(predicate: ToxicityPredicate, text: str) -> bool:
    """Вызывает синхронный или асинхронный предикат."""
    result = predicate(text)
    if inspect.isawaitable(result):
        result = await result
    return bool(result)
