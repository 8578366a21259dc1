# chatguard/services/moderation/content_filter.py
"""
Фильтр содержимого: стоп-слова с маскированием и шаблоны рекламы.
"""
import re
from typing import Dict, Iterable, List, Optional, Pattern, Tuple

from loguru import logger

from chatguard.config.models import FilterConfig
from chatguard.services.moderation.exceptions import ConfigError
from chatguard.services.moderation.models import PatternId, ScanResult
from chatguard.utils.models import Severity


BUILTIN_PATTERNS: Dict[str, str] = {
    PatternId.IPV4: r"\b(?:[0-9]{1,3}\.){3}[0-9]{1,3}\b",
    PatternId.INVITE: r"(?:discord(?:app)?\.com/invite|discord\.gg|t\.me)/[\w-]+",
}

Span = Tuple[int, int]


def domain_pattern(tlds: Iterable[str]) -> Optional[str]:
    """Шаблон доменов с одной из перечисленных зон; None, если зон нет."""
    zones = sorted({t.strip().lower().lstrip(".") for t in tlds if t.strip()}, key=len, reverse=True)
    if not zones:
        return None
    return r"\b(?:[a-z0-9-]+\.)+(?:%s)\b" % "|".join(re.escape(z) for z in zones)


def _inside(span: Span, spans: Iterable[Span]) -> bool:
    start, end = span
    return any(a <= start and end <= b for a, b in spans)


class ContentFilter:
    """
    Проверка текста по черному и белому спискам слов и шаблонам рекламы.

    Белый список всегда главнее:
    - слово из черного списка, которое есть и в белом, не учитывается;
    - вхождение запрещенного слова внутри разрешенного ("ass" в "class")
      не считается совпадением.

    Совпадения с шаблонами рекламы не маскируются: такое сообщение
    блокируется целиком на уровне движка.

    Некомпилируемые шаблоны пропускаются при загрузке, предупреждение
    сохраняется в `config_warnings`.
    """

    def __init__(self, config: FilterConfig, advertising: bool = True):
        self.config = config
        self.mask_char = config.mask_char
        self.config_warnings: List[str] = []

        allowed = {w.strip().lower() for w in config.allowed_words if w.strip()}
        blocked = {w.strip().lower() for w in config.blocked_words if w.strip()} - allowed

        self.blocked_words = frozenset(blocked)
        self.allowed_words = frozenset(allowed)
        self.severity_levels: Dict[str, Severity] = dict(config.severity_levels)
        self.allowed_domains = tuple(d.strip().lower().lstrip(".") for d in config.allowed_domains if d.strip())

        # Длинные слова первыми, чтобы маска перекрывала их целиком
        self._word_patterns: List[Tuple[str, Pattern[str]]] = [
            (word, re.compile(re.escape(word), re.IGNORECASE))
            for word in sorted(blocked, key=len, reverse=True)
        ]
        self._allowed_patterns: List[Pattern[str]] = [
            re.compile(re.escape(word), re.IGNORECASE) for word in sorted(allowed)
        ]

        sources: Dict[str, str] = {}
        if advertising:
            sources.update(BUILTIN_PATTERNS)
            domains = domain_pattern(config.domain_tlds)
            if domains is not None:
                sources[PatternId.DOMAIN] = domains
        sources.update(config.extra_patterns)
        self.patterns: Dict[str, Pattern[str]] = {}
        for pattern_id, source in sources.items():
            try:
                self.patterns[pattern_id] = self._compile(pattern_id, source)
            except ConfigError as e:
                self.config_warnings.append(str(e))
                logger.warning(f"⚠️ Шаблон пропущен: {e}")

        logger.debug(
            f"🔧 ContentFilter: {len(self.blocked_words)} стоп-слов, "
            f"{len(self.allowed_words)} разрешенных, {len(self.patterns)} шаблонов"
        )

    @staticmethod
    def _compile(pattern_id: str, source: str) -> Pattern[str]:
        try:
            return re.compile(source, re.IGNORECASE)
        except re.error as e:
            raise ConfigError(f"Некорректный regex '{pattern_id}': {source!r} ({e})") from e

    def scan(self, text: str) -> ScanResult:
        """
        Проверяет текст.

        Args:
            text: Исходный текст сообщения

        Returns:
            Найденные слова, идентификаторы шаблонов и текст с маской
        """
        if not text:
            return ScanResult(filtered_text=text or "")

        allowed_spans = [
            match.span()
            for pattern in self._allowed_patterns
            for match in pattern.finditer(text)
        ]

        matched_words = set()
        masked = list(text)
        for word, pattern in self._word_patterns:
            for match in pattern.finditer(text):
                if _inside(match.span(), allowed_spans):
                    continue
                matched_words.add(word)
                start, end = match.span()
                masked[start:end] = self.mask_char * (end - start)

        matched_patterns = set()
        for pattern_id, pattern in self.patterns.items():
            for match in pattern.finditer(text):
                if pattern_id == PatternId.DOMAIN and self._is_allowed_domain(match.group(0)):
                    continue
                matched_patterns.add(pattern_id)
                break

        return ScanResult(
            matched_words=frozenset(matched_words),
            matched_patterns=frozenset(matched_patterns),
            filtered_text="".join(masked),
        )

    def _is_allowed_domain(self, domain: str) -> bool:
        domain = domain.lower()
        return any(domain == allowed or domain.endswith("." + allowed) for allowed in self.allowed_domains)

    def severity_of(self, word: str) -> Severity:
        return self.severity_levels.get(word.lower(), Severity.MEDIUM)

    def has_severe(self, words: Iterable[str]) -> bool:
        return any(self.severity_of(word) is Severity.HIGH for word in words)
