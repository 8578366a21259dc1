# chatguard/services/moderation/engine.py
"""
Главный сервис модерации чата.
"""
from collections import Counter
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple, TypeVar

from loguru import logger

from chatguard.config.models import ModerationConfig
from chatguard.services.moderation.content_filter import ContentFilter
from chatguard.services.moderation.duplicate_detector import DuplicateDetector
from chatguard.services.moderation.exceptions import EvaluationError
from chatguard.services.moderation.hooks import HookDispatcher, ModerationHooks
from chatguard.services.moderation.janitor import JanitorSweep
from chatguard.services.moderation.models import (
    ActorStats,
    DetectorOutcome,
    DuplicateVerdict,
    Message,
    MessageValidation,
    RateVerdict,
    WarningState,
)
from chatguard.services.moderation.mute_registry import DurationSpec, MuteRegistry
from chatguard.services.moderation.rate_limiter import RateLimiter
from chatguard.services.moderation.text_checks import (
    KeywordToxicityPredicate,
    ToxicityPredicate,
    collapse_repeats,
    has_repeated_characters,
    is_excessive_caps,
    resolve_predicate,
    validate_message,
)
from chatguard.services.moderation.violation_ledger import ViolationLedger
from chatguard.utils.actor_locks import ActorLocks
from chatguard.utils.clock import Clock, SystemClock
from chatguard.utils.models import (
    BLOCKING_TYPES,
    Decision,
    DecisionAction,
    ModerationAction,
    MuteRecord,
    Violation,
    ViolationType,
)

T = TypeVar("T")


@dataclass(frozen=True)
class _RuleSet:
    """Конфигурация и построенные по ней правила; заменяется целиком при reload."""
    config: ModerationConfig
    content_filter: ContentFilter
    toxicity: ToxicityPredicate


class EscalationEngine:
    """
    Движок модерации чата: проверка сообщений и эскалация наказаний.

    Архитектура:
    ┌──────────────────────────────────────┐
    │      EscalationEngine (Фасад)        │
    └──────────────────────────────────────┘
               ↓
    ┌──────────────────────────────────────┐
    │  Детекторы                           │
    │ • RateLimiter                        │
    │ • длина, вредоносный код, спецсимволы│
    │ • DuplicateDetector                  │
    │ • ContentFilter                      │
    │ • капс / повторы / токсичность       │
    └──────────────────────────────────────┘
               ↓
    ┌──────────────────────────────────────┐
    │  ViolationLedger → таблица порогов   │
    │  MuteRegistry, HookDispatcher        │
    └──────────────────────────────────────┘

    Состояние каждого актёра изменяется только под его блокировкой
    (ActorLocks). Общей блокировки движка нет: сообщения разных актёров
    обрабатываются независимо.

    Сбой отдельного детектора не прерывает проверку: ошибка логируется,
    попадает в Decision.errors, сигнал считается отсутствующим.
    """

    def __init__(
        self,
        config: Optional[ModerationConfig] = None,
        *,
        clock: Optional[Clock] = None,
        hooks: Optional[ModerationHooks] = None,
        toxicity_predicate: Optional[ToxicityPredicate] = None,
    ):
        """
        Инициализирует движок.

        Args:
            config: Конфигурация модерации (по умолчанию значения моделей)
            clock: Источник времени (по умолчанию системные часы)
            hooks: Внешние обработчики (все необязательны)
            toxicity_predicate: Замена проверки токсичности по ключевым словам
        """
        config = config or ModerationConfig()
        self.clock = clock or SystemClock()
        self.locks = ActorLocks()
        self.hooks = HookDispatcher(hooks)
        self._custom_toxicity = toxicity_predicate

        self.rate_limiter = RateLimiter(config.rate_limit)
        self.duplicate_detector = DuplicateDetector(config.spam)
        self.ledger = ViolationLedger(config.escalation.retention_seconds)
        self.mutes = MuteRegistry()
        self._rules = self._build_rules(config)

        self._warnings: Dict[str, WarningState] = {}
        self._filter_stats: Counter = Counter()

        self.janitor = JanitorSweep(self)

        logger.success(
            f"✅ EscalationEngine инициализирован (хуки: {', '.join(self.hooks.hooks.configured()) or 'нет'})"
        )

    def _build_rules(self, config: ModerationConfig) -> _RuleSet:
        return _RuleSet(
            config=config,
            content_filter=ContentFilter(config.filter, advertising=config.checks.advertising),
            toxicity=self._custom_toxicity or KeywordToxicityPredicate(config.checks.toxic_keywords),
        )

    @property
    def config(self) -> ModerationConfig:
        return self._rules.config

    @property
    def content_filter(self) -> ContentFilter:
        return self._rules.content_filter

    @property
    def config_warnings(self) -> List[str]:
        """Правила, пропущенные при загрузке (некорректные regex)."""
        return list(self._rules.content_filter.config_warnings)

    def _now(self, now: Optional[int]) -> int:
        return self.clock.now_ms() if now is None else now

    # --- Проверка сообщений ---

    async def evaluate(
        self,
        actor_id: str,
        text: str,
        channel: str = "global",
        now: Optional[int] = None,
        *,
        rate_verdict: Optional[RateVerdict] = None,
        bypass: bool = False,
    ) -> Decision:
        """
        Проверяет сообщение и выбирает действие.

        Args:
            actor_id: Отправитель
            text: Исходный текст
            channel: Канал чата
            now: Время получения (мс); по умолчанию из clock
            rate_verdict: Заранее вычисленный вердикт частоты
            bypass: Актёр освобожден от модерации

        Returns:
            Decision; метод никогда не выбрасывает исключений
        """
        rules = self._rules
        if not rules.config.enabled or bypass:
            return Decision.allow(text)

        message = Message.create(actor_id, text, channel, self._now(now))
        async with self.locks.hold(actor_id):
            try:
                return await self._evaluate_locked(rules, message, rate_verdict)
            except Exception as e:
                logger.opt(exception=e).error(f"❌ Ошибка проверки сообщения от {actor_id}, сообщение пропущено")
                return Decision.allow(text, errors=(str(EvaluationError("engine", e)),))

    async def _evaluate_locked(
        self,
        rules: _RuleSet,
        message: Message,
        rate_verdict: Optional[RateVerdict],
    ) -> Decision:
        actor_id, now = message.actor_id, message.timestamp

        if self.mutes.is_muted(actor_id, now):
            logger.debug(f"🔇 Сообщение от {actor_id} отклонено: мут")
            return Decision.block(reason="muted")

        errors: List[str] = []
        if rate_verdict is None:
            rate_verdict = self._guard(
                "rate_limiter",
                lambda: self.rate_limiter.check(actor_id, now),
                RateVerdict.ALLOWED,
                errors,
            )

        if rate_verdict.exceeded:
            types = [ViolationType.SPAM]
            self._filter_stats[rate_verdict.value] += 1
            self._record(message, types)
            fallback = Decision.block(types, reason=rate_verdict.value, errors=tuple(errors))
            decision = self._escalate(rules, message, types, tuple(errors), fallback)
            self._apply(rules, message, decision)
            return decision

        checks = rules.config.checks
        if checks.validation:
            validation = self._guard(
                "validation",
                lambda: validate_message(
                    message.raw_text,
                    checks.max_message_length,
                    checks.special_char_ratio,
                    checks.special_char_min_length,
                ),
                MessageValidation.VALID,
                errors,
            )
            if validation is not MessageValidation.VALID:
                return self._reject(rules, message, validation, tuple(errors))

        outcome = await self._run_detectors(rules, message)
        outcome.errors[:0] = errors
        types = self._violation_types(rules, outcome)
        self._filter_stats.update(t.value for t in types)

        if not types:
            return Decision.allow(message.raw_text, outcome.error_tuple())

        self._record(message, types)

        blocking = [t for t in types if t in BLOCKING_TYPES]
        if blocking:
            logger.info(f"⛔ Сообщение от {actor_id} заблокировано: {', '.join(t.value for t in blocking)}")
            decision = Decision.block(types, reason=blocking[0].value, errors=outcome.error_tuple())
            self._apply(rules, message, decision)
            return decision

        fallback = Decision.filter(self._filtered_text(rules, message, outcome), types, outcome.error_tuple())
        decision = self._escalate(rules, message, types, outcome.error_tuple(), fallback)
        self._apply(rules, message, decision)
        return decision

    def _reject(
        self,
        rules: _RuleSet,
        message: Message,
        validation: MessageValidation,
        errors: Tuple[str, ...],
    ) -> Decision:
        """Блокирует сообщение, не прошедшее базовую проверку. Нарушением считается только вредоносный код."""
        types: List[ViolationType] = []
        if validation is MessageValidation.MALICIOUS_CONTENT:
            types.append(ViolationType.MALICIOUS_CONTENT)
            self._record(message, types)
            logger.warning(f"🛡️ Вредоносное содержимое от {message.actor_id} заблокировано")
        else:
            logger.info(f"⛔ Сообщение от {message.actor_id} отклонено: {validation.value}")
        self._filter_stats[validation.value] += 1
        decision = Decision.block(types, reason=validation.value, errors=errors)
        self._apply(rules, message, decision)
        return decision

    def _guard(self, detector: str, check: Callable[[], T], default: T, errors: List[str]) -> T:
        try:
            return check()
        except Exception as e:
            self._detector_failed(detector, e, errors)
            return default

    @staticmethod
    def _detector_failed(detector: str, error: Exception, errors: List[str]) -> None:
        failure = EvaluationError(detector, error)
        logger.opt(exception=error).error(f"❌ Детектор {detector} упал, сигнал пропущен: {failure}")
        errors.append(str(failure))

    async def _run_detectors(self, rules: _RuleSet, message: Message) -> DetectorOutcome:
        checks = rules.config.checks
        outcome = DetectorOutcome()
        errors = outcome.errors

        if checks.spam:
            outcome.duplicate = self._guard(
                "duplicate_detector",
                lambda: self.duplicate_detector.check(message.actor_id, message.normalized_text, message.timestamp),
                DuplicateVerdict.CLEAN,
                errors,
            )
        if checks.profanity or checks.advertising:
            outcome.scan = self._guard(
                "content_filter",
                lambda: rules.content_filter.scan(message.raw_text),
                None,
                errors,
            )
        if checks.caps:
            outcome.caps = self._guard(
                "caps",
                lambda: is_excessive_caps(message.raw_text, checks.caps_percentage, checks.caps_min_letters),
                False,
                errors,
            )
        if checks.repeated_chars:
            outcome.repeated = self._guard(
                "repeated_chars",
                lambda: has_repeated_characters(message.raw_text, checks.repeated_char_threshold),
                False,
                errors,
            )
        if checks.toxicity:
            try:
                outcome.toxic = await resolve_predicate(rules.toxicity, message.normalized_text)
            except Exception as e:
                self._detector_failed("toxicity", e, errors)
        return outcome

    @staticmethod
    def _violation_types(rules: _RuleSet, outcome: DetectorOutcome) -> List[ViolationType]:
        checks = rules.config.checks
        types: List[ViolationType] = []
        if outcome.duplicate.is_spam:
            types.append(ViolationType.SPAM)
        if outcome.caps:
            types.append(ViolationType.EXCESSIVE_CAPS)
        if outcome.repeated:
            types.append(ViolationType.REPEATED_CHARACTERS)

        scan = outcome.scan
        if scan is not None:
            if checks.profanity and scan.matched_words:
                if rules.content_filter.has_severe(scan.matched_words):
                    types.append(ViolationType.SEVERE_PROFANITY)
                else:
                    types.append(ViolationType.PROFANITY)
            if checks.advertising and scan.has_advertising:
                types.append(ViolationType.ADVERTISING)

        if outcome.toxic:
            types.append(ViolationType.TOXICITY)
        return types

    @staticmethod
    def _filtered_text(rules: _RuleSet, message: Message, outcome: DetectorOutcome) -> str:
        text = message.raw_text
        if outcome.scan is not None and outcome.scan.matched_words and rules.config.checks.profanity:
            text = outcome.scan.filtered_text
        if outcome.caps:
            text = text.lower()
        if outcome.repeated:
            text = collapse_repeats(text, rules.config.checks.repeated_char_threshold)
        return text

    def _record(self, message: Message, types: Iterable[ViolationType]) -> None:
        for violation_type in types:
            violation = Violation.create(
                actor_id=message.actor_id,
                violation_type=violation_type,
                timestamp=message.timestamp,
                channel=message.channel,
                message=message.raw_text,
            )
            self.ledger.record(violation)
            self.hooks.fire("persist_violation", violation)

    def _escalation_level(self, rules: _RuleSet, actor_id: str, now: int) -> int:
        escalation = rules.config.escalation
        if escalation.use_weighted_score:
            return self.ledger.recent_severity_weighted_score(actor_id, now, escalation.retention_seconds)
        return self.ledger.count_since(actor_id, now, escalation.retention_seconds)

    def _escalate(
        self,
        rules: _RuleSet,
        message: Message,
        types: List[ViolationType],
        errors: Tuple[str, ...],
        fallback: Decision,
    ) -> Decision:
        """Первая подходящая строка таблицы порогов, иначе fallback."""
        escalation = rules.config.escalation
        level = self._escalation_level(rules, message.actor_id, message.timestamp)
        minutes = escalation.retention_seconds // 60
        reason = f"{level} нарушений за {minutes} мин"

        for threshold, action in escalation.threshold_table():
            if level < threshold:
                continue
            logger.info(f"📈 {message.actor_id}: уровень {level} >= {threshold} → {action.value}")
            if action is DecisionAction.BAN:
                return Decision.ban(types, reason=reason, errors=errors)
            if action is DecisionAction.KICK:
                return Decision.kick(types, reason=reason, errors=errors)
            if action is DecisionAction.MUTE:
                return Decision.mute(escalation.default_mute_seconds, types, reason=reason, errors=errors)
            return Decision.warn(level, types, reason=reason, errors=errors)
        return fallback

    def _apply(self, rules: _RuleSet, message: Message, decision: Decision) -> None:
        """Побочные эффекты решения: муты, счетчик предупреждений, хуки."""
        if decision.delivered:
            return
        actor_id, now = message.actor_id, message.timestamp
        escalation = rules.config.escalation
        action = decision.action

        if action is DecisionAction.MUTE:
            self._write_mute(actor_id, decision.duration_seconds, decision.reason, now, "system")
        elif action is DecisionAction.WARN:
            warnings = self._add_warning(actor_id, now)
            if warnings >= escalation.warn_at and escalation.auto_mute:
                self._write_mute(
                    actor_id,
                    escalation.warning_mute_seconds,
                    f"{warnings} предупреждений",
                    now,
                    "system",
                )
        elif action is DecisionAction.KICK:
            self.hooks.fire("request_kick", actor_id, decision.reason)
        elif action is DecisionAction.BAN:
            self.hooks.fire("request_ban", actor_id, decision.reason)

        self.hooks.fire("notify_actor", actor_id, decision)
        self.hooks.fire(
            "record_action",
            ModerationAction(
                actor_id=actor_id,
                action=action.value,
                reason=decision.reason,
                timestamp=now,
                duration_seconds=decision.duration_seconds or 0,
            ),
        )

    def _add_warning(self, actor_id: str, now: int) -> int:
        state = self._warnings.setdefault(actor_id, WarningState())
        state.count += 1
        state.last_warned_at = now
        return state.count

    def _write_mute(
        self,
        actor_id: str,
        duration_spec: DurationSpec,
        reason: str,
        now: int,
        issued_by: str,
    ) -> MuteRecord:
        record = self.mutes.mute(actor_id, duration_spec, reason, now, issued_by)
        self.hooks.fire("persist_mute", record)
        return record

    # --- Администрирование ---

    def is_muted(self, actor_id: str, now: Optional[int] = None) -> bool:
        return self.mutes.is_muted(actor_id, self._now(now))

    async def mute(
        self,
        actor_id: str,
        duration_spec: DurationSpec,
        reason: str = "",
        now: Optional[int] = None,
        issued_by: str = "admin",
    ) -> MuteRecord:
        """
        Выдает мут вручную.

        Args:
            actor_id: ID актёра
            duration_spec: "1h30m", "permanent", секунды или timedelta
            reason: Причина
            now: Время (мс)
            issued_by: Кто выдал мут

        Raises:
            InvalidDurationError: если длительность некорректна
        """
        now = self._now(now)
        async with self.locks.hold(actor_id):
            record = self._write_mute(actor_id, duration_spec, reason, now, issued_by)
        remaining = record.remaining_ms(now)
        self.hooks.fire(
            "record_action",
            ModerationAction(
                actor_id=actor_id,
                action=DecisionAction.MUTE.value,
                moderator=issued_by,
                reason=reason,
                timestamp=now,
                duration_seconds=-1 if remaining is None else remaining // 1000,
            ),
        )
        return record

    async def unmute(self, actor_id: str, issued_by: str = "admin", now: Optional[int] = None) -> bool:
        """Снимает мут. False если мута не было."""
        now = self._now(now)
        async with self.locks.hold(actor_id):
            removed = self.mutes.unmute(actor_id)
        if removed:
            self.hooks.fire("remove_mute", actor_id)
            self.hooks.fire(
                "record_action",
                ModerationAction(actor_id=actor_id, action="unmute", moderator=issued_by, timestamp=now),
            )
        return removed

    async def warn(
        self,
        actor_id: str,
        reason: str = "",
        issued_by: str = "admin",
        now: Optional[int] = None,
    ) -> int:
        """
        Ручное предупреждение.

        Returns:
            Количество предупреждений актёра
        """
        now = self._now(now)
        async with self.locks.hold(actor_id):
            warnings = self._add_warning(actor_id, now)
        logger.info(f"⚠️ Предупреждение #{warnings} для {actor_id} от {issued_by}: {reason}")
        self.hooks.fire(
            "record_action",
            ModerationAction(
                actor_id=actor_id,
                action=DecisionAction.WARN.value,
                moderator=issued_by,
                reason=reason,
                timestamp=now,
            ),
        )
        return warnings

    async def clear_violations(self, actor_id: str) -> int:
        async with self.locks.hold(actor_id):
            removed = self.ledger.clear(actor_id)
        logger.info(f"🧹 Очищено {removed} нарушений {actor_id}")
        return removed

    async def clear_actor(self, actor_id: str) -> None:
        """Сбрасывает частоту, историю, нарушения и предупреждения. Мут сохраняется."""
        async with self.locks.hold(actor_id):
            self.rate_limiter.forget(actor_id)
            self.duplicate_detector.forget(actor_id)
            self.ledger.clear(actor_id)
            self._warnings.pop(actor_id, None)
        if not self.has_state(actor_id):
            self.locks.discard(actor_id)

    def get_actor_stats(self, actor_id: str, now: Optional[int] = None) -> ActorStats:
        now = self._now(now)
        retention = self.config.escalation.retention_seconds
        record = self.mutes.get(actor_id, now)
        return ActorStats(
            violation_count=self.ledger.count_since(actor_id, now, retention),
            weighted_score=self.ledger.recent_severity_weighted_score(actor_id, now, retention),
            warnings=self.warnings(actor_id),
            muted=record is not None,
            mute_ends_at=record.end_time if record is not None else None,
        )

    def get_filter_stats(self) -> Dict[str, int]:
        """Счетчики срабатываний по типам нарушений и вердиктам частоты."""
        return dict(self._filter_stats)

    def warnings(self, actor_id: str) -> int:
        state = self._warnings.get(actor_id)
        return state.count if state is not None else 0

    def prune_warnings(self, actor_id: str, now: int) -> bool:
        """
        Сбрасывает счетчик, если последнее предупреждение старше окна хранения
        нарушений. Вызывается уборщиком под блокировкой актёра.
        """
        state = self._warnings.get(actor_id)
        if state is None:
            return False
        if state.last_warned_at > now - self.config.escalation.retention_seconds * 1000:
            return False
        del self._warnings[actor_id]
        return True

    def reload(self, config: ModerationConfig) -> List[str]:
        """
        Применяет новую конфигурацию. Состояние актёров сохраняется.

        Правила собираются заранее и подменяются одной операцией, поэтому
        идущая проверка видит либо старый, либо новый набор целиком.

        Returns:
            Предупреждения о пропущенных правилах
        """
        rules = self._build_rules(config)
        self._rules = rules
        self.rate_limiter.reload(config.rate_limit)
        self.duplicate_detector.reload(config.spam)
        self.ledger.reload(config.escalation.retention_seconds)
        logger.info(f"🔄 Конфигурация модерации перезагружена ({len(rules.content_filter.config_warnings)} предупреждений)")
        return list(rules.content_filter.config_warnings)

    def restore_mutes(self, records: Iterable[MuteRecord], now: Optional[int] = None) -> int:
        """Восстанавливает активные муты из хранилища после перезапуска."""
        now = self._now(now)
        restored = 0
        for record in records:
            if record.is_active(now):
                self.mutes.restore(record)
                restored += 1
        if restored:
            logger.info(f"🔇 Восстановлено мутов: {restored}")
        return restored

    def has_state(self, actor_id: str) -> bool:
        return (
            actor_id in self.rate_limiter
            or actor_id in self.duplicate_detector
            or actor_id in self.ledger
            or actor_id in self.mutes
            or actor_id in self._warnings
        )

    def tracked_actors(self) -> List[str]:
        actors = set(self.rate_limiter.tracked_actors())
        actors.update(self.duplicate_detector.tracked_actors())
        actors.update(self.ledger.tracked_actors())
        actors.update(self.mutes.tracked_actors())
        actors.update(self.locks.actors())
        actors.update(self._warnings)
        return sorted(actors)

    async def drain(self) -> None:
        """Дожидается запущенных хуков."""
        await self.hooks.drain()
