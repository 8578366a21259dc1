# chatguard/services/moderation/janitor.py
"""
Периодическая очистка состояния движка модерации.
"""
import asyncio
from typing import TYPE_CHECKING, Optional

from loguru import logger

from chatguard.services.moderation.models import SweepReport

if TYPE_CHECKING:
    from chatguard.services.moderation.engine import EscalationEngine


class JanitorSweep:
    """
    Удаляет устаревшие нарушения, историю сообщений, истекшие муты,
    состояние частоты молчащих актёров, давние предупреждения и
    простаивающие блокировки.

    Каждый актёр обрабатывается под собственной блокировкой, между актёрами
    управление возвращается циклу событий, поэтому проход не задерживает
    проверку сообщений.
    """

    def __init__(self, engine: "EscalationEngine"):
        self.engine = engine
        self.last_report: Optional[SweepReport] = None

    async def sweep(self, now: Optional[int] = None) -> SweepReport:
        """
        Выполняет один проход.

        Args:
            now: Время (мс); по умолчанию из часов движка

        Returns:
            Отчет об освобожденных записях
        """
        engine = self.engine
        now = engine.clock.now_ms() if now is None else now
        report = SweepReport()

        for actor_id in engine.tracked_actors():
            report.actors_scanned += 1
            try:
                async with engine.locks.hold(actor_id):
                    report.violations_pruned += engine.ledger.prune(actor_id, now)
                    report.history_pruned += engine.duplicate_detector.prune(actor_id, now)
                    if engine.mutes.prune(actor_id, now):
                        report.mutes_expired += 1
                    if engine.rate_limiter.prune_inactive(actor_id, now):
                        report.rate_windows_dropped += 1
                    if engine.prune_warnings(actor_id, now):
                        report.warnings_expired += 1
            except Exception as e:
                logger.error(f"❌ Ошибка очистки состояния {actor_id}: {e}")
                report.errors.append(f"{actor_id}: {e}")

            if not engine.has_state(actor_id) and engine.locks.discard(actor_id):
                report.locks_released += 1
            await asyncio.sleep(0)

        self.last_report = report
        if report.total_reclaimed or report.locks_released:
            logger.info(
                f"🧹 Очистка: актёров {report.actors_scanned}, нарушений {report.violations_pruned}, "
                f"истории {report.history_pruned}, мутов {report.mutes_expired}, "
                f"окон {report.rate_windows_dropped}, предупреждений {report.warnings_expired}, "
                f"блокировок {report.locks_released}"
            )
        else:
            logger.debug(f"🧹 Очистка: актёров {report.actors_scanned}, освобождать нечего")
        return report
