# ======================================================================================
# Файл: chatguard/jobs/scheduled_tasks.py
# Описание:
#   Планировщик фоновых задач модерации на APScheduler (AsyncIOScheduler).
#     • janitor_sweep_job: очищает устаревшее состояние движка
#   Планировщик создается незапущенным: start() вызывает init_resources.
# ======================================================================================

from __future__ import annotations

from typing import TYPE_CHECKING

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from loguru import logger

if TYPE_CHECKING:
    from chatguard.config.settings import Settings
    from chatguard.services.moderation.janitor import JanitorSweep

JANITOR_JOB_ID = "moderation_janitor"


# --------------------------------- jobs ---------------------------------------

async def janitor_sweep_job(janitor: "JanitorSweep") -> None:
    """Один проход уборщика. Ошибки логируются, чтобы не ронять планировщик."""
    try:
        report = await janitor.sweep()
    except Exception as e:
        logger.opt(exception=e).error("❌ Ошибка фоновой очистки модерации")
        return
    if report.errors:
        logger.warning(f"⚠️ Очистка завершилась с ошибками: {len(report.errors)}")


# --------------------------- scheduler bootstrap -------------------------------

def setup_scheduler(janitor: "JanitorSweep", settings: "Settings") -> AsyncIOScheduler:
    """
    Создает планировщик и регистрирует задачи по настройкам.

    Args:
        janitor: Уборщик движка модерации
        settings: Настройки приложения (секция janitor)

    Returns:
        Незапущенный AsyncIOScheduler
    """
    scheduler = AsyncIOScheduler(timezone="UTC")
    janitor_config = settings.janitor

    if janitor_config.enabled:
        scheduler.add_job(
            janitor_sweep_job,
            "interval",
            seconds=janitor_config.interval_seconds,
            args=[janitor],
            id=JANITOR_JOB_ID,
            replace_existing=True,
            misfire_grace_time=janitor_config.misfire_grace_seconds,
            coalesce=True,
        )
        logger.info(f"🗓️ Задача {JANITOR_JOB_ID} запланирована каждые {janitor_config.interval_seconds}s")
    else:
        logger.info("Очистка модерации отключена в настройках, задача не запланирована.")

    return scheduler
