# chatguard/containers.py
from typing import Optional

from dependency_injector import containers, providers
from loguru import logger
from redis.asyncio import Redis

from chatguard.config.settings import Settings, settings
from chatguard.jobs.scheduled_tasks import setup_scheduler
from chatguard.services.moderation import EscalationEngine, ModerationHooks
from chatguard.services.moderation_store import ModerationStore
from chatguard.utils.clock import SystemClock


def create_redis_client(settings: Settings) -> Optional[Redis]:
    """Клиент Redis или None, если REDIS_URL не задан."""
    if not settings.redis_url:
        logger.warning("⚠️ REDIS_URL не задан, состояние модерации хранится только в памяти")
        return None
    return Redis.from_url(
        settings.redis_url,
        encoding="utf-8",
        decode_responses=True,
        socket_connect_timeout=5,
        socket_keepalive=True,
        health_check_interval=30,
    )


def create_moderation_store(redis_client: Optional[Redis], settings: Settings) -> Optional[ModerationStore]:
    if redis_client is None:
        return None
    return ModerationStore(
        redis_client,
        retention_seconds=settings.moderation.escalation.retention_seconds,
    )


def create_hooks(store: Optional[ModerationStore]) -> ModerationHooks:
    if store is None:
        return ModerationHooks()
    return ModerationHooks(
        persist_violation=store.persist_violation,
        persist_mute=store.persist_mute,
        remove_mute=store.remove_mute,
        record_action=store.record_action,
    )


class Container(containers.DeclarativeContainer):
    """DI контейнер сервиса модерации"""

    config = providers.Object(settings)

    clock = providers.Singleton(SystemClock)

    redis_client = providers.Singleton(create_redis_client, settings=config)

    moderation_store = providers.Singleton(
        create_moderation_store,
        redis_client=redis_client,
        settings=config,
    )

    hooks = providers.Singleton(create_hooks, store=moderation_store)

    engine = providers.Singleton(
        EscalationEngine,
        config=config.provided.moderation,
        clock=clock,
        hooks=hooks,
    )

    scheduler = providers.Singleton(
        setup_scheduler,
        janitor=engine.provided.janitor,
        settings=config,
    )


async def init_resources(container: Container) -> None:
    """Подключение к Redis, восстановление мутов и запуск планировщика"""
    logger.info("🔧 Initializing container resources...")

    redis = container.redis_client()
    if redis is not None:
        try:
            await redis.ping()
            logger.info("✅ Redis connected")
        except Exception as e:
            logger.error(f"❌ Redis connection failed: {e}")
            raise

    engine = container.engine()
    store = container.moderation_store()
    if store is not None:
        records = await store.load_active_mutes(engine.clock.now_ms())
        engine.restore_mutes(records)

    scheduler = container.scheduler()
    if scheduler.get_jobs():
        scheduler.start()
        logger.info(f"✅ Scheduler started: {[job.id for job in scheduler.get_jobs()]}")


async def shutdown_resources(container: Container) -> None:
    """Корректное закрытие всех ресурсов"""
    logger.info("🛑 Shutting down container resources...")

    try:
        scheduler = container.scheduler()
        if scheduler.running:
            scheduler.shutdown(wait=False)
            logger.info("✅ Scheduler stopped")
    except Exception as e:
        logger.error(f"Error stopping scheduler: {e}")

    try:
        await container.engine().drain()
        logger.info("✅ Pending hooks drained")
    except Exception as e:
        logger.error(f"Error draining hooks: {e}")

    try:
        redis = container.redis_client()
        if redis is not None:
            await redis.aclose()
            logger.info("✅ Redis client closed")
    except Exception as e:
        logger.error(f"Error closing Redis: {e}")
