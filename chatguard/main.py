# chatguard/main.py
import asyncio
import sys

from loguru import logger

from chatguard import __version__
from chatguard.config.settings import settings
from chatguard.containers import Container, init_resources, shutdown_resources
from chatguard.utils.logging_setup import setup_logging


async def run_service(stop_event: asyncio.Event) -> Container:
    """
    Поднимает движок модерации с хранилищем и уборщиком и работает до stop_event.

    Встраивающий чат-сервер получает движок через container.engine().
    """
    container = Container()
    await init_resources(container)

    engine = container.engine()
    if engine.config_warnings:
        for warning in engine.config_warnings:
            logger.warning(f"⚠️ {warning}")

    try:
        await stop_event.wait()
    finally:
        await shutdown_resources(container)
    return container


def main() -> None:
    setup_logging(
        level=settings.log_level,
        format="json" if settings.logging.json_enabled else "text",
        debug_loggers=settings.logging.debug_loggers,
    )
    logger.info("=" * 60)
    logger.info(f"🛡️ {settings.logging.service_name} v{__version__}")
    logger.info("=" * 60)

    try:
        asyncio.run(run_service(asyncio.Event()))
    except KeyboardInterrupt:
        logger.info("⚠️ Received KeyboardInterrupt")
    except Exception as e:
        logger.opt(exception=e).error(f"❌ Fatal error: {e}")
        sys.exit(1)
    finally:
        logger.info("👋 Service stopped")


if __name__ == "__main__":
    main()
