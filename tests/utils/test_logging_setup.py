import logging
import sys

from loguru import logger

from chatguard.utils.logging_setup import InterceptHandler, setup_logging


def test_setup_logging_routes_stdlib_and_quiets_noisy_loggers():
    try:
        setup_logging("DEBUG", format="json", debug_loggers=["chatguard.custom"])
        root_handlers = logging.getLogger().handlers
        assert any(isinstance(h, InterceptHandler) for h in root_handlers)
        assert logging.getLogger("apscheduler").level == logging.WARNING
        assert logging.getLogger("redis").level == logging.WARNING
        assert logging.getLogger("chatguard.custom").level == logging.DEBUG
    finally:
        logger.remove()
        logger.add(sys.stderr)
        logging.basicConfig(handlers=[logging.StreamHandler()], level=logging.WARNING, force=True)


def test_intercepted_record_reaches_loguru():
    messages = []
    sink_id = logger.add(messages.append, format="{message}")
    try:
        handler = InterceptHandler()
        record = logging.LogRecord("redis", logging.WARNING, __file__, 1, "connection reset", None, None)
        handler.emit(record)
    finally:
        logger.remove(sink_id)
    assert any("connection reset" in str(m) for m in messages)
