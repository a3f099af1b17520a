"""Logging configuration for the arena server.

All output goes through loguru. Modules log through ``logger.bind(module=...)``
so every line carries the name of the business module that emitted it;
lines from the event bus and the framework show ``-`` instead.
"""

import logging
import sys

from loguru import logger

SERVER_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | <level>{level: <8}</level> | "
    "<magenta>{extra[module]: <13}</magenta> | <cyan>{name}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)
CLI_FORMAT = "<level>{level: <8}</level> | <level>{message}</level>"

# Standard library loggers following the application log level
FRAMEWORK_LOGGERS = ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi", "httpx", "asyncio")


class InterceptHandler(logging.Handler):
    """Forward standard logging records (uvicorn, asyncio) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Skip the logging module's own frames to report the real caller
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging(log_level: str) -> None:
    """Configure loguru for the server process.

    Args:
        log_level: Level from settings (``ARENA_LOG_LEVEL`` or ``--log-level``)
    """
    log_level = log_level.upper()

    logger.remove()
    logger.configure(extra={"module": "-"})
    logger.add(sys.stderr, level=log_level, format=SERVER_FORMAT, colorize=True)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in (*logging.Logger.manager.loggerDict, *FRAMEWORK_LOGGERS):
        std_logger = logging.getLogger(name)
        std_logger.handlers = [InterceptHandler()]
        std_logger.propagate = False
        if name in FRAMEWORK_LOGGERS:
            std_logger.setLevel(log_level)

    logger.info(f"Log level set to: {log_level}")


def configure_cli_logging(log_level: str = "INFO") -> None:
    """Configure loguru for CLI commands: level and message, no timestamps."""
    logger.remove()
    logger.add(sys.stderr, format=CLI_FORMAT, level=log_level.upper(), colorize=True)
