from __future__ import annotations

import inspect
import logging.config
import sys
import typing
from typing import Any, override

from loguru import logger

from searchable.config.general import CONFIG

if typing.TYPE_CHECKING:
    from loguru import Record

# stdlib loggers whose output is routed through loguru
INTERCEPTED_LOGGERS = ("searchable", "elasticsearch", "elastic_transport")


class InterceptHandler(logging.Handler):
    """Logger which forwards to loguru."""

    @override
    def emit(self, record: logging.LogRecord) -> None:
        """Intercept stdlib logging and send it to loguru handling."""
        # Get corresponding Loguru level if it exists.
        level: str | int
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where originated the logged message.
        frame, depth = inspect.currentframe(), 0
        while frame and (depth == 0 or frame.f_code.co_filename == logging.__file__):
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def format_stdout(record: Record) -> str:
    """Colorized single-line format, tagged with the index when one is bound."""
    header = "<cyan>{time:YYYY-MM-DDTHH:mm:ss.SSSZ}</cyan> <level>{level:8}</level> "
    if "index" in record["extra"]:
        header += "<green>[{extra[index]}]</green> "
    return header + "{message:80} <cyan>{name}:{function}():{line}</cyan>\n{exception}"


def stdlib_level(level: str) -> str:
    """Map loguru-only levels onto their nearest stdlib level."""
    return {"TRACE": "DEBUG", "SUCCESS": "INFO"}.get(level, level)


def configure_logging() -> dict[str, Any]:
    """Route standardlib logging to loguru and configure loguru sinks."""
    std_log_config: dict[str, Any] = {
        "version": 1,
        "handlers": {
            "loguru": {
                "()": InterceptHandler,
            }
        },
        "loggers": {
            name: {"level": stdlib_level(CONFIG.log_level), "handlers": ["loguru"]}
            for name in INTERCEPTED_LOGGERS
        },
        "incremental": False,
        "disable_existing_loggers": False,
    }
    logging.config.dictConfig(std_log_config)

    logger.remove()
    logger.add(
        sys.stdout,
        format=format_stdout,
        colorize=True,
        backtrace=True,
        diagnose=False,
        level=CONFIG.log_level,
    )

    if CONFIG.log.log_to_file:
        log_dir = CONFIG.log.directory
        logger.add(
            log_dir / "searchable.log",
            format="{time:YYYY-MM-DDTHH:mm:ss.SSSZ} | {level:8} | {message:80} | {extra} | {process.id}:{name}:{function}:{line}",
            colorize=False,
            backtrace=True,
            diagnose=True,
            enqueue=True,
            rotation=CONFIG.log.rotation,
            retention=CONFIG.log.retention,
            compression="tar.gz",
            level=CONFIG.log_level,
        )
        logger.add(
            log_dir / "searchable.log.json",
            format="{message}",
            colorize=False,
            serialize=True,
            backtrace=True,
            diagnose=True,
            enqueue=True,
            rotation=CONFIG.log.rotation,
            retention=CONFIG.log.retention,
            compression="tar.gz",
            level=CONFIG.log_level,
        )

    return std_log_config


async def cleanup() -> None:
    """Finish Loguru operations."""
    await logger.complete()
    logger.remove()
