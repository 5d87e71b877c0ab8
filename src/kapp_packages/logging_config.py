"""Process-wide logging setup."""

import logging

import structlog

from kapp_packages.config.app_settings import AppSettings

TEXT_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def json_formatter() -> structlog.stdlib.ProcessorFormatter:
    """Build a formatter rendering standard library records as JSON lines.

    Each line carries the message under ``event`` together with the logger
    name, level and an ISO timestamp.
    """
    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
        ],
        processors=[
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
    )


def configure_logging(settings: AppSettings) -> None:
    """Configure the root logger from settings.

    Args:
        settings: Settings providing log_level and log_format
    """
    level = getattr(logging, settings.log_level.upper(), logging.INFO)
    if settings.log_format.lower() == "json":
        handler = logging.StreamHandler()
        handler.setFormatter(json_formatter())
        logging.basicConfig(level=level, handlers=[handler], force=True)
    else:
        logging.basicConfig(level=level, format=TEXT_LOG_FORMAT, force=True)
