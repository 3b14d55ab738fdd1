"""Logging setup for the API process."""

import logging.config

from config import LOG_LEVEL

_configured = False


def setup_logging(level: str = LOG_LEVEL) -> None:
    """Configure the root logger once per process.

    Args:
        level: Log level name, e.g. "INFO" or "DEBUG".
    """
    global _configured
    if _configured:
        return

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "default",
                },
            },
            "root": {"level": level, "handlers": ["console"]},
        }
    )
    _configured = True
