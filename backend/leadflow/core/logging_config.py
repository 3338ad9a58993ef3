"""
Logging configuration.

Console logging for the API, the Celery worker and scripts. The level
comes from settings.log_level.
"""

import logging
import logging.config

from .config import settings


def build_logging_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "level": level,
            },
        },
        "loggers": {
            "leadflow": {
                "handlers": ["console"],
                "level": level,
                "propagate": False,
            },
            "uvicorn.error": {
                "handlers": ["console"],
                "level": level,
                "propagate": False,
            },
        },
        "root": {
            "handlers": ["console"],
            "level": "WARNING",
        },
    }


def setup_logging(level: str = None) -> None:
    logging.config.dictConfig(build_logging_config(level or settings.log_level))
    logging.getLogger("leadflow").info("Logging initialized")
