import sys
from logging.config import dictConfig
from typing import Any

from reporter.core.config import settings

# Subpackages whose loggers write through the "app" handler
APP_LOGGERS = ("reporter", "reporter.api", "reporter.generation_logic", "reporter.services")


def build_logging_config(level: str = "DEBUG") -> dict[str, Any]:
    """Uvicorn-compatible dictConfig with the reporter loggers at *level*."""
    level = level.upper()
    loggers: dict[str, Any] = {
        "root": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "uvicorn.error": {"handlers": ["default"], "level": "INFO", "propagate": False},
        "uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
    }
    loggers.update({name: {"handlers": ["app"], "level": level, "propagate": False} for name in APP_LOGGERS})

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": "uvicorn.logging.DefaultFormatter",
                "fmt": "%(levelprefix)s %(asctime)s [%(name)s] %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "access": {
                "()": "uvicorn.logging.AccessFormatter",
                "fmt": '%(levelprefix)s %(asctime)s [%(name)s] "%(request_line)s" %(status_code)s',
            },
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": sys.stderr,
                "level": "INFO",
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": sys.stdout,
                "level": "INFO",
            },
            "app": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": sys.stdout,
                "level": level,
            },
        },
        "loggers": loggers,
    }


def setup_logging(level: str | None = None) -> None:
    """Configures application-wide logging; *level* defaults to ``settings.log_level``."""
    dictConfig(build_logging_config(level or settings.log_level))
