"""
Logging configuration for the Invoice Studio invoice service
"""

import logging
import logging.config
import sys
from pathlib import Path
from typing import Any, Dict

from .config import settings

ROOT_LOGGER_NAME = "invoice_service"


def setup_logging() -> logging.Logger:
    """Setup logging configuration."""

    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": settings.LOG_LEVEL,
            "formatter": "simple",
            "stream": sys.stdout,
        }
    }
    service_handlers = ["console"]

    # File handlers only when a log directory is configured
    if settings.LOG_DIR:
        logs_dir = Path(settings.LOG_DIR)
        logs_dir.mkdir(parents=True, exist_ok=True)
        handlers["file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "INFO",
            "formatter": "detailed",
            "filename": str(logs_dir / "invoice_service.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
            "encoding": "utf8",
        }
        handlers["error_file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "ERROR",
            "formatter": "detailed",
            "filename": str(logs_dir / "errors.log"),
            "maxBytes": 10485760,  # 10MB
            "backupCount": 5,
            "encoding": "utf8",
        }
        service_handlers += ["file", "error_file"]

    logging_config: Dict[str, Any] = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "detailed": {
                "format": "%(asctime)s | %(name)s | %(levelname)s | %(funcName)s:%(lineno)d | %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "simple": {
                "format": "%(levelname)s | %(name)s | %(message)s"
            },
        },
        "handlers": handlers,
        "loggers": {
            "": {  # Root logger
                "level": settings.LOG_LEVEL,
                "handlers": ["console"],
            },
            "uvicorn.error": {
                "level": "INFO"
            },
            "uvicorn.access": {
                "level": "INFO"
            },
            ROOT_LOGGER_NAME: {
                "level": settings.LOG_LEVEL,
                "handlers": service_handlers,
                "propagate": False,
            },
        },
    }

    logging.config.dictConfig(logging_config)

    # Quieten chatty dependencies
    logging.getLogger("botocore").setLevel(logging.WARNING)
    logging.getLogger("fontTools").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.info(f"Logging configured with level: {settings.LOG_LEVEL}")

    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance."""
    return logging.getLogger(f"{ROOT_LOGGER_NAME}.{name}")
