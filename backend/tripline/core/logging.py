from __future__ import annotations

import logging
import logging.config
from pathlib import Path
from typing import Any, Dict

from tripline.core.settings import settings


def _build_logging_config(log_dir: Path) -> Dict[str, Any]:
    formatter = {
        "format": "%(asctime)s | %(levelname)s | %(name)s | %(message)s",
        "datefmt": "%Y-%m-%d %H:%M:%S",
    }
    rotating = {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "standard",
        "maxBytes": settings.log_max_bytes,
        "backupCount": settings.log_backup_count,
        "encoding": "utf-8",
    }
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {"standard": formatter},
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": settings.log_level,
                "formatter": "standard",
            },
            "app_file": {
                **rotating,
                "level": settings.log_level,
                "filename": str(log_dir / "app.log"),
            },
            "error_file": {
                **rotating,
                "level": "ERROR",
                "filename": str(log_dir / "errors.log"),
            },
        },
        "root": {
            "level": settings.log_level,
            "handlers": ["console", "app_file", "error_file"],
        },
    }


def setup_logging() -> None:
    """Configure logging once at application start."""

    log_dir = Path(settings.log_directory).resolve()
    log_dir.mkdir(parents=True, exist_ok=True)
    logging.config.dictConfig(_build_logging_config(log_dir))


def get_logger(name: str | None = None) -> logging.Logger:
    return logging.getLogger(name or "tripline")
