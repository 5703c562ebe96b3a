import os
import logging.config
from pathlib import Path
from typing import Optional


class FlushingFileHandler(logging.FileHandler):
    """
    FileHandler that flushes after every record
    Query traces are read while the process is still running, so nothing may sit in buffers
    """
    def emit(self, record):
        super().emit(record)
        self.flush()


def setup_logging(log_dir: Optional[Path] = None, level: Optional[str] = None) -> Optional[Path]:
    """Configure the minirepo logger tree; adds a file handler when log_dir is given."""
    level = (level or os.getenv("MINIREPO_LOG_LEVEL", "INFO")).upper()

    handlers = {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
            "level": level,
            "stream": "ext://sys.stdout",
        },
    }
    minirepo_handlers = ["console"]

    if log_dir is not None:
        log_dir = Path(log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        handlers["file_queries"] = {
            "()": FlushingFileHandler,
            "formatter": "detailed",
            "level": "DEBUG",
            "filename": str(log_dir / "minirepo.log"),
            "mode": "a",
            "encoding": "utf-8",
        }
        minirepo_handlers.append("file_queries")

    config = {
        "version": 1,
        "disable_existing_loggers": False,

        # ---------- FORMATTERS ---------- #
        "formatters": {
            "simple": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
            "detailed": {
                "format": "%(asctime)s [%(process)d] %(name)s:%(lineno)d - %(levelname)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },

        # ---------- HANDLERS ---------- #
        "handlers": handlers,

        # ---------- LOGGERS ---------- #
        "loggers": {
            "minirepo": {
                "handlers": minirepo_handlers,
                "level": level,
                "propagate": False,
            },
            # SQL echo from SQLAlchemy goes to the same sinks when enabled
            "sqlalchemy.engine": {
                "handlers": minirepo_handlers,
                "level": "WARNING",
                "propagate": False,
            },
        },

        "root": {"level": "WARNING", "handlers": ["console"]},
    }

    logging.config.dictConfig(config)
    return log_dir
