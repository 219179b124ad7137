import logging
import logging.config
from pathlib import Path
from labconnect.config import settings
import uvicorn

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def build_log_config(level_name: str, log_file: str) -> dict:
    """Return a logging config aligned with Uvicorn that also formats app logs and writes to a rotating file."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "()": "uvicorn.logging.DefaultFormatter",
                "fmt": LOG_FORMAT,
                "datefmt": LOG_DATEFMT,
            },
            "access": {
                "()": "uvicorn.logging.AccessFormatter",
                "fmt": "%(asctime)s | %(levelname)s | %(client_addr)s - \"%(request_line)s\" %(status_code)s",
                "datefmt": LOG_DATEFMT,
            },
            # Plain formatter for the file: no ANSI colors
            "file": {"format": LOG_FORMAT, "datefmt": LOG_DATEFMT},
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
            "access": {
                "class": "logging.StreamHandler",
                "formatter": "access",
                "stream": "ext://sys.stdout",
            },
            "file": {
                "class": "logging.handlers.RotatingFileHandler",
                "formatter": "file",
                "filename": log_file,
                "maxBytes": 2_000_000,
                "backupCount": 3,
                "encoding": "utf-8",
            },
        },
        "loggers": {
            "labconnect": {"level": level_name, "handlers": ["default", "file"], "propagate": False},
            "uvicorn": {"level": level_name, "handlers": ["default", "file"], "propagate": False},
            "uvicorn.error": {"level": level_name, "handlers": ["default", "file"], "propagate": False},
            "uvicorn.access": {"level": "INFO", "handlers": ["access"], "propagate": False},
        },
        "root": {"level": "WARNING", "handlers": ["default", "file"]},
    }


def main() -> None:
    level_name = "DEBUG" if settings.DEBUG else "INFO"
    logs_dir: Path = Path(settings.LOGS_DIR)
    logs_dir.mkdir(parents=True, exist_ok=True)
    log_config = build_log_config(level_name, str(logs_dir / "labconnect.log"))
    # Configure now so import-time logs use our formatter
    logging.config.dictConfig(log_config)
    # Import string: the app is imported after logging is configured
    uvicorn.run(
        "labconnect.main:app",
        host=settings.APP_HOST,
        port=settings.APP_PORT,
        log_config=log_config,
        log_level=level_name.lower(),
    )


if __name__ == "__main__":
    main()
