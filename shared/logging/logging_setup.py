import logging
import logging.config
import os
from datetime import datetime

from pytz import timezone

LOGGER_NAME = "rag_index"
LOG_FORMAT = "%(asctime)s - %(levelname)s - [%(name)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

_ANSI_RESET = "\033[0m"
_LEVEL_COLORS: dict[int, str] = {
    logging.DEBUG: "\033[36m",
    logging.WARNING: "\033[33m",
    logging.ERROR: "\033[31m",
    logging.CRITICAL: "\033[35m",
}

# third party loggers that log every single request at INFO
_CHATTY_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def _resolve_level() -> int:
    name = os.getenv("LOG_LEVEL", "info").strip().upper()
    level = logging.getLevelName(name)
    return level if isinstance(level, int) else logging.INFO


class TimezoneFormatter(logging.Formatter):
    """
    Renders record timestamps in a fixed timezone and marks warnings and errors.
    """

    def __init__(self, tz_name: str, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tz = timezone(tz_name)

    def formatTime(self, record, datefmt=None):
        stamp = datetime.fromtimestamp(record.created, self.tz)
        return stamp.strftime(datefmt) if datefmt else stamp.isoformat()

    def formatMessage(self, record):
        if record.levelno >= logging.ERROR:
            record.message = "⛔ " + record.message
        elif record.levelno == logging.WARNING:
            record.message = "⚠️ " + record.message
        return super().formatMessage(record)


class ConsoleFormatter(TimezoneFormatter):
    """Colors the whole console line by level. Info lines stay uncolored."""

    def format(self, record) -> str:
        line = super().format(record)
        ansi = _LEVEL_COLORS.get(record.levelno)
        return f"{ansi}{line}{_ANSI_RESET}" if ansi else line


def setup_logging() -> logging.Logger:
    """
    Configures console and file logging for the indexer and the API server.

    Environment:
        LOG_LEVEL: Level name for all handlers (default "info").
        LOG_DIR: Directory of the log file (default "$ROOT_DIR/logs", or "./logs").
        LOG_FILE: File name inside LOG_DIR (default "rag_index.log").
        TIMEZONE: Timezone used for timestamps (default "Europe/Berlin").

    Returns:
        logging.Logger: The application logger named "rag_index".
    """
    level = _resolve_level()
    tz_name = os.getenv("TIMEZONE", "Europe/Berlin")
    log_dir = os.getenv("LOG_DIR") or os.path.join(os.getenv("ROOT_DIR", os.getcwd()), "logs")
    os.makedirs(log_dir, exist_ok=True)

    formatter_args = {"format": LOG_FORMAT, "datefmt": DATE_FORMAT, "tz_name": tz_name}
    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "plain": {"()": TimezoneFormatter, **formatter_args},
                "console": {"()": ConsoleFormatter, **formatter_args},
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "console",
                    "level": level,
                    "stream": "ext://sys.stdout",
                },
                "file": {
                    "class": "logging.FileHandler",
                    "formatter": "plain",
                    "level": level,
                    "filename": os.path.join(log_dir, os.getenv("LOG_FILE", "rag_index.log")),
                    "encoding": "utf-8",
                },
            },
            "root": {"handlers": ["console", "file"], "level": level},
        }
    )

    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if level <= logging.DEBUG else logging.WARNING)

    return logging.getLogger(LOGGER_NAME)
