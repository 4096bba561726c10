import json
import logging
import os
import sys
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler

from oif_solver.config.settings import Config

ROOT_LOGGER = "oif_solver"


class JSONFormatter(logging.Formatter):
    """JSON log formatter for production"""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if hasattr(record, "extra_data"):
            log_data.update(record.extra_data)

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


class PrettyFormatter(logging.Formatter):
    """Pretty formatter for development"""

    COLORS = {
        "DEBUG": "\033[36m",    # Cyan
        "INFO": "\033[32m",     # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",    # Red
        "CRITICAL": "\033[35m", # Magenta
    }
    RESET = "\033[0m"

    def format(self, record: logging.LogRecord) -> str:
        color = self.COLORS.get(record.levelname, "")
        timestamp = datetime.now().strftime("%H:%M:%S")
        name = record.name.replace(f"{ROOT_LOGGER}.", "")

        msg = f"{color}[{timestamp}] {record.levelname:8}{self.RESET} {name}: {record.getMessage()}"

        if hasattr(record, "extra_data"):
            msg += f"\n  {self.COLORS['DEBUG']}{json.dumps(record.extra_data, indent=2, default=str)}{self.RESET}"

        if record.exc_info:
            msg += "\n" + self.formatException(record.exc_info)

        return msg


def setup_logging(config: Config) -> logging.Logger:
    """
    Configure the package logger from config.

    Console output is pretty in development and JSON elsewhere; the optional
    log file is always JSON and rotates at 10MB.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(config.log_level.upper())
    logger.propagate = False
    logger.handlers.clear()

    console = logging.StreamHandler(sys.stdout)
    if config.env == "development":
        console.setFormatter(PrettyFormatter())
    else:
        console.setFormatter(JSONFormatter())
    logger.addHandler(console)

    if config.log_file:
        directory = os.path.dirname(config.log_file)
        if directory:
            os.makedirs(directory, exist_ok=True)
        file_handler = RotatingFileHandler(
            config.log_file,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=5,
        )
        file_handler.setFormatter(JSONFormatter())
        logger.addHandler(file_handler)

    # Keep uvicorn's access log in the same format
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        uvicorn_logger = logging.getLogger(name)
        uvicorn_logger.handlers = list(logger.handlers)
        uvicorn_logger.propagate = False

    return logger
