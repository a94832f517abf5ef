import logging
import os
import sys
import json
from datetime import date
from pathlib import Path
from typing import Any, Dict

from loguru import logger

from app.utils.context import get_admin_id, get_request_id

LOGGING_CONFIG_PATH = Path(__file__).resolve().parents[2] / "logging_config.json"

# Libraries whose stdlib loggers are routed into loguru
INTERCEPTED_LOGGERS = (
    "uvicorn",
    "uvicorn.error",
    "uvicorn.access",
    "fastapi",
    "sqlalchemy.engine",
    "minio",
)


class InterceptHandler(logging.Handler):
    """Forward standard library log records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def _inject_context(record: Dict[str, Any]) -> None:
    # Read at emit time so module-level loggers still see the current request
    request_id = get_request_id()
    if request_id:
        record["extra"]["request_id"] = request_id
    admin_id = get_admin_id()
    if admin_id:
        record["extra"]["admin_id"] = admin_id


class CustomizeLogger:
    @classmethod
    def make_logger(cls, config_path: Path, environment: str = "logger"):
        with open(config_path) as config_file:
            config: Dict[str, Dict[str, Any]] = json.load(config_file)
        section = config.get(environment, config["logger"])

        logger.remove()
        logger.configure(extra={"request_id": "app", "admin_id": "-"}, patcher=_inject_context)

        logger.add(
            sys.stdout,
            enqueue=True,
            backtrace=True,
            level=section["level"].upper(),
            format=section["console_format"],
            colorize=True,
        )

        file_sink = f"{section['log_dir']}/{date.today():%Y-%m-%d}-{section['filename']}"
        serialize = bool(section.get("use_json_logs")) and section["file_format"] == "json"
        file_options: Dict[str, Any] = {
            "rotation": section["rotation"],
            "retention": section["retention"],
            "enqueue": True,
            "backtrace": True,
            "level": section["level"].upper(),
            "colorize": False,
        }
        if serialize:
            file_options["serialize"] = True
        else:
            file_options["format"] = section["file_format"]
        logger.add(file_sink, **file_options)

        logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
        for name in INTERCEPTED_LOGGERS:
            logging.getLogger(name).handlers = [InterceptHandler()]

        return logger


environment = (
    "production"
    if os.getenv("ENVIRONMENT", "development") == "production"
    else "logger"
)
custom_logger = CustomizeLogger.make_logger(LOGGING_CONFIG_PATH, environment)


def get_logger(**extra: Any):
    """Custom logger with optional extra fields; request and admin ids are added per record."""
    return custom_logger.bind(**extra) if extra else custom_logger
