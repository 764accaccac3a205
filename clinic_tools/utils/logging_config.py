# clinic_tools/utils/logging_config.py

"""
Logging setup for the Flask app: console and rotating file handlers driven
by the ``LOG_*`` / ``ENABLE_*_LOGGING`` config keys.
"""

import json
import logging
import os
from logging.handlers import RotatingFileHandler

from flask.logging import default_handler

TEXT_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers"""

    def format(self, record):
        payload = {
            "timestamp": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def _build_formatter(log_format):
    if (log_format or "text").lower() == "json":
        return JsonFormatter()
    return logging.Formatter(TEXT_FORMAT)


def _resolve_level(value):
    level = logging.getLevelName(str(value or "INFO").upper())
    return level if isinstance(level, int) else logging.INFO


def setup_logging(app):
    """Attach handlers to the app logger and the ``clinic_tools`` package logger"""
    level = _resolve_level(app.config.get("LOG_LEVEL", "INFO"))
    formatter = _build_formatter(app.config.get("LOG_FORMAT", "text"))

    handlers = []
    if app.config.get("ENABLE_CONSOLE_LOGGING", True):
        console_handler = logging.StreamHandler()
        console_handler.setFormatter(formatter)
        handlers.append(console_handler)

    if app.config.get("ENABLE_FILE_LOGGING", False):
        log_dir = app.config.get("LOG_DIR", "logs")
        try:
            os.makedirs(log_dir, exist_ok=True)
            file_handler = RotatingFileHandler(
                os.path.join(log_dir, "clinic_tools.log"),
                maxBytes=int(app.config.get("LOG_FILE_MAX_BYTES", 10485760)),
                backupCount=int(app.config.get("LOG_FILE_BACKUP_COUNT", 10)),
            )
            file_handler.setFormatter(formatter)
            handlers.append(file_handler)
        except OSError as exc:
            app.logger.warning(f"File logging disabled, cannot write to {log_dir}: {exc}")

    # Our handlers replace Flask's stderr handler
    app.logger.removeHandler(default_handler)

    package_logger = logging.getLogger("clinic_tools")
    for logger in (app.logger, package_logger):
        # Re-running setup (tests, reloader) must not stack duplicate handlers
        for handler in list(logger.handlers):
            if getattr(handler, "_clinic_tools_handler", False):
                logger.removeHandler(handler)
        for handler in handlers:
            handler._clinic_tools_handler = True
            logger.addHandler(handler)
        logger.setLevel(level)

    app.logger.debug(f"Logging configured at level {logging.getLevelName(level)}")
    return handlers
