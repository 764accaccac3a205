import json
import logging
from logging.handlers import RotatingFileHandler

import pytest

from clinic_tools.utils.logging_config import JsonFormatter, setup_logging
from config.monitoring import MonitoringConfig


@pytest.fixture
def restore_logging(app):
    yield
    app.config.update({"ENABLE_FILE_LOGGING": False, "ENABLE_CONSOLE_LOGGING": False, "LOG_FORMAT": "text"})
    for handler in setup_logging(app):
        handler.close()


def _ours(logger):
    return [handler for handler in logger.handlers if getattr(handler, "_clinic_tools_handler", False)]


def test_testing_config_attaches_no_handlers(app):
    assert setup_logging(app) == []
    assert _ours(app.logger) == []
    assert _ours(logging.getLogger("clinic_tools")) == []


def test_file_and_console_handlers(app, tmp_path, restore_logging):
    app.config.update(
        {
            "ENABLE_FILE_LOGGING": True,
            "ENABLE_CONSOLE_LOGGING": True,
            "LOG_DIR": str(tmp_path / "logs"),
            "LOG_LEVEL": "warning",
        }
    )

    handlers = setup_logging(app)

    assert len(handlers) == 2
    assert any(isinstance(handler, RotatingFileHandler) for handler in handlers)
    assert (tmp_path / "logs" / "clinic_tools.log").exists()
    assert app.logger.level == logging.WARNING
    assert len(_ours(logging.getLogger("clinic_tools"))) == 2


def test_setup_is_idempotent(app, restore_logging):
    app.config["ENABLE_CONSOLE_LOGGING"] = True

    setup_logging(app)
    setup_logging(app)

    assert len(_ours(app.logger)) == 1


def test_unknown_level_falls_back_to_info(app, restore_logging):
    app.config["LOG_LEVEL"] = "chatty"
    setup_logging(app)
    assert app.logger.level == logging.INFO


def test_json_formatter():
    record = logging.LogRecord("clinic_tools.test", logging.INFO, __file__, 12, "merged %s", ("acme",), None)

    payload = json.loads(JsonFormatter().format(record))

    assert payload["level"] == "INFO"
    assert payload["logger"] == "clinic_tools.test"
    assert payload["message"] == "merged acme"
    assert payload["line"] == 12


def test_monitoring_config_only_carries_logging_keys():
    keys = {name for name in vars(MonitoringConfig) if name.isupper()}

    assert keys == {
        "LOG_LEVEL",
        "LOG_FORMAT",
        "LOG_DIR",
        "LOG_FILE_MAX_BYTES",
        "LOG_FILE_BACKUP_COUNT",
        "ENABLE_FILE_LOGGING",
        "ENABLE_CONSOLE_LOGGING",
    }
