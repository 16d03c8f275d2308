"""
Unit Tests for Logging Setup
"""
import logging
import logging.handlers
from pathlib import Path

import pytest
from flask import Flask

from learningsphere.utils.logging_config import init_logging


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    for handler in root.handlers:
        handler.close()
    root.handlers = handlers
    root.setLevel(level)


def _flask_app(**config):
    app = Flask(__name__)
    app.config.update(config)
    return app


class TestInitLogging:

    def test_console_only(self, restore_root_logger, tmp_path):
        init_logging(_flask_app(LOG_LEVEL="debug", LOG_TO_FILE=False, LOG_DIR=str(tmp_path / "logs")))

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert not (tmp_path / "logs").exists()

    def test_file_handlers_follow_config(self, restore_root_logger, tmp_path):
        init_logging(_flask_app(LOG_LEVEL="INFO", LOG_TO_FILE=True, LOG_DIR=str(tmp_path), LOG_MAX_BYTES=2048))

        rotating = [h for h in logging.getLogger().handlers
                    if isinstance(h, logging.handlers.RotatingFileHandler)]
        assert sorted(Path(h.baseFilename).name for h in rotating) == [
            "learningsphere.log", "learningsphere_errors.log"
        ]
        assert all(h.maxBytes == 2048 for h in rotating)

        logging.getLogger("learningsphere.test").error("[Test] broken")
        for handler in rotating:
            handler.flush()
        assert "[Test] broken" in (tmp_path / "learningsphere_errors.log").read_text()

    def test_quiets_third_party_loggers(self, restore_root_logger):
        app = _flask_app(LOG_LEVEL="DEBUG", LOG_TO_FILE=False)

        init_logging(app)

        assert logging.getLogger("werkzeug").level == logging.WARNING
        assert app.logger.propagate is True
