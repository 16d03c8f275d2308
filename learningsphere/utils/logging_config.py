"""
Logging setup for the LearningSphere API, driven by the app config
"""
import logging
import logging.handlers
import sys
from pathlib import Path

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)-20s | %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Third-party loggers that are chatty at INFO
QUIET_LOGGERS = ("werkzeug", "urllib3", "google_genai", "httpx")


def init_logging(app) -> logging.Logger:
    """
    Configure the root logger from LOG_LEVEL, LOG_TO_FILE and LOG_DIR.

    Console output always goes to stdout. With file logging on, the
    service writes learningsphere.log plus learningsphere_errors.log,
    both size-rotated.
    """
    config = app.config
    level = getattr(logging, str(config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    formatter = logging.Formatter(LOG_FORMAT, DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.handlers = []

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    log_dir = None
    if config.get("LOG_TO_FILE"):
        log_dir = Path(config.get("LOG_DIR", "logs"))
        log_dir.mkdir(parents=True, exist_ok=True)
        max_bytes = int(config.get("LOG_MAX_BYTES", 10 * 1024 * 1024))

        for filename, handler_level in (("learningsphere.log", logging.DEBUG),
                                        ("learningsphere_errors.log", logging.ERROR)):
            handler = logging.handlers.RotatingFileHandler(
                log_dir / filename, maxBytes=max_bytes, backupCount=5, encoding="utf-8"
            )
            handler.setFormatter(formatter)
            handler.setLevel(handler_level)
            root_logger.addHandler(handler)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    # Flask's own logger propagates to the handlers above
    app.logger.handlers = []
    app.logger.propagate = True

    logger = logging.getLogger("learningsphere")
    logger.info(f"[Logging] Level {logging.getLevelName(level)}, files in {log_dir or 'disabled'}")
    return logger
