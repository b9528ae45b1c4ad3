"""Console and rotating-file logging for query, audit and account activity."""
import logging
import os
from logging.handlers import RotatingFileHandler

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(module)s:%(lineno)d | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"
LOG_FILE_NAME = "society.log"
LOG_MAX_BYTES = 5_000_000
LOG_BACKUP_COUNT = 5


def _handlers(app, level: int) -> list[logging.Handler]:
    handlers: list[logging.Handler] = [logging.StreamHandler()]
    # Test runs build many apps; keep them on the console only.
    if not app.config.get("TESTING"):
        log_dir = app.config.get("LOG_DIR") or os.path.join(app.instance_path, "logs")
        os.makedirs(log_dir, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                os.path.join(log_dir, LOG_FILE_NAME),
                maxBytes=LOG_MAX_BYTES,
                backupCount=LOG_BACKUP_COUNT,
                encoding="utf-8",
            )
        )

    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


def init_logging(app) -> logging.Logger:
    level_name = (app.config.get("LOG_LEVEL") or "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)

    logger = logging.getLogger(app.name)
    logger.setLevel(level)
    logger.handlers = _handlers(app, level)
    logger.propagate = False

    logger.info("Logging ready", extra={"level": level_name, "testing": bool(app.config.get("TESTING"))})
    return logger
