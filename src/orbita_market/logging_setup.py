# src/orbita_market/logging_setup.py
import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import List


def _handlers_for(log_settings) -> List[logging.Handler]:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stdout)]

    if log_settings.log_to_file:
        log_file = Path(log_settings.log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_file,
                maxBytes=log_settings.rotation_size_mb * 1024 * 1024,
                backupCount=log_settings.rotation_backup_count,
            )
        )

    return handlers


def setup_logging(config):
    """
    Configure the root logger from `config.logging`.

    Console output always; a rotating log file when `log_to_file` is set.
    Per-request chatter from the HTTP stack is capped at WARNING unless
    the configured level is DEBUG.
    """
    try:
        log_settings = config.logging
    except AttributeError:
        logging.basicConfig(level=logging.INFO)
        logging.getLogger(__name__).warning(
            "No 'logging' section in config. Using basic logging."
        )
        return

    level = log_settings.level.upper()
    formatter = logging.Formatter(log_settings.format)

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    for handler in _handlers_for(log_settings):
        handler.setLevel(level)
        handler.setFormatter(formatter)
        root.addHandler(handler)

    if level != "DEBUG":
        for name in log_settings.quiet_loggers:
            logging.getLogger(name).setLevel(logging.WARNING)

    root.debug(f"Logging configured at {level}")
