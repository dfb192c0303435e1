#!/usr/bin/env python3
"""
Logging setup: console plus a flat log file per script.
"""
import logging
import sys
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(message)s"


def default_log_file(name: str) -> Path:
    from .config import ConfigManager
    return ConfigManager.config_dir() / "logs" / f"{name}.log"


def setup_logging(name: str, log_file: Optional[Path] = None, verbose: bool = False) -> Path:
    """
    Configure the root logger for a script run.

    Returns the log file path in use.
    """
    log_file = Path(log_file) if log_file else default_log_file(name)
    log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format=LOG_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout),
            logging.FileHandler(log_file, encoding="utf-8"),
        ],
        force=True,
    )
    return log_file


def add_file_handler(path: Path) -> logging.Handler:
    """Attach an extra log file (e.g. a per-run log) to the root logger"""
    path.parent.mkdir(parents=True, exist_ok=True)
    handler = logging.FileHandler(path, encoding="utf-8")
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    return handler


def remove_handler(handler: logging.Handler):
    """Detach and close a handler so its file can be moved"""
    logging.getLogger().removeHandler(handler)
    handler.close()
