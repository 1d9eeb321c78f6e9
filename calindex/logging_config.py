"""
Logging configuration for calindex.

Quiet by default; debug output on request.
"""

import logging
import sys
import warnings
from logging.handlers import RotatingFileHandler
from pathlib import Path


def configure_quiet_mode(quiet: bool = True):
    """
    Keep library output down to errors.

    Args:
        quiet: If True, suppress warnings and chatty library loggers.
    """
    if quiet:
        warnings.filterwarnings("ignore")
        logging.getLogger("dateutil").setLevel(logging.ERROR)
        logging.getLogger("calindex").setLevel(logging.ERROR)


def enable_debug_mode():
    """Enable debug-level logging to stderr."""
    warnings.filterwarnings("default")

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    # Add stderr handler if not already present
    if not any(isinstance(h, logging.StreamHandler) and h.stream == sys.stderr
               for h in root_logger.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setLevel(logging.DEBUG)
        handler.setFormatter(logging.Formatter(
            "%(asctime)s %(levelname)s %(name)s: %(message)s",
            datefmt="%H:%M:%S"
        ))
        root_logger.addHandler(handler)

    for name in ("calindex", "dateutil"):
        logging.getLogger(name).setLevel(logging.DEBUG)


def configure_ops_log(log_dir):
    """Configure a persistent operations log.

    Writes to {log_dir}/calindex-ops.log using a rotating file handler
    (1MB max, 3 backups). Returns the handler so it can be removed later.
    """
    log_path = Path(log_dir) / "calindex-ops.log"
    log_path.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        str(log_path),
        maxBytes=1_000_000,
        backupCount=3,
    )
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter(
        "%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))

    calindex_logger = logging.getLogger("calindex")
    calindex_logger.addHandler(handler)
    # Let INFO through even in quiet mode
    if calindex_logger.level == logging.NOTSET or calindex_logger.level > logging.INFO:
        calindex_logger.setLevel(logging.INFO)

    return handler
