from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path


LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"


def setup_logging(level_name: str = "INFO", log_dir: Path | None = None) -> Path | None:
    level = getattr(logging, level_name.upper(), logging.INFO)

    root = logging.getLogger()
    root.setLevel(level)
    formatter = logging.Formatter(LOG_FORMAT, LOG_DATEFMT)

    logfile = None
    if log_dir is not None:
        log_dir.mkdir(parents=True, exist_ok=True)
        logfile = log_dir / "pm_server.log"
        # rotate at 5MB, keep 7 backups
        fh = RotatingFileHandler(logfile, maxBytes=5_000_000, backupCount=7, encoding="utf-8")
        fh.setFormatter(formatter)
        fh.setLevel(level)
        root.addHandler(fh)

    ch = logging.StreamHandler(sys.stdout)
    ch.setFormatter(formatter)
    ch.setLevel(level)
    root.addHandler(ch)

    logging.getLogger(__name__).info("Logging initialized at %s; file: %s", level_name.upper(), logfile)
    return logfile
