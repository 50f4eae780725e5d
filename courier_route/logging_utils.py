# courier_route/logging_utils.py
from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional, Union


def setup_logger(name: str, log_file: Optional[Path] = None, level: Union[int, str] = logging.INFO):
    """Console handler, plus a file handler when `log_file` is given."""
    logger = logging.getLogger(name)
    logger.setLevel(level)
    logger.handlers.clear()

    fmt = logging.Formatter(
        "[%(asctime)s][%(levelname)s] %(message)s",
        datefmt="%H:%M:%S",
    )

    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    logger.addHandler(ch)

    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setFormatter(fmt)
        logger.addHandler(fh)

    return logger
