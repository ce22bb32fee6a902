from __future__ import annotations

import logging
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(message)s"
DEFAULT_LOG_DIR = Path.home() / ".replaykit"


def build_logger(name: str = "replaykit", log_dir: Path | None = None, level: int = logging.INFO) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger

    logger.setLevel(level)
    logger.propagate = False
    try:
        target_dir = log_dir or DEFAULT_LOG_DIR
        target_dir.mkdir(parents=True, exist_ok=True)
        handler: logging.Handler = logging.FileHandler(target_dir / "replaykit.log", encoding="utf-8")
    except OSError:
        # Read-only home directories still get stderr logging.
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logger.addHandler(handler)
    return logger
