from __future__ import annotations

import sys
from pathlib import Path
from typing import Optional

from loguru import logger

FORMAT_CONSOLE = "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | {level} | {name}:{line} | {message}"
FORMAT_FILE = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{line} | {message}"


def setup_logging(level: str = "INFO", log_file: Optional[str | Path] = None) -> None:
    """Install loguru sinks for scripts and host processes.

    Library code only emits through `loguru.logger`; nothing is configured on import.
    """
    logger.remove()
    logger.add(sys.stderr, level=level, format=FORMAT_CONSOLE)
    if log_file:
        path = Path(log_file)
        path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            path,
            level="DEBUG",
            rotation="100 MB",
            retention="90 days",
            enqueue=True,
            encoding="utf-8",
            format=FORMAT_FILE,
        )
        logger.info(f"Logging to {path}")


def mask(s: Optional[str]) -> str:
    if not s:
        return ""
    if len(s) <= 8:
        return "*" * len(s)
    return s[:4] + "*" * (len(s) - 8) + s[-4:]
