#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Logging setup for TrackFix.

Every message goes to an append-only text log and to a bounded in-memory
tail that the terminal and web dashboards render.
"""

import logging
from collections import deque
from pathlib import Path
from threading import Lock
from typing import List, Optional

from rich.console import Console
from rich.logging import RichHandler

LOGGER_NAME = "trackfix"
LOG_FORMAT = "[%(asctime)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


class TailHandler(logging.Handler):
    """Keeps the last ``capacity`` formatted records in memory"""

    def __init__(self, capacity: int = 200):
        super().__init__()
        self._lines = deque(maxlen=capacity)
        self._lines_lock = Lock()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            line = self.format(record)
        except Exception:
            self.handleError(record)
            return
        with self._lines_lock:
            self._lines.append(line)

    def lines(self, limit: Optional[int] = None) -> List[str]:
        with self._lines_lock:
            items = list(self._lines)
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return items

    def clear(self) -> None:
        with self._lines_lock:
            self._lines.clear()


_tail = TailHandler()
_tail.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))


def get_logger() -> logging.Logger:
    return logging.getLogger(LOGGER_NAME)


def setup_logging(log_file: Optional[Path] = None, console: Optional[Console] = None,
                  level: int = logging.INFO) -> logging.Logger:
    """
    Configure the ``trackfix`` logger.

    Args:
        log_file: Append-only text log. Skipped when None.
        console: Rich console for live log lines. Pass None while a live
            dashboard owns the terminal.
        level: Logger level

    Returns:
        The configured logger
    """
    logger = get_logger()
    logger.setLevel(level)
    logger.propagate = False

    for handler in list(logger.handlers):
        if handler is not _tail:
            logger.removeHandler(handler)
            handler.close()

    if _tail not in logger.handlers:
        logger.addHandler(_tail)

    if log_file is not None:
        log_file = Path(log_file)
        if log_file.parent and not log_file.parent.exists():
            log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode='a', encoding='utf-8')
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT, DATE_FORMAT))
        logger.addHandler(file_handler)

    if console is not None:
        rich_handler = RichHandler(console=console, show_path=False, markup=False)
        rich_handler.setFormatter(logging.Formatter("%(message)s"))
        logger.addHandler(rich_handler)

    return logger


def recent_lines(limit: Optional[int] = None) -> List[str]:
    """Last lines logged, oldest first"""
    return _tail.lines(limit)
