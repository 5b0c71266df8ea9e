"""User feedback for finished operations."""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notice:
    level: str  # 'success' | 'error'
    message: str

    @property
    def ok(self) -> bool:
        return self.level == "success"


class Notifier:
    """Keeps the most recent notices and mirrors them to the log."""

    def __init__(self, history: int = 20) -> None:
        self.recent: deque[Notice] = deque(maxlen=history)

    def success(self, message: str) -> Notice:
        log.info(message)
        return self._push(Notice("success", message))

    def error(self, message: str) -> Notice:
        log.warning(message)
        return self._push(Notice("error", message))

    def _push(self, notice: Notice) -> Notice:
        self.recent.append(notice)
        return notice
