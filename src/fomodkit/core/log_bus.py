"""Fan-out of log records to subscribers (UI consoles, test collectors).

A failing subscriber is reported on stderr and never reaches the logger.
"""

from __future__ import annotations

import sys
import traceback
from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class LogRecord:
    level_name: str
    logger_name: str
    message: str

    @property
    def plain(self) -> str:
        return f"[{self.level_name.lower()}] {self.message}"


LogCallback = Callable[[LogRecord], None]


class LogBus:
    def __init__(self) -> None:
        # (level filter or None for every level, callback)
        self._subscribers: list[tuple[str | None, LogCallback]] = []

    def subscribe(self, cb: LogCallback, level_name: str | None = None) -> None:
        self._subscribers.append((level_name.upper() if level_name else None, cb))

    def unsubscribe(self, cb: LogCallback) -> None:
        self._subscribers = [(lvl, s) for lvl, s in self._subscribers if s != cb]

    def subscribe_all(self, cb: LogCallback) -> None:
        self.subscribe(cb)

    def unsubscribe_all(self, cb: LogCallback) -> None:
        self.unsubscribe(cb)

    def publish(self, record: LogRecord) -> None:
        for level_name, cb in list(self._subscribers):
            if level_name is not None and level_name != record.level_name:
                continue
            try:
                cb(record)
            except Exception:
                # The core logger would recurse into this bus.
                sys.stderr.write(f"log subscriber {cb!r} failed:\n{traceback.format_exc()}")

    def clear(self) -> None:
        self._subscribers.clear()


_LOG_BUS: LogBus | None = None


def get_log_bus() -> LogBus:
    global _LOG_BUS
    if _LOG_BUS is None:
        _LOG_BUS = LogBus()
    return _LOG_BUS
