"""Event bus for package lifecycle notifications.

Observers (UI, diagnostics) follow activation and ledger changes without
the publishers knowing about them. Handler failures are logged and never
reach the publisher.

Published events and their payload keys:
    package.committed    package
    package.activated    package, mod_key, files
    package.deactivated  package, files, removed
    ledger.committed     path, mods, files
    ledger.migrated      path, steps
"""

from __future__ import annotations

import traceback
from collections import defaultdict
from collections.abc import Callable
from typing import Any

from fomodkit.core.logging import get_logger

_logger = get_logger(__name__)

PACKAGE_COMMITTED = "package.committed"
PACKAGE_ACTIVATED = "package.activated"
PACKAGE_DEACTIVATED = "package.deactivated"
LEDGER_COMMITTED = "ledger.committed"
LEDGER_MIGRATED = "ledger.migrated"

Handler = Callable[[dict[str, Any]], None]
AllHandler = Callable[[str, dict[str, Any]], None]


class EventBus:
    """Example:
        bus = EventBus()
        bus.subscribe(PACKAGE_ACTIVATED, lambda data: print(data["package"]))
        bus.publish(PACKAGE_ACTIVATED, {"package": "bingle.fomod"})
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Handler]] = defaultdict(list)
        self._all_subscribers: list[AllHandler] = []

    def subscribe(self, event: str, callback: Handler) -> None:
        self._subscribers[event].append(callback)

    def unsubscribe(self, event: str, callback: Handler) -> None:
        if callback in self._subscribers.get(event, []):
            self._subscribers[event].remove(callback)

    def subscribe_all(self, callback: AllHandler) -> None:
        """Receive every event as ``(event, data)``."""
        self._all_subscribers.append(callback)

    def _call(self, event: str, callback: Callable[..., None], *args: Any) -> None:
        try:
            callback(*args)
        except Exception as e:
            _logger.error(
                f"Error in event handler for '{event}' (callback={callback}): "
                f"{type(e).__name__}: {e}\n{traceback.format_exc()}"
            )

    def publish(self, event: str, data: dict[str, Any] | None = None) -> None:
        data = data or {}
        for handler in list(self._subscribers.get(event, [])):
            self._call(event, handler, data)
        for all_handler in list(self._all_subscribers):
            self._call(event, all_handler, event, data)

    def clear(self) -> None:
        self._subscribers.clear()
        self._all_subscribers.clear()


_global_bus: EventBus | None = None


def get_event_bus() -> EventBus:
    """Get global event bus instance."""
    global _global_bus
    if _global_bus is None:
        _global_bus = EventBus()
    return _global_bus
