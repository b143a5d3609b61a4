"""Console logging with four verbosity levels.

    quiet    warnings and errors
    normal   + progress messages (activation, package writes)
    verbose  + commit details (ledger and archive rewrites)
    debug    + enumeration and per-file detail

Warnings and errors go to stderr, everything else to stdout. Every emitted
line is also published on the log bus so a UI can mirror the console.

    log = get_logger(__name__)
    log.info("Activated bingle")
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from enum import IntEnum

from fomodkit.core.config import LoggingPolicy
from fomodkit.core.log_bus import LogRecord, get_log_bus


class VerbosityLevel(IntEnum):
    QUIET = 0
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3


# level name -> (minimum verbosity that shows it, ANSI color)
_LEVELS: dict[str, tuple[VerbosityLevel, str]] = {
    "ERROR": (VerbosityLevel.QUIET, "\033[31m"),
    "WARNING": (VerbosityLevel.QUIET, "\033[33m"),
    "INFO": (VerbosityLevel.NORMAL, "\033[32m"),
    "VERBOSE": (VerbosityLevel.VERBOSE, "\033[34m"),
    "DEBUG": (VerbosityLevel.DEBUG, "\033[36m"),
}
_RESET = "\033[0m"
_STDERR_LEVELS = frozenset({"WARNING", "ERROR"})

_state: dict[str, object] = {
    "verbosity": VerbosityLevel.NORMAL,
    "colors": True,
}

_sink: Callable[[str], None] | None = None
_sink_subscriber: Callable[[LogRecord], None] | None = None


def set_verbosity(level: int | VerbosityLevel) -> None:
    _state["verbosity"] = VerbosityLevel(level)


def get_verbosity() -> VerbosityLevel:
    return VerbosityLevel(_state["verbosity"])


def apply_logging_policy(policy: LoggingPolicy) -> None:
    """Set the global verbosity from a resolved ``LoggingPolicy``."""
    set_verbosity(VerbosityLevel[policy.level_name.upper()])


def set_colors(enabled: bool) -> None:
    _state["colors"] = bool(enabled)


def set_log_sink(sink: Callable[[str], None] | None) -> None:
    """Mirror every emitted plain line into ``sink`` (None removes it).

    Sink failures are ignored.
    """
    global _sink, _sink_subscriber

    bus = get_log_bus()
    if _sink_subscriber is not None:
        bus.unsubscribe_all(_sink_subscriber)
        _sink_subscriber = None
    _sink = sink
    if sink is None:
        return

    def _forward(record: LogRecord) -> None:
        try:
            sink(record.plain)
        except Exception:
            pass

    _sink_subscriber = _forward
    bus.subscribe_all(_forward)


def get_log_sink() -> Callable[[str], None] | None:
    return _sink


class FomodKitLogger:
    def __init__(self, name: str) -> None:
        self.name = name

    def is_enabled_for(self, level_name: str) -> bool:
        threshold, _color = _LEVELS[level_name]
        return threshold <= get_verbosity()

    def _render(self, level_name: str, message: str) -> str:
        tag = f"[{level_name.lower()}]"
        if _state["colors"] and sys.stdout.isatty():
            tag = f"{_LEVELS[level_name][1]}{tag}{_RESET}"
        return f"{tag} {message}"

    def log(self, level_name: str, message: str) -> None:
        if not self.is_enabled_for(level_name):
            return
        get_log_bus().publish(
            LogRecord(level_name=level_name, logger_name=self.name, message=message)
        )
        stream = sys.stderr if level_name in _STDERR_LEVELS else sys.stdout
        print(self._render(level_name, message), file=stream)

    def debug(self, message: str) -> None:
        self.log("DEBUG", message)

    def verbose(self, message: str) -> None:
        self.log("VERBOSE", message)

    def info(self, message: str) -> None:
        self.log("INFO", message)

    def warning(self, message: str) -> None:
        self.log("WARNING", message)

    def error(self, message: str) -> None:
        """Errors are shown at every verbosity."""
        self.log("ERROR", message)


_loggers: dict[str, FomodKitLogger] = {}


def get_logger(name: str = __name__) -> FomodKitLogger:
    """Shared logger for ``name`` (usually the module's ``__name__``)."""
    logger = _loggers.get(name)
    if logger is None:
        logger = _loggers[name] = FomodKitLogger(name)
    return logger
