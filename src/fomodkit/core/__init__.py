"""fomodkit core: errors, logging, configuration, events and versions."""

from fomodkit.core.config import ConfigResolver, ConfigSource, LoggingPolicy
from fomodkit.core.errors import (
    ActivationError,
    ArchiveError,
    BuilderError,
    ConfigError,
    FomodKitError,
    FormatError,
    IncompatibleVersionError,
    LedgerMigrationError,
    ResourceNotFoundError,
    TransactionError,
)
from fomodkit.core.events import (
    LEDGER_COMMITTED,
    LEDGER_MIGRATED,
    PACKAGE_ACTIVATED,
    PACKAGE_COMMITTED,
    PACKAGE_DEACTIVATED,
    EventBus,
    get_event_bus,
)
from fomodkit.core.logging import (
    VerbosityLevel,
    apply_logging_policy,
    get_logger,
    get_verbosity,
    set_colors,
    set_log_sink,
    set_verbosity,
)
from fomodkit.core.version import DEFAULT_MIN_TOOL_VERSION, DEFAULT_VERSION, MachineVersion

__all__ = [
    # Config
    "ConfigResolver",
    "ConfigSource",
    "LoggingPolicy",
    # Errors
    "FomodKitError",
    "ConfigError",
    "FormatError",
    "IncompatibleVersionError",
    "LedgerMigrationError",
    "ResourceNotFoundError",
    "ArchiveError",
    "TransactionError",
    "BuilderError",
    "ActivationError",
    # Events
    "EventBus",
    "get_event_bus",
    "PACKAGE_COMMITTED",
    "PACKAGE_ACTIVATED",
    "PACKAGE_DEACTIVATED",
    "LEDGER_COMMITTED",
    "LEDGER_MIGRATED",
    # Logging
    "VerbosityLevel",
    "apply_logging_policy",
    "get_logger",
    "set_verbosity",
    "get_verbosity",
    "set_log_sink",
    "set_colors",
    # Versions
    "MachineVersion",
    "DEFAULT_VERSION",
    "DEFAULT_MIN_TOOL_VERSION",
]
