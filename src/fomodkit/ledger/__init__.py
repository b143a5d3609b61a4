"""Install ledger and its schema migrations."""

from .ledger import InstallLedger, ModEntry, normalize_data_path
from .migrations import (
    CURRENT_VERSION,
    MOD_MANAGER_NAME,
    ORIGINAL_VALUES,
    downgrade_0500,
    migrate,
    upgrade_0100,
)

__all__ = [
    "CURRENT_VERSION",
    "InstallLedger",
    "MOD_MANAGER_NAME",
    "ModEntry",
    "ORIGINAL_VALUES",
    "downgrade_0500",
    "migrate",
    "normalize_data_path",
    "upgrade_0100",
]
