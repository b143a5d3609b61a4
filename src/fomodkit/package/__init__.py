"""Package container: versioned archive holding one installable package."""

from .container import (
    INFO_ENTRY,
    PackageContainer,
    install_state_path,
    normalize_screenshot,
)
from .info import PackageInfo, parse_info_xml, render_info_xml
from .transaction import ArchiveTransaction
from .writer import resolve_entries, write_package

__all__ = [
    "INFO_ENTRY",
    "ArchiveTransaction",
    "PackageContainer",
    "PackageInfo",
    "install_state_path",
    "normalize_screenshot",
    "parse_info_xml",
    "render_info_xml",
    "resolve_entries",
    "write_package",
]
