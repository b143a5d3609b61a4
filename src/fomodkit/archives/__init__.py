"""Archive abstraction: read-only access to entries of nested containers."""

from .archive import (
    ARCHIVE_PREFIX,
    Archive,
    generate_archive_path,
    is_archive_path,
    normalize_inner_path,
    open_archive,
    parse_archive_path,
)
from .types import ArchiveEntry, ArchiveFormat, DetectedArchiveFormat

__all__ = [
    "ARCHIVE_PREFIX",
    "Archive",
    "ArchiveEntry",
    "ArchiveFormat",
    "DetectedArchiveFormat",
    "generate_archive_path",
    "is_archive_path",
    "normalize_inner_path",
    "open_archive",
    "parse_archive_path",
]
