"""Archive abstraction types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum


class ArchiveFormat(StrEnum):
    ZIP = "zip"
    TAR = "tar"
    TAR_GZ = "tar.gz"
    TAR_XZ = "tar.xz"
    RAR = "rar"
    SEVEN_Z = "7z"


@dataclass(frozen=True)
class DetectedArchiveFormat:
    format: ArchiveFormat
    source: str  # 'suffix' | 'magic'
    confidence: float
    reason: str


@dataclass(frozen=True)
class ArchiveEntry:
    """One entry inside a container; ``path`` is posix, no trailing slash."""

    path: str
    is_dir: bool
    size: int = 0

    @property
    def name(self) -> str:
        return self.path.rsplit("/", 1)[-1]
