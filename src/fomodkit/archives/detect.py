"""Container format detection: file name suffix first, then leading bytes."""

from __future__ import annotations

from typing import BinaryIO

from .types import ArchiveFormat, DetectedArchiveFormat

_SUFFIXES: tuple[tuple[str, ArchiveFormat], ...] = (
    (".fomod", ArchiveFormat.ZIP),
    (".zip", ArchiveFormat.ZIP),
    (".7z", ArchiveFormat.SEVEN_Z),
    (".rar", ArchiveFormat.RAR),
    (".tar.gz", ArchiveFormat.TAR_GZ),
    (".tgz", ArchiveFormat.TAR_GZ),
    (".tar.xz", ArchiveFormat.TAR_XZ),
    (".txz", ArchiveFormat.TAR_XZ),
    (".tar", ArchiveFormat.TAR),
)

# (offset, signature, format, confidence); gz/xz streams are assumed to wrap a tar
_SIGNATURES: tuple[tuple[int, bytes, ArchiveFormat, float], ...] = (
    (0, b"PK\x03\x04", ArchiveFormat.ZIP, 1.0),
    (0, b"PK\x05\x06", ArchiveFormat.ZIP, 1.0),
    (0, b"7z\xbc\xaf\x27\x1c", ArchiveFormat.SEVEN_Z, 1.0),
    (0, b"Rar!\x1a\x07\x00", ArchiveFormat.RAR, 1.0),
    (0, b"Rar!\x1a\x07\x01\x00", ArchiveFormat.RAR, 1.0),
    (257, b"ustar", ArchiveFormat.TAR, 0.9),
    (0, b"\x1f\x8b", ArchiveFormat.TAR_GZ, 0.7),
    (0, b"\xfd7zXZ\x00", ArchiveFormat.TAR_XZ, 0.7),
)
_HEADER_SIZE = 512


def detect_from_suffix(name: str) -> DetectedArchiveFormat | None:
    lowered = name.lower()
    for suffix, fmt in _SUFFIXES:
        if lowered.endswith(suffix):
            return DetectedArchiveFormat(fmt, "suffix", 1.0, f"name ends with {suffix}")
    return None


def has_archive_suffix(name: str) -> bool:
    return detect_from_suffix(name) is not None


def detect_from_magic(stream: BinaryIO) -> DetectedArchiveFormat | None:
    """Sniff the first bytes of ``stream``; its position is left unchanged."""
    start = stream.tell()
    try:
        header = stream.read(_HEADER_SIZE)
    finally:
        stream.seek(start)

    for offset, signature, fmt, confidence in _SIGNATURES:
        if header[offset : offset + len(signature)] == signature:
            return DetectedArchiveFormat(fmt, "magic", confidence, f"signature at byte {offset}")
    return None
