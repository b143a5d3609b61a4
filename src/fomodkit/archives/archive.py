"""Read-only access to entries of (possibly nested) archive containers.

Source paths that point inside a container use the form::

    archive://<containerPath>/<innerPath>

The container boundary is the first path prefix that is an existing file on
disk. Inside a container, an entry that is itself an archive file and is
followed by further segments is opened as a nested container, so
``archive:///mods/bundle.zip/extras.zip/textures/a.dds`` addresses
``textures/a.dds`` inside ``extras.zip`` inside ``bundle.zip``.
"""

from __future__ import annotations

import io
import tarfile
import tempfile
import zipfile
from functools import lru_cache
from pathlib import Path, PurePosixPath

from fomodkit.core.errors import ArchiveError, ResourceNotFoundError
from fomodkit.core.logging import get_logger

from . import external
from .detect import detect_from_magic, detect_from_suffix, has_archive_suffix
from .types import ArchiveEntry, ArchiveFormat

log = get_logger(__name__)

ARCHIVE_PREFIX = "archive://"


def is_archive_path(path: str) -> bool:
    return path.startswith(ARCHIVE_PREFIX)


def normalize_inner_path(inner: str) -> str:
    """Canonical inner path: posix separators, no leading/trailing slash."""
    return inner.replace("\\", "/").strip("/")


def generate_archive_path(container: str | Path, inner: str) -> str:
    """Build the source path of ``inner`` inside ``container``.

    ``container`` is a filesystem path or, for nested containers, an archive
    path itself.
    """
    container_s = str(container)
    if not is_archive_path(container_s):
        container_s = container_s.replace("\\", "/")
        prefix = ARCHIVE_PREFIX + container_s
    else:
        prefix = container_s
    inner_s = normalize_inner_path(inner)
    if not inner_s:
        return prefix
    return f"{prefix}/{inner_s}"


def _split_segments(path: str) -> list[str]:
    return path.replace("\\", "/").split("/")


def parse_archive_path(path: str) -> tuple[str, str]:
    """Split an archive source path into ``(containerId, innerPath)``.

    ``containerId`` is a filesystem path for a top-level container, or an
    archive path for a nested one.

    Raises:
        ResourceNotFoundError: If no container file can be located.
    """
    if not is_archive_path(path):
        raise ArchiveError(f"Not an archive path: {path}")

    rest = path[len(ARCHIVE_PREFIX) :]
    segments = _split_segments(rest)

    for i in range(1, len(segments) + 1):
        candidate = "/".join(segments[:i])
        if candidate and Path(candidate).is_file():
            inner_segments = [s for s in segments[i:] if s]
            return _descend_nested(candidate, inner_segments)

    raise ResourceNotFoundError(path)


def _descend_nested(container: str, inner_segments: list[str]) -> tuple[str, str]:
    """Move the container boundary into nested archives named by the inner path."""
    container_id = container
    remaining = inner_segments
    while remaining:
        arc = open_archive(container_id)
        nested_at = None
        for i in range(1, len(remaining)):
            prefix = "/".join(remaining[:i])
            if has_archive_suffix(prefix) and arc.is_file(prefix):
                nested_at = i
                break
        if nested_at is None:
            break
        container_id = generate_archive_path(container_id, "/".join(remaining[:nested_at]))
        remaining = remaining[nested_at:]
    return container_id, "/".join(remaining)


class Archive:
    """Read-only index over a zip, tar, 7z or rar container.

    Directory entries are synthesized from file paths, so containers that do
    not record explicit directory members still enumerate correctly.
    """

    def __init__(self, container_id: str, fmt: ArchiveFormat, data: bytes | None = None) -> None:
        self.container_id = container_id
        self.format = fmt
        self._data = data
        self._entries: dict[str, ArchiveEntry] = {}
        self._member_names: dict[str, str] = {}
        self._spool: tempfile.TemporaryDirectory | None = None
        self._build_index()

    def _open_zip(self) -> zipfile.ZipFile:
        if self._data is not None:
            return zipfile.ZipFile(io.BytesIO(self._data))
        return zipfile.ZipFile(self.container_id)

    def _open_tar(self) -> tarfile.TarFile:
        if self._data is not None:
            return tarfile.open(fileobj=io.BytesIO(self._data), mode="r:*")
        return tarfile.open(self.container_id, mode="r:*")

    def _file_path(self) -> Path:
        """On-disk path for the command line tools; nested data is spooled once."""
        if self._data is None:
            return Path(self.container_id)
        if self._spool is None:
            self._spool = tempfile.TemporaryDirectory(prefix="fomodkit-")
            (Path(self._spool.name) / f"nested.{self.format.value}").write_bytes(self._data)
        return Path(self._spool.name) / f"nested.{self.format.value}"

    def _add_entry(self, raw_name: str, is_dir: bool, size: int) -> None:
        path = normalize_inner_path(raw_name)
        if not path or any(part == ".." for part in path.split("/")):
            return
        parent = PurePosixPath(path).parent
        while str(parent) not in (".", ""):
            key = str(parent)
            if key not in self._entries:
                self._entries[key] = ArchiveEntry(path=key, is_dir=True)
            parent = parent.parent
        self._entries[path] = ArchiveEntry(path=path, is_dir=is_dir, size=size)
        if not is_dir:
            self._member_names[path] = raw_name

    def _build_index(self) -> None:
        try:
            if self.format in external.EXTERNAL_FORMATS:
                for name, is_dir, size in external.list_entries(self.format, self._file_path()):
                    self._add_entry(name, is_dir, size)
            elif self.format == ArchiveFormat.ZIP:
                with self._open_zip() as zf:
                    for info in zf.infolist():
                        self._add_entry(info.filename, info.is_dir(), info.file_size)
            else:
                with self._open_tar() as tf:
                    for member in tf.getmembers():
                        if member.isdir():
                            self._add_entry(member.name, True, 0)
                        elif member.isfile():
                            self._add_entry(member.name, False, member.size)
        except (zipfile.BadZipFile, tarfile.TarError, OSError) as e:
            raise ArchiveError(f"Unable to read archive {self.container_id}: {e}") from e
        log.debug(f"archive indexed: {self.container_id} entries={len(self._entries)}")

    @property
    def entries(self) -> list[ArchiveEntry]:
        return [self._entries[k] for k in sorted(self._entries)]

    def exists(self, inner: str) -> bool:
        key = normalize_inner_path(inner)
        return key == "" or key in self._entries

    def is_directory(self, inner: str) -> bool:
        key = normalize_inner_path(inner)
        if key == "":
            return True
        entry = self._entries.get(key)
        return entry is not None and entry.is_dir

    def is_file(self, inner: str) -> bool:
        entry = self._entries.get(normalize_inner_path(inner))
        return entry is not None and not entry.is_dir

    def _children(self, inner: str, want_dirs: bool) -> list[str]:
        key = normalize_inner_path(inner)
        if not self.is_directory(key):
            raise ResourceNotFoundError(generate_archive_path(self.container_id, key))
        out = []
        for path, entry in self._entries.items():
            parent = path.rsplit("/", 1)[0] if "/" in path else ""
            if parent == key and entry.is_dir == want_dirs:
                out.append(path)
        return sorted(out, key=str.lower)

    def get_directories(self, inner: str) -> list[str]:
        """Immediate sub-directories of ``inner`` as full inner paths."""
        return self._children(inner, want_dirs=True)

    def get_files(self, inner: str) -> list[str]:
        """Immediate files of ``inner`` as full inner paths."""
        return self._children(inner, want_dirs=False)

    def iter_files(self, inner: str = "") -> list[str]:
        """All files below ``inner``, recursively, sorted."""
        key = normalize_inner_path(inner)
        if not self.is_directory(key):
            raise ResourceNotFoundError(generate_archive_path(self.container_id, key))
        prefix = f"{key}/" if key else ""
        return sorted(
            path
            for path, entry in self._entries.items()
            if not entry.is_dir and path.startswith(prefix)
        )

    def read(self, inner: str) -> bytes:
        key = normalize_inner_path(inner)
        member = self._member_names.get(key)
        if member is None:
            raise ResourceNotFoundError(generate_archive_path(self.container_id, key))
        if self.format in external.EXTERNAL_FORMATS:
            return external.read_entry(self.format, self._file_path(), member)
        try:
            if self.format == ArchiveFormat.ZIP:
                with self._open_zip() as zf:
                    return zf.read(member)
            with self._open_tar() as tf:
                f = tf.extractfile(member)
                if f is None:
                    raise ResourceNotFoundError(generate_archive_path(self.container_id, key))
                with f:
                    return f.read()
        except (zipfile.BadZipFile, tarfile.TarError, OSError) as e:
            raise ArchiveError(f"Unable to read {key} from {self.container_id}: {e}") from e


def _detect_format(name: str, data: bytes | None, path: Path | None) -> ArchiveFormat:
    detected = detect_from_suffix(name)
    if detected is None:
        if data is not None:
            detected = detect_from_magic(io.BytesIO(data))
        elif path is not None:
            with open(path, "rb") as f:
                detected = detect_from_magic(f)
    if detected is None:
        raise ArchiveError(f"Unable to detect archive format: {name}")
    return detected.format


@lru_cache(maxsize=32)
def _open_file_archive(path: str, mtime_ns: int, size: int) -> Archive:
    fmt = _detect_format(Path(path).name, None, Path(path))
    return Archive(path, fmt)


@lru_cache(maxsize=16)
def _open_nested_archive(container_id: str, stamp: tuple[int, int]) -> Archive:
    parent_id, inner = parse_archive_path(container_id)
    data = open_archive(parent_id).read(inner)
    fmt = _detect_format(inner.rsplit("/", 1)[-1], data, None)
    return Archive(container_id, fmt, data=data)


def _root_file(container_id: str) -> Path:
    current = container_id
    while is_archive_path(current):
        current, _inner = parse_archive_path(current)
    return Path(current)


def open_archive(container_id: str | Path) -> Archive:
    """Open (cached) a container by filesystem path or nested archive path.

    Raises:
        ResourceNotFoundError: If the container file does not exist.
        ArchiveError: If the container cannot be read.
    """
    cid = str(container_id)
    root = _root_file(cid) if is_archive_path(cid) else Path(cid)
    try:
        st = root.stat()
    except FileNotFoundError:
        raise ResourceNotFoundError(str(root)) from None
    if is_archive_path(cid):
        return _open_nested_archive(cid, (st.st_mtime_ns, st.st_size))
    return _open_file_archive(cid, st.st_mtime_ns, st.st_size)
