"""Uniform enumeration of filesystem, archive and virtual sources.

Three kinds of source path reach the tree:
- plain filesystem paths,
- ``archive://<container>/<inner>`` entries (see ``fomodkit.archives``),
- ``new://<name>`` virtual folders created by the user.
"""

from __future__ import annotations

import os
import stat

from fomodkit.archives import (
    generate_archive_path,
    is_archive_path,
    open_archive,
    parse_archive_path,
)
from fomodkit.core.errors import ArchiveError, ResourceNotFoundError

NEW_PREFIX = "new://"


def is_virtual(path: str) -> bool:
    return path.startswith(NEW_PREFIX)


def virtual_folder(name: str) -> str:
    return NEW_PREFIX + name


def source_name(path: str) -> str:
    """Final segment of a source path, used as the default node name."""
    if is_virtual(path):
        rest = path[len(NEW_PREFIX) :]
    elif is_archive_path(path):
        container, inner = parse_archive_path(path)
        rest = inner or source_name(container)
    else:
        rest = path
    rest = rest.replace("\\", "/").rstrip("/")
    return rest.rsplit("/", 1)[-1]


def is_system_entry(path: str) -> bool:
    """True for entries the OS marks as system files (dotfiles on POSIX)."""
    try:
        st = os.stat(path)
    except OSError:
        return False
    attrs = getattr(st, "st_file_attributes", None)
    if attrs is not None:
        return bool(attrs & stat.FILE_ATTRIBUTE_SYSTEM)
    return os.path.basename(path.rstrip("/\\")).startswith(".")


def source_exists(path: str) -> bool:
    if is_virtual(path):
        return True
    if is_archive_path(path):
        try:
            container, inner = parse_archive_path(path)
            return open_archive(container).exists(inner)
        except (ResourceNotFoundError, ArchiveError):
            return False
    return os.path.exists(path)


def source_is_directory(path: str) -> bool:
    if is_virtual(path):
        return True
    if is_archive_path(path):
        container, inner = parse_archive_path(path)
        return open_archive(container).is_directory(inner)
    return os.path.isdir(path)


def list_children(path: str) -> tuple[list[str], list[str]]:
    """Immediate ``(directories, files)`` of a source, as source paths.

    Virtual folders and plain files have no children.

    Raises:
        ResourceNotFoundError: If the source vanished.
    """
    if is_virtual(path):
        return [], []

    if is_archive_path(path):
        try:
            container, inner = parse_archive_path(path)
            arc = open_archive(container)
        except ArchiveError as e:
            raise ResourceNotFoundError(path) from e
        if not arc.exists(inner):
            raise ResourceNotFoundError(path)
        if not arc.is_directory(inner):
            return [], []
        dirs = [generate_archive_path(container, p) for p in arc.get_directories(inner)]
        files = [generate_archive_path(container, p) for p in arc.get_files(inner)]
        return dirs, files

    try:
        with os.scandir(path) as it:
            entries = sorted(it, key=lambda e: e.name.lower())
    except NotADirectoryError:
        return [], []
    except FileNotFoundError:
        raise ResourceNotFoundError(path) from None

    dirs = [os.path.join(path, e.name) for e in entries if e.is_dir()]
    files = [os.path.join(path, e.name) for e in entries if not e.is_dir()]
    return dirs, files
