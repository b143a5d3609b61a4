"""Write a new package archive from copy instructions."""

from __future__ import annotations

import os
import zipfile
from collections.abc import Iterable
from pathlib import Path

from fomodkit.archives import is_archive_path, open_archive, parse_archive_path
from fomodkit.builder import is_virtual, normalize_destination
from fomodkit.core.errors import ArchiveError, ResourceNotFoundError, TransactionError
from fomodkit.core.logging import get_logger

from .container import (
    CANONICAL_README_EXT,
    DEFAULT_SCRIPT_ENTRY,
    INFO_ENTRY,
    README_PREFIX,
    SCREENSHOT_STEM,
    normalize_screenshot,
)
from .info import PackageInfo, render_info_xml
from .transaction import zipinfo_deterministic

log = get_logger(__name__)


def _join(dest: str, rel: str) -> str:
    rel = rel.replace("\\", "/").strip("/")
    return f"{dest}/{rel}" if dest and rel else (dest or rel)


def resolve_entries(instructions: Iterable[tuple[str, str]]) -> dict[str, tuple[str, str]]:
    """Expand instructions into ``{entry_name: (kind, locator)}``.

    ``kind`` is ``"file"`` (locator is a filesystem path) or ``"archive"``
    (locator is an archive source path). Later instructions win on
    conflicting entry names. Vanished sources are skipped.
    """
    entries: dict[str, tuple[str, str]] = {}

    for source, destination in instructions:
        dest = normalize_destination(destination)
        if is_virtual(source):
            continue

        if is_archive_path(source):
            try:
                container, inner = parse_archive_path(source)
                arc = open_archive(container)
            except (ResourceNotFoundError, ArchiveError) as e:
                log.warning(f"Skipping unreadable source {source}: {e}")
                continue
            if arc.is_directory(inner):
                prefix_len = len(inner.strip("/"))
                for f in arc.iter_files(inner):
                    entries[_join(dest, f[prefix_len:])] = ("archive", f"{container}\0{f}")
            elif arc.is_file(inner):
                entries[dest] = ("archive", f"{container}\0{inner}")
            else:
                log.warning(f"Skipping missing archive entry: {source}")
            continue

        if os.path.isdir(source):
            base = Path(source)
            for p in sorted(base.rglob("*")):
                if p.is_file():
                    entries[_join(dest, p.relative_to(base).as_posix())] = ("file", str(p))
        elif os.path.isfile(source):
            entries[dest] = ("file", source)
        else:
            log.warning(f"Skipping missing source: {source}")

    return entries


def _read(kind: str, locator: str) -> bytes:
    if kind == "archive":
        container, inner = locator.split("\0", 1)
        return open_archive(container).read(inner)
    return Path(locator).read_bytes()


def write_package(
    path: Path | str,
    instructions: Iterable[tuple[str, str]],
    *,
    info: PackageInfo | None = None,
    script: str | None = None,
    readme: str | None = None,
    screenshot: bytes | None = None,
    script_entry: str = DEFAULT_SCRIPT_ENTRY,
) -> Path:
    """Materialize ``instructions`` into a new package at ``path``.

    Entries are written in sorted order with fixed timestamps, so the same
    input produces the same archive bytes. The file appears atomically.
    """
    path = Path(path)
    entries = resolve_entries(instructions)

    extra: dict[str, bytes] = {}
    if info is not None:
        extra[INFO_ENTRY] = render_info_xml(info, path.stem)
    if script:
        extra[script_entry] = script.encode("utf-8")
    if readme:
        extra[f"{README_PREFIX}{path.stem.lower()}{CANONICAL_README_EXT}"] = readme.encode("utf-8")
    if screenshot:
        extra[SCREENSHOT_STEM + ".png"] = normalize_screenshot(screenshot)

    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    try:
        with zipfile.ZipFile(tmp, "w", compression=zipfile.ZIP_DEFLATED) as zf:
            for name in sorted(entries):
                if name in extra:
                    continue
                kind, locator = entries[name]
                zf.writestr(zipinfo_deterministic(name), _read(kind, locator))
            for name in sorted(extra):
                zf.writestr(zipinfo_deterministic(name), extra[name])
        tmp.replace(path)
    except (OSError, zipfile.BadZipFile) as e:
        tmp.unlink(missing_ok=True)
        raise TransactionError(f"Failed to write package {path}: {e}") from e

    log.info(f"package written: {path.name} entries={len(entries) + len(extra)}")
    return path
