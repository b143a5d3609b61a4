"""7z and rar containers, read through the ``7z`` or ``unrar`` command line tools.

``7z`` handles both formats and is preferred; ``unrar`` is the fallback for
rar. Nothing is extracted to disk: listings come from ``7z l -slt`` /
``unrar vt`` and single entries are streamed with ``7z x -so`` / ``unrar p``.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path

from fomodkit.core.errors import ArchiveError
from fomodkit.core.logging import get_logger

from .types import ArchiveFormat

log = get_logger(__name__)

EXTERNAL_FORMATS = frozenset({ArchiveFormat.SEVEN_Z, ArchiveFormat.RAR})

# (name as stored, is_dir, size)
ListedEntry = tuple[str, bool, int]


def pick_tool(fmt: ArchiveFormat) -> str:
    """Name of the tool that reads ``fmt``.

    Raises:
        ArchiveError: Neither tool is installed.
    """
    if shutil.which("7z"):
        return "7z"
    if fmt == ArchiveFormat.RAR and shutil.which("unrar"):
        return "unrar"
    raise ArchiveError(
        f"No tool available to read {fmt.value} archives",
        "Install 7z (p7zip), or unrar for rar archives",
    )


def _run(cmd: list[str], *, text: bool) -> subprocess.CompletedProcess:
    try:
        return subprocess.run(cmd, check=True, capture_output=True, text=text)
    except subprocess.CalledProcessError as e:
        stderr = e.stderr if isinstance(e.stderr, str) else (e.stderr or b"").decode(errors="replace")
        raise ArchiveError(f"{cmd[0]} failed: {stderr.strip()}") from e
    except OSError as e:
        raise ArchiveError(f"Unable to run {cmd[0]}: {e}") from e


def _blocks(output: str, sep: str) -> list[dict[str, str]]:
    """One dict per blank-line separated block of ``key<sep>value`` lines."""
    blocks: list[dict[str, str]] = []
    current: dict[str, str] = {}
    for line in output.splitlines():
        s = line.strip()
        if not s:
            if current:
                blocks.append(current)
                current = {}
            continue
        key, found, value = s.partition(sep)
        if found:
            current[key.strip()] = value.strip()
    if current:
        blocks.append(current)
    return blocks


def _size(value: str | None) -> int:
    try:
        return int(value or 0)
    except ValueError:
        return 0


def parse_7z_listing(output: str) -> list[ListedEntry]:
    """Entries from ``7z l -slt`` output.

    Blocks before the ``----------`` line describe the archive itself.
    """
    _head, found, body = output.partition("\n----------")
    if not found:
        return []
    entries: list[ListedEntry] = []
    for block in _blocks(body, " = "):
        path = block.get("Path")
        if not path:
            continue
        is_dir = block.get("Folder") == "+" or block.get("Attributes", "").startswith("D")
        entries.append((path.replace("\\", "/"), is_dir, _size(block.get("Size"))))
    return entries


def parse_unrar_listing(output: str) -> list[ListedEntry]:
    """Entries from ``unrar vt`` (technical listing) output."""
    entries: list[ListedEntry] = []
    for block in _blocks(output, ": "):
        name = block.get("Name")
        kind = block.get("Type", "").lower()
        if not name or kind not in ("file", "directory"):
            continue
        entries.append((name.replace("\\", "/"), kind == "directory", _size(block.get("Size"))))
    return entries


def list_entries(fmt: ArchiveFormat, path: Path) -> list[ListedEntry]:
    tool = pick_tool(fmt)
    if tool == "7z":
        entries = parse_7z_listing(_run(["7z", "l", "-slt", str(path)], text=True).stdout)
    else:
        entries = parse_unrar_listing(_run(["unrar", "vt", "-idc", str(path)], text=True).stdout)
    log.debug(f"{tool} listed {len(entries)} entries in {path}")
    return entries


def read_entry(fmt: ArchiveFormat, path: Path, member: str) -> bytes:
    if pick_tool(fmt) == "7z":
        return _run(["7z", "x", "-so", "-y", str(path), member], text=False).stdout
    return _run(["unrar", "p", "-inul", str(path), member], text=False).stdout
