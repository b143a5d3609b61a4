"""All-or-nothing mutation of a zip container.

Changes are staged in memory; ``commit()`` writes a complete new archive
next to the original and atomically replaces it. Until the replace
succeeds the original archive is untouched.
"""

from __future__ import annotations

import zipfile
from pathlib import Path

from fomodkit.core.errors import TransactionError
from fomodkit.core.logging import get_logger

log = get_logger(__name__)


def zipinfo_deterministic(name: str) -> zipfile.ZipInfo:
    zi = zipfile.ZipInfo(filename=name)
    zi.date_time = (1980, 1, 1, 0, 0, 0)
    zi.compress_type = zipfile.ZIP_DEFLATED
    return zi


def normalize_entry_name(name: str) -> str:
    return name.replace("\\", "/").lstrip("/")


class ArchiveTransaction:
    def __init__(self, path: Path) -> None:
        self.path = path
        self._added: dict[str, bytes] = {}
        self._deleted: set[str] = set()

    @property
    def changed(self) -> bool:
        return bool(self._added or self._deleted)

    def add(self, name: str, data: bytes | str) -> None:
        """Stage ``name``; replaces any existing entry of the same name."""
        name = normalize_entry_name(name)
        if isinstance(data, str):
            data = data.encode("utf-8")
        self._deleted.discard(name.lower())
        self._added = {k: v for k, v in self._added.items() if k.lower() != name.lower()}
        self._added[name] = data

    def delete(self, name: str) -> None:
        name = normalize_entry_name(name)
        self._added = {k: v for k, v in self._added.items() if k.lower() != name.lower()}
        self._deleted.add(name.lower())

    def commit(self) -> None:
        """Write the staged changes.

        Raises:
            TransactionError: The archive could not be rewritten. The
                original file is left as it was.
        """
        if not self.changed:
            return

        replaced = {k.lower() for k in self._added} | self._deleted
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            with zipfile.ZipFile(tmp, "w", compression=zipfile.ZIP_DEFLATED) as dst:
                if self.path.exists():
                    with zipfile.ZipFile(self.path) as src:
                        for info in src.infolist():
                            if info.filename.lower() in replaced:
                                continue
                            dst.writestr(info, src.read(info))
                for name in sorted(self._added):
                    dst.writestr(zipinfo_deterministic(name), self._added[name])
            tmp.replace(self.path)
        except (OSError, zipfile.BadZipFile) as e:
            tmp.unlink(missing_ok=True)
            raise TransactionError(
                f"Failed to commit changes to {self.path}: {e}",
                "The package was left unchanged; check disk space and permissions",
            ) from e

        log.verbose(
            f"package commit: {self.path.name} added={sorted(self._added)} "
            f"deleted={sorted(self._deleted)}"
        )
        self._added.clear()
        self._deleted.clear()
