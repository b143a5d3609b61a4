"""Installer collaborators invoked during activation.

An installer receives the package's script text (or ``None``) and a file
accessor for the package, copies whatever it decides to install, and
returns the installed paths relative to the data directory. Returning
``None`` signals that the user cancelled.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath, PureWindowsPath
from typing import Protocol

from fomodkit.core.errors import ActivationError
from fomodkit.core.logging import get_logger

log = get_logger(__name__)


class PackageFileAccessor(Protocol):
    def list_entries(self) -> list[str]: ...

    def read_entry(self, name: str) -> bytes: ...


class Installer(Protocol):
    def install(self, script: str | None, package: PackageFileAccessor) -> list[str] | None:
        """Install package files.

        Returns:
            Installed paths relative to the data directory, or None when
            the installation was cancelled.
        """
        ...


def resolve_data_file(data_dir: Path, name: str) -> Path:
    """Absolute location of data file ``name``, confined to ``data_dir``.

    Raises:
        ActivationError: ``name`` is absolute, drive-qualified, empty, or
            resolves (through ``..`` or a symlink) outside ``data_dir``.
    """
    posix = name.replace("\\", "/")
    if (
        not posix.strip("/")
        or PurePosixPath(posix).is_absolute()
        or PureWindowsPath(name).anchor
        or ".." in posix.split("/")
    ):
        raise ActivationError(
            f"Data file path escapes the data directory: {name!r}",
            "The package or its installer produced an unsafe path; do not install it",
        )
    root = data_dir.resolve()
    target = (root / posix).resolve()
    if target == root or not target.is_relative_to(root):
        raise ActivationError(
            f"Data file path escapes the data directory: {name!r}",
            "The package or its installer produced an unsafe path; do not install it",
        )
    return target


def remove_data_file(data_dir: Path, name: str) -> bool:
    """Delete data file ``name`` and any parent directories left empty.

    Returns:
        False when there was no such file.
    """
    root = data_dir.resolve()
    target = resolve_data_file(data_dir, name)
    if not target.is_file():
        return False
    target.unlink()

    parent = target.parent
    while parent != root and parent.is_relative_to(root):
        try:
            parent.rmdir()
        except OSError:
            break
        parent = parent.parent
    return True


def _is_package_metadata(entry: str) -> bool:
    lowered = entry.lower()
    if lowered.startswith("fomod/"):
        return True
    return "/" not in lowered and lowered.startswith("readme - ")


class BasicInstaller:
    """Default install: copy every payload entry into ``data_dir`` as-is.

    Every entry is checked before anything is written. If writing fails part
    way, the files written so far are removed (or restored, when they
    replaced an existing file) before the error propagates.
    """

    def __init__(self, data_dir: Path | str) -> None:
        self.data_dir = Path(data_dir)

    def install(self, script: str | None, package: PackageFileAccessor) -> list[str] | None:
        plan = [
            (entry, resolve_data_file(self.data_dir, entry))
            for entry in package.list_entries()
            if not _is_package_metadata(entry)
        ]

        installed: list[str] = []
        replaced: dict[str, bytes] = {}
        try:
            for entry, target in plan:
                data = package.read_entry(entry)
                if target.is_file():
                    replaced[entry] = target.read_bytes()
                target.parent.mkdir(parents=True, exist_ok=True)
                target.write_bytes(data)
                installed.append(entry)
                log.debug(f"installed {entry}")
        except Exception:
            self._roll_back(installed, replaced)
            raise

        log.verbose(f"basic install: {len(installed)} files into {self.data_dir}")
        return installed

    def _roll_back(self, installed: list[str], replaced: dict[str, bytes]) -> None:
        log.warning(f"basic install failed, rolling back {len(installed)} files")
        for entry in reversed(installed):
            if entry in replaced:
                resolve_data_file(self.data_dir, entry).write_bytes(replaced[entry])
            else:
                remove_data_file(self.data_dir, entry)
