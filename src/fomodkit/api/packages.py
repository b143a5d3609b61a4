"""API module for package management.

Thin dict-returning facade over packages, the install ledger and the
activation state machine, for UI or CLI shells.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

from fomodkit.activation import ActivationStateMachine, Installer
from fomodkit.core.config import ConfigResolver
from fomodkit.core.errors import FomodKitError, ResourceNotFoundError
from fomodkit.core.logging import apply_logging_policy, get_logger, set_colors
from fomodkit.core.version import MachineVersion
from fomodkit.ledger import InstallLedger
from fomodkit.package import PackageContainer, PackageInfo, write_package

log = get_logger(__name__)

PACKAGE_SUFFIX = ".fomod"


class PackageAPI:
    """Package management API."""

    def __init__(
        self,
        packages_dir: Path,
        ledger: InstallLedger,
        *,
        data_dir: Path | None = None,
        machine: ActivationStateMachine | None = None,
        script_installer: Installer | None = None,
        remove_orphaned_files: bool = True,
        script_entry: str | None = None,
    ) -> None:
        """Initialize package API.

        Args:
            packages_dir: Directory holding package archives
            ledger: Install ledger handle
            data_dir: Install target (required unless ``machine`` is given)
            machine: Activation state machine (optional)
            script_installer: Installer for scripted packages (optional)
            remove_orphaned_files: Delete unclaimed files on deactivation
            script_entry: Archive entry used for newly written scripts
        """
        self.packages_dir = Path(packages_dir)
        self.ledger = ledger
        if machine is None:
            if data_dir is None:
                raise FomodKitError("PackageAPI needs either data_dir or machine")
            machine = ActivationStateMachine(
                ledger,
                data_dir,
                script_installer=script_installer,
                remove_orphaned_files=remove_orphaned_files,
            )
        self.machine = machine
        self.script_entry = script_entry

    @classmethod
    def from_config(
        cls, resolver: ConfigResolver | None = None, **kwargs: Any
    ) -> PackageAPI:
        """Build the API from resolved configuration."""
        resolver = resolver or ConfigResolver()
        apply_logging_policy(resolver.resolve_logging_policy())
        set_colors(resolver.resolve_bool("logging.color"))
        return cls(
            resolver.resolve_path("paths.packages_dir"),
            InstallLedger.open(resolver.resolve_path("paths.install_log")),
            data_dir=resolver.resolve_path("paths.data_dir"),
            remove_orphaned_files=resolver.resolve_bool("activation.remove_orphaned_files"),
            script_entry=resolver.resolve_str("package.script_name"),
            **kwargs,
        )

    def _package_path(self, name: str) -> Path:
        return self.packages_dir / f"{name}{PACKAGE_SUFFIX}"

    def _open(self, name: str) -> PackageContainer:
        path = self._package_path(name)
        if not path.exists():
            raise ResourceNotFoundError(str(path))
        if self.script_entry:
            return PackageContainer.load(path, default_script_entry=self.script_entry)
        return PackageContainer.load(path)

    def _describe(self, package: PackageContainer) -> dict[str, Any]:
        data: dict[str, Any] = {"file": package.path.stem, **package.info.to_dict()}
        data.update(
            {
                "active": package.is_active,
                "state": self.machine.state_of(package).value,
                "has_script": package.has_script,
                "has_readme": package.has_readme,
                "has_screenshot": package.has_screenshot,
            }
        )
        return data

    def list_packages(self) -> list[dict[str, Any]]:
        """List all packages.

        Returns:
            List of package info dicts; unreadable packages are skipped.
        """
        packages: list[dict[str, Any]] = []
        if not self.packages_dir.is_dir():
            return packages

        for path in sorted(self.packages_dir.iterdir(), key=lambda p: p.name.lower()):
            if not path.is_file() or path.suffix.lower() != PACKAGE_SUFFIX:
                continue
            try:
                with PackageContainer.load(path) as package:
                    packages.append(self._describe(package))
            except FomodKitError as e:
                log.warning(f"Skipping unreadable package {path.name}: {e}")

        return packages

    def get_package(self, name: str) -> dict[str, Any]:
        """Get package details, including its readme and installed files."""
        with self._open(name) as package:
            data = self._describe(package)
            data["readme"] = package.get_readme()
            mod_key = self.ledger.get_mod_key(package.info.name)
            data["installed_files"] = self.ledger.get_mod_files(mod_key) if mod_key else []
        return data

    def activate_package(self, name: str) -> dict[str, str]:
        """Activate package."""
        with self._open(name) as package:
            changed = package.activate(self.machine)
        if not changed:
            return {"message": f"Package '{name}' not activated"}
        return {"message": f"Package '{name}' activated"}

    def deactivate_package(self, name: str) -> dict[str, str]:
        """Deactivate package."""
        with self._open(name) as package:
            changed = package.deactivate(self.machine)
        if not changed:
            return {"message": f"Package '{name}' already inactive"}
        return {"message": f"Package '{name}' deactivated"}

    def build_package(
        self,
        name: str,
        instructions: Iterable[tuple[str, str]],
        info: dict[str, str] | None = None,
        *,
        script: str | None = None,
        readme: str | None = None,
        screenshot: bytes | None = None,
    ) -> dict[str, str]:
        """Write a new package from copy instructions.

        Args:
            name: Package file name without extension
            instructions: ``(source, destination)`` pairs
            info: Metadata fields (name, author, description, version,
                machine_version, min_tool_version)
        """
        path = self._package_path(name)
        package_info = PackageInfo.defaults(name)
        for field_name, value in (info or {}).items():
            if field_name in ("machine_version", "min_tool_version"):
                setattr(package_info, field_name, MachineVersion.parse(value))
            elif field_name in ("name", "author", "description", "version"):
                setattr(package_info, field_name, value)
            else:
                raise FomodKitError(f"Unknown package info field: {field_name}")

        kwargs: dict[str, Any] = {}
        if self.script_entry:
            kwargs["script_entry"] = self.script_entry
        write_package(
            path,
            instructions,
            info=package_info,
            script=script,
            readme=readme,
            screenshot=screenshot,
            **kwargs,
        )
        return {"message": f"Package '{name}' built", "path": str(path)}
