"""Activation state machine.

Activation runs an installer, records the installed files in the package's
companion install-state document, then claims them in the install ledger.
Deactivation retracts the claims listed in the companion document and
removes it. The companion document is the source of truth; the ledger is
only an index, so a crash between the two steps can be reconciled from
the companion document.
"""

from __future__ import annotations

import os
from enum import StrEnum
from pathlib import Path

from fomodkit.core.errors import ActivationError
from fomodkit.core.events import PACKAGE_ACTIVATED, PACKAGE_DEACTIVATED, get_event_bus
from fomodkit.core.logging import get_logger
from fomodkit.ledger import InstallLedger
from fomodkit.package import PackageContainer

from .installers import BasicInstaller, Installer, remove_data_file, resolve_data_file
from .state_doc import read_install_state, write_install_state

log = get_logger(__name__)


class PackageState(StrEnum):
    INACTIVE = "inactive"
    ACTIVATING = "activating"
    ACTIVE = "active"
    DEACTIVATING = "deactivating"


_ALLOWED_TRANSITIONS: dict[PackageState, set[PackageState]] = {
    PackageState.INACTIVE: {PackageState.ACTIVATING},
    PackageState.ACTIVATING: {PackageState.ACTIVE, PackageState.INACTIVE},
    PackageState.ACTIVE: {PackageState.DEACTIVATING},
    PackageState.DEACTIVATING: {PackageState.INACTIVE, PackageState.ACTIVE},
}


class ActivationStateMachine:
    """Install and uninstall packages against one ledger and data directory.

    Args:
        ledger: Ledger handle that records file claims.
        data_dir: Directory the package files are installed into.
        basic_installer: Used for packages without a script.
        script_installer: Used for packages with a script.
        remove_orphaned_files: Delete a data file once its last claim is
            retracted.
    """

    def __init__(
        self,
        ledger: InstallLedger,
        data_dir: Path | str,
        *,
        basic_installer: Installer | None = None,
        script_installer: Installer | None = None,
        remove_orphaned_files: bool = True,
    ) -> None:
        self.ledger = ledger
        self.data_dir = Path(data_dir)
        self.basic_installer = basic_installer or BasicInstaller(self.data_dir)
        self.script_installer = script_installer
        self.remove_orphaned_files = remove_orphaned_files
        self._states: dict[str, PackageState] = {}

    @staticmethod
    def package_key(package: PackageContainer) -> str:
        return os.path.normcase(str(package.path.resolve()))

    def state_of(self, package: PackageContainer) -> PackageState:
        state = self._states.get(self.package_key(package))
        if state is not None:
            return state
        return PackageState.ACTIVE if package.is_active else PackageState.INACTIVE

    def _transition(self, package: PackageContainer, new_state: PackageState) -> None:
        current = self.state_of(package)
        if new_state not in _ALLOWED_TRANSITIONS[current]:
            raise ActivationError(
                f"Illegal state transition for {package.path.name}: "
                f"{current.value} -> {new_state.value}",
                "Wait for the running activation or deactivation to finish",
            )
        self._states[self.package_key(package)] = new_state

    def _select_installer(self, script: str | None) -> Installer:
        if not script:
            return self.basic_installer
        if self.script_installer is None:
            raise ActivationError(
                "Package has an install script but no script installer is configured",
                "Configure a script installer or remove the script from the package",
            )
        return self.script_installer

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def activate(self, package: PackageContainer) -> bool:
        """Install ``package``.

        Returns:
            True when the package became active, False when it already was
            or the installer was cancelled.

        Raises:
            ActivationError: The installer returned a path outside the data
                directory; nothing is persisted.
        """
        if self.state_of(package) is PackageState.ACTIVE:
            return False

        self._transition(package, PackageState.ACTIVATING)
        try:
            script = package.get_script()
            files = self._select_installer(script).install(script, package)
            if files is None:
                log.info(f"Activation of {package.info.name} cancelled")
                self._transition(package, PackageState.INACTIVE)
                return False

            for name in files:
                resolve_data_file(self.data_dir, name)
            write_install_state(package.state_path, files)
            self._transition(package, PackageState.ACTIVE)

            mod_key = self.ledger.add_mod(
                package.info.name, package.info.machine_version, package.info.version
            )
            for name in files:
                self.ledger.record_install(mod_key, name)
            self.ledger.commit()
        except Exception:
            if self.state_of(package) is PackageState.ACTIVATING:
                self._transition(package, PackageState.INACTIVE)
            raise

        log.info(f"Activated {package.info.name} ({len(files)} files)")
        get_event_bus().publish(
            PACKAGE_ACTIVATED,
            {"package": str(package.path), "mod_key": mod_key, "files": list(files)},
        )
        return True

    # ------------------------------------------------------------------
    # Deactivation
    # ------------------------------------------------------------------

    def deactivate(self, package: PackageContainer) -> bool:
        """Uninstall ``package``.

        Returns:
            True when the package became inactive, False when it already was.

        Raises:
            ActivationError: The companion document lists a path outside the
                data directory; the ledger and data files are left untouched.
        """
        if self.state_of(package) is PackageState.INACTIVE:
            return False

        self._transition(package, PackageState.DEACTIVATING)
        try:
            files = read_install_state(package.state_path) if package.state_path.exists() else []
            for name in files:
                resolve_data_file(self.data_dir, name)
            mod_key = self.ledger.get_mod_key(package.info.name)
            removed: list[str] = []

            for name in files:
                if mod_key is not None:
                    remaining = self.ledger.record_uninstall(mod_key, name)
                else:
                    remaining = self.ledger.get_installing_mods(name)
                if not remaining and self.remove_orphaned_files and remove_data_file(self.data_dir, name):
                    removed.append(name)
            if mod_key is not None:
                self.ledger.prune_mod(mod_key)

            package.state_path.unlink(missing_ok=True)
            self._transition(package, PackageState.INACTIVE)
            self.ledger.commit()
        except Exception:
            if self.state_of(package) is PackageState.DEACTIVATING:
                self._transition(package, PackageState.ACTIVE)
            raise

        log.info(f"Deactivated {package.info.name} ({len(files)} files, {len(removed)} removed)")
        get_event_bus().publish(
            PACKAGE_DEACTIVATED,
            {"package": str(package.path), "files": files, "removed": removed},
        )
        return True

