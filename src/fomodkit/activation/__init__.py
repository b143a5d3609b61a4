"""Package activation and deactivation."""

from .installers import BasicInstaller, Installer, PackageFileAccessor
from .machine import ActivationStateMachine, PackageState
from .state_doc import read_install_state, write_install_state

__all__ = [
    "ActivationStateMachine",
    "BasicInstaller",
    "Installer",
    "PackageFileAccessor",
    "PackageState",
    "read_install_state",
    "write_install_state",
]
