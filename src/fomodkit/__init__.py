"""fomodkit: build, store and track installable mod packages."""

from fomodkit.core.version import MachineVersion

__version__ = "0.9.2"

TOOL_VERSION = MachineVersion.parse("0.9.2.0")
