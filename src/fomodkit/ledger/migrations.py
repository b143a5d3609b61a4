"""Install ledger schema migrations.

Each migration rewrites the raw XML tree in place and sets ``fileVersion``
to the version it produces. Forward upgrades run in order until the
current schema is reached; a document written by another tool in a newer
schema is explicitly downgraded, never trusted as-is.
"""

from __future__ import annotations

import secrets
import string
import xml.etree.ElementTree as ET
from collections.abc import Callable

from fomodkit.core.errors import FormatError, IncompatibleVersionError, LedgerMigrationError
from fomodkit.core.logging import get_logger
from fomodkit.core.version import MachineVersion

log = get_logger(__name__)

CURRENT_VERSION = MachineVersion.parse("0.2.0.0")
LEGACY_VERSION = MachineVersion.parse("0.1.0.0")

ORIGINAL_VALUES = "ORIGINAL_VALUES"
MOD_MANAGER_NAME = "FOMM"

_KEY_ALPHABET = string.ascii_lowercase + string.digits

Migration = Callable[[ET.Element], None]


def generate_mod_key(existing: set[str] | dict[str, object]) -> str:
    while True:
        key = "".join(secrets.choice(_KEY_ALPHABET) for _ in range(8))
        if key not in existing:
            return key


def document_version(root: ET.Element) -> MachineVersion:
    raw = root.get("fileVersion")
    if raw is None:
        return LEGACY_VERSION
    return MachineVersion.parse(raw)


def _section(root: ET.Element, tag: str) -> ET.Element:
    el = root.find(tag)
    if el is None:
        el = ET.SubElement(root, tag)
    return el


def canonical_separators(path: str) -> str:
    return path.replace("\\", "/")


def upgrade_0100(root: ET.Element) -> None:
    """0.1.0.0 -> 0.2.0.0.

    0.1.0.0 identified mods by name only. Each mod gets a generated key,
    ``installingMods`` references are rewritten from names to keys and
    file paths get canonical separators.
    """
    modlist = _section(root, "modList")
    datafiles = _section(root, "dataFiles")

    keys_by_name: dict[str, str] = {}
    used: set[str] = {el.get("key") for el in modlist.findall("mod") if el.get("key")}
    for el in modlist.findall("mod"):
        name = el.get("name")
        if name is None:
            raise FormatError("Mod entry without a name in legacy install log")
        key = el.get("key")
        if key is None:
            key = generate_mod_key(used)
            used.add(key)
            el.set("key", key)
        keys_by_name[name.lower()] = key

    for file_el in datafiles.iter("file"):
        path = file_el.get("path")
        if path is None:
            raise FormatError("File entry without a path in legacy install log")
        file_el.set("path", canonical_separators(path).lower())
        mods_el = file_el.find("installingMods")
        if mods_el is None:
            continue
        for ref in mods_el.findall("mod"):
            if ref.get("key") is not None:
                continue
            name = ref.get("name")
            key = keys_by_name.get((name or "").lower())
            if key is None:
                raise LedgerMigrationError(
                    f"File {path} is claimed by unknown mod {name!r}; the upgrade cannot proceed",
                    "Restore the install log from a backup",
                )
            ref.attrib.pop("name", None)
            ref.set("key", key)

    root.set("fileVersion", "0.2.0.0")


def downgrade_0500(root: ET.Element) -> None:
    """0.5.0.0 -> 0.2.0.0.

    Converts mod entries from
        <mod key="x2hrojjw" path="Dummy Mod: ORIGINAL_VALUES">
          <version machineVersion="0">0</version>
          <name>ORIGINAL_VALUES</name>
          <installDate>03/30/2014 00:00:00</installDate>
        </mod>
    to
        <mod key="x2hrojjw" name="ORIGINAL_VALUES">
          <version machineVersion="0">0</version>
        </mod>
    and strips the leading ``data/`` segment from every data file path.
    """
    modlist = _section(root, "modList")
    datafiles = _section(root, "dataFiles")

    root.set("fileVersion", "0.2.0.0")

    for el in datafiles.iter("file"):
        raw = el.get("path")
        if raw is None:
            raise FormatError("File entry without a path in install log")
        path = canonical_separators(raw).lower()
        if not path.startswith("data/"):
            raise LedgerMigrationError(
                f"Another mod manager installed the file {raw} which cannot be uninstalled "
                "from here.\nThe upgrade cannot proceed.",
                "Deactivate the mod which installed that file in the other mod manager "
                "and try again",
            )
        el.set("path", path[len("data/") :])

    for el in list(modlist.findall("mod")):
        path = el.get("path")
        if path is None:
            modlist.remove(el)
            continue

        if path.startswith("Dummy Mod: "):
            path = path[len("Dummy Mod: ") :]
        elif path.lower().endswith(".fomod"):
            path = path[: -len(".fomod")].lower()

        if path == "ORIGINAL_VALUE":
            path = ORIGINAL_VALUES
        if path == "MOD_MANAGER_VALUE":
            path = MOD_MANAGER_NAME

        el.set("name", path)
        el.attrib.pop("path", None)
        for tag in ("name", "installDate"):
            child = el.find(tag)
            if child is not None:
                el.remove(child)


UPGRADES: dict[MachineVersion, Migration] = {
    LEGACY_VERSION: upgrade_0100,
}

DOWNGRADES: dict[MachineVersion, Migration] = {
    MachineVersion.parse("0.5.0.0"): downgrade_0500,
}


def migrate(root: ET.Element) -> list[str]:
    """Bring ``root`` to ``CURRENT_VERSION``.

    Returns:
        Applied steps as ``"<from> -> <to>"`` strings (empty if current).

    Raises:
        IncompatibleVersionError: No migration path exists.
        LedgerMigrationError: A migration cannot reconcile an entry.
    """
    applied: list[str] = []
    version = document_version(root)

    if version > CURRENT_VERSION:
        downgrade = DOWNGRADES.get(version)
        if downgrade is None:
            raise IncompatibleVersionError(
                f"Install log version {version} was written by a newer or different tool",
                "Restore an install log written by this tool",
            )
        log.warning(f"Downgrading install log from version {version} to {CURRENT_VERSION}")
        downgrade(root)
        applied.append(f"{version} -> {document_version(root)}")
        version = document_version(root)

    while version < CURRENT_VERSION:
        upgrade = UPGRADES.get(version)
        if upgrade is None:
            raise IncompatibleVersionError(f"No upgrade path for install log version {version}")
        upgrade(root)
        new_version = document_version(root)
        log.info(f"Upgraded install log from version {version} to {new_version}")
        applied.append(f"{version} -> {new_version}")
        version = new_version

    if version != CURRENT_VERSION:
        raise IncompatibleVersionError(f"Unsupported install log version {version}")
    return applied
