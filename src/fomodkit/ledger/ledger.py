"""Install ledger: which data files were installed by which mod.

Document shape (schema 0.2.0.0)::

    <installLog fileVersion="0.2.0.0">
      <modList>
        <mod key="x2hrojjw" name="bingle">
          <version machineVersion="1.0">1.0</version>
        </mod>
      </modList>
      <dataFiles>
        <file path="textures/bingle.dds">
          <installingMods>
            <mod key="x2hrojjw" />
          </installingMods>
        </file>
      </dataFiles>
    </installLog>

The ledger is a derived index. Companion install-state documents remain
the source of truth for what each package installed.
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass
from pathlib import Path

from fomodkit.core.errors import FormatError
from fomodkit.core.events import LEDGER_COMMITTED, LEDGER_MIGRATED, get_event_bus
from fomodkit.core.logging import get_logger
from fomodkit.core.version import DEFAULT_VERSION, MachineVersion

from .migrations import CURRENT_VERSION, canonical_separators, generate_mod_key, migrate

log = get_logger(__name__)


def normalize_data_path(path: str) -> str:
    """Canonical ledger form: forward slashes, lower case, no root segment.

    Raises:
        ValueError: Empty path or a path escaping the data root.
    """
    parts = [p for p in canonical_separators(path).split("/") if p not in ("", ".")]
    if not parts:
        raise ValueError(f"Empty data file path: {path!r}")
    if ".." in parts:
        raise ValueError(f"Data file path escapes the data root: {path!r}")
    return "/".join(parts).lower()


@dataclass
class ModEntry:
    key: str
    name: str
    machine_version: str = str(DEFAULT_VERSION)
    version: str = str(DEFAULT_VERSION)

    def to_dict(self) -> dict[str, str]:
        return {
            "key": self.key,
            "name": self.name,
            "machine_version": self.machine_version,
            "version": self.version,
        }


def _atomic_write_bytes(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_bytes(data)
    tmp.replace(path)


class InstallLedger:
    """Explicit ledger handle.

    Mutations only touch memory; nothing is persisted until ``commit()``.
    Callers serialize all mutations on one handle.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.file_version: MachineVersion = CURRENT_VERSION
        self._mods: dict[str, ModEntry] = {}
        self._files: dict[str, list[str]] = {}
        self._dirty = False

    @classmethod
    def open(cls, path: Path | str) -> InstallLedger:
        """Load the ledger at ``path``, or start an empty one if it does not exist."""
        ledger = cls(path)
        if ledger.path.exists():
            ledger.load()
        else:
            log.debug(f"install log not found, starting empty: {ledger.path}")
        return ledger

    @property
    def dirty(self) -> bool:
        return self._dirty

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> None:
        """Read the persisted document, migrating it to the current schema.

        A migrated document is written back immediately.

        Raises:
            FormatError: The document is malformed.
            IncompatibleVersionError: No migration path to the current schema.
            LedgerMigrationError: A migration cannot reconcile an entry.
        """
        try:
            root = ET.fromstring(self.path.read_bytes())
        except ET.ParseError as e:
            raise FormatError(f"Install log is not a valid document: {self.path}: {e}") from e
        if root.tag != "installLog":
            raise FormatError(f"Unexpected root node type '{root.tag}' in install log")

        applied = migrate(root)
        mods, files = self._parse(root)

        self._mods = mods
        self._files = files
        self.file_version = CURRENT_VERSION
        self._dirty = False

        if applied:
            self.commit()
            get_event_bus().publish(
                LEDGER_MIGRATED, {"path": str(self.path), "steps": applied}
            )

    @staticmethod
    def _parse(root: ET.Element) -> tuple[dict[str, ModEntry], dict[str, list[str]]]:
        mods: dict[str, ModEntry] = {}
        files: dict[str, list[str]] = {}

        modlist = root.find("modList")
        for el in modlist.findall("mod") if modlist is not None else []:
            key = el.get("key")
            name = el.get("name")
            if not key or name is None:
                raise FormatError("Mod entry in install log is missing its key or name")
            entry = ModEntry(key=key, name=name)
            version_el = el.find("version")
            if version_el is not None:
                entry.machine_version = version_el.get("machineVersion") or entry.machine_version
                entry.version = version_el.text or entry.machine_version
            mods[key] = entry

        datafiles = root.find("dataFiles")
        for el in datafiles.findall("file") if datafiles is not None else []:
            raw = el.get("path")
            if raw is None:
                raise FormatError("File entry in install log is missing its path")
            try:
                path = normalize_data_path(raw)
            except ValueError as e:
                raise FormatError(str(e)) from e
            claims = files.setdefault(path, [])
            for ref in el.iterfind("installingMods/mod"):
                key = ref.get("key")
                if key not in mods:
                    raise FormatError(f"File {raw} is claimed by unknown mod key {key!r}")
                if key not in claims:
                    claims.append(key)
            if not claims:
                del files[path]

        return mods, files

    def to_xml(self) -> bytes:
        root = ET.Element("installLog", {"fileVersion": str(CURRENT_VERSION)})
        modlist = ET.SubElement(root, "modList")
        for entry in self._mods.values():
            el = ET.SubElement(modlist, "mod", {"key": entry.key, "name": entry.name})
            ver = ET.SubElement(el, "version", {"machineVersion": entry.machine_version})
            ver.text = entry.version
        datafiles = ET.SubElement(root, "dataFiles")
        for path in sorted(self._files):
            el = ET.SubElement(datafiles, "file", {"path": path})
            mods_el = ET.SubElement(el, "installingMods")
            for key in self._files[path]:
                ET.SubElement(mods_el, "mod", {"key": key})
        ET.indent(root)
        return ET.tostring(root, encoding="utf-8", xml_declaration=True)

    def commit(self) -> None:
        """Persist the full ledger atomically."""
        _atomic_write_bytes(self.path, self.to_xml())
        self._dirty = False
        log.verbose(f"install log committed: mods={len(self._mods)} files={len(self._files)}")
        get_event_bus().publish(
            LEDGER_COMMITTED,
            {"path": str(self.path), "mods": len(self._mods), "files": len(self._files)},
        )

    # ------------------------------------------------------------------
    # Mods
    # ------------------------------------------------------------------

    def add_mod(
        self,
        name: str,
        machine_version: MachineVersion | str = DEFAULT_VERSION,
        version: str | None = None,
    ) -> str:
        """Register ``name`` and return its key.

        An already registered name keeps its key; its version is updated.
        """
        machine = str(machine_version)
        key = self.get_mod_key(name)
        if key is None:
            key = generate_mod_key(self._mods)
            self._mods[key] = ModEntry(key=key, name=name)
        entry = self._mods[key]
        entry.machine_version = machine
        entry.version = version or machine
        self._dirty = True
        return key

    def get_mod_key(self, name: str) -> str | None:
        lowered = name.lower()
        for entry in self._mods.values():
            if entry.name.lower() == lowered:
                return entry.key
        return None

    def get_mod(self, key: str) -> ModEntry | None:
        return self._mods.get(key)

    def list_mods(self) -> list[ModEntry]:
        return list(self._mods.values())

    def get_mod_files(self, key: str) -> list[str]:
        return sorted(path for path, claims in self._files.items() if key in claims)

    # ------------------------------------------------------------------
    # Claims
    # ------------------------------------------------------------------

    def get_installing_mods(self, path: str) -> list[str]:
        return list(self._files.get(normalize_data_path(path), []))

    def is_installed(self, path: str) -> bool:
        return normalize_data_path(path) in self._files

    def record_install(self, mod_key: str, file_path: str) -> None:
        """Add ``mod_key``'s claim on ``file_path``.

        Raises:
            KeyError: ``mod_key`` is not registered.
        """
        if mod_key not in self._mods:
            raise KeyError(f"Unknown mod key: {mod_key}")
        path = normalize_data_path(file_path)
        claims = self._files.setdefault(path, [])
        if mod_key not in claims:
            claims.append(mod_key)
            self._dirty = True

    def record_uninstall(self, mod_key: str, file_path: str) -> list[str]:
        """Retract ``mod_key``'s claim on ``file_path``.

        A file left with no claims is pruned, as is a mod left with no files.

        Returns:
            Keys still claiming the file (empty when the file was pruned).
        """
        path = normalize_data_path(file_path)
        claims = self._files.get(path)
        if claims is None or mod_key not in claims:
            log.debug(f"no claim to retract: {mod_key} {path}")
            return list(claims or [])

        claims.remove(mod_key)
        self._dirty = True
        if not claims:
            del self._files[path]
        self.prune_mod(mod_key)
        return list(claims)

    def prune_mod(self, mod_key: str) -> bool:
        """Drop ``mod_key``'s entry if it no longer claims any file.

        Returns:
            True when the entry was removed.
        """
        if mod_key not in self._mods or any(mod_key in c for c in self._files.values()):
            return False
        del self._mods[mod_key]
        self._dirty = True
        return True

    def __repr__(self) -> str:
        return f"InstallLedger({str(self.path)!r}, mods={len(self._mods)}, files={len(self._files)})"
