"""Tests for install ledger schema migrations."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from fomodkit.core.errors import IncompatibleVersionError, LedgerMigrationError
from fomodkit.core.events import get_event_bus
from fomodkit.ledger import InstallLedger, downgrade_0500, migrate

LOG_0500 = """<?xml version="1.0" encoding="utf-8"?>
<installLog fileVersion="0.5.0.0">
  <modList>
    <mod key="x2hrojjw" path="Dummy Mod: ORIGINAL_VALUES">
      <version machineVersion="0">0</version>
      <name>ORIGINAL_VALUES</name>
      <installDate>03/30/2014 00:00:00</installDate>
    </mod>
    <mod key="qlyv0rki" path="C:\\Games\\Mods\\Bingle.fomod">
      <version machineVersion="1.2">1.2</version>
      <name>Bingle Armor</name>
      <installDate>03/30/2014 00:00:00</installDate>
    </mod>
    <mod key="mmvalue1" path="Dummy Mod: MOD_MANAGER_VALUE">
      <version machineVersion="0">0</version>
    </mod>
    <mod key="nopath00">
      <version machineVersion="0">0</version>
    </mod>
  </modList>
  <dataFiles>
    <file path="data\\test.esp">
      <installingMods>
        <mod key="qlyv0rki" />
      </installingMods>
    </file>
    <file path="Data/Textures/Bingle.dds">
      <installingMods>
        <mod key="x2hrojjw" />
        <mod key="qlyv0rki" />
      </installingMods>
    </file>
  </dataFiles>
</installLog>
"""

LOG_0100 = """<installLog>
  <modList>
    <mod name="Bingle"><version machineVersion="1.0">1.0</version></mod>
  </modList>
  <dataFiles>
    <file path="Textures\\Bingle.dds">
      <installingMods><mod name="bingle" /></installingMods>
    </file>
  </dataFiles>
</installLog>
"""


class TestDowngrade0500:
    def test_mod_entries_collapse_to_name(self) -> None:
        root = ET.fromstring(LOG_0500)
        downgrade_0500(root)

        assert root.get("fileVersion") == "0.2.0.0"
        mods = {el.get("key"): el for el in root.iterfind("modList/mod")}
        assert set(mods) == {"x2hrojjw", "qlyv0rki", "mmvalue1"}

        original = mods["x2hrojjw"]
        assert original.get("name") == "ORIGINAL_VALUES"
        assert original.get("path") is None
        assert original.find("name") is None
        assert original.find("installDate") is None
        assert original.find("version") is not None

        assert mods["qlyv0rki"].get("name") == "c:\\games\\mods\\bingle"
        assert mods["mmvalue1"].get("name") == "FOMM"

    def test_data_prefix_is_stripped(self) -> None:
        root = ET.fromstring(LOG_0500)
        downgrade_0500(root)

        paths = [el.get("path") for el in root.iterfind("dataFiles/file")]
        assert paths == ["test.esp", "textures/bingle.dds"]

    def test_sentinel_without_s_is_rewritten(self) -> None:
        root = ET.fromstring(
            '<installLog fileVersion="0.5.0.0"><modList>'
            '<mod key="k" path="Dummy Mod: ORIGINAL_VALUE"/></modList><dataFiles/></installLog>'
        )
        downgrade_0500(root)
        assert root.find("modList/mod").get("name") == "ORIGINAL_VALUES"

    def test_file_outside_data_fails(self) -> None:
        root = ET.fromstring(
            '<installLog fileVersion="0.5.0.0"><modList/><dataFiles>'
            '<file path="fallout3.exe"><installingMods/></file></dataFiles></installLog>'
        )
        with pytest.raises(LedgerMigrationError) as exc:
            downgrade_0500(root)
        assert "fallout3.exe" in exc.value.message
        assert exc.value.suggestion


class TestMigrate:
    def test_current_version_is_untouched(self) -> None:
        root = ET.fromstring('<installLog fileVersion="0.2.0.0"><modList/><dataFiles/></installLog>')
        assert migrate(root) == []

    def test_unknown_newer_version_fails(self) -> None:
        root = ET.fromstring('<installLog fileVersion="0.9.0.0"><modList/><dataFiles/></installLog>')
        with pytest.raises(IncompatibleVersionError):
            migrate(root)

    def test_legacy_document_gets_keys(self) -> None:
        root = ET.fromstring(LOG_0100)
        assert migrate(root) == ["0.1.0.0 -> 0.2.0.0"]

        mod = root.find("modList/mod")
        key = mod.get("key")
        assert key and len(key) == 8
        ref = root.find("dataFiles/file/installingMods/mod")
        assert ref.get("key") == key
        assert ref.get("name") is None
        assert root.find("dataFiles/file").get("path") == "textures/bingle.dds"

    def test_legacy_reference_to_unknown_mod_fails(self) -> None:
        root = ET.fromstring(
            "<installLog><modList/><dataFiles><file path=\"a.esp\">"
            '<installingMods><mod name="ghost"/></installingMods></file></dataFiles></installLog>'
        )
        with pytest.raises(LedgerMigrationError):
            migrate(root)


class TestLedgerLoadMigrates:
    def test_downgrade_is_applied_and_persisted(self, tmp_path: Path) -> None:
        path = tmp_path / "InstallLog.xml"
        path.write_text(LOG_0500, encoding="utf-8")
        received: list[dict] = []
        bus = get_event_bus()
        bus.subscribe("ledger.migrated", received.append)
        try:
            ledger = InstallLedger.open(path)
        finally:
            bus.unsubscribe("ledger.migrated", received.append)

        assert ledger.get_mod_key("ORIGINAL_VALUES") == "x2hrojjw"
        assert ledger.get_mod_files("qlyv0rki") == ["test.esp", "textures/bingle.dds"]
        assert ledger.get_mod("x2hrojjw").machine_version == "0"
        assert received == [{"path": str(path), "steps": ["0.5.0.0 -> 0.2.0.0"]}]

        root = ET.parse(path).getroot()
        assert root.get("fileVersion") == "0.2.0.0"
        assert all(el.get("path") is None for el in root.iterfind("modList/mod"))
        assert root.find("modList/mod/installDate") is None

    def test_failed_migration_leaves_file_untouched(self, tmp_path: Path) -> None:
        path = tmp_path / "InstallLog.xml"
        original = LOG_0500.replace("data\\test.esp", "test.esp")
        path.write_text(original, encoding="utf-8")

        with pytest.raises(LedgerMigrationError):
            InstallLedger.open(path)

        assert path.read_text(encoding="utf-8") == original
