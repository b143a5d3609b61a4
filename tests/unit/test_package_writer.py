"""Unit tests for writing packages from copy instructions."""

from __future__ import annotations

import zipfile
from pathlib import Path

from conftest import write_zip

from fomodkit.archives import generate_archive_path
from fomodkit.builder import SourceTree
from fomodkit.package import PackageContainer, PackageInfo, resolve_entries, write_package


def test_resolve_entries_expands_directories(tmp_path: Path, source_dir: Path) -> None:
    plugin = tmp_path / "bingle.esp"
    plugin.write_bytes(b"esp")

    entries = resolve_entries([(str(source_dir), "Textures"), (str(plugin), "bingle.esp")])

    assert sorted(entries) == [
        "Textures/a.dds",
        "Textures/b.dds",
        "Textures/sub/c.dds",
        "bingle.esp",
    ]
    assert entries["bingle.esp"] == ("file", str(plugin))


def test_resolve_entries_from_archive(tmp_path: Path) -> None:
    bundle = write_zip(tmp_path / "bundle.zip", {"Textures/a.dds": b"a", "Textures/x/b.dds": b"b"})

    entries = resolve_entries([(generate_archive_path(bundle, "Textures"), "gfx")])

    assert sorted(entries) == ["gfx/a.dds", "gfx/x/b.dds"]
    assert entries["gfx/a.dds"][0] == "archive"


def test_resolve_entries_skips_missing_and_virtual(tmp_path: Path) -> None:
    entries = resolve_entries([(str(tmp_path / "gone.esp"), "gone.esp"), ("new://Docs", "Docs")])
    assert entries == {}


def test_write_package_from_tree(tmp_path: Path, source_dir: Path) -> None:
    tree = SourceTree()
    tree.add_path(str(source_dir))
    out = tmp_path / "out" / "Bingle.fomod"

    write_package(
        out,
        tree.get_copy_instructions(),
        info=PackageInfo(name="Bingle Armor", author="someone"),
        script="install();",
        readme="read me",
    )

    with PackageContainer(out) as pkg:
        assert pkg.info.name == "Bingle Armor"
        assert pkg.info.author == "someone"
        assert pkg.get_script() == "install();"
        assert pkg.get_readme() == "read me"
        assert pkg.read_entry("Textures/sub/c.dds") == b"c"


def test_write_package_is_deterministic(tmp_path: Path, source_dir: Path) -> None:
    instructions = [(str(source_dir), "Textures")]

    first = write_package(tmp_path / "a" / "pkg.fomod", instructions)
    second = write_package(tmp_path / "b" / "pkg.fomod", instructions)

    assert first.read_bytes() == second.read_bytes()
    with zipfile.ZipFile(first) as zf:
        assert {i.date_time for i in zf.infolist()} == {(1980, 1, 1, 0, 0, 0)}
