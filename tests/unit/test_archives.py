"""Unit tests for the archive abstraction."""

from __future__ import annotations

import io
import shutil
import subprocess
import tarfile
from pathlib import Path

import pytest
from conftest import write_zip, zip_bytes

from fomodkit.archives import (
    ArchiveFormat,
    external,
    generate_archive_path,
    is_archive_path,
    open_archive,
    parse_archive_path,
)
from fomodkit.archives.detect import detect_from_magic, detect_from_suffix
from fomodkit.core.errors import ArchiveError, ResourceNotFoundError


@pytest.fixture
def bundle(tmp_path: Path) -> Path:
    return write_zip(
        tmp_path / "bundle.zip",
        {
            "Textures/a.dds": b"a",
            "Textures/Armor/b.dds": b"b",
            "readme.txt": b"hi",
            "extras.zip": zip_bytes({"meshes/m.nif": b"mesh"}),
        },
    )


def test_generate_and_parse_round_trip(bundle: Path) -> None:
    path = generate_archive_path(bundle, "Textures\\a.dds")
    assert is_archive_path(path)
    assert path.endswith("bundle.zip/Textures/a.dds")
    assert parse_archive_path(path) == (str(bundle), "Textures/a.dds")


def test_parse_container_root(bundle: Path) -> None:
    assert parse_archive_path(generate_archive_path(bundle, "")) == (str(bundle), "")


def test_parse_missing_container(tmp_path: Path) -> None:
    with pytest.raises(ResourceNotFoundError):
        parse_archive_path(generate_archive_path(tmp_path / "missing.zip", "a.txt"))


def test_directories_are_synthesized(bundle: Path) -> None:
    arc = open_archive(bundle)
    assert arc.format == ArchiveFormat.ZIP
    assert arc.is_directory("Textures")
    assert arc.is_directory("Textures/Armor")
    assert arc.get_directories("") == ["Textures"]
    assert arc.get_files("") == ["extras.zip", "readme.txt"]
    assert arc.get_directories("Textures") == ["Textures/Armor"]
    assert arc.get_files("Textures") == ["Textures/a.dds"]


def test_iter_files_and_read(bundle: Path) -> None:
    arc = open_archive(bundle)
    assert arc.iter_files("Textures") == ["Textures/Armor/b.dds", "Textures/a.dds"]
    assert arc.read("Textures/Armor/b.dds") == b"b"


def test_read_missing_entry(bundle: Path) -> None:
    with pytest.raises(ResourceNotFoundError):
        open_archive(bundle).read("nope.txt")


def test_nested_container(bundle: Path) -> None:
    path = generate_archive_path(bundle, "extras.zip/meshes/m.nif")
    container, inner = parse_archive_path(path)

    assert container == generate_archive_path(bundle, "extras.zip")
    assert inner == "meshes/m.nif"
    assert open_archive(container).read(inner) == b"mesh"


def test_tar_gz_container(tmp_path: Path) -> None:
    archive = tmp_path / "pack.tar.gz"
    with tarfile.open(archive, "w:gz") as tf:
        data = b"plugin"
        info = tarfile.TarInfo("Data/plugin.esp")
        info.size = len(data)
        tf.addfile(info, io.BytesIO(data))

    arc = open_archive(archive)
    assert arc.format == ArchiveFormat.TAR_GZ
    assert arc.get_files("Data") == ["Data/plugin.esp"]
    assert arc.read("Data/plugin.esp") == b"plugin"


def test_rar_without_tools(tmp_path: Path, monkeypatch) -> None:
    monkeypatch.setattr(external.shutil, "which", lambda name: None)
    archive = tmp_path / "pack.rar"
    archive.write_bytes(b"Rar!\x1a\x07\x00rest")
    with pytest.raises(ArchiveError) as exc:
        open_archive(archive)
    assert "unrar" in exc.value.suggestion


def test_open_missing_container(tmp_path: Path) -> None:
    with pytest.raises(ResourceNotFoundError):
        open_archive(tmp_path / "missing.zip")


def test_detect_suffix_and_magic() -> None:
    assert detect_from_suffix("Bingle.FOMOD").format == ArchiveFormat.ZIP
    assert detect_from_suffix("x.tgz").format == ArchiveFormat.TAR_GZ
    assert detect_from_suffix("x.txt") is None
    assert detect_from_magic(io.BytesIO(zip_bytes({"a": b"a"}))).format == ArchiveFormat.ZIP
    assert detect_from_magic(io.BytesIO(b"7z\xbc\xaf\x27\x1c")).format == ArchiveFormat.SEVEN_Z


SEVEN_Z_LISTING = """
7-Zip [64] 16.02 : Copyright (c) 1999-2016 Igor Pavlov : 2016-05-21

Listing archive: pack.7z

--
Path = pack.7z
Type = 7z
Physical Size = 160

----------
Path = Data
Size = 0
Attributes = D_ drwxr-xr-x
CRC =

Path = Data/plugin.esp
Size = 6
Attributes = A_ -rw-r--r--
CRC = 3610A686
"""

UNRAR_LISTING = """
UNRAR 6.11 freeware      Copyright (c) 1993-2022 Alexander Roshal

Archive: pack.rar
Details: RAR 5

        Name: Data/plugin.esp
        Type: File
        Size: 6
 Packed size: 6
  Attributes: -rw-r--r--

        Name: Data
        Type: Directory
  Attributes: drwxr-xr-x
"""


def test_parse_7z_listing_skips_archive_block() -> None:
    assert external.parse_7z_listing(SEVEN_Z_LISTING) == [
        ("Data", True, 0),
        ("Data/plugin.esp", False, 6),
    ]


def test_parse_unrar_listing() -> None:
    assert external.parse_unrar_listing(UNRAR_LISTING) == [
        ("Data/plugin.esp", False, 6),
        ("Data", True, 0),
    ]


@pytest.fixture
def seven_zip(tmp_path: Path) -> Path:
    if shutil.which("7z") is None:
        pytest.skip("7z is not installed")
    src = tmp_path / "src"
    (src / "Data").mkdir(parents=True)
    (src / "Data" / "plugin.esp").write_bytes(b"plugin")
    archive = tmp_path / "pack.7z"
    subprocess.run(["7z", "a", str(archive), "Data"], cwd=src, check=True, capture_output=True)
    return archive


def test_seven_zip_container(seven_zip: Path) -> None:
    arc = open_archive(seven_zip)
    assert arc.format == ArchiveFormat.SEVEN_Z
    assert arc.get_directories("") == ["Data"]
    assert arc.get_files("Data") == ["Data/plugin.esp"]
    assert arc.read("Data/plugin.esp") == b"plugin"


def test_seven_zip_nested_in_zip(tmp_path: Path, seven_zip: Path) -> None:
    bundle = write_zip(tmp_path / "bundle.zip", {"inner.7z": seven_zip.read_bytes()})

    container, inner = parse_archive_path(generate_archive_path(bundle, "inner.7z/Data/plugin.esp"))

    assert inner == "Data/plugin.esp"
    assert open_archive(container).read(inner) == b"plugin"
