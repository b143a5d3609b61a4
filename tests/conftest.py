"""Pytest configuration and fixtures."""

import io
import sys
import zipfile
from pathlib import Path

import pytest

# Add src to path (for 'fomodkit.*' imports)
repo_root = Path(__file__).parent.parent
sys.path.insert(0, str(repo_root / "src"))


def write_zip(path: Path, entries: dict[str, bytes | str]) -> Path:
    """Write a zip archive with the given entries."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with zipfile.ZipFile(path, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return path


def zip_bytes(entries: dict[str, bytes | str]) -> bytes:
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buf.getvalue()


@pytest.fixture
def make_package(tmp_path):
    """Factory creating package archives under tmp_path/packages.

    Returns:
        Callable (name, entries) -> Path
    """

    def _make(name: str, entries: dict[str, bytes | str]) -> Path:
        return write_zip(tmp_path / "packages" / f"{name}.fomod", entries)

    return _make


@pytest.fixture
def source_dir(tmp_path):
    """Source folder 'Textures' with two files and a sub-folder.

    Layout:
        Textures/a.dds
        Textures/b.dds
        Textures/sub/c.dds
    """
    root = tmp_path / "src" / "Textures"
    (root / "sub").mkdir(parents=True)
    (root / "a.dds").write_bytes(b"a")
    (root / "b.dds").write_bytes(b"b")
    (root / "sub" / "c.dds").write_bytes(b"c")
    return root


@pytest.fixture
def config_resolver(tmp_path):
    """Create ConfigResolver with no config files.

    Returns:
        ConfigResolver instance
    """
    from fomodkit.core import ConfigResolver

    return ConfigResolver(
        cli_args={},
        user_config_path=tmp_path / "nonexistent_user.yaml",
        system_config_path=tmp_path / "nonexistent_system.yaml",
    )
