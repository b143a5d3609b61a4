"""Package container: a zip archive holding one installable package.

Layout inside the archive:
    fomod/info.xml                  metadata
    fomod/script.*                  optional install script
    fomod/screenshot.{png,jpg,bmp}  optional screenshot
    readme - <basename>.{txt,rtf,htm,html}

A package is active while its companion install-state document (same base
name, ``.xml`` extension) exists next to the archive.
"""

from __future__ import annotations

import io
import zipfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import TYPE_CHECKING

from PIL import Image, UnidentifiedImageError

from fomodkit import TOOL_VERSION
from fomodkit.core.errors import ArchiveError, FormatError, ResourceNotFoundError
from fomodkit.core.events import PACKAGE_COMMITTED, get_event_bus
from fomodkit.core.logging import get_logger
from fomodkit.core.version import MachineVersion

from .info import PackageInfo, parse_info_xml, render_info_xml
from .transaction import ArchiveTransaction, normalize_entry_name

if TYPE_CHECKING:
    from fomodkit.activation.machine import ActivationStateMachine

log = get_logger(__name__)

INFO_ENTRY = "fomod/info.xml"
SCRIPT_PREFIX = "fomod/script."
DEFAULT_SCRIPT_ENTRY = "fomod/script.cs"
README_PREFIX = "readme - "
README_EXTENSIONS = (".txt", ".rtf", ".htm", ".html")
CANONICAL_README_EXT = ".rtf"
SCREENSHOT_STEM = "fomod/screenshot"
SCREENSHOT_EXTENSIONS = (".png", ".jpg", ".bmp")
CANONICAL_SCREENSHOT_EXT = ".png"
INSTALL_STATE_SUFFIX = ".xml"


def install_state_path(package_path: Path) -> Path:
    return package_path.with_suffix(INSTALL_STATE_SUFFIX)


def decode_text(data: bytes) -> str:
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        return data.decode("cp1252", errors="replace")


def normalize_screenshot(data: bytes) -> bytes:
    """Re-encode image bytes as PNG.

    Raises:
        FormatError: The bytes are not a readable image.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            if img.format == "PNG":
                return data
            out = io.BytesIO()
            img.save(out, format="PNG")
            return out.getvalue()
    except (UnidentifiedImageError, OSError) as e:
        raise FormatError(f"Screenshot is not a readable image: {e}") from e


class PackageContainer:
    """A loaded package archive.

    Every mutation runs inside ``transaction()``: either all touched entries
    are committed or the archive keeps its last committed content.
    """

    def __init__(
        self,
        path: Path | str,
        *,
        tool_version: MachineVersion = TOOL_VERSION,
        default_script_entry: str = DEFAULT_SCRIPT_ENTRY,
    ) -> None:
        self.path = Path(path)
        self.state_path = install_state_path(self.path)
        self.tool_version = tool_version
        self.default_script_entry = default_script_entry
        self.base_name = self.path.stem.lower()
        self.info = PackageInfo.defaults(self.path.stem)

        self.has_info = False
        self._zip: zipfile.ZipFile | None = None
        self._entries: dict[str, str] = {}
        self._script_entry: str | None = None
        self._readme_entry: str | None = None
        self._screenshot_entry: str | None = None

        self._open_handle()
        try:
            self._load_info()
        except Exception:
            self.close()
            raise
        self._detect_entries()

    @classmethod
    def load(cls, path: Path | str, **kwargs) -> PackageContainer:
        return cls(path, **kwargs)

    # ------------------------------------------------------------------
    # Handle management
    # ------------------------------------------------------------------

    def _open_handle(self) -> None:
        if not self.path.exists():
            raise ResourceNotFoundError(str(self.path))
        try:
            self._zip = zipfile.ZipFile(self.path)
        except zipfile.BadZipFile as e:
            raise ArchiveError(f"Not a package archive: {self.path}: {e}") from e
        self._entries = {
            normalize_entry_name(info.filename).lower(): info.filename
            for info in self._zip.infolist()
            if not info.is_dir()
        }

    def close(self) -> None:
        if self._zip is not None:
            self._zip.close()
            self._zip = None

    def __enter__(self) -> PackageContainer:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _require_zip(self) -> zipfile.ZipFile:
        if self._zip is None:
            raise ArchiveError(f"Package is closed: {self.path}")
        return self._zip

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _find_entry(self, name: str) -> str | None:
        return self._entries.get(normalize_entry_name(name).lower())

    def _load_info(self) -> None:
        entry = self._find_entry(INFO_ENTRY)
        if entry is None:
            return
        self.has_info = True
        self.info = parse_info_xml(
            self._require_zip().read(entry), self.path.stem, self.tool_version
        )

    def _detect_entries(self) -> None:
        self._script_entry = next(
            (self._entries[k] for k in sorted(self._entries) if k.startswith(SCRIPT_PREFIX)),
            None,
        )
        self._readme_entry = None
        for ext in README_EXTENSIONS:
            entry = self._find_entry(f"{README_PREFIX}{self.base_name}{ext}")
            if entry is not None:
                self._readme_entry = entry
                break
        self._screenshot_entry = None
        for ext in SCREENSHOT_EXTENSIONS:
            entry = self._find_entry(SCREENSHOT_STEM + ext)
            if entry is not None:
                self._screenshot_entry = entry
                break

    @property
    def is_active(self) -> bool:
        return self.state_path.exists()

    @property
    def has_script(self) -> bool:
        return self._script_entry is not None

    @property
    def has_readme(self) -> bool:
        return self._readme_entry is not None

    @property
    def has_screenshot(self) -> bool:
        return self._screenshot_entry is not None

    @property
    def readme_ext(self) -> str | None:
        return None if self._readme_entry is None else Path(self._readme_entry).suffix.lower()

    @property
    def screenshot_ext(self) -> str | None:
        if self._screenshot_entry is None:
            return None
        return Path(self._screenshot_entry).suffix.lower()

    # ------------------------------------------------------------------
    # Package file accessor
    # ------------------------------------------------------------------

    def list_entries(self) -> list[str]:
        """All file entries of the archive, sorted."""
        return sorted(self._entries.values())

    def read_entry(self, name: str) -> bytes:
        entry = self._find_entry(name)
        if entry is None:
            raise ResourceNotFoundError(f"{self.path}:{name}")
        return self._require_zip().read(entry)

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[ArchiveTransaction]:
        """Scoped mutation.

        Leaving the block normally commits; an exception inside the block
        discards every staged change.
        """
        tx = ArchiveTransaction(self.path)
        yield tx
        if not tx.changed:
            return
        self.close()
        try:
            tx.commit()
        finally:
            self._open_handle()
            self._detect_entries()
        get_event_bus().publish(PACKAGE_COMMITTED, {"package": str(self.path)})

    def get_script(self) -> str | None:
        if self._script_entry is None:
            return None
        return decode_text(self.read_entry(self._script_entry))

    def set_script(self, value: str | None) -> None:
        with self.transaction() as tx:
            if not value:
                if self._script_entry is not None:
                    tx.delete(self._script_entry)
            else:
                tx.add(self._script_entry or self.default_script_entry, value)

    def get_readme(self) -> str | None:
        if self._readme_entry is None:
            return None
        return decode_text(self.read_entry(self._readme_entry))

    def set_readme(self, value: str | None) -> None:
        """Write the readme, always as ``readme - <basename>.rtf``."""
        canonical = f"{README_PREFIX}{self.base_name}{CANONICAL_README_EXT}"
        with self.transaction() as tx:
            if not value:
                if self._readme_entry is not None:
                    tx.delete(self._readme_entry)
                return
            if self._readme_entry is not None and self._readme_entry.lower() != canonical:
                tx.delete(self._readme_entry)
            tx.add(canonical, value)

    def get_screenshot(self) -> bytes | None:
        if self._screenshot_entry is None:
            return None
        return self.read_entry(self._screenshot_entry)

    def get_screenshot_image(self) -> Image.Image | None:
        data = self.get_screenshot()
        if data is None:
            return None
        img = Image.open(io.BytesIO(data))
        img.load()
        return img

    def commit_info(self, set_screenshot: bool = False, screenshot: bytes | None = None) -> None:
        """Persist ``self.info`` and, if requested, replace or drop the screenshot."""
        payload = render_info_xml(self.info, self.path.stem)
        png = normalize_screenshot(screenshot) if set_screenshot and screenshot else None

        with self.transaction() as tx:
            tx.add(INFO_ENTRY, payload)
            if set_screenshot:
                current = self._screenshot_entry
                canonical = SCREENSHOT_STEM + CANONICAL_SCREENSHOT_EXT
                if png is None:
                    if current is not None:
                        tx.delete(current)
                else:
                    if current is not None and current.lower() != canonical:
                        tx.delete(current)
                    tx.add(canonical, png)
        self.has_info = True

    # ------------------------------------------------------------------
    # Activation
    # ------------------------------------------------------------------

    def activate(self, machine: ActivationStateMachine) -> bool:
        return machine.activate(self)

    def deactivate(self, machine: ActivationStateMachine) -> bool:
        return machine.deactivate(self)

    def __repr__(self) -> str:
        return f"PackageContainer({str(self.path)!r}, name={self.info.name!r})"
