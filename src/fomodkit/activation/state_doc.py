"""Companion install-state document.

Written next to an active package (same base name, ``.xml``)::

    <installData>
      <installedFiles>
        <file>textures/bingle.dds</file>
      </installedFiles>
    </installData>
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

from fomodkit.core.errors import FormatError

ROOT_ELEMENT = "installData"


def read_install_state(path: Path) -> list[str]:
    """Return the installed relative paths listed in ``path``.

    Raises:
        FormatError: The document is malformed.
    """
    try:
        root = ET.fromstring(path.read_bytes())
    except ET.ParseError as e:
        raise FormatError(f"Install state document is not valid: {path}: {e}") from e
    if root.tag != ROOT_ELEMENT:
        raise FormatError(f"Unexpected root node type '{root.tag}' in {path.name}")
    return [el.text.strip() for el in root.iterfind("installedFiles/file") if el.text and el.text.strip()]


def write_install_state(path: Path, files: list[str]) -> None:
    root = ET.Element(ROOT_ELEMENT)
    listing = ET.SubElement(root, "installedFiles")
    for name in files:
        ET.SubElement(listing, "file").text = name
    ET.indent(root)
    tmp = path.with_suffix(path.suffix + ".tmp")
    tmp.write_bytes(ET.tostring(root, encoding="utf-8", xml_declaration=True))
    tmp.replace(path)
