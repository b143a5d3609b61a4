"""Package metadata document (``fomod/info.xml``).

Document shape::

    <fomod>
      <Name>bingle</Name>
      <Author>someone</Author>
      <Version MachineVersion="1.2">1.2b</Version>
      <Description>...</Description>
      <MinFommVersion>0.9.0.0</MinFommVersion>
    </fomod>
"""

from __future__ import annotations

import xml.etree.ElementTree as ET
from dataclasses import dataclass, field

from fomodkit.core.errors import FormatError, IncompatibleVersionError
from fomodkit.core.version import DEFAULT_MIN_TOOL_VERSION, DEFAULT_VERSION, MachineVersion

ROOT_ELEMENT = "fomod"
DEFAULT_AUTHOR = "DEFAULT"
DEFAULT_VERSION_TEXT = "1.0"


@dataclass
class PackageInfo:
    name: str
    author: str = DEFAULT_AUTHOR
    description: str = ""
    version: str = DEFAULT_VERSION_TEXT
    machine_version: MachineVersion = field(default=DEFAULT_VERSION)
    min_tool_version: MachineVersion = field(default=DEFAULT_MIN_TOOL_VERSION)

    @classmethod
    def defaults(cls, name: str) -> PackageInfo:
        return cls(name=name)

    def to_dict(self) -> dict[str, str]:
        return {
            "name": self.name,
            "author": self.author,
            "description": self.description,
            "version": self.version,
            "machine_version": str(self.machine_version),
            "min_tool_version": str(self.min_tool_version),
        }


def parse_info_xml(data: bytes, default_name: str, tool_version: MachineVersion) -> PackageInfo:
    """Parse an info document on top of the defaults for ``default_name``.

    Raises:
        FormatError: Missing/wrong root element or an unexpected child.
        IncompatibleVersionError: The package needs a newer tool.
    """
    info = PackageInfo.defaults(default_name)
    try:
        root = ET.fromstring(data)
    except ET.ParseError as e:
        raise FormatError(f"Root node was missing from fomod info.xml: {e}") from e

    if root.tag != ROOT_ELEMENT:
        raise FormatError(f"Unexpected root node type '{root.tag}' in info.xml")

    for child in root:
        text = child.text or ""
        if child.tag == "Name":
            info.name = text
        elif child.tag == "Version":
            info.version = text
            machine = child.get("MachineVersion")
            if machine is not None:
                info.machine_version = MachineVersion.parse(machine)
        elif child.tag == "Author":
            info.author = text
        elif child.tag == "Description":
            info.description = text
        elif child.tag == "MinFommVersion":
            required = MachineVersion.parse(text)
            if tool_version < required:
                raise IncompatibleVersionError(
                    "This fomod requires a newer version of the mod manager to load\n"
                    f"Expected {text}",
                    f"Upgrade to version {required} or later",
                )
            info.min_tool_version = required
        else:
            raise FormatError(f"Unexpected node type '{child.tag}' in info.xml")

    return info


def render_info_xml(info: PackageInfo, default_name: str) -> bytes:
    """Serialize ``info``; fields still at their default value are omitted."""
    root = ET.Element(ROOT_ELEMENT)

    if info.name and info.name != default_name:
        ET.SubElement(root, "Name").text = info.name
    if info.author != DEFAULT_AUTHOR:
        ET.SubElement(root, "Author").text = info.author
    if info.version != DEFAULT_VERSION_TEXT or info.machine_version != DEFAULT_VERSION:
        el = ET.SubElement(root, "Version")
        el.text = info.version or str(info.machine_version)
        el.set("MachineVersion", str(info.machine_version))
    if info.description:
        ET.SubElement(root, "Description").text = info.description
    if info.min_tool_version != DEFAULT_MIN_TOOL_VERSION:
        ET.SubElement(root, "MinFommVersion").text = str(info.min_tool_version)

    ET.indent(root)
    return ET.tostring(root, encoding="utf-8", xml_declaration=True)
