"""Source tree value types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import NamedTuple


class CopyInstruction(NamedTuple):
    """Place the content at ``source`` at ``destination`` inside the package."""

    source: str
    destination: str


@dataclass
class SourceNode:
    """A node of the virtual destination tree.

    Nodes live in a ``SourceTree`` arena and refer to each other by handle.
    ``children`` maps the lower-cased child name to the child's handle, in
    insertion order.
    """

    handle: int
    name: str
    is_directory: bool
    sources: list[str] = field(default_factory=list)
    children: dict[str, int] = field(default_factory=dict)
    parent: int | None = None
    expanded: bool = False

    @property
    def key(self) -> str:
        return self.name.lower()

    @property
    def is_leaf(self) -> bool:
        return not self.children

    def copy(self) -> SourceNode:
        return SourceNode(
            handle=self.handle,
            name=self.name,
            is_directory=self.is_directory,
            sources=list(self.sources),
            children=dict(self.children),
            parent=self.parent,
            expanded=self.expanded,
        )


def sort_key(node: SourceNode) -> tuple[int, str]:
    """Directories sort before files, then case-insensitive name."""
    return (0 if node.is_directory else 1, node.name.lower())


def compare_nodes(a: SourceNode, b: SourceNode) -> int:
    ka, kb = sort_key(a), sort_key(b)
    return (ka > kb) - (ka < kb)
