"""Source tree mapper: build a package layout from heterogeneous sources."""

from .sources import NEW_PREFIX, is_virtual, list_children, source_name, virtual_folder
from .tree import SourceTree, normalize_destination
from .types import CopyInstruction, SourceNode, compare_nodes, sort_key

__all__ = [
    "NEW_PREFIX",
    "CopyInstruction",
    "SourceNode",
    "SourceTree",
    "compare_nodes",
    "is_virtual",
    "list_children",
    "normalize_destination",
    "sort_key",
    "source_name",
    "virtual_folder",
]
