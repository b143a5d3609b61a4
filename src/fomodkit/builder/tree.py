"""Source tree mapper.

Merges directories, single files and archive entries into one virtual
destination tree, and reduces that tree to a minimal list of copy
instructions.

Nodes are stored in an arena keyed by integer handle; ``clone()`` is a
structural copy of the arena, so compression can run on a copy without
touching the tree a caller is displaying.
"""

from __future__ import annotations

import re
from collections import deque
from collections.abc import Callable, Iterable, Iterator

from fomodkit.archives import is_archive_path, parse_archive_path
from fomodkit.core.errors import ArchiveError, BuilderError, ResourceNotFoundError
from fomodkit.core.logging import get_logger

from .sources import (
    is_system_entry,
    is_virtual,
    list_children,
    source_exists,
    source_is_directory,
    source_name,
    virtual_folder,
)
from .types import CopyInstruction, SourceNode, sort_key

log = get_logger(__name__)

CancelCheck = Callable[[], bool]


def normalize_destination(path: str) -> str:
    """Canonical destination: ``/`` separators, no leading/trailing slash."""
    return "/".join(p for p in path.replace("\\", "/").split("/") if p)


class SourceTree:
    """Virtual destination tree built from heterogeneous sources."""

    def __init__(self) -> None:
        self._nodes: dict[int, SourceNode] = {}
        self._roots: dict[str, int] = {}
        self._next_handle = 1
        self.sources: list[str] = []

    # ------------------------------------------------------------------
    # Structure
    # ------------------------------------------------------------------

    def node(self, handle: int) -> SourceNode:
        return self._nodes[handle]

    def roots(self) -> list[SourceNode]:
        return [self._nodes[h] for h in self._roots.values()]

    def children(self, node: SourceNode | None) -> list[SourceNode]:
        if node is None:
            return self.roots()
        return [self._nodes[h] for h in node.children.values()]

    def sorted_children(self, node: SourceNode | None) -> list[SourceNode]:
        """Children in display order (directories first, then by name)."""
        return sorted(self.children(node), key=sort_key)

    def parent_of(self, node: SourceNode) -> SourceNode | None:
        return None if node.parent is None else self._nodes[node.parent]

    def full_path(self, node: SourceNode) -> str:
        parts = [node.name]
        current = node
        while current.parent is not None:
            current = self._nodes[current.parent]
            parts.append(current.name)
        return "/".join(reversed(parts))

    def walk(self, node: SourceNode | None = None) -> Iterator[SourceNode]:
        """Depth-first, parents before children, insertion order."""
        for child in self.children(node):
            yield child
            yield from self.walk(child)

    def __len__(self) -> int:
        return len(self._nodes)

    def clear(self) -> None:
        self._nodes.clear()
        self._roots.clear()
        self.sources = []

    def clone(self) -> SourceTree:
        other = SourceTree()
        other._nodes = {h: n.copy() for h, n in self._nodes.items()}
        other._roots = dict(self._roots)
        other._next_handle = self._next_handle
        other.sources = list(self.sources)
        return other

    def _siblings(self, parent: SourceNode | None) -> dict[str, int]:
        return self._roots if parent is None else parent.children

    def _new_node(self, name: str, is_directory: bool, parent: SourceNode | None) -> SourceNode:
        node = SourceNode(
            handle=self._next_handle,
            name=name,
            is_directory=is_directory,
            parent=None if parent is None else parent.handle,
        )
        self._next_handle += 1
        self._nodes[node.handle] = node
        self._siblings(parent)[node.key] = node.handle
        return node

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def add_path(
        self,
        path: str,
        parent: SourceNode | None = None,
        *,
        name: str | None = None,
        should_cancel: CancelCheck | None = None,
    ) -> SourceNode | None:
        """Insert ``path`` under ``parent`` (or at the top level).

        A sibling with the same case-insensitive name absorbs ``path`` as an
        extra source. Directories added at the top level or under an expanded
        parent have their immediate children enumerated.

        Returns None when a concrete path no longer exists or is a system
        entry.
        """
        if not is_virtual(path):
            if not source_exists(path):
                log.debug(f"add_path skipped missing source: {path}")
                return None
            if not is_archive_path(path) and is_system_entry(path):
                log.debug(f"add_path skipped system entry: {path}")
                return None

        node_name = name or source_name(path)
        siblings = self._siblings(parent)
        handle = siblings.get(node_name.lower())
        if handle is not None:
            node = self._nodes[handle]
            if path not in node.sources:
                node.sources.append(path)
        else:
            try:
                is_dir = source_is_directory(path)
            except (ResourceNotFoundError, ArchiveError):
                log.warning(f"Source vanished while adding: {path}")
                return None
            node = self._new_node(node_name, is_dir, parent)
            node.sources.append(path)

        if node.is_directory and (parent is None or parent.expanded):
            self._enumerate_into(node, path, should_cancel)
        return node

    def _enumerate_into(
        self, node: SourceNode, path: str, should_cancel: CancelCheck | None
    ) -> None:
        try:
            dirs, files = list_children(path)
        except ResourceNotFoundError:
            log.warning(f"Source vanished while enumerating: {path}")
            return
        for child in dirs + files:
            if should_cancel is not None and should_cancel():
                log.debug(f"enumeration cancelled under {self.full_path(node)}")
                return
            self.add_path(child, node, should_cancel=should_cancel)

    def _populate_node(self, node: SourceNode, should_cancel: CancelCheck | None = None) -> None:
        if not node.is_directory or node.children:
            return
        for source in list(node.sources):
            self._enumerate_into(node, source, should_cancel)

    def populate_children(
        self, node: SourceNode, should_cancel: CancelCheck | None = None
    ) -> None:
        """Enumerate every not-yet-populated child directory of ``node``."""
        for child in self.children(node):
            self._populate_node(child, should_cancel)

    def expand(self, node: SourceNode, should_cancel: CancelCheck | None = None) -> None:
        """Mark ``node`` expanded and make its grandchildren visible."""
        self._populate_node(node, should_cancel)
        node.expanded = True
        self.populate_children(node, should_cancel)

    def new_folder(self, parent: SourceNode | None = None, name: str = "New Folder") -> SourceNode:
        node = self.add_path(virtual_folder(name), parent)
        assert node is not None
        return node

    def rename(self, node: SourceNode, new_name: str) -> None:
        if not new_name or "/" in new_name or "\\" in new_name:
            raise BuilderError(f"Invalid name: {new_name!r}")
        siblings = self._siblings(self.parent_of(node))
        new_key = new_name.lower()
        if new_key in siblings and siblings[new_key] != node.handle:
            raise BuilderError(f"A sibling named '{new_name}' already exists")
        old_key = node.key
        rebuilt = {(new_key if k == old_key else k): h for k, h in siblings.items()}
        siblings.clear()
        siblings.update(rebuilt)
        node.name = new_name

    def remove(self, node: SourceNode) -> None:
        """Remove ``node`` and its whole subtree."""
        for child in self.children(node):
            self.remove(child)
        siblings = self._siblings(self.parent_of(node))
        if siblings.get(node.key) == node.handle:
            del siblings[node.key]
        self._nodes.pop(node.handle, None)

    def find_node(self, path: str) -> SourceNode | None:
        """Deepest existing node along destination ``path``.

        Directories on the way are populated so that lazily enumerated
        content can be matched.
        """
        segments = [s for s in path.replace("\\", "/").split("/") if s]
        siblings = self._roots
        last: SourceNode | None = None
        for i, segment in enumerate(segments):
            handle = siblings.get(segment.lower())
            if handle is None:
                return last
            node = self._nodes[handle]
            if i == len(segments) - 1:
                return node
            self._populate_node(node)
            last = node
            siblings = node.children
        return last

    # ------------------------------------------------------------------
    # Compression
    # ------------------------------------------------------------------

    def process_tree(self, node: SourceNode) -> None:
        """Collapse redundant sources below ``node``, children first.

        A directory-level source whose immediate entries are each represented
        by a childless child node is kept, and those per-entry duplicates are
        removed from the children. A source that is not fully represented
        (the user removed or replaced part of it) is dropped, leaving the
        explicit children as the instructions.
        """
        if not node.children:
            node.sources = [s for s in node.sources if not is_virtual(s)]
            return

        for child in self.children(node):
            self.process_tree(child)

        for j in range(len(node.sources) - 1, -1, -1):
            source = node.sources[j]
            if is_virtual(source):
                del node.sources[j]
                continue

            try:
                dirs, files = list_children(source)
            except ResourceNotFoundError:
                log.warning(f"Dropping vanished source: {source}")
                del node.sources[j]
                continue
            sub_paths = dirs + files

            children = self.children(node)
            found = 0
            for sub_path in sub_paths:
                if any(sub_path in c.sources and not c.children for c in children):
                    found += 1

            if found == len(sub_paths):
                for sub_path in sub_paths:
                    for child in reversed(self.children(node)):
                        if sub_path in child.sources:
                            if len(child.sources) > 1:
                                child.sources.remove(sub_path)
                            else:
                                self.remove(child)
                            break
            else:
                del node.sources[j]

    def get_copy_instructions(self) -> list[CopyInstruction]:
        """Minimal copy instructions reproducing the current tree."""
        work = self.clone()
        for root in reversed(work.roots()):
            if root.is_directory and not root.children:
                work.remove(root)
            else:
                work.process_tree(root)

        instructions = [
            CopyInstruction(source, work.full_path(node))
            for node in work.walk()
            for source in node.sources
        ]
        log.debug(f"copy instructions: {len(instructions)} from {len(self)} nodes")
        return instructions

    def set_copy_instructions(
        self,
        sources: Iterable[str],
        instructions: Iterable[tuple[str, str]],
    ) -> SourceTree:
        """Rebuild the tree from known sources and copy instructions.

        An instruction targeting the package root is expanded into one
        instruction per immediate child of its (directory) source.

        Raises:
            BuilderError: If a file source is mapped onto the package root.
        """
        self.clear()
        known_sources = list(sources)

        expanded: list[tuple[str, str]] = []
        for raw_source, destination in instructions:
            dest = normalize_destination(destination)
            if dest:
                expanded.append((raw_source, dest))
                continue
            try:
                is_dir = source_is_directory(raw_source)
            except (ResourceNotFoundError, ArchiveError):
                is_dir = False
            if not is_dir:
                raise BuilderError(
                    "Copy instruction is renaming a file to the root directory.",
                    f"Give '{raw_source}' a destination file name",
                )
            dirs, files = list_children(raw_source)
            expanded.extend((child, source_name(child)) for child in dirs + files)

        found_sources: list[str] = []
        for raw_source, dest in expanded:
            if is_archive_path(raw_source):
                try:
                    container, _inner = parse_archive_path(raw_source)
                except ResourceNotFoundError:
                    container = None
                if container is not None and container not in found_sources:
                    found_sources.append(container)
            else:
                for known in known_sources:
                    if raw_source.startswith(known) and known not in found_sources:
                        found_sources.append(known)

            parent_path, _sep, leaf = dest.rpartition("/")
            parent = self.find_node(parent_path) if parent_path else None
            if parent_path and (
                parent is None or self.full_path(parent).lower() != parent_path.lower()
            ):
                found_len = -1 if parent is None else len(self.full_path(parent))
                for folder in [s for s in parent_path[found_len + 1 :].split("/") if s]:
                    parent = self.add_path(virtual_folder(folder), parent)
            self.add_path(raw_source, parent, name=leaf)

        self.sources = found_sources
        return self

    # ------------------------------------------------------------------
    # Search
    # ------------------------------------------------------------------

    def find_files(self, pattern: str) -> list[tuple[str, str]]:
        """Match a ``/`` or ``\\`` separated glob against the tree.

        ``*`` matches any run of characters; matching is case-insensitive.
        Only directories along the matched path are populated.

        Returns:
            ``(destination_path, first_source)`` pairs.
        """
        parts = pattern.replace("\\", "/").split("/")
        directories = deque(p.lower() for p in parts[:-1])
        file_pattern = parts[-1] if parts else "*"
        rx = re.compile("^" + re.escape(file_pattern).replace(r"\*", ".*") + "$", re.IGNORECASE)

        matches: list[tuple[str, str]] = []
        depth = len(directories)
        for root in self.roots():
            matches.extend(self._find_files(root, directories, rx))
            if depth != len(directories):
                break
        return matches

    def _find_files(
        self, node: SourceNode, directories: deque[str], rx: re.Pattern[str]
    ) -> list[tuple[str, str]]:
        matches: list[tuple[str, str]] = []
        if node.is_directory and directories and node.key == directories[0]:
            directories.popleft()
            self._populate_node(node)
            depth = len(directories)
            for child in self.children(node):
                matches.extend(self._find_files(child, directories, rx))
                if depth != len(directories):
                    break
        elif not directories and rx.match(node.name) and node.sources:
            matches.append((self.full_path(node), node.sources[0]))
        return matches
