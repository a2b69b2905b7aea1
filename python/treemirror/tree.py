"""
Nested tree view over the flat index.
"""

from dataclasses import dataclass, field
from typing import Mapping, Optional, Union

from .entries import Entry, EntryIndex, EntryKind
from .paths import is_root_path, parent_path


@dataclass
class FileTreeNode:
    entry: Entry
    children: list["FileTreeNode"] = field(default_factory=list)

    @property
    def name(self) -> str:
        return self.entry.name

    @property
    def path(self) -> str:
        return self.entry.path

    @property
    def kind(self) -> EntryKind:
        return self.entry.kind


def _sort_key(node: FileTreeNode) -> tuple[int, str]:
    return (0 if node.kind == EntryKind.DIRECTORY else 1, node.name.lower())


def sort_file_tree(node: FileTreeNode) -> None:
    """Directories first, then case-insensitive by name, recursively."""
    node.children.sort(key=_sort_key)
    for child in node.children:
        sort_file_tree(child)


def build_file_tree(
    index: Union[EntryIndex, Mapping[str, Entry]], sort: bool = True
) -> Optional[FileTreeNode]:
    """
    Link a flat path -> entry mapping into a tree.

    Entries whose parent is missing from the mapping are dropped from the
    tree. Returns None when the mapping has no root entry.
    """
    nodes = {path: FileTreeNode(entry) for path, entry in index.items()}
    root: Optional[FileTreeNode] = None

    for path, node in nodes.items():
        if is_root_path(path):
            root = node
            continue
        parent = nodes.get(parent_path(path))
        if parent is not None:
            parent.children.append(node)

    if sort and root is not None:
        sort_file_tree(root)
    return root
