"""Projections of the flat file mapping into trees.

Two shapes are derived from the same flat mapping:

- the display tree shown by the file explorer (``project_tree``), and
- the mount tree handed to the sandbox in one call (``build_mount_tree``).

Neither is ever edited in place; both are recomputed from the mapping.
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import Any, Union

from workbench_core.workspace.files import is_placeholder


@dataclass
class FileNode:
    """A file leaf in the display tree."""

    name: str
    path: str

    def to_dict(self) -> dict[str, Any]:
        return {"name": self.name, "path": self.path, "type": "file"}


@dataclass
class DirectoryNode:
    """A directory in the display tree."""

    name: str
    path: str
    children: list["TreeNode"] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "path": self.path,
            "type": "directory",
            "children": [child.to_dict() for child in self.children],
        }


TreeNode = Union[FileNode, DirectoryNode]


def _sort_key(node: TreeNode) -> tuple[int, str]:
    # Directories first, then case-sensitive by name
    return (0 if isinstance(node, DirectoryNode) else 1, node.name)


def project_tree(paths: Iterable[str]) -> list[TreeNode]:
    """Build the display tree for a set of file paths.

    Placeholder entries are hidden, but the directories they keep alive
    still appear (possibly with no children).

    Args:
        paths: Flat file paths

    Returns:
        Top-level nodes, directories before files, each level sorted by name
    """
    root = DirectoryNode(name=".", path=".")
    directories: dict[str, DirectoryNode] = {".": root}

    def ensure_directory(dir_path: str) -> DirectoryNode:
        node = directories.get(dir_path)
        if node is not None:
            return node
        parent_path, _, name = dir_path.rpartition("/")
        parent = ensure_directory(parent_path or ".")
        node = DirectoryNode(name=name, path=dir_path)
        parent.children.append(node)
        directories[dir_path] = node
        return node

    for path in sorted(set(paths)):
        parent_path, _, name = path.rpartition("/")
        parent = ensure_directory(parent_path or ".")
        if not is_placeholder(path):
            parent.children.append(FileNode(name=name, path=path))

    for node in directories.values():
        node.children.sort(key=_sort_key)

    return root.children


def leaf_paths(nodes: Iterable[TreeNode]) -> Iterator[str]:
    """Yield the path of every file leaf in a display tree."""
    for node in nodes:
        if isinstance(node, DirectoryNode):
            yield from leaf_paths(node.children)
        else:
            yield node.path


@dataclass
class MountFile:
    """A file in the sandbox mount format."""

    contents: str

    def to_dict(self) -> dict[str, Any]:
        return {"file": {"contents": self.contents}}


@dataclass
class MountDirectory:
    """A directory in the sandbox mount format."""

    entries: dict[str, "MountNode"] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"directory": {name: entry.to_dict() for name, entry in self.entries.items()}}


MountNode = Union[MountFile, MountDirectory]


def build_mount_tree(files: Mapping[str, str]) -> MountDirectory:
    """Translate a flat path mapping into the sandbox's nested tree format.

    Each path is split on ``/``; intermediate directories are created as
    needed. Call ``.to_dict()["directory"]`` on the result for the plain
    mapping a sandbox ``mount`` expects.
    """
    root = MountDirectory()
    for path, contents in files.items():
        *dirs, name = path.split("/")
        current = root
        for segment in dirs:
            entry = current.entries.get(segment)
            if not isinstance(entry, MountDirectory):
                entry = MountDirectory()
                current.entries[segment] = entry
            current = entry
        current.entries[name] = MountFile(contents=contents)
    return root


def mount_payload(files: Mapping[str, str]) -> dict[str, Any]:
    """The plain mapping passed to ``SandboxContainer.mount``."""
    return build_mount_tree(files).to_dict()["directory"]
