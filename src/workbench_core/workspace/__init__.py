"""Workspace file state: the store, its tree projections and editor tabs."""

from workbench_core.workspace.editor import EditorState
from workbench_core.workspace.files import (
    PLACEHOLDER_NAME,
    FileEntry,
    FileStore,
    is_placeholder,
    is_within,
)
from workbench_core.workspace.tree import (
    DirectoryNode,
    FileNode,
    MountDirectory,
    MountFile,
    TreeNode,
    build_mount_tree,
    leaf_paths,
    mount_payload,
    project_tree,
)

__all__ = [
    "PLACEHOLDER_NAME",
    "DirectoryNode",
    "EditorState",
    "FileEntry",
    "FileNode",
    "FileStore",
    "MountDirectory",
    "MountFile",
    "TreeNode",
    "build_mount_tree",
    "is_placeholder",
    "is_within",
    "leaf_paths",
    "mount_payload",
    "project_tree",
]
