"""Open editor tabs and the active file."""

from workbench_core.workspace.files import is_within


class EditorState:
    """Ordered open files plus at most one active file.

    The active file, when set, is always one of the open files.
    """

    def __init__(self, open_files: list[str] | None = None, active_file: str | None = None) -> None:
        self._open: list[str] = []
        for path in open_files or []:
            if path not in self._open:
                self._open.append(path)
        self._active: str | None = None
        if active_file is not None:
            self.select(active_file)

    @property
    def open_files(self) -> list[str]:
        return list(self._open)

    @property
    def active_file(self) -> str | None:
        return self._active

    def select(self, path: str) -> None:
        """Make ``path`` active, opening it if needed."""
        if path not in self._open:
            self._open.append(path)
        self._active = path

    def close(self, path: str) -> None:
        """Close a tab; the last remaining tab becomes active if needed."""
        if path not in self._open:
            return
        self._open.remove(path)
        if self._active == path:
            self._active = self._open[-1] if self._open else None

    def rename(self, old_path: str, new_path: str) -> None:
        """Follow a rename: the tab keeps its position."""
        self._open = [new_path if path == old_path else path for path in self._open]
        if self._active == old_path:
            self._active = new_path

    def forget(self, deleted_path: str) -> None:
        """Drop every tab at or under a deleted path."""
        self._open = [path for path in self._open if not is_within(path, deleted_path)]
        if self._active is not None and is_within(self._active, deleted_path):
            self._active = None

    def reset(self, open_files: list[str], active_file: str | None) -> None:
        """Replace the whole state (used after a fork)."""
        self._open = []
        self._active = None
        for path in open_files:
            if path not in self._open:
                self._open.append(path)
        if active_file is not None:
            self.select(active_file)
