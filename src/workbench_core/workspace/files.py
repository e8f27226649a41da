"""Canonical in-memory project file state."""

from collections.abc import Iterator, Mapping
from dataclasses import dataclass

from workbench_core.exceptions import ConflictError, NotFoundError
from workbench_core.utils.validation import join_path, validate_name, validate_path

# Empty marker file that makes an otherwise empty directory representable
PLACEHOLDER_NAME = ".placeholder"


def is_placeholder(path: str) -> bool:
    """Check whether a path is a directory placeholder entry."""
    return path.rsplit("/", 1)[-1] == PLACEHOLDER_NAME


def is_within(path: str, prefix: str) -> bool:
    """Check whether ``path`` is ``prefix`` or lies underneath it."""
    return path == prefix or path.startswith(prefix + "/")


@dataclass(frozen=True)
class FileEntry:
    """A single tracked file."""

    path: str
    content: str


class FileStore:
    """Mapping from path to text content; the single source of truth.

    Directories are virtual: a directory exists while some file path has it
    as a proper prefix. All mutations are synchronous and validate before
    touching state, so a rejected intent never leaves a partial change.
    """

    def __init__(self, files: Mapping[str, str] | None = None) -> None:
        """Initialize the store.

        Args:
            files: Optional initial mapping of path to content
        """
        self._files: dict[str, str] = {}
        self._revision = 0
        for path, content in (files or {}).items():
            self._files[validate_path(path)] = content

    @property
    def revision(self) -> int:
        """Counter bumped on every mutation."""
        return self._revision

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, path: object) -> bool:
        return path in self._files

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._files))

    def paths(self) -> list[str]:
        """All tracked paths, in insertion order."""
        return list(self._files)

    def entries(self) -> list[FileEntry]:
        """All tracked files as entries."""
        return [FileEntry(path, content) for path, content in self._files.items()]

    def snapshot(self) -> dict[str, str]:
        """Shallow copy of the mapping."""
        return dict(self._files)

    def exists(self, path: str) -> bool:
        """Check whether ``path`` is a tracked file."""
        return path in self._files

    def is_directory(self, path: str) -> bool:
        """Check whether some tracked file lives under ``path``."""
        prefix = path + "/"
        return any(key.startswith(prefix) for key in self._files)

    def read(self, path: str) -> str:
        """Return the content of a file.

        Raises:
            NotFoundError: If the path is not a tracked file
        """
        try:
            return self._files[path]
        except KeyError:
            raise NotFoundError(f"File not found: {path}") from None

    def get(self, path: str, default: str | None = None) -> str | None:
        """Return the content of a file, or ``default``."""
        return self._files.get(path, default)

    def write(self, path: str, content: str) -> None:
        """Insert or overwrite a file."""
        validate_path(path)
        self._files[path] = content
        self._touch()

    def create(self, dir_path: str, name: str) -> str:
        """Create an empty file named ``name`` inside ``dir_path``.

        Returns:
            The full path of the new file

        Raises:
            ValidationError: If the name is empty or the path malformed
            ConflictError: If the path is already taken
        """
        validate_name(name, "file name")
        full_path = validate_path(join_path(dir_path, name))
        self._check_free(full_path)
        self._files[full_path] = ""
        self._touch()
        return full_path

    def create_directory(self, dir_path: str, name: str) -> str:
        """Create an empty directory by inserting its placeholder entry.

        Returns:
            The full path of the new directory
        """
        validate_name(name, "folder name")
        full_path = validate_path(join_path(dir_path, name))
        if full_path in self._files:
            raise ConflictError(f"A file already exists at {full_path}")
        if self.is_directory(full_path):
            raise ConflictError(f"{full_path} already exists")
        self._check_ancestors(full_path)
        self._files[f"{full_path}/{PLACEHOLDER_NAME}"] = ""
        self._touch()
        return full_path

    def delete(self, path: str) -> list[str]:
        """Remove ``path`` and everything underneath it.

        Returns:
            The removed paths (empty if nothing matched)
        """
        removed = [key for key in self._files if is_within(key, path)]
        for key in removed:
            del self._files[key]
        if removed:
            self._touch()
        return removed

    def rename(self, old_path: str, new_name: str) -> str:
        """Rename a file in place by replacing its last path segment.

        Only the exact entry at ``old_path`` moves; entries underneath it
        keep their paths.

        Returns:
            The new path

        Raises:
            ValidationError: If the new name is empty
            NotFoundError: If ``old_path`` is not a tracked file
            ConflictError: If another entry already uses the new path
        """
        validate_name(new_name, "new name")
        if old_path not in self._files:
            raise NotFoundError(f"File not found: {old_path}")

        parent, _, _ = old_path.rpartition("/")
        new_path = join_path(parent or ".", new_name)
        if new_path == old_path:
            return old_path
        if new_path in self._files or self.is_directory(new_path):
            raise ConflictError(f"{new_path} already exists")

        # Rebuild to keep the renamed entry at its original position
        self._files = {
            (new_path if key == old_path else key): content
            for key, content in self._files.items()
        }
        self._touch()
        return new_path

    def fork(self) -> "FileStore":
        """Create an independent store seeded with a copy of this one."""
        return FileStore(self.snapshot())

    def _check_free(self, full_path: str) -> None:
        if full_path in self._files:
            raise ConflictError(f"{full_path} already exists")
        if self.is_directory(full_path):
            raise ConflictError(f"A folder already exists at {full_path}")
        self._check_ancestors(full_path)

    def _check_ancestors(self, full_path: str) -> None:
        parts = full_path.split("/")
        for i in range(1, len(parts)):
            ancestor = "/".join(parts[:i])
            if ancestor in self._files:
                raise ConflictError(f"{ancestor} is a file, not a folder")

    def _touch(self) -> None:
        self._revision += 1
