"""Input validation for workspace paths and entry names."""

from workbench_core.exceptions import ValidationError

# Characters that never appear in a workspace path
FORBIDDEN_CHARS = ("\x00", "\\")


def validate_path(path: str) -> str:
    """Validate a slash-delimited workspace path.

    Args:
        path: Path relative to the project root, e.g. ``src/App.jsx``

    Returns:
        The validated path

    Raises:
        ValidationError: If the path is empty or malformed
    """
    if not path or not path.strip():
        raise ValidationError("Path cannot be empty")

    if any(char in path for char in FORBIDDEN_CHARS):
        raise ValidationError(f"Invalid path: {path!r} contains forbidden characters")

    if path.startswith("/") or path.endswith("/"):
        raise ValidationError(f"Invalid path: {path!r} must be relative without a trailing slash")

    for segment in path.split("/"):
        if not segment:
            raise ValidationError(f"Invalid path: {path!r} contains an empty segment")
        if segment in (".", ".."):
            raise ValidationError(f"Invalid path: {path!r} contains a relative segment")

    return path


def validate_name(name: str, kind: str = "name") -> str:
    """Validate a single path segment supplied by the user.

    Args:
        name: The new file or folder name
        kind: What the name is for, used in error messages

    Returns:
        The name (unchanged)

    Raises:
        ValidationError: If the name is empty, whitespace, or not a single segment
    """
    if not name or not name.strip():
        raise ValidationError(f"{kind.capitalize()} cannot be empty")

    if "/" in name:
        raise ValidationError(f"Invalid {kind}: {name!r} must not contain '/'")

    if name in (".", ".."):
        raise ValidationError(f"Invalid {kind}: {name!r}")

    return name


def join_path(dir_path: str, name: str) -> str:
    """Join a directory path and a name; ``"."`` denotes the project root."""
    if dir_path in (".", ""):
        return name
    return f"{dir_path}/{name}"
