"""Zip export of the project files."""

import io
import zipfile
from collections.abc import Mapping


def export_zip(files: Mapping[str, str]) -> bytes:
    """Build a zip archive with one entry per path.

    Content is written as UTF-8 exactly as stored; directories come from the
    path separators. Placeholder entries are kept so empty folders survive.

    Args:
        files: Flat mapping of path to text content

    Returns:
        The archive bytes
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for path, content in files.items():
            archive.writestr(path, content.encode("utf-8"))
    return buffer.getvalue()


def archive_filename(project_name: str) -> str:
    """Download name for a project archive."""
    return f"{project_name}.zip"
