"""File I/O operations for rendering."""

from __future__ import annotations

from pathlib import Path
from typing import TextIO


def ensure_parent(path: Path) -> None:
    """Ensure parent directories exist for the given path.

    Args:
        path: Path whose parent directories should be created
    """
    path.parent.mkdir(parents=True, exist_ok=True)


def open_truncated(path: Path) -> TextIO:
    """Open a file for text writing, creating or truncating it.

    Output is written in place, so a failed render leaves whatever was
    written before the failure.

    Args:
        path: Destination file path

    Returns:
        Open text handle; the caller closes it
    """
    return path.open("w", encoding="utf-8", newline="")


def write_text(path: Path, text: str) -> None:
    """Write text to a file, replacing any previous content.

    Args:
        path: Destination file path
        text: Text content to write
    """
    with open_truncated(path) as handle:
        handle.write(text)
