"""Output path computations and the ``p2`` template namespace."""

from __future__ import annotations

import os
from pathlib import Path

from ..core.errors import PathMetadataError
from ..core.models import STDOUT_SENTINEL, PathMetadata


def stdout_metadata(root_dir: Path) -> PathMetadata:
    """Metadata for a template whose output goes to standard output."""
    return PathMetadata(
        OutputPath=STDOUT_SENTINEL,
        OutputName=STDOUT_SENTINEL,
        OutputDir=str(root_dir),
        OutputRelPath=STDOUT_SENTINEL,
        OutputRelDir=".",
    )


def _relative(path: Path, root_dir: Path) -> str:
    try:
        return os.path.relpath(path, root_dir)
    except ValueError as e:
        raise PathMetadataError(
            f"Could not determine path of {path} relative to {root_dir}: {e}"
        ) from e


def compute_path_metadata(output_path: Path | None, root_dir: Path) -> PathMetadata:
    """Compute the ``p2`` namespace for one template.

    Args:
        output_path: Absolute output file path, or None for stdout
        root_dir: Absolute root directory relative paths are computed from

    Returns:
        Path metadata; every field switches to the stdout values together
    """
    if output_path is None:
        return stdout_metadata(root_dir)

    return PathMetadata(
        OutputPath=str(output_path),
        OutputName=output_path.name,
        OutputDir=str(output_path.parent),
        OutputRelPath=_relative(output_path, root_dir),
        OutputRelDir=_relative(output_path.parent, root_dir),
    )


def transform_filename(rel_path: Path, substr_del: str) -> Path:
    """Remove ``substr_del`` from the file name part of a relative path.

    Directory components are left untouched.
    """
    if not substr_del:
        return rel_path
    return rel_path.parent / rel_path.name.replace(substr_del, "")


def directory_output_path(
    template_path: Path, template_root: Path, output_root: Path, substr_del: str = ""
) -> Path:
    """Map a template inside a template tree to its absolute output path.

    Args:
        template_path: Template file inside ``template_root``
        template_root: Root of the template tree
        output_root: Root of the output tree
        substr_del: Substring removed from the output file name

    Returns:
        Absolute output path mirroring the template's position in the tree
    """
    rel_path = transform_filename(template_path.relative_to(template_root), substr_del)
    return Path(os.path.abspath(output_root / rel_path))


def tar_entry_name(output_path: Path, root_dir: Path, prefix: str = "") -> str:
    """Archive member name for an output path.

    Args:
        output_path: Absolute output path
        root_dir: Root directory entry names are relative to
        prefix: Optional leading path joined in front of the relative path

    Returns:
        POSIX-style member name
    """
    rel_path = Path(_relative(output_path, root_dir))
    if prefix:
        rel_path = Path(prefix) / rel_path
    return Path(os.path.normpath(rel_path)).as_posix()
