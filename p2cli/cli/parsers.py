"""CLI argument parsers and validators."""

from __future__ import annotations

import logging
from pathlib import Path

import typer

INPUT_FORMATS = ("auto", "env", "envkey", "json", "yml", "yaml")
LOG_FORMATS = ("console", "json")
STDOUT_OUTPUT = "-"


def parse_input_format(value: str) -> str:
    """Validate an input format name."""
    fmt = value.strip().lower()
    if fmt not in INPUT_FORMATS:
        raise typer.BadParameter(
            f"Must be one of {', '.join(INPUT_FORMATS)}, got: {value!r}"
        )
    return fmt


def parse_output(value: str) -> Path | None:
    """Parse an output path; blank or '-' means stdout."""
    if value in ("", STDOUT_OUTPUT):
        return None
    return Path(value)


def parse_filter_list(value: str) -> list[str]:
    """Parse a comma-separated list of filter names."""
    return [name.strip() for name in value.split(",") if name.strip()]


def parse_log_level(value: str) -> int:
    """Parse a logging level name such as 'debug' or 'warning'."""
    level = logging.getLevelName(value.strip().upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"Invalid logging level: {value!r}")
    return level


def parse_log_format(value: str) -> str:
    """Validate a logging format name."""
    fmt = value.strip().lower()
    if fmt not in LOG_FORMATS:
        raise typer.BadParameter(f"Must be one of {', '.join(LOG_FORMATS)}, got: {value!r}")
    return fmt
