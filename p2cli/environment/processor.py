"""Environment variable collection and env-file parsing."""

from __future__ import annotations

import logging
import os
import re
import shlex
from typing import Iterable, Mapping

from ..core.errors import EnvironmentVariablesError

logger = logging.getLogger(__name__)

_IDENTIFIER_PATTERN = re.compile(r"^[a-zA-Z0-9_]+$")


def from_environment(env: Iterable[str] | None = None) -> dict[str, str]:
    """Split raw ``KEY=VALUE`` environment entries into a mapping.

    Args:
        env: Raw entries; defaults to the current process environment

    Returns:
        Mapping of variable name to value
    """
    if env is None:
        env = [f"{key}={value}" for key, value in os.environ.items()]

    result: dict[str, str] = {}
    for keyval in env:
        key, sep, value = keyval.partition("=")
        if not sep:
            raise EnvironmentVariablesError(
                "Could not find an equals value to split on", keyval
            )
        result[key] = value
    return result


def filter_identifiers(env: Mapping[str, str]) -> dict[str, str]:
    """Drop variables whose names are not usable as template identifiers."""
    filtered = {k: v for k, v in env.items() if _IDENTIFIER_PATTERN.match(k)}
    dropped = len(env) - len(filtered)
    if dropped:
        logger.debug(f"Ignoring {dropped} environment variable(s) with invalid names")
    return filtered


def parse_env_line(line: str) -> tuple[str, str]:
    """Parse one ``KEY=value`` line with a shell-quoted value.

    Args:
        line: Raw line from an env file

    Returns:
        Tuple of key and unquoted value
    """
    key, sep, raw_value = line.partition("=")
    if not sep:
        raise EnvironmentVariablesError("Could not find an equals value to split on", line)

    try:
        values = shlex.split(raw_value)
    except ValueError as e:
        raise EnvironmentVariablesError(str(e), line) from e

    # Shell arrays are not supported in sourced files
    if len(values) > 1:
        raise EnvironmentVariablesError(
            "Improperly escaped environment variable. p2 does not parse arrays.", line
        )

    return key, values[0] if values else ""


def parse_env_lines(text: str) -> dict[str, str]:
    """Parse env-file text into a mapping.

    Blank lines and ``#`` comments are skipped; every other line must be a
    ``KEY=value`` assignment.

    Args:
        text: Env-file content

    Returns:
        Mapping of keys to unquoted values
    """
    data: dict[str, str] = {}
    for line in text.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        key, value = parse_env_line(stripped)
        data[key] = value
    return data
