"""Scripting filters that give templates filesystem side effects.

These filters are disabled unless enabled by name, because templates gain the
ability to write files. Each has a no-op substitute that passes its input
through untouched, for debugging templates without touching the filesystem.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from ..core.errors import FilterIOError, FilterValidationError, UnknownFilterError
from .filters import FilterFunc, current_render
from .io import write_text

logger = logging.getLogger(__name__)


def filter_write_file(value: Any, param: Any = None) -> Any:
    """Write the input to the file named by the parameter and pass it through."""
    if not isinstance(value, str):
        raise FilterValidationError("write_file", "Filter input must be of type 'string'.")
    if not isinstance(param, str):
        raise FilterValidationError("write_file", "Filter parameter must be of type 'string'.")

    target = current_render().resolve(param)
    try:
        write_text(target, value)
    except OSError as e:
        raise FilterIOError("write_file", f"Could not write file for output: {e}") from e

    logger.debug(f"write_file: wrote {len(value)} character(s) to {target}")
    return value


def filter_make_dirs(value: Any, param: Any = None) -> Any:
    """Create the directory named by the parameter, with parents, and pass the input through."""
    if not isinstance(param, str):
        raise FilterValidationError("make_dirs", "Filter parameter must be of type 'string'.")

    target = current_render().resolve(param)
    try:
        target.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise FilterIOError("make_dirs", f"Could not create directories {target}: {e}") from e

    logger.debug(f"make_dirs: ensured {target}")
    return value


def filter_noop_passthru(value: Any, *args: Any, **kwargs: Any) -> Any:
    return value


@dataclass(frozen=True)
class ScriptingFilter:
    filter_func: FilterFunc
    noop_func: FilterFunc


SCRIPTING_FILTERS: dict[str, ScriptingFilter] = {
    "write_file": ScriptingFilter(filter_write_file, filter_noop_passthru),
    "make_dirs": ScriptingFilter(filter_make_dirs, filter_noop_passthru),
}


def select_scripting_filters(enabled: Iterable[str], noop: bool = False) -> dict[str, FilterFunc]:
    """Choose the scripting filter implementations to register.

    Args:
        enabled: Filter names to enable
        noop: Register every scripting filter in no-op mode; supersedes ``enabled``

    Returns:
        Mapping of filter name to implementation
    """
    if noop:
        return {name: entry.noop_func for name, entry in SCRIPTING_FILTERS.items()}

    selected: dict[str, FilterFunc] = {}
    for name in enabled:
        entry = SCRIPTING_FILTERS.get(name)
        if entry is None:
            raise UnknownFilterError(name)
        selected[name] = entry.filter_func
    return selected
