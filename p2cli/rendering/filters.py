"""Template filters and the per-render state they act on.

Filters that change the output file (``SetOwner``, ``SetGroup``,
``SetMode``) and the scripting filters act on the :class:`RenderContext`
activated for the current render, so every render carries its own output
target and base directory.
"""

from __future__ import annotations

import base64
import grp
import gzip
import json
import logging
import os
import pwd
import zlib
from collections.abc import Iterator, Mapping, Sequence
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import tomli_w
import yaml
from jinja2 import Environment

from ..core.errors import FilterIOError, FilterLookupError, FilterValidationError
from ..core.models import STDOUT_SENTINEL

logger = logging.getLogger(__name__)

ChownFunc = Callable[[str, int, int], None]
ChmodFunc = Callable[[str, int], None]
FilterFunc = Callable[..., Any]

DEFAULT_GZIP_LEVEL = 9
_JSON_BOOL_INDENT = "    "


@dataclass
class RenderContext:
    """Output target and filesystem operations for one render."""

    output_path: Path | None = None
    base_dir: Path | None = None
    chown: ChownFunc = os.chown
    chmod: ChmodFunc = os.chmod

    @property
    def is_stdout(self) -> bool:
        return self.output_path is None

    @property
    def target(self) -> str:
        return STDOUT_SENTINEL if self.output_path is None else str(self.output_path)

    def resolve(self, path: str) -> Path:
        """Resolve a path given to a scripting filter against the base directory."""
        base = self.base_dir if self.base_dir is not None else Path.cwd()
        return base / path


_active_render: ContextVar[RenderContext | None] = ContextVar("p2_active_render", default=None)


@contextmanager
def activate_render(render: RenderContext) -> Iterator[RenderContext]:
    """Make ``render`` the current render for every template it evaluates.

    The render is held in a context variable rather than the Jinja2 context,
    since imported templates and their macros run without the caller's
    context.
    """
    token = _active_render.set(render)
    try:
        yield render
    finally:
        _active_render.reset(token)


def current_render() -> RenderContext:
    """Return the render context filters act on.

    Templates rendered outside :func:`activate_render` behave as if writing
    to stdout.
    """
    active = _active_render.get()
    if active is not None:
        return active
    return RenderContext()


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _resolve_id(filter_name: str, value: Any, lookup: Callable[[str], int]) -> int:
    if _is_int(value):
        return value
    if isinstance(value, str):
        try:
            return lookup(value)
        except KeyError as e:
            raise FilterLookupError(filter_name, f"unknown name {value!r}") from e
    raise FilterValidationError(filter_name, "Filter input must be of type 'string' or 'integer'.")


def _lookup_uid(name: str) -> int:
    return pwd.getpwnam(name).pw_uid


def _lookup_gid(name: str) -> int:
    return grp.getgrnam(name).gr_gid


def _chown(filter_name: str, render: RenderContext, uid: int, gid: int) -> None:
    try:
        render.chown(render.target, uid, gid)
    except OSError as e:
        raise FilterIOError(filter_name, str(e)) from e


def filter_set_owner(value: Any, param: Any = None) -> str:
    render = current_render()
    if render.is_stdout:
        return ""
    uid = _resolve_id("SetOwner", value, _lookup_uid)
    _chown("SetOwner", render, uid, -1)
    return ""


def filter_set_group(value: Any, param: Any = None) -> str:
    render = current_render()
    if render.is_stdout:
        return ""
    gid = _resolve_id("SetGroup", value, _lookup_gid)
    _chown("SetGroup", render, -1, gid)
    return ""


def filter_set_mode(value: Any, param: Any = None) -> str:
    render = current_render()
    if render.is_stdout:
        return ""

    if not isinstance(value, str):
        raise FilterValidationError("SetMode", "Filter input must be of type 'string' in octal format.")
    if not value or any(ch not in "01234567" for ch in value):
        raise FilterValidationError("SetMode", f"invalid octal mode {value!r}")

    try:
        render.chmod(render.target, int(value, 8))
    except OSError as e:
        raise FilterIOError("SetMode", str(e)) from e
    return ""


def filter_indent(value: Any, param: Any = None) -> str:
    """Prefix every line, blank ones included, with ``param``.

    An integer parameter means that many spaces.
    """
    if not isinstance(value, str):
        raise FilterValidationError("indent", "Filter input must be of type 'string'.")

    if _is_int(param):
        prefix = " " * param
    elif isinstance(param, str):
        prefix = param
    else:
        raise FilterValidationError("indent", "Filter param must be of type 'string' or 'integer'.")

    return "\n".join(f"{prefix}{line}" for line in value.split("\n"))


def filter_replace(value: Any, param: Any = None, *extra: Any) -> str:
    """Replace ``[match, replacement]`` or the first ``count`` of ``[match, replacement, count]``.

    The same values may also be given as separate arguments.
    """
    if not isinstance(value, str):
        raise FilterValidationError("replace", "Filter input must be of type 'string'.")

    args = (param, *extra) if extra else param
    if (
        isinstance(args, (str, bytes))
        or not isinstance(args, Sequence)
        or len(args) not in (2, 3)
    ):
        raise FilterValidationError(
            "replace", "Filter param must be [match, replacement] or [match, replacement, count]."
        )

    match, replacement = str(args[0]), str(args[1])
    if len(args) == 2:
        return value.replace(match, replacement)

    try:
        count = int(str(args[2]))
    except ValueError as e:
        raise FilterValidationError("replace", f"invalid count {args[2]!r}") from e
    return value.replace(match, replacement, count)


def _json_default(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray)):
        return base64.b64encode(obj).decode("ascii")
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def filter_to_json(value: Any, param: Any = None) -> str:
    if isinstance(param, bool):
        indent = _JSON_BOOL_INDENT if param else None
    elif _is_int(param):
        indent = " " * param
    elif isinstance(param, str):
        indent = param
    else:
        indent = None

    try:
        if indent is None:
            return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=_json_default)
        return json.dumps(value, indent=indent, ensure_ascii=False, default=_json_default)
    except (TypeError, ValueError) as e:
        raise FilterValidationError("to_json", str(e)) from e


def filter_to_yaml(value: Any, param: Any = None) -> str:
    try:
        return yaml.safe_dump(value, default_flow_style=False, sort_keys=False, allow_unicode=True)
    except yaml.YAMLError as e:
        raise FilterValidationError("to_yaml", str(e)) from e


def filter_to_toml(value: Any, param: Any = None) -> str:
    if not isinstance(value, Mapping):
        raise FilterValidationError("to_toml", "Filter input must be a mapping at the top level.")
    try:
        return tomli_w.dumps(dict(value))
    except (TypeError, ValueError) as e:
        raise FilterValidationError("to_toml", str(e)) from e


def filter_to_base64(value: Any, param: Any = None) -> str:
    if isinstance(value, str):
        value = value.encode("utf-8")
    if not isinstance(value, (bytes, bytearray)):
        raise FilterValidationError("to_base64", "filter requires a bytes or string input")
    return base64.b64encode(value).decode("ascii")


def filter_from_base64(value: Any, param: Any = None) -> bytes:
    if not isinstance(value, str):
        raise FilterValidationError("from_base64", "Filter input must be of type 'string'.")
    try:
        return base64.b64decode(value, validate=True)
    except ValueError as e:
        raise FilterValidationError("from_base64", str(e)) from e


def filter_string(value: Any, param: Any = None) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    raise FilterValidationError("string", "filter requires a bytes or string input")


def filter_bytes(value: Any, param: Any = None) -> bytes:
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    raise FilterValidationError("bytes", "filter requires a bytes or string input")


def filter_to_gzip(value: Any, param: Any = None) -> bytes:
    level = DEFAULT_GZIP_LEVEL if param is None else param
    if not _is_int(level) or not 0 <= level <= 9:
        raise FilterValidationError("to_gzip", f"invalid compression level {param!r}")
    if not isinstance(value, (bytes, bytearray)):
        raise FilterValidationError("to_gzip", "filter requires a bytes input")
    # mtime=0 keeps the output identical for identical input
    return gzip.compress(bytes(value), compresslevel=level, mtime=0)


def filter_from_gzip(value: Any, param: Any = None) -> bytes:
    if not isinstance(value, (bytes, bytearray)):
        raise FilterValidationError("from_gzip", "filter requires a bytes input")
    try:
        return gzip.decompress(bytes(value))
    except (OSError, EOFError, zlib.error) as e:
        raise FilterValidationError("from_gzip", str(e)) from e


STANDARD_FILTERS: dict[str, FilterFunc] = {
    "SetOwner": filter_set_owner,
    "SetGroup": filter_set_group,
    "SetMode": filter_set_mode,
    "indent": filter_indent,
    "replace": filter_replace,
    "to_json": filter_to_json,
    "to_yaml": filter_to_yaml,
    "to_toml": filter_to_toml,
    "to_base64": filter_to_base64,
    "from_base64": filter_from_base64,
    "string": filter_string,
    "bytes": filter_bytes,
    "to_gzip": filter_to_gzip,
    "from_gzip": filter_from_gzip,
}


class FilterSet:
    """The filters registered into every template environment.

    Holds the default owner/mode operations; output sinks may override them
    for a single render (the tar sink edits archive headers instead of files).
    """

    def __init__(
        self,
        scripting_filters: Mapping[str, FilterFunc] | None = None,
        chown: ChownFunc = os.chown,
        chmod: ChmodFunc = os.chmod,
    ) -> None:
        self.scripting_filters = dict(scripting_filters or {})
        self.chown = chown
        self.chmod = chmod

    @property
    def filters(self) -> dict[str, FilterFunc]:
        return {**STANDARD_FILTERS, **self.scripting_filters}

    def register(self, env: Environment) -> None:
        """Install the filter table into a Jinja2 environment."""
        env.filters.update(self.filters)
        logger.debug(f"Registered {len(self.filters)} filter(s)")

    def render_context(
        self,
        output_path: Path | None,
        base_dir: Path | None = None,
        chown: ChownFunc | None = None,
        chmod: ChmodFunc | None = None,
    ) -> RenderContext:
        """Build the render context for one render.

        Args:
            output_path: Output file path, or None for stdout
            base_dir: Directory relative scripting-filter paths resolve against
            chown: Owner operation overriding the default
            chmod: Mode operation overriding the default

        Returns:
            Render context passed to filters
        """
        return RenderContext(
            output_path=output_path,
            base_dir=base_dir,
            chown=chown or self.chown,
            chmod=chmod or self.chmod,
        )
