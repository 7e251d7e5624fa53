"""Input data source selection and decoding."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import IO, Any, Mapping

import yaml

from ..core.errors import InputDataError
from .processor import parse_env_lines

logger = logging.getLogger(__name__)

FORMAT_AUTO = "auto"
FORMAT_ENVKEY = "envkey"


class InputFormat(str, Enum):
    JSON = "json"
    YAML = "yaml"
    ENV = "env"


class DataSource(str, Enum):
    ENV = "env"
    ENV_KEY = "envkey"
    STDIN = "stdin"
    FILE = "file"


_FORMATS_BY_NAME: dict[str, InputFormat] = {
    "json": InputFormat.JSON,
    "yaml": InputFormat.YAML,
    "yml": InputFormat.YAML,
    "env": InputFormat.ENV,
}


@dataclass(frozen=True)
class InputPlan:
    """Resolved input format and where to read it from."""

    fmt: InputFormat
    source: DataSource
    name: str = ""


def _lookup_format(name: str) -> InputFormat:
    try:
        return _FORMATS_BY_NAME[name]
    except KeyError:
        raise InputDataError(f"Unsupported input format: {name!r}") from None


def resolve_input_plan(fmt: str, data_file: str, use_env_key: bool = False) -> InputPlan:
    """Decide the input format and data source from the command line options.

    Args:
        fmt: Requested format name, ``auto`` or ``envkey``
        data_file: Input file path (or environment key name); blank for stdin
        use_env_key: Treat ``data_file`` as an environment key name

    Returns:
        Input plan describing format, source and name
    """
    if fmt == FORMAT_ENVKEY:
        use_env_key = True
        fmt = InputFormat.ENV.value

    if fmt == FORMAT_AUTO and not data_file:
        plan = InputPlan(InputFormat.ENV, DataSource.ENV)
    elif fmt == FORMAT_AUTO:
        extension = Path(data_file).suffix.lstrip(".")
        if extension not in _FORMATS_BY_NAME:
            raise InputDataError(
                "Unrecognized file extension. If the file is in a supported format, "
                "try specifying it explicitly."
            )
        plan = InputPlan(_FORMATS_BY_NAME[extension], DataSource.FILE, data_file)
    elif not data_file:
        plan = InputPlan(_lookup_format(fmt), DataSource.STDIN, "-")
    else:
        plan = InputPlan(_lookup_format(fmt), DataSource.FILE, data_file)

    if use_env_key:
        if not data_file:
            raise InputDataError("--use-env-key is incompatible with stdin file input.")
        plan = InputPlan(plan.fmt, DataSource.ENV_KEY, data_file)

    logger.debug(f"Input plan: format={plan.fmt.value} source={plan.source.value} name={plan.name!r}")
    return plan


def read_raw_input(plan: InputPlan, env: Mapping[str, str], stdin: IO[str]) -> str:
    """Read the raw input text described by the plan.

    Args:
        plan: Input plan
        env: Environment mapping used for ``envkey`` sources
        stdin: Stream read for stdin sources

    Returns:
        Raw input text
    """
    if plan.source is DataSource.STDIN:
        return stdin.read()
    if plan.source is DataSource.FILE:
        try:
            return Path(plan.name).read_text(encoding="utf-8")
        except OSError as e:
            raise InputDataError(f"Could not read data from {plan.name}: {e}") from e
    if plan.source is DataSource.ENV_KEY:
        return env.get(plan.name, "")
    raise InputDataError(f"Invalid data source: {plan.source.value}")


def _require_mapping(data: Any, fmt: InputFormat) -> dict[str, Any]:
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InputDataError(
            f"{fmt.value} input must be a mapping at the top level, got {type(data).__name__}"
        )
    return data


def decode_input(text: str, fmt: InputFormat) -> dict[str, Any]:
    """Decode raw input text into a mapping.

    Args:
        text: Raw input text
        fmt: Format of the text

    Returns:
        Decoded mapping
    """
    if fmt is InputFormat.ENV:
        return parse_env_lines(text)
    if fmt is InputFormat.JSON:
        try:
            return _require_mapping(json.loads(text), fmt)
        except json.JSONDecodeError as e:
            raise InputDataError(f"Invalid JSON input: {e}") from e
    try:
        return _require_mapping(yaml.safe_load(text), fmt)
    except yaml.YAMLError as e:
        raise InputDataError(f"Invalid YAML input: {e}") from e


def load_input_data(
    plan: InputPlan,
    env: Mapping[str, str],
    stdin: IO[str],
    include_env: bool = False,
) -> dict[str, Any]:
    """Assemble the input data for rendering.

    Args:
        plan: Input plan
        env: Filtered environment variables
        stdin: Stream read for stdin sources
        include_env: Merge environment variables over the decoded data

    Returns:
        Input data mapping
    """
    if plan.source is DataSource.ENV:
        if include_env:
            logger.warning("--include-env has no effect when data source is already the environment")
        return dict(env)

    data = decode_input(read_raw_input(plan, env, stdin), plan.fmt)

    if include_env:
        logger.info("Including environment variables")
        data.update(env)

    return data
