"""Exception types raised while assembling input data and rendering templates."""

from __future__ import annotations

from pathlib import Path


class P2Error(Exception):
    """Base class for all p2 failures."""


class EnvironmentVariablesError(P2Error, ValueError):
    """Raised when an environment-style ``KEY=value`` line is malformed."""

    def __init__(self, reason: str, raw_env_var: str) -> None:
        super().__init__(f"{reason}: {raw_env_var}")
        self.reason = reason
        self.raw_env_var = raw_env_var


class InputDataError(P2Error, ValueError):
    """Raised when input data cannot be read or decoded."""


class PathMetadataError(P2Error, ValueError):
    """Raised when output path metadata cannot be computed."""


class TemplateLoadError(P2Error):
    """Raised when a template file cannot be read or parsed."""

    def __init__(self, template_path: Path, reason: str) -> None:
        super().__init__(f"Could not load template {template_path}: {reason}")
        self.template_path = template_path
        self.reason = reason


def _describe_output(output_path: Path | None) -> str:
    return str(output_path) if output_path is not None else "<stdout>"


class TemplateExecutionError(P2Error):
    """Base for failures tied to one template render."""

    stage = "execute"

    def __init__(self, template_path: Path, output_path: Path | None, reason: str) -> None:
        super().__init__(
            f"{self.stage} failed for template {template_path} "
            f"(output {_describe_output(output_path)}): {reason}"
        )
        self.template_path = template_path
        self.output_path = output_path
        self.reason = reason


class OutputPreparationError(TemplateExecutionError):
    """Raised when the output destination cannot be opened or created."""

    stage = "prepare"


class RenderError(TemplateExecutionError):
    """Raised when template evaluation or a filter fails."""

    stage = "render"


class FinalizeError(TemplateExecutionError):
    """Raised when the output destination cannot be closed or flushed."""

    stage = "finalize"


class FilterError(P2Error):
    """Base for errors raised by template filters."""

    def __init__(self, filter_name: str, reason: str) -> None:
        super().__init__(f"filter:{filter_name}: {reason}")
        self.filter_name = filter_name
        self.reason = reason


class FilterValidationError(FilterError, ValueError):
    """Filter input or parameter has the wrong type or format."""


class FilterLookupError(FilterError, LookupError):
    """A user or group name could not be resolved."""


class FilterIOError(FilterError):
    """A filesystem operation performed by a filter failed."""


class UnknownFilterError(P2Error, ValueError):
    """Raised when a scripting filter name is not supported."""

    def __init__(self, filter_name: str) -> None:
        super().__init__(f"This version of p2 does not support the custom filter {filter_name!r}")
        self.filter_name = filter_name
