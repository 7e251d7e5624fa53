"""Template rendering engine."""

from __future__ import annotations

import logging
import tarfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence

from jinja2 import Environment, FileSystemLoader, StrictUndefined, Template, TemplateError

from ..core.errors import (
    FinalizeError,
    OutputPreparationError,
    RenderError,
    TemplateLoadError,
)
from ..core.models import PathMetadata
from .filters import FilterSet, activate_render
from .sinks import OutputSink, PreparedOutput

logger = logging.getLogger(__name__)


@dataclass
class LoadedTemplate:
    """A compiled template together with the environment that owns it."""

    template: Template
    environment: Environment
    source_path: Path
    metadata: PathMetadata


def _finalize_value(value: Any) -> Any:
    # Byte values from filters such as from_base64 are printed as text
    if isinstance(value, (bytes, bytearray)):
        return bytes(value).decode("utf-8", errors="replace")
    return value


def build_environment(
    filter_set: FilterSet, search_path: Sequence[Path], autoescape: bool = False
) -> Environment:
    """Create a Jinja2 environment with the p2 filters installed.

    Args:
        filter_set: Filters to register
        search_path: Directories searched by include/extends/import
        autoescape: Enable HTML autoescaping

    Returns:
        Configured environment
    """
    env = Environment(
        loader=FileSystemLoader([str(path) for path in search_path]),
        undefined=StrictUndefined,
        autoescape=autoescape,
        keep_trailing_newline=True,
        finalize=_finalize_value,
    )
    filter_set.register(env)
    return env


def load_template(
    template_path: Path,
    filter_set: FilterSet,
    metadata: PathMetadata,
    autoescape: bool = False,
    template_root: Path | None = None,
) -> LoadedTemplate:
    """Load a Jinja2 template from a file path.

    Args:
        template_path: Path to the template file
        filter_set: Filters available to the template
        metadata: ``p2`` namespace for the template's output
        autoescape: Enable HTML autoescaping
        template_root: Root of the template tree, also searched for includes

    Returns:
        Loaded template
    """
    if not template_path.is_file():
        raise TemplateLoadError(template_path, "template file not found")

    # Use template's parent directory as loader search path
    search_path = [template_path.parent]
    if template_root is not None and template_root != template_path.parent:
        search_path.append(template_root)
    env = build_environment(filter_set, search_path, autoescape=autoescape)

    try:
        template = env.get_template(template_path.name)
    except (OSError, UnicodeDecodeError, TemplateError) as e:
        raise TemplateLoadError(template_path, str(e)) from e

    return LoadedTemplate(
        template=template, environment=env, source_path=template_path, metadata=metadata
    )


def build_context(template: LoadedTemplate, input_data: Mapping[str, Any]) -> dict[str, Any]:
    """Merge the ``p2`` namespace with input data.

    Input data cannot replace ``p2``; a caller-supplied ``p2`` key is dropped.
    """
    context: dict[str, Any] = {"p2": template.metadata.as_context()}
    for key, value in input_data.items():
        if key == "p2":
            logger.warning("Ignoring input data key 'p2': the name is reserved for path metadata")
            continue
        context[key] = value
    return context


class TemplateEngine:
    """Executes single renders against an output sink."""

    def __init__(self, sink: OutputSink) -> None:
        self.sink = sink

    def execute(
        self,
        filter_set: FilterSet,
        template: LoadedTemplate,
        input_data: Mapping[str, Any],
        output_path: Path | None,
    ) -> None:
        """Render one template to the destination for ``output_path``.

        The prepared destination is always finalized, even when rendering
        fails. A render failure takes precedence over a finalize failure,
        which is then only logged.

        Args:
            filter_set: Filter set supplying the default owner/mode operations
            template: Loaded template with its ``p2`` metadata
            input_data: Input data merged over the ``p2`` namespace
            output_path: Output file path, or None for stdout
        """
        template_path = template.source_path
        logger.debug(f"Rendering template: {template_path}")

        try:
            prepared = self.sink.prepare(output_path)
        except (OSError, ValueError) as e:
            raise OutputPreparationError(template_path, output_path, str(e)) from e

        context = build_context(template, input_data)
        render = filter_set.render_context(
            output_path,
            base_dir=prepared.base_dir,
            chown=prepared.chown,
            chmod=prepared.chmod,
        )

        try:
            with activate_render(render):
                for chunk in template.template.generate(context):
                    prepared.writer.write(chunk)
        except Exception as e:
            self._finalize(prepared, template, output_path, render_failed=True)
            raise RenderError(template_path, output_path, str(e)) from e

        self._finalize(prepared, template, output_path)
        logger.info(f"Rendered {template_path} → {template.metadata.output_path}")

    @staticmethod
    def _finalize(
        prepared: PreparedOutput,
        template: LoadedTemplate,
        output_path: Path | None,
        render_failed: bool = False,
    ) -> None:
        if prepared.finalize is None:
            return
        try:
            prepared.finalize()
        except (OSError, ValueError, tarfile.TarError) as e:
            if render_failed:
                logger.error(f"Could not finalize {output_path} after failed render: {e}")
                return
            raise FinalizeError(template.source_path, output_path, str(e)) from e
