"""Main CLI application."""

from __future__ import annotations

import json
import logging
import sys
from typing import Optional

import typer
from typing_extensions import Annotated

from .. import __version__
from ..core.errors import P2Error
from ..core.models import RenderConfig
from ..core.settings import Settings
from ..environment import inputs, processor
from ..rendering import batch
from ..rendering.filters import FilterSet
from ..rendering.scripting import select_scripting_filters
from .parsers import (
    parse_filter_list,
    parse_input_format,
    parse_log_format,
    parse_log_level,
    parse_output,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "[%(levelname)s] %(message)s"

app = typer.Typer(
    name="p2",
    help="Render Jinja2 templates from environment variables, JSON or YAML data.",
    add_completion=False,
)


class JsonLogFormatter(logging.Formatter):
    """Formats each record as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "time": self.formatTime(record),
            "level": record.levelname.lower(),
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(level: int, log_format: str) -> None:
    """Send log records to stderr; stdout may carry rendered output."""
    handler = logging.StreamHandler(sys.stderr)
    if log_format == "json":
        handler.setFormatter(JsonLogFormatter())
    else:
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.basicConfig(level=level, handlers=[handler])


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.command()
def render(
    template: Annotated[
        str,
        typer.Option(
            "--template",
            "-t",
            help="Template file to process (template directory in directory mode).",
            metavar="PATH",
        ),
    ],
    data_file: Annotated[
        str,
        typer.Option(
            "--input",
            "-i",
            help="Input data path. Leave blank for stdin, or for the environment when --format is auto.",
            metavar="PATH",
        ),
    ] = "",
    output: Annotated[
        str,
        typer.Option(
            "--output",
            "-o",
            help="Output file (output directory in directory mode). Leave blank or '-' for stdout.",
            metavar="PATH",
        ),
    ] = "",
    input_format: Annotated[
        str,
        typer.Option(
            "--format",
            "-f",
            help="Input data format: auto, env, envkey, json, yml or yaml.",
            callback=parse_input_format,
        ),
    ] = "auto",
    use_env_key: Annotated[
        bool,
        typer.Option(
            "--use-env-key",
            help="Treat --input as an environment key name to read. Equivalent to --format=envkey.",
        ),
    ] = False,
    include_env: Annotated[
        bool,
        typer.Option(
            "--include-env",
            help="Include environment variables in addition to any supplied data.",
        ),
    ] = False,
    tar_file: Annotated[
        str,
        typer.Option(
            "--tar",
            help="Write output as a tar file with the given name, or to stdout with '-'.",
            metavar="PATH",
        ),
    ] = "",
    enable_filters: Annotated[
        str,
        typer.Option(
            "--enable-filters",
            help="Enable custom scripting filters (comma separated: write_file,make_dirs).",
            metavar="NAMES",
        ),
    ] = "",
    enable_noop_filters: Annotated[
        bool,
        typer.Option(
            "--enable-noop-filters",
            help="Enable all custom filters in no-op mode. Supersedes --enable-filters.",
        ),
    ] = False,
    autoescape: Annotated[
        bool,
        typer.Option("--autoescape", help="Enable autoescaping."),
    ] = False,
    directory_mode: Annotated[
        bool,
        typer.Option(
            "--directory-mode",
            help="Treat template path as directory-tree, output path as target directory.",
        ),
    ] = False,
    filename_substr_del: Annotated[
        str,
        typer.Option(
            "--directory-mode-filename-substr-del",
            help="Delete a given substring in output filenames (directory mode only).",
            metavar="TEXT",
        ),
    ] = "",
    debug: Annotated[
        bool,
        typer.Option("--debug", help="Print the input data to stderr before rendering."),
    ] = False,
    log_level: Annotated[
        Optional[str],
        typer.Option("--log-level", help="Logging level (default: warning).", metavar="LEVEL"),
    ] = None,
    log_format: Annotated[
        Optional[str],
        typer.Option("--log-format", help="Logging format: console or json.", metavar="FORMAT"),
    ] = None,
    version: Annotated[
        bool,
        typer.Option(
            "--version",
            help="Print the version and exit.",
            callback=_version_callback,
            is_eager=True,
        ),
    ] = False,
) -> None:
    """Render Jinja2 templates with data from the environment, JSON or YAML."""
    settings = Settings()
    configure_logging(
        parse_log_level(log_level or settings.log_level),
        parse_log_format(log_format or settings.log_format),
    )

    logger.debug("Starting p2")

    config = RenderConfig(
        template_path=template,
        output_path=parse_output(output),
        tar_path=tar_file or None,
        directory_mode=directory_mode,
        filename_substr_del=filename_substr_del,
        autoescape=autoescape,
        enabled_filters=parse_filter_list(enable_filters),
        noop_filters=enable_noop_filters,
    )

    logger.debug(f"Config: {config!r}")

    try:
        scripting_filters = select_scripting_filters(
            config.enabled_filters, noop=config.noop_filters
        )
        env = processor.filter_identifiers(processor.from_environment())
        plan = inputs.resolve_input_plan(input_format, data_file, use_env_key)
        input_data = inputs.load_input_data(plan, env, sys.stdin, include_env=include_env)
    except P2Error as e:
        logger.error(f"Error preparing input data: {e}")
        raise typer.Exit(code=1) from e

    if debug:
        typer.echo(json.dumps(input_data, indent=2, default=str), err=True)

    try:
        result = batch.run_batch(config, input_data, FilterSet(scripting_filters))
    except P2Error as e:
        logger.error(str(e))
        raise typer.Exit(code=1) from e

    if not result.ok:
        raise typer.Exit(code=1)

    logger.debug(f"Completed: {len(result.rendered)} template(s) rendered")


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
