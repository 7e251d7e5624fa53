"""Batch driver: discovers templates and renders each one."""

from __future__ import annotations

import logging
import os
import sys
import tarfile
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterator, Mapping, TextIO

from ..core.errors import P2Error
from ..core.models import PathMetadata, RenderConfig
from .engine import TemplateEngine, load_template
from .filters import FilterSet
from .paths import compute_path_metadata, directory_output_path
from .sinks import DirectoryTreeSink, FileSink, OutputSink, StdoutSink, TarSink

logger = logging.getLogger(__name__)

TAR_STDOUT = "-"


@dataclass(frozen=True)
class RenderJob:
    """One template and where its output goes."""

    template_path: Path
    output_path: Path | None
    metadata: PathMetadata


@dataclass
class BatchResult:
    rendered: list[RenderJob] = field(default_factory=list)
    failures: list[P2Error] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


def _absolute(path: Path | str) -> Path:
    return Path(os.path.abspath(path))


def validate_config(config: RenderConfig) -> None:
    """Check that the template and output paths suit the selected mode."""
    if not config.directory_mode:
        return

    if not config.template_path.is_dir():
        raise P2Error(
            f"Template path must be a directory in directory mode: {config.template_path}"
        )

    output = config.output_path
    if output is not None and output.exists():
        if not output.is_dir():
            raise P2Error(f"Output path must be an existing directory in directory mode: {output}")
    elif not config.tar_output:
        # A missing output directory is only allowed when writing a tar file
        if output is None:
            raise P2Error("Directory mode requires an output directory")
        raise P2Error(f"Output directory does not exist: {output}")


def root_directory(config: RenderConfig) -> Path:
    """Directory relative output paths and tar entry names are computed from."""
    if config.directory_mode:
        return _absolute(config.output_path or "")
    return _absolute(os.getcwd())


def discover_templates(template_root: Path) -> list[Path]:
    """List every file below ``template_root``."""
    found: list[Path] = []
    for dirpath, dirnames, filenames in os.walk(template_root):
        dirnames.sort()
        found.extend(Path(dirpath) / name for name in sorted(filenames))
    return found


def plan_jobs(config: RenderConfig, root_dir: Path) -> list[RenderJob]:
    """Compute the output path and ``p2`` metadata of every template.

    Args:
        config: Render configuration
        root_dir: Absolute root directory for relative paths

    Returns:
        Render jobs in discovery order
    """
    if config.directory_mode:
        output_root = config.output_path or Path("")
        jobs = []
        for template_path in discover_templates(config.template_path):
            output_path = directory_output_path(
                template_path, config.template_path, output_root, config.filename_substr_del
            )
            logger.debug(f"Template file: {template_path} → {output_path}")
            jobs.append(
                RenderJob(template_path, output_path, compute_path_metadata(output_path, root_dir))
            )
        return jobs

    output_path: Path | None = None
    if config.output_path is not None:
        output_path = _absolute(config.output_path)
    elif config.tar_output:
        # Archive entries need a name; use the template's own
        output_path = root_dir / config.template_path.name

    return [
        RenderJob(
            config.template_path, output_path, compute_path_metadata(output_path, root_dir)
        )
    ]


@contextmanager
def open_sink(config: RenderConfig, root_dir: Path, stdout: TextIO) -> Iterator[OutputSink]:
    """Create the output sink for a batch.

    Tar archives are closed, writing their trailer, when the batch ends.
    """
    if config.tar_output:
        to_stdout = config.tar_path == TAR_STDOUT
        fileobj = stdout.buffer if to_stdout else open(config.tar_path, "wb")
        try:
            with tarfile.open(fileobj=fileobj, mode="w", format=tarfile.GNU_FORMAT) as archive:
                prefix = str(config.output_path) if config.directory_mode and config.output_path else ""
                yield TarSink(archive, root_dir, prefix=prefix)
        finally:
            if to_stdout:
                fileobj.flush()
            else:
                fileobj.close()
    elif config.directory_mode:
        yield DirectoryTreeSink()
    elif config.output_path is not None:
        yield FileSink()
    else:
        yield StdoutSink(stdout)


def run_batch(
    config: RenderConfig,
    input_data: Mapping[str, Any],
    filter_set: FilterSet,
    stdout: TextIO | None = None,
) -> BatchResult:
    """Render every template described by ``config``.

    A failing template does not stop the others; the result lists every
    failure.

    Args:
        config: Render configuration
        input_data: Input data for every template
        filter_set: Filters registered into each template environment
        stdout: Stream used for stdout output; defaults to ``sys.stdout``

    Returns:
        Batch result
    """
    stdout = stdout if stdout is not None else sys.stdout
    validate_config(config)
    root_dir = root_directory(config)
    jobs = plan_jobs(config, root_dir)
    logger.info(f"Rendering {len(jobs)} template(s)")

    result = BatchResult()
    try:
        with open_sink(config, root_dir, stdout) as sink:
            engine = TemplateEngine(sink)
            for job in jobs:
                try:
                    template = load_template(
                        job.template_path,
                        filter_set,
                        job.metadata,
                        autoescape=config.autoescape,
                        template_root=config.template_path if config.directory_mode else None,
                    )
                    engine.execute(filter_set, template, input_data, job.output_path)
                except P2Error as e:
                    logger.error(
                        f"Failed to execute template {job.template_path} "
                        f"(output {job.metadata.output_path}): {e}"
                    )
                    result.failures.append(e)
                    continue
                result.rendered.append(job)
    except (OSError, tarfile.TarError) as e:
        logger.error(f"Could not write tar archive {config.tar_path}: {e}")
        result.failures.append(P2Error(f"tar archive {config.tar_path}: {e}"))

    if result.failures:
        logger.error("Errors encountered during template processing")
    else:
        logger.info(f"Successfully rendered {len(result.rendered)} template(s)")
    return result
