"""Output sinks: where rendered text goes.

A sink is created once per batch and asked to prepare a destination for each
template. The prepared output bundles the writer with the step that completes
it, and optionally replaces the owner/mode operations filters use.
"""

from __future__ import annotations

import io
import logging
import sys
import tarfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, TextIO

from .filters import ChmodFunc, ChownFunc
from .io import ensure_parent, open_truncated
from .paths import tar_entry_name

logger = logging.getLogger(__name__)

DEFAULT_TAR_MODE = 0o644


@dataclass
class PreparedOutput:
    """A writable destination for one render."""

    writer: TextIO
    finalize: Callable[[], None] | None = None
    base_dir: Path | None = None
    chown: ChownFunc | None = None
    chmod: ChmodFunc | None = None


class OutputSink(ABC):
    """Strategy resolving an output path to a writable destination."""

    @abstractmethod
    def prepare(self, output_path: Path | None) -> PreparedOutput:
        """Open the destination for ``output_path``.

        Raises:
            OSError: The destination cannot be created or opened
        """


class StdoutSink(OutputSink):
    """Writes every render to one stream; the output path is ignored."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self.stream = stream if stream is not None else sys.stdout

    def prepare(self, output_path: Path | None) -> PreparedOutput:
        return PreparedOutput(writer=self.stream)


class FileSink(OutputSink):
    """Writes a render to a single file."""

    def prepare(self, output_path: Path | None) -> PreparedOutput:
        if output_path is None:
            raise ValueError("FileSink requires an output path")
        handle = open_truncated(output_path)
        return PreparedOutput(writer=handle, finalize=handle.close)


class DirectoryTreeSink(OutputSink):
    """Writes each render to its place in a replicated directory tree.

    Scripting filters resolve relative paths against the directory of the
    file being written.
    """

    def prepare(self, output_path: Path | None) -> PreparedOutput:
        if output_path is None:
            raise ValueError("DirectoryTreeSink requires an output path")
        ensure_parent(output_path)
        handle = open_truncated(output_path)
        return PreparedOutput(writer=handle, finalize=handle.close, base_dir=output_path.parent)


class TarSink(OutputSink):
    """Adds each render to a shared tar archive.

    Text is buffered until the render completes, then written as one regular
    file entry. Owner and mode filters edit the pending entry header.
    """

    def __init__(
        self,
        archive: tarfile.TarFile,
        root_dir: Path,
        prefix: str = "",
        default_mode: int = DEFAULT_TAR_MODE,
    ) -> None:
        self.archive = archive
        self.root_dir = root_dir
        self.prefix = prefix
        self.default_mode = default_mode

    def prepare(self, output_path: Path | None) -> PreparedOutput:
        if output_path is None:
            raise ValueError("TarSink requires an output path")

        info = tarfile.TarInfo(name=tar_entry_name(output_path, self.root_dir, self.prefix))
        info.type = tarfile.REGTYPE
        info.mode = self.default_mode
        info.uid = 0
        info.gid = 0
        info.mtime = 0

        def chown(name: str, uid: int, gid: int) -> None:
            if uid != -1:
                info.uid = uid
            if gid != -1:
                info.gid = gid

        def chmod(name: str, mode: int) -> None:
            info.mode = mode

        buffer = io.StringIO()

        def finalize() -> None:
            data = buffer.getvalue().encode("utf-8")
            info.size = len(data)
            self.archive.addfile(info, io.BytesIO(data))
            logger.debug(f"Added {info.name} ({info.size} bytes) to tar archive")

        return PreparedOutput(writer=buffer, finalize=finalize, chown=chown, chmod=chmod)
