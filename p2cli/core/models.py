"""Domain models for render configuration and template path metadata."""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

STDOUT_SENTINEL = "<stdout>"


class PathMetadata(BaseModel):
    """Values exposed to templates under the ``p2`` namespace."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    output_path: str = Field(..., alias="OutputPath", description="Absolute output path")
    output_name: str = Field(..., alias="OutputName", description="Output file name")
    output_dir: str = Field(..., alias="OutputDir", description="Absolute output directory")
    output_rel_path: str = Field(
        ..., alias="OutputRelPath", description="Output path relative to the root directory"
    )
    output_rel_dir: str = Field(
        ..., alias="OutputRelDir", description="Output directory relative to the root directory"
    )

    def as_context(self) -> dict[str, str]:
        """Return the flat mapping templates see as ``p2``."""
        return self.model_dump(by_alias=True)


class RenderConfig(BaseModel):
    """Configuration for one batch run."""

    template_path: Path = Field(..., description="Template file or template directory")
    output_path: Path | None = Field(
        default=None, description="Output file or directory; None means stdout"
    )
    tar_path: str | None = Field(
        default=None, description="Tar archive path, '-' for stdout; None disables tar output"
    )
    directory_mode: bool = Field(default=False, description="Walk the template tree")
    filename_substr_del: str = Field(
        default="", description="Substring removed from output file names in directory mode"
    )
    autoescape: bool = Field(default=False, description="Enable HTML autoescaping")
    enabled_filters: list[str] = Field(
        default_factory=list, description="Scripting filters enabled by name"
    )
    noop_filters: bool = Field(
        default=False, description="Register all scripting filters as no-ops"
    )

    @property
    def tar_output(self) -> bool:
        return self.tar_path is not None
