"""Shared fixtures for p2 tests."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from p2cli.rendering.engine import build_environment
from p2cli.rendering.filters import FilterSet, RenderContext, activate_render


class CallRecorder:
    """Stands in for os.chown / os.chmod and records calls."""

    def __init__(self) -> None:
        self.calls: list[tuple[Any, ...]] = []

    def __call__(self, *args: Any) -> None:
        self.calls.append(args)


def render_string(
    source: str,
    data: dict[str, Any] | None = None,
    *,
    filter_set: FilterSet | None = None,
    render: RenderContext | None = None,
) -> str:
    env = build_environment(filter_set or FilterSet(), [Path(".")])
    template = env.from_string(source)
    if render is None:
        return template.render(data or {})
    with activate_render(render):
        return template.render(data or {})


@pytest.fixture
def recorder() -> CallRecorder:
    return CallRecorder()


@pytest.fixture
def write_files(tmp_path: Path):
    """Create files below tmp_path from a {relative path: content} mapping."""

    def _write(files: dict[str, str], root: Path | None = None) -> Path:
        base = root or tmp_path
        for rel_path, content in files.items():
            path = base / rel_path
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        return base

    return _write
