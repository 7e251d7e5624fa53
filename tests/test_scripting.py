"""Tests for the write_file / make_dirs scripting filters."""

import pytest
from jinja2 import TemplateError

from p2cli.core.errors import FilterIOError, FilterValidationError, UnknownFilterError
from p2cli.rendering.filters import FilterSet, RenderContext
from p2cli.rendering.scripting import (
    SCRIPTING_FILTERS,
    filter_noop_passthru,
    filter_write_file,
    select_scripting_filters,
)
from tests.conftest import render_string


@pytest.fixture
def enabled_filters():
    return FilterSet(select_scripting_filters(["write_file", "make_dirs"]))


class TestSelectScriptingFilters:
    def test_nothing_enabled_by_default(self):
        assert select_scripting_filters([]) == {}

    def test_enable_by_name(self):
        assert select_scripting_filters(["write_file"]) == {"write_file": filter_write_file}

    def test_noop_mode_covers_every_filter(self):
        selected = select_scripting_filters([], noop=True)
        assert set(selected) == set(SCRIPTING_FILTERS)
        assert all(func is filter_noop_passthru for func in selected.values())

    def test_noop_mode_supersedes_enabled_names(self):
        selected = select_scripting_filters(["make_dirs"], noop=True)
        assert selected["make_dirs"] is filter_noop_passthru

    def test_unknown_name_rejected(self):
        with pytest.raises(UnknownFilterError, match="bogus"):
            select_scripting_filters(["write_file", "bogus"])


class TestWriteFile:
    def test_writes_content_and_passes_it_through(self, tmp_path, enabled_filters):
        source = '{{ name }}|{% set content = "hi " ~ name %}{{ content | write_file("sally.txt") }}'
        out = render_string(
            source,
            {"name": "Sally"},
            filter_set=enabled_filters,
            render=RenderContext(base_dir=tmp_path),
        )
        assert out == "Sally|hi Sally"
        assert (tmp_path / "sally.txt").read_text() == "hi Sally"

    def test_truncates_existing_file(self, tmp_path, enabled_filters):
        (tmp_path / "f.txt").write_text("previous much longer content")
        render_string(
            '{{ "new" | write_file("f.txt") }}',
            filter_set=enabled_filters,
            render=RenderContext(base_dir=tmp_path),
        )
        assert (tmp_path / "f.txt").read_text() == "new"

    def test_absolute_filename_ignores_base_dir(self, tmp_path, enabled_filters):
        target = tmp_path / "abs.txt"
        render_string(
            "{{ 'x' | write_file(target) }}",
            {"target": str(target)},
            filter_set=enabled_filters,
            render=RenderContext(base_dir=tmp_path / "elsewhere"),
        )
        assert target.read_text() == "x"

    @pytest.mark.parametrize(
        "source", ["{{ 1 | write_file('f.txt') }}", "{{ 'x' | write_file(1) }}"]
    )
    def test_non_string_arguments_rejected(self, tmp_path, enabled_filters, source):
        with pytest.raises(FilterValidationError):
            render_string(source, filter_set=enabled_filters, render=RenderContext(base_dir=tmp_path))

    def test_unwritable_target_is_io_error(self, tmp_path, enabled_filters):
        with pytest.raises(FilterIOError):
            render_string(
                "{{ 'x' | write_file('missing/dir/f.txt') }}",
                filter_set=enabled_filters,
                render=RenderContext(base_dir=tmp_path),
            )

    def test_not_available_unless_enabled(self):
        with pytest.raises(TemplateError):
            render_string("{{ 'x' | write_file('f.txt') }}")


class TestMakeDirs:
    def test_creates_parents_and_chains_into_write_file(self, tmp_path, enabled_filters):
        out = render_string(
            "{{ 'body' | make_dirs('a/b') | write_file('a/b/c.txt') }}",
            filter_set=enabled_filters,
            render=RenderContext(base_dir=tmp_path),
        )
        assert out == "body"
        assert (tmp_path / "a" / "b" / "c.txt").read_text() == "body"

    def test_existing_directory_is_fine(self, tmp_path, enabled_filters):
        (tmp_path / "exists").mkdir()
        render_string(
            "{{ '' | make_dirs('exists') }}",
            filter_set=enabled_filters,
            render=RenderContext(base_dir=tmp_path),
        )
        assert (tmp_path / "exists").is_dir()

    def test_non_string_dirname_rejected(self, tmp_path, enabled_filters):
        with pytest.raises(FilterValidationError):
            render_string(
                "{{ 'x' | make_dirs(5) }}",
                filter_set=enabled_filters,
                render=RenderContext(base_dir=tmp_path),
            )

    def test_file_in_the_way_is_io_error(self, tmp_path, enabled_filters):
        (tmp_path / "blocker").write_text("")
        with pytest.raises(FilterIOError):
            render_string(
                "{{ 'x' | make_dirs('blocker/sub') }}",
                filter_set=enabled_filters,
                render=RenderContext(base_dir=tmp_path),
            )


class TestNoopMode:
    def test_noop_filters_touch_nothing(self, tmp_path):
        filter_set = FilterSet(select_scripting_filters([], noop=True))
        out = render_string(
            "{{ 'body' | make_dirs('new') | write_file('new/f.txt') }}",
            filter_set=filter_set,
            render=RenderContext(base_dir=tmp_path),
        )
        assert out == "body"
        assert list(tmp_path.iterdir()) == []

    def test_direct_call_returns_input(self):
        assert filter_noop_passthru("value", "param") == "value"
