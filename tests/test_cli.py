"""End-to-end tests for the p2 command line."""

import io
import json
import tarfile

import pytest
from typer.testing import CliRunner

from p2cli import __version__
from p2cli.cli.app import app

runner = CliRunner()

TEMPLATE = "Hello {{ NAME }}, you are {{ AGE }}.\n"
EXPECTED = "Hello Sally, you are 42.\n"


@pytest.fixture
def workdir(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    (tmp_path / "template.p2").write_text(TEMPLATE)
    return tmp_path


class TestInputSources:
    def test_environment_by_default(self, workdir):
        result = runner.invoke(app, ["-t", "template.p2"], env={"NAME": "Sally", "AGE": "42"})
        assert result.exit_code == 0, result.output
        assert result.stdout == EXPECTED

    @pytest.mark.parametrize(
        "filename, content",
        [
            ("data.json", json.dumps({"NAME": "Sally", "AGE": 42})),
            ("data.yml", "NAME: Sally\nAGE: 42\n"),
            ("data.yaml", "NAME: Sally\nAGE: 42\n"),
            ("data.env", "NAME=Sally\nAGE='42'\n"),
        ],
    )
    def test_every_format_renders_the_same(self, workdir, filename, content):
        (workdir / filename).write_text(content)
        result = runner.invoke(app, ["-t", "template.p2", "-i", filename])
        assert result.exit_code == 0, result.output
        assert result.stdout == EXPECTED

    def test_explicit_format_reads_stdin(self, workdir):
        result = runner.invoke(
            app, ["-t", "template.p2", "-f", "json"], input='{"NAME": "Sally", "AGE": 42}'
        )
        assert result.exit_code == 0, result.output
        assert result.stdout == EXPECTED

    def test_use_env_key(self, workdir):
        result = runner.invoke(
            app,
            ["-t", "template.p2", "-f", "yaml", "--use-env-key", "-i", "P2_DATA"],
            env={"P2_DATA": "NAME: Sally\nAGE: 42\n"},
        )
        assert result.exit_code == 0, result.output
        assert result.stdout == EXPECTED

    def test_envkey_format(self, workdir):
        result = runner.invoke(
            app,
            ["-t", "template.p2", "-f", "envkey", "-i", "P2_DATA"],
            env={"P2_DATA": "NAME=Sally\nAGE=42\n"},
        )
        assert result.exit_code == 0, result.output
        assert result.stdout == EXPECTED

    def test_include_env_overrides_file_data(self, workdir):
        (workdir / "data.json").write_text(json.dumps({"NAME": "File", "AGE": 42}))
        result = runner.invoke(
            app,
            ["-t", "template.p2", "-i", "data.json", "--include-env"],
            env={"NAME": "Sally"},
        )
        assert result.exit_code == 0, result.output
        assert result.stdout == EXPECTED

    def test_unknown_extension_fails(self, workdir):
        (workdir / "data.txt").write_text("")
        result = runner.invoke(app, ["-t", "template.p2", "-i", "data.txt"])
        assert result.exit_code == 1

    def test_malformed_env_file_fails(self, workdir):
        (workdir / "bad.env").write_text("NOEQUALS\n")
        result = runner.invoke(app, ["-t", "template.p2", "-i", "bad.env"])
        assert result.exit_code == 1

    def test_invalid_format_is_usage_error(self, workdir):
        result = runner.invoke(app, ["-t", "template.p2", "-f", "xml"])
        assert result.exit_code == 2


class TestOutputs:
    def test_output_file(self, workdir):
        result = runner.invoke(
            app, ["-t", "template.p2", "-o", "out.txt"], env={"NAME": "Sally", "AGE": "42"}
        )
        assert result.exit_code == 0, result.output
        assert (workdir / "out.txt").read_text() == EXPECTED
        assert result.stdout == ""

    def test_dash_means_stdout(self, workdir):
        result = runner.invoke(
            app, ["-t", "template.p2", "-o", "-"], env={"NAME": "Sally", "AGE": "42"}
        )
        assert result.stdout == EXPECTED

    def test_undefined_variable_fails(self, workdir):
        (workdir / "strict.p2").write_text("{{ P2_SURELY_NOT_DEFINED }}")
        result = runner.invoke(app, ["-t", "strict.p2"])
        assert result.exit_code == 1

    def test_directory_mode(self, workdir):
        (workdir / "templates" / "sub").mkdir(parents=True)
        (workdir / "templates" / "sub" / "app.conf.tmpl").write_text("{{ p2.OutputRelPath }}")
        (workdir / "out").mkdir()
        result = runner.invoke(
            app,
            [
                "-t", "templates",
                "-o", "out",
                "--directory-mode",
                "--directory-mode-filename-substr-del", ".tmpl",
            ],
        )
        assert result.exit_code == 0, result.output
        assert (workdir / "out" / "sub" / "app.conf").read_text() == "sub/app.conf"

    def test_tar_to_stdout(self, workdir):
        result = runner.invoke(
            app,
            ["-t", "template.p2", "-o", "etc/greeting", "--tar", "-"],
            env={"NAME": "Sally", "AGE": "42"},
        )
        assert result.exit_code == 0, result.output
        with tarfile.open(fileobj=io.BytesIO(result.stdout_bytes)) as archive:
            assert archive.getnames() == ["etc/greeting"]
            assert archive.extractfile("etc/greeting").read() == EXPECTED.encode()
        assert not (workdir / "etc").exists()


class TestScriptingFilters:
    source = '{{ NAME }}{{ ("hi " ~ NAME) | write_file("sally.txt") }}'

    def test_write_file_when_enabled(self, workdir):
        (workdir / "script.p2").write_text(self.source)
        result = runner.invoke(
            app, ["-t", "script.p2", "--enable-filters", "write_file"], env={"NAME": "Sally"}
        )
        assert result.exit_code == 0, result.output
        assert result.stdout == "Sallyhi Sally"
        assert (workdir / "sally.txt").read_text() == "hi Sally"

    def test_write_file_unavailable_by_default(self, workdir):
        (workdir / "script.p2").write_text(self.source)
        result = runner.invoke(app, ["-t", "script.p2"], env={"NAME": "Sally"})
        assert result.exit_code == 1
        assert not (workdir / "sally.txt").exists()

    def test_noop_filters(self, workdir):
        (workdir / "script.p2").write_text(self.source)
        result = runner.invoke(
            app, ["-t", "script.p2", "--enable-noop-filters"], env={"NAME": "Sally"}
        )
        assert result.exit_code == 0, result.output
        assert result.stdout == "Sallyhi Sally"
        assert not (workdir / "sally.txt").exists()

    def test_noop_mode_supersedes_enabled_filters(self, workdir):
        (workdir / "script.p2").write_text(self.source)
        result = runner.invoke(
            app,
            ["-t", "script.p2", "--enable-filters", "write_file", "--enable-noop-filters"],
            env={"NAME": "Sally"},
        )
        assert result.exit_code == 0, result.output
        assert not (workdir / "sally.txt").exists()

    def test_unknown_filter_name(self, workdir):
        result = runner.invoke(app, ["-t", "template.p2", "--enable-filters", "exec"])
        assert result.exit_code == 1


class TestMisc:
    def test_version(self):
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert result.stdout.strip() == __version__

    def test_debug_still_renders(self, workdir):
        result = runner.invoke(
            app, ["-t", "template.p2", "--debug"], env={"NAME": "Sally", "AGE": "42"}
        )
        assert result.exit_code == 0, result.output
        assert EXPECTED in result.output

    @pytest.mark.parametrize("name, value", [("P2_LOG_FORMAT", "xml"), ("P2_LOG_LEVEL", "loud")])
    def test_invalid_logging_settings_are_usage_errors(self, workdir, name, value):
        result = runner.invoke(app, ["-t", "template.p2"], env={name: value})
        assert result.exit_code == 2
        assert isinstance(result.exception, SystemExit)

    def test_logging_settings_from_environment(self, workdir):
        result = runner.invoke(
            app,
            ["-t", "template.p2"],
            env={"NAME": "Sally", "AGE": "42", "P2_LOG_FORMAT": "JSON", "P2_LOG_LEVEL": "info"},
        )
        assert result.exit_code == 0, result.output
        assert result.stdout == EXPECTED

    def test_json_log_format_accepted(self, workdir):
        result = runner.invoke(
            app,
            ["-t", "template.p2", "--log-level", "debug", "--log-format", "json"],
            env={"NAME": "Sally", "AGE": "42"},
        )
        assert result.exit_code == 0, result.output
