"""Tests for the cargo-fork CLI: the pipeline itself is mocked."""

from __future__ import annotations

import json
import os
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from click.testing import CliRunner

from cargo_fork.cli import cli, main
from cargo_fork.exceptions import NoVcsInfoForRelease
from cargo_fork.models import CrateCoordinate, NodeDiff, SourceKind
from cargo_fork.orchestrator import ForkResult

APP = "app 0.1.0 (path+file:///ws/app)"
FOO_REG = "foo 1.2.3 (registry+https://github.com/rust-lang/crates.io-index)"
FOO_LOCAL = "foo 1.2.3 (path+file:///patches/foo)"


def _result(diff=None, source=SourceKind.VCS_PINNED_TO_RELEASE) -> ForkResult:
    return ForkResult(
        crate=CrateCoordinate("foo", "1.2.3"),
        source=source,
        patch_path=Path("/patches/foo"),
        manifest_path=Path("/ws/Cargo.toml"),
        diff=diff or {},
    )


@pytest.fixture
def orchestrator():
    mock = MagicMock()
    mock.progress.failed_stage = None
    with patch("cargo_fork.cli.setup_logging"), patch(
        "cargo_fork.cli.ForkOrchestrator.create", return_value=mock
    ):
        yield mock


class TestFork:
    def test_default_source(self, orchestrator):
        orchestrator.run.return_value = _result()
        result = CliRunner().invoke(cli, ["foo"])
        assert result.exit_code == 0, result.output
        args, kwargs = orchestrator.run.call_args
        assert args == ("foo", SourceKind.VCS_PINNED_TO_RELEASE)
        assert kwargs["dest_dir"] is None

    def test_source_and_dest_dir(self, orchestrator):
        orchestrator.run.return_value = _result(source=SourceKind.ARCHIVE_SNAPSHOT)
        result = CliRunner().invoke(cli, ["--source", "crate", "--dest-dir", "../foo", "foo"])
        assert result.exit_code == 0, result.output
        args, kwargs = orchestrator.run.call_args
        assert args[1] is SourceKind.ARCHIVE_SNAPSHOT
        assert kwargs["dest_dir"] == Path("../foo")

    def test_invalid_source(self, orchestrator):
        result = CliRunner().invoke(cli, ["--source", "svn", "foo"])
        assert result.exit_code == 2
        orchestrator.run.assert_not_called()

    def test_text_output(self, orchestrator):
        orchestrator.run.return_value = _result(
            {
                APP: NodeDiff(added={FOO_LOCAL}, removed={FOO_REG}),
                FOO_LOCAL: NodeDiff(is_new=True),
            }
        )
        result = CliRunner().invoke(cli, ["foo"])
        assert result.exit_code == 0
        lines = result.output.splitlines()
        assert lines[0] == "Using manifest: /ws/Cargo.toml"
        assert lines[1] == "Patched foo 1.2.3 -> /patches/foo"
        assert "Dependency changes:" in lines
        assert f"  - {FOO_REG}" in lines
        assert f"  + {FOO_LOCAL}" in lines
        assert f"+{FOO_LOCAL}:" in lines

    def test_no_changes(self, orchestrator):
        orchestrator.run.return_value = _result()
        result = CliRunner().invoke(cli, ["foo"])
        assert "No dependency changes." in result.output

    def test_json_output(self, orchestrator):
        orchestrator.run.return_value = _result({APP: NodeDiff(added={FOO_LOCAL})})
        result = CliRunner().invoke(cli, ["--json", "foo"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["crate"] == "foo"
        assert data["version"] == "1.2.3"
        assert data["source"] == "vcs-current"
        assert data["changes"][APP] == {"new": False, "added": [FOO_LOCAL], "removed": []}

    def test_json_includes_stages(self, orchestrator):
        result_obj = _result()
        result_obj.summary = {
            "stages": [
                {
                    "stage": "acquire",
                    "status": "completed",
                    "duration": 0.5,
                    "detail": "/patches/foo",
                    "error": None,
                }
            ],
            "total_duration": 0.5,
        }
        orchestrator.run.return_value = result_obj
        result = CliRunner().invoke(cli, ["--json", "foo"])
        data = json.loads(result.output)
        assert data["stages"][0]["stage"] == "acquire"
        assert data["stages"][0]["detail"] == "/patches/foo"

    def test_failure_names_stage(self, orchestrator):
        orchestrator.run.side_effect = NoVcsInfoForRelease(
            "no .cargo_vcs_info.json for package foo:1.2.3, try --source vcs-head"
        )
        orchestrator.progress.failed_stage = "acquire"
        result = CliRunner().invoke(cli, ["foo"])
        assert result.exit_code == 1
        assert "Error: acquire failed:" in result.output
        assert "try --source vcs-head" in result.output

    def test_malformed_env_setting(self, orchestrator):
        with patch.dict(os.environ, {"CARGO_FORK_HTTP_TIMEOUT": "soon"}):
            result = CliRunner().invoke(cli, ["foo"])
        assert result.exit_code == 1
        assert "Error: config failed: CARGO_FORK_HTTP_TIMEOUT" in result.output
        orchestrator.run.assert_not_called()

    def test_verbose_enables_debug(self):
        with patch("cargo_fork.cli.setup_logging") as setup, patch(
            "cargo_fork.cli.ForkOrchestrator.create"
        ) as create:
            create.return_value.run.return_value = _result()
            CliRunner().invoke(cli, ["-v", "foo"])
        setup.assert_called_once_with(True)


class TestMain:
    def test_strips_cargo_subcommand_name(self):
        with patch("sys.argv", ["cargo-fork", "fork", "--source", "vcs-head", "foo"]), patch(
            "cargo_fork.cli.cli.main"
        ) as cli_main:
            main()
        cli_main.assert_called_once_with(
            args=["--source", "vcs-head", "foo"], prog_name="cargo-fork"
        )

    def test_direct_invocation(self):
        with patch("sys.argv", ["cargo-fork", "foo"]), patch("cargo_fork.cli.cli.main") as cli_main:
            main()
        assert cli_main.call_args.kwargs["args"] == ["foo"]
