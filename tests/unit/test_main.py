# tests/unit/test_main.py — v1
"""Tests for main.py — CLI entry point."""

from __future__ import annotations

import json
import logging
import shlex
import sys
from pathlib import Path

import pytest

from helpers import make_manifest, make_phase
from phasekit.logging.logger import ROOT_LOGGER
from phasekit.main import _build_parser, _parse_inputs, _split_ids, main
from phasekit.provenance.codec import decode_header

AGENT_SCRIPT = """\
import pathlib, re, sys
prompt = sys.stdin.read()
phase_id = re.search(r"phase (\\S+) ", prompt).group(1)
out = pathlib.Path("src") / (phase_id.lower() + ".py")
out.parent.mkdir(parents=True, exist_ok=True)
out.write_text(phase_id + " = True\\n")
"""


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    logging.getLogger(ROOT_LOGGER).handlers.clear()


@pytest.fixture
def agent_command(tmp_path, monkeypatch):
    script = tmp_path / "fake_agent.py"
    script.write_text(AGENT_SCRIPT, encoding="utf-8")
    command = f"{shlex.quote(sys.executable)} {shlex.quote(str(script))}"
    monkeypatch.setenv("PHASEKIT_AGENT_COMMAND", command)
    return command


# ---------------------------------------------------------------------------
# Parser tests
# ---------------------------------------------------------------------------

class TestBuildParser:
    def test_version_flag(self):
        parser = _build_parser()
        with pytest.raises(SystemExit) as exc_info:
            parser.parse_args(["--version"])
        assert exc_info.value.code == 0

    def test_execute_subcommand(self):
        args = _build_parser().parse_args(
            [
                "execute", "web", "--version", "1.2.0", "--from", "P02", "--to", "P05",
                "--skip", "P03,P04", "--agent", "claude", "--continue-on-error",
                "--input", "module=auth", "--force",
            ]
        )
        assert args.command == "execute"
        assert args.series == "web"
        assert args.series_version == "1.2.0"
        assert args.from_phase == "P02"
        assert args.to_phase == "P05"
        assert args.skip == ["P03,P04"]
        assert args.agent == "claude"
        assert args.continue_on_error is True
        assert args.inputs == ["module=auth"]
        assert args.force is True

    def test_execute_defaults(self):
        args = _build_parser().parse_args(["execute", "web"])
        assert args.series_version is None
        assert args.continue_on_error is None
        assert args.interactive is False
        assert args.only == []

    def test_merge_subcommand(self):
        args = _build_parser().parse_args(
            ["merge", "web", "plans/v2", "--from", "1.0.0", "--version", "2.0.0", "--no-dry-run"]
        )
        assert args.phases_dir == Path("plans/v2")
        assert args.from_version == "1.0.0"
        assert args.version_override == "2.0.0"
        assert args.no_dry_run is True

    def test_merge_requires_from(self):
        with pytest.raises(SystemExit):
            _build_parser().parse_args(["merge", "web", "plans/v2"])

    def test_migrate_subcommand(self):
        args = _build_parser().parse_args(
            ["migrate", "web", "--from", "1.0.0", "--scope", "src"]
        )
        assert args.from_version == "1.0.0"
        assert args.to_version is None
        assert args.scope == Path("src")

    def test_log_and_versions(self):
        args = _build_parser().parse_args(["log", "web", "--command", "merge", "--json"])
        assert args.log_command == "merge"
        assert args.json is True
        assert _build_parser().parse_args(["versions"]).series is None

    def test_global_options(self):
        args = _build_parser().parse_args(
            ["-v", "--config", "a.yaml", "--config", "b.yaml", "--project", "/p", "versions"]
        )
        assert args.verbose is True
        assert args.config == [Path("a.yaml"), Path("b.yaml")]
        assert args.project == Path("/p")


class TestHelpers:
    def test_split_ids(self):
        assert _split_ids(["A,B", " C ", ",,"]) == ["A", "B", "C"]

    def test_parse_inputs(self):
        assert _parse_inputs(["module=auth", "P01.count=3", "empty="]) == {
            "module": "auth",
            "P01.count": "3",
            "empty": "",
        }

    @pytest.mark.parametrize("bad", ["module", "=x"])
    def test_parse_inputs_invalid(self, bad):
        with pytest.raises(ValueError, match="NAME=VALUE"):
            _parse_inputs([bad])


# ---------------------------------------------------------------------------
# main()
# ---------------------------------------------------------------------------

class TestMain:
    def test_no_command(self, capsys):
        assert main([]) == 1

    def test_versions(self, project, workspace, three_phase_manifest, capsys):
        workspace.manifests.save(three_phase_manifest)
        assert main(["--project", str(project), "versions"]) == 0
        assert json.loads(capsys.readouterr().out) == {"web": ["1.0.0"]}

    def test_unknown_series(self, project):
        assert main(["--project", str(project), "execute", "nope", "--agent", "claude"]) == 1

    def test_invalid_input_flag(self, project, workspace, three_phase_manifest):
        workspace.manifests.save(three_phase_manifest)
        code = main(["--project", str(project), "validate", "web", "--input", "oops"])
        assert code == 1

    def test_validate(self, project, workspace, three_phase_manifest, capsys):
        workspace.manifests.save(three_phase_manifest)
        assert main(["--project", str(project), "validate", "web"]) == 0
        assert "3 phases selected" in capsys.readouterr().out

    def test_execute_with_command_agent(
        self, project, workspace, three_phase_manifest, agent_command, capsys
    ):
        workspace.manifests.save(
            make_manifest([*three_phase_manifest.phases[:2], make_phase("C", ("B",))])
        )
        code = main(["--project", str(project), "execute", "web", "--agent", "command"])

        assert code == 0
        out = capsys.readouterr().out
        assert "execute web@1.0.0: succeeded" in out
        text = (project / "src" / "b.py").read_text(encoding="utf-8")
        assert text.endswith("B = True\n")
        assert decode_header(text, "src/b.py").agent == "command"

    def test_diff_and_log(self, project, workspace, three_phase_manifest, capsys):
        workspace.manifests.save(three_phase_manifest)
        workspace.manifests.save(
            make_manifest(list(three_phase_manifest.phases)[:2], version="2.0.0")
        )
        assert main(["--project", str(project), "diff", "web", "1.0.0", "2.0.0"]) == 0
        out = capsys.readouterr().out
        assert "removed   V" in out
        assert main(["--project", str(project), "log", "web"]) == 0
        assert capsys.readouterr().out == ""
