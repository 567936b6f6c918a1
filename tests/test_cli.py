"""
E2E tests for the CLI interface using Click's CliRunner.
"""

import json
from pathlib import Path
from unittest.mock import patch

from click.testing import CliRunner

from replaybook.cli import main
from replaybook.notebook import CellType
from replaybook.session import SessionManager


def invoke(runner, *args, input=None):
    return runner.invoke(main, ["--sessions-dir", "sessions", *args], input=input)


class TestNewAndRun:
    """Test `new` and `run` end-to-end."""

    def test_new_creates_session(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = invoke(runner, "new", "Iris Study")

            assert result.exit_code == 0, result.output
            assert "iris_study" in result.output
            data = json.loads(Path("sessions/iris_study/notebook.json").read_text())
            assert data["title"] == "Iris Study"
            assert data["cells"][0]["cell_type"] == "intent"
            assert Path("sessions/iris_study/context.json").exists()

    def test_new_refuses_existing_session(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            invoke(runner, "new", "calc")
            invoke(runner, "run", "calc", "x = 42")

            result = invoke(runner, "new", "calc")

            assert result.exit_code == 1
            assert "already exists" in result.output
            session = SessionManager(sessions_dir=Path("sessions")).load("calc")
            assert len(session.notebook.cells) == 3

    def test_invalid_config_file(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            Path("c.json").write_text('{"retry_budget": -1}')

            result = runner.invoke(main, ["--config", "c.json", "sessions"])

            assert result.exit_code == 1
            assert isinstance(result.exception, SystemExit)
            assert "Invalid config" in result.output

    def test_run_code_twice(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            invoke(runner, "new", "calc")
            first = invoke(runner, "run", "calc", "x = 42")
            second = invoke(runner, "run", "calc", "print(x)")

            assert first.exit_code == 0, first.output
            assert second.exit_code == 0, second.output
            assert "42" in second.output

            session = SessionManager(sessions_dir=Path("sessions")).load("calc")
            outputs = session.notebook.cells_of_type(CellType.OUTPUT)
            assert [c.content for c in outputs] == ["42", "42"]

    def test_run_from_file(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            invoke(runner, "new", "file")
            Path("cell.py").write_text("values = [1, 2, 3]\nsum(values)\n")

            result = invoke(runner, "run", "file", "-f", "cell.py")

            assert result.exit_code == 0, result.output
            assert "6" in result.output

    def test_run_failure_exits_nonzero(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            invoke(runner, "new", "err")
            result = invoke(runner, "run", "err", "1/0")

            assert result.exit_code == 1
            assert "ZeroDivisionError" in result.output

    def test_run_unknown_session(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = invoke(runner, "run", "ghost", "print(1)")

            assert result.exit_code == 1
            assert "Error" in result.output

    def test_run_without_code(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            invoke(runner, "new", "empty")
            result = invoke(runner, "run", "empty")

            assert result.exit_code == 1
            assert "Nothing to execute" in result.output


class TestInspectCommands:
    """Test `show`, `vars`, `define`, `sessions`, `export` and `delete`."""

    def test_show(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            invoke(runner, "new", "show me")
            invoke(runner, "run", "show_me", "'visible'")

            result = invoke(runner, "show", "show_me")

            assert result.exit_code == 0, result.output
            assert "show me" in result.output
            assert "visible" in result.output

    def test_vars_and_define(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            invoke(runner, "new", "ctx")
            invoke(runner, "run", "ctx", "rate = 0.5")
            define = invoke(runner, "define", "ctx", "rate", "Fraction of successes")

            result = invoke(runner, "vars", "ctx")

            assert define.exit_code == 0, define.output
            assert result.exit_code == 0, result.output
            assert "rate" in result.output
            assert "0.5" in result.output
            assert "Fraction of successes" in result.output

    def test_sessions_empty(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = invoke(runner, "sessions")

            assert result.exit_code == 0
            assert "No saved sessions" in result.output

    def test_sessions_lists(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            invoke(runner, "new", "one")
            invoke(runner, "new", "two")

            result = invoke(runner, "sessions")

            assert "one" in result.output
            assert "two" in result.output

    def test_export(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            invoke(runner, "new", "exp")
            result = invoke(runner, "export", "exp")

            assert result.exit_code == 0, result.output
            assert Path("notebooks/exp.json").exists()

    def test_delete(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            invoke(runner, "new", "gone")
            result = invoke(runner, "delete", "gone", "--yes")

            assert result.exit_code == 0, result.output
            assert not Path("sessions/gone").exists()

    def test_delete_missing(self):
        runner = CliRunner()
        with runner.isolated_filesystem():
            result = invoke(runner, "delete", "missing", "-y")
            assert result.exit_code == 1

    def test_delete_failure_is_reported(self):
        runner = CliRunner()
        with runner.isolated_filesystem(), \
             patch("replaybook.session.shutil.rmtree", side_effect=PermissionError("denied")):
            invoke(runner, "new", "locked")
            result = invoke(runner, "delete", "locked", "-y")

            assert result.exit_code == 1
            assert isinstance(result.exception, SystemExit)
            assert "denied" in result.output


class TestResearchCommand:
    """Test `research` with a patched LLM."""

    def test_research(self):
        responses = iter(["1. Set a value", "value = 7"])
        runner = CliRunner()
        with runner.isolated_filesystem(), \
             patch("replaybook.cli.make_ask_llm", return_value=lambda prompt: next(responses)):
            result = invoke(runner, "research", "Seven")

            assert result.exit_code == 0, result.output
            assert "1/1 steps executed" in result.output
            assert Path("notebooks/seven.json").exists()
