"""Tests for command routing."""

from unittest.mock import MagicMock

import pytest

from aish.core.errors import AgentApiError, MaxTurnsExceeded
from aish.core.mode import Mode
from aish.core.multiline import assemble
from aish.orchestrator import AgentOrchestrator
from aish.router import MODE_TOGGLE, CommandRouter, Route
from aish.tools.shell.unix import ExecutionResult, UnixExecutor


@pytest.fixture
def executor(workdir):
    mock = MagicMock(spec=UnixExecutor)
    mock.run.return_value = ExecutionResult(command="", cwd=workdir)
    return mock


@pytest.fixture
def orchestrator():
    mock = MagicMock(spec=AgentOrchestrator)
    mock.converse.return_value = "Here are your files."
    return mock


@pytest.fixture
def router(session, executor, orchestrator):
    return CommandRouter(session, executor, orchestrator)


class TestPriority:
    @pytest.mark.parametrize("text", ["", "   ", "\t"])
    def test_empty_input_is_noop(self, router, executor, orchestrator, text):
        assert router.route(text).route is Route.NOOP
        executor.run.assert_not_called()
        orchestrator.converse.assert_not_called()

    def test_mode_toggle(self, router, session, capsys):
        outcome = router.route(MODE_TOGGLE)

        assert outcome.route is Route.TOGGLE
        assert session.mode is Mode.COMMAND
        assert "Mode switched to: COMMAND" in capsys.readouterr().out

    @pytest.mark.parametrize("mode", [Mode.AGENT, Mode.COMMAND])
    @pytest.mark.parametrize("name", ["exit", "quit"])
    def test_exit_builtins(self, router, executor, name, mode):
        outcome = router.route(name, mode)

        assert outcome.route is Route.BUILTIN
        assert outcome.should_exit
        assert outcome.exit_code == 0
        executor.run.assert_not_called()

    @pytest.mark.parametrize("mode", [Mode.AGENT, Mode.COMMAND])
    def test_help_builtin(self, router, orchestrator, executor, mode, capsys):
        outcome = router.route("help", mode)

        assert outcome.route is Route.BUILTIN
        assert not outcome.should_exit
        assert "Built-in commands" in capsys.readouterr().out
        orchestrator.converse.assert_not_called()
        executor.run.assert_not_called()


class TestUnixPrefix:
    def test_command_mode_runs_prefix_literally(self, router, executor, session):
        outcome = router.route("$ echo hi", Mode.COMMAND)

        assert outcome.route is Route.UNIX
        executor.run.assert_called_once_with("$ echo hi", session.directory)

    def test_agent_mode_strips_prefix(self, router, executor, orchestrator, session):
        outcome = router.route("$ echo hi", Mode.AGENT)

        assert outcome.route is Route.UNIX
        executor.run.assert_called_once_with("echo hi", session.directory)
        orchestrator.converse.assert_not_called()

    def test_agent_mode_bare_prefix_is_noop(self, router, executor, orchestrator):
        assert router.route("$ ", Mode.AGENT).route is Route.NOOP
        executor.run.assert_not_called()
        orchestrator.converse.assert_not_called()

    def test_custom_prefix(self, router, executor, session):
        session.config.shell.unix_prefix = "!"
        router.route("!ls -la", Mode.AGENT)
        executor.run.assert_called_once_with("ls -la", session.directory)

    def test_mode_defaults_to_session_mode(self, router, executor, session):
        session.modes.toggle()
        router.route("ls")
        executor.run.assert_called_once_with("ls", session.directory)

    def test_exit_code_is_propagated(self, router, executor, workdir):
        executor.run.return_value = ExecutionResult(command="false", exit_code=1, cwd=workdir)
        assert router.route("false", Mode.COMMAND).exit_code == 1

    def test_multiline_routes_like_single_line(self, router, executor, session):
        (logical,) = assemble(["echo \\", "hi"])

        router.route(logical, Mode.COMMAND)
        router.route("echo hi", Mode.COMMAND)

        first, second = executor.run.call_args_list
        assert first == second


class TestAgentPath:
    def test_prompt_goes_to_agent(self, router, orchestrator, session, capsys):
        outcome = router.route("list all files", Mode.AGENT)

        assert outcome.route is Route.AGENT
        assert outcome.exit_code == 0
        assert outcome.output == "Here are your files."
        orchestrator.converse.assert_called_once_with("list all files", session)
        assert "Here are your files." in capsys.readouterr().out

    @pytest.mark.parametrize("error", [AgentApiError("boom"), MaxTurnsExceeded(3)])
    def test_agent_errors_are_reported(self, router, orchestrator, session, workdir, error, capsys):
        orchestrator.converse.side_effect = error

        outcome = router.route("do something", Mode.AGENT)

        assert outcome.exit_code == 1
        assert not outcome.should_exit
        assert "AI Error" in capsys.readouterr().out
        assert session.mode is Mode.AGENT
        assert session.cwd == workdir

    def test_interrupt_returns_to_prompt(self, router, orchestrator, session):
        orchestrator.converse.side_effect = KeyboardInterrupt()

        outcome = router.route("slow request", Mode.AGENT)

        assert outcome.route is Route.AGENT
        assert outcome.exit_code == 130


class TestWithRealExecutor:
    @pytest.fixture
    def router(self, session, orchestrator):
        return CommandRouter(session, UnixExecutor(), orchestrator)

    def test_spawn_error_is_reported(self, router, capsys):
        outcome = router.route("definitely-not-a-command-4242", Mode.COMMAND)

        assert outcome.exit_code == 127
        assert "command not found" in capsys.readouterr().out

    def test_cd_updates_session(self, router, session, workdir, capsys):
        (workdir / "sub").mkdir()

        outcome = router.route("cd sub", Mode.COMMAND)

        assert outcome.exit_code == 0
        assert session.cwd == workdir / "sub"
        assert "Changed directory to:" in capsys.readouterr().out

    def test_bad_cd_leaves_session(self, router, session, workdir):
        outcome = router.route("$ cd nowhere", Mode.AGENT)

        assert outcome.exit_code == 1
        assert session.cwd == workdir

    def test_nonzero_exit_is_reported(self, router, capsys):
        outcome = router.route("false", Mode.COMMAND)

        assert outcome.exit_code == 1
        assert "Command exited with code: 1" in capsys.readouterr().out
