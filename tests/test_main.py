"""Tests for the interactive loop, key bindings and the command-line entry point."""

from typing import Any, List
from unittest.mock import MagicMock

import pytest
from prompt_toolkit.keys import Keys

from aish import main
from aish.core.mode import Mode
from aish.router import MODE_TOGGLE, CommandRouter, Outcome, Route


class FakePromptSession:
    """Line editor double that replays scripted lines and exceptions."""

    def __init__(self, inputs: List[Any]):
        self.inputs = list(inputs)
        self.prompts: List[str] = []

    def prompt(self, message: Any) -> Any:
        self.prompts.append(str(getattr(message, "value", message)))
        item = self.inputs.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item


@pytest.fixture
def router() -> MagicMock:
    router = MagicMock(spec=CommandRouter)
    router.route.return_value = Outcome(Route.NOOP)
    return router


def routed(router: MagicMock) -> List[Any]:
    return [c.args[0] for c in router.route.call_args_list]


class TestToggleKey:
    @pytest.mark.parametrize(
        "spec, expected",
        [
            ("esc-x", ["escape", "x"]),
            ("alt-m", ["escape", "m"]),
            ("c-t", ["c-t"]),
            ("  ESC-X ", ["escape", "x"]),
            ("", ["escape", "x"]),
        ],
    )
    def test_parse(self, spec, expected):
        assert main.parse_toggle_key(spec) == expected

    def test_binding(self):
        kb = main.build_key_bindings("esc-x")
        assert [b.keys for b in kb.bindings] == [(Keys.Escape, "x")]

    def test_invalid_key_falls_back_to_default(self):
        kb = main.build_key_bindings("bogus-key")
        assert [b.keys for b in kb.bindings] == [(Keys.Escape, "x")]


class TestInteractiveShell:
    def shell(self, session, router, inputs) -> main.InteractiveShell:
        return main.InteractiveShell(session, router, FakePromptSession(inputs))

    def test_exit_builtin_ends_loop(self, session, router):
        router.route.side_effect = [
            Outcome(Route.UNIX),
            Outcome(Route.BUILTIN, should_exit=True),
        ]
        shell = self.shell(session, router, ["$ ls", "exit", "never read"])
        assert shell.run() == 0
        assert routed(router) == ["$ ls", "exit"]

    def test_continuation_lines_are_joined(self, session, router):
        shell = self.shell(session, router, ["echo a \\", "b", EOFError()])
        assert shell.run() == 0
        assert routed(router) == ["echo a b"]
        assert shell.prompt_session.prompts == ["aish> ", "... ", "aish> "]

    def test_ctrl_c_discards_pending_input(self, session, router):
        shell = self.shell(
            session, router, ["echo a \\", KeyboardInterrupt(), "pwd", EOFError()]
        )
        assert shell.run() == 0
        assert routed(router) == ["pwd"]

    def test_ctrl_d_submits_pending_input(self, session, router, capsys):
        shell = self.shell(session, router, ["echo a \\", EOFError()])
        assert shell.run() == 0
        assert routed(router) == ["echo a"]
        assert "^D" in capsys.readouterr().out

    def test_toggle_abandons_pending_input(self, session, router):
        shell = self.shell(session, router, ["echo a \\", MODE_TOGGLE, "ls", EOFError()])
        shell.run()
        assert routed(router) == [MODE_TOGGLE, "ls"]

    def test_banner_shows_mode(self, session, router, capsys):
        self.shell(session, router, [EOFError()]).run()
        assert "AGENT" in capsys.readouterr().out


def test_run_single_returns_last_exit_code(router):
    router.route.side_effect = [Outcome(Route.UNIX, exit_code=2), Outcome(Route.UNIX)]
    assert main.run_single(router, "false\ntrue") == 0
    assert routed(router) == ["false", "true"]


def test_run_single_stops_at_exit(router):
    router.route.side_effect = [Outcome(Route.BUILTIN, should_exit=True)]
    assert main.run_single(router, "exit\nls") == 0
    assert routed(router) == ["exit"]


class TestEntryPoint:
    @pytest.fixture(autouse=True)
    def quiet_logging(self, monkeypatch):
        monkeypatch.setattr(main, "setup_logging", lambda level: None)

    def test_parse_args(self):
        args = main.parse_args(["-vv", "--config", "x.yaml", "-c", "ls"])
        assert args.verbose == 2
        assert str(args.config) == "x.yaml"
        assert args.command == "ls"

    def test_single_unix_command_in_agent_mode(self):
        assert main.run(["-c", "$ true"]) == 0

    def test_exit_code_is_propagated(self):
        assert main.run(["-c", "$ sh -c 'exit 3'"]) == 3

    def test_command_mode_from_environment(self, monkeypatch):
        monkeypatch.setenv("AISH_MODE", "command")
        assert main.run(["-c", "sh -c 'exit 4'"]) == 4

    def test_missing_command(self, monkeypatch, capsys):
        monkeypatch.setenv("AISH_MODE", "command")
        assert main.run(["-c", "definitely-not-a-command-xyz"]) == 127
        assert "command not found" in capsys.readouterr().out

    def test_agent_without_api_key_fails(self, capsys):
        assert main.run(["-c", "list the files"]) == 1
        assert "AI Error" in capsys.readouterr().out

    def test_session_mode_follows_environment(self, monkeypatch):
        monkeypatch.setenv("AISH_MODE", "command")
        captured = {}

        def fake_run_single(router, command):
            captured["mode"] = router.session.mode
            return 0

        monkeypatch.setattr(main, "run_single", fake_run_single)
        main.run(["-c", "ls"])
        assert captured["mode"] is Mode.COMMAND
