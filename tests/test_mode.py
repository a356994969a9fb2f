"""Tests for Agent/Command mode tracking."""

import os

import pytest

from aish.core.mode import MODE_ENV_VAR, Mode, ModeController


def test_default_mode_is_agent():
    assert ModeController().current() is Mode.AGENT


def test_toggle_switches_and_reports():
    modes = ModeController()

    assert modes.toggle() == "Mode switched to: COMMAND"
    assert modes.current() is Mode.COMMAND
    assert modes.toggle() == "Mode switched to: AGENT"
    assert modes.current() is Mode.AGENT


def test_mode_is_exported_to_environment():
    modes = ModeController()
    assert os.environ[MODE_ENV_VAR] == "agent"

    modes.toggle()

    assert os.environ[MODE_ENV_VAR] == "command"


@pytest.mark.parametrize("count", range(0, 7))
def test_toggle_parity(count):
    modes = ModeController()
    for _ in range(count):
        modes.toggle()
    assert (modes.current() is Mode.AGENT) == (count % 2 == 0)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("command", Mode.COMMAND),
        ("COMMAND", Mode.COMMAND),
        ("agent", Mode.AGENT),
        ("something-else", Mode.AGENT),
        (None, Mode.AGENT),
    ],
)
def test_parse(value, expected):
    assert Mode.parse(value) is expected


def test_from_env(monkeypatch):
    monkeypatch.setenv(MODE_ENV_VAR, "command")
    assert ModeController.from_env().current() is Mode.COMMAND
