"""Tests for prompt template rendering."""

from pathlib import Path

import pytest

from aish.core.mode import Mode
from aish.utils.prompt import render_prompt


@pytest.fixture(autouse=True)
def identity(monkeypatch):
    monkeypatch.setenv("USER", "alice")
    monkeypatch.setenv("HOSTNAME", "box.example.com")


def test_plain_template_is_unchanged(workdir):
    assert render_prompt("aish> ", workdir, Mode.AGENT) == "aish> "


def test_user_and_host(workdir):
    assert render_prompt(r"\u@\h:", workdir, Mode.AGENT) == "alice@box:"
    assert render_prompt(r"\H", workdir, Mode.AGENT) == "box.example.com"


def test_working_directory_under_home():
    project = Path.home() / "src" / "proj"
    assert render_prompt(r"\w \W", project, Mode.AGENT) == "~/src/proj proj"
    assert render_prompt(r"\w \W", Path.home(), Mode.AGENT) == "~ ~"


def test_working_directory_outside_home():
    assert render_prompt(r"\w|\W", Path("/"), Mode.AGENT) == "/|/"


def test_mode_escapes(workdir):
    assert render_prompt(r"[\m] ", workdir, Mode.COMMAND) == "[command] "
    assert render_prompt(r"[\M] ", workdir, Mode.AGENT) == "[AGENT] "


def test_dollar_escape(workdir, monkeypatch):
    assert render_prompt(r"\$ ", workdir, Mode.AGENT) == "$ "
    monkeypatch.setenv("USER", "root")
    assert render_prompt(r"\$ ", workdir, Mode.AGENT) == "# "


def test_environment_variables(workdir, monkeypatch):
    monkeypatch.setenv("AISH_TAG", "dev")
    assert render_prompt("$AISH_TAG ${AISH_TAG}> ", workdir, Mode.AGENT) == "dev dev> "
    assert render_prompt("$AISH_UNSET_VAR> ", workdir, Mode.AGENT) == "> "


def test_unknown_escape_is_kept(workdir):
    assert render_prompt(r"\q> ", workdir, Mode.AGENT) == r"\q> "
