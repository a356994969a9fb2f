"""Shared fixtures for the aish test suite."""

from pathlib import Path
from typing import Any, List, Optional

import pytest
from langchain_core.messages import AIMessage

from aish.core.config import AppConfig
from aish.core.mode import MODE_ENV_VAR, ModeController
from aish.core.state import Session, WorkingDirectoryState

_ISOLATED_VARS = (
    MODE_ENV_VAR,
    "AISH_CONFIG",
    "OPENAI_API_KEY",
    "OPENAI_BASE_URL",
)


@pytest.fixture(autouse=True)
def isolated_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Run each test in its own cwd and HOME with no aish variables set."""
    home = tmp_path / "home"
    home.mkdir()
    workdir = tmp_path / "work"
    workdir.mkdir()
    monkeypatch.setenv("HOME", str(home))
    for var in _ISOLATED_VARS:
        # setenv first so the original value is restored even if code sets it later
        monkeypatch.setenv(var, "")
        monkeypatch.delenv(var)
    monkeypatch.chdir(workdir)
    return workdir


@pytest.fixture
def workdir(isolated_env: Path) -> Path:
    return isolated_env.resolve()


@pytest.fixture
def directory(workdir: Path) -> WorkingDirectoryState:
    return WorkingDirectoryState(cwd=workdir)


@pytest.fixture
def config() -> AppConfig:
    return AppConfig()


@pytest.fixture
def session(directory: WorkingDirectoryState, config: AppConfig) -> Session:
    return Session(directory=directory, modes=ModeController(), config=config)


class FakeChatModel:
    """Chat model double returning scripted responses and recording requests."""

    def __init__(self, responses: List[Any]):
        self.responses = list(responses)
        self.requests: List[List[Any]] = []
        self.bound_tools: Optional[List[dict]] = None
        self.bind_kwargs: dict = {}

    def bind_tools(self, tools: List[dict], **kwargs: Any) -> "FakeChatModel":
        self.bound_tools = tools
        self.bind_kwargs = kwargs
        return self

    def invoke(self, messages: List[Any]) -> Any:
        self.requests.append(list(messages))
        if not self.responses:
            raise AssertionError("unexpected model request")
        response = self.responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response


def tool_call_message(*calls: tuple, content: str = "") -> AIMessage:
    """Build an assistant message requesting ``(id, name, args)`` tool calls."""
    return AIMessage(
        content=content,
        tool_calls=[{"id": cid, "name": name, "args": args} for cid, name, args in calls],
    )


@pytest.fixture
def tracer_calls() -> List[tuple]:
    return []


@pytest.fixture
def tracer(tracer_calls: List[tuple]):
    def _trace(name: str, arguments: Any, cwd: Path) -> None:
        tracer_calls.append((name, arguments, cwd))

    return _trace
