"""
Error taxonomy for the AI shell.

Every error raised by the shell core derives from :class:`AishError` and
carries a ``detail`` dict describing the failing operation. None of these are
fatal: the command router catches them, reports them, and keeps prompting.
"""

from typing import Any, Dict, Optional


class AishError(Exception):
    """Base class for all shell errors.

    The `detail` attribute contains context about the failure.
    """

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.detail: Dict[str, Any] = detail or {}


class ConfigError(AishError):
    """Malformed configuration source. Defaults are used instead."""


class DirectoryError(AishError):
    """A `cd` target could not be resolved to an existing directory."""

    def __init__(self, message: str, target: str):
        super().__init__(message, {"target": target})
        self.target = target


class SpawnError(AishError):
    """An external command could not be started."""

    def __init__(self, message: str, command: str):
        super().__init__(message, {"command": command})
        self.command = command


class ToolError(AishError):
    """A tool call failed. Its text is fed back to the model as tool output."""

    def __init__(self, message: str, tool: str):
        super().__init__(message, {"tool": tool})
        self.tool = tool


class AgentError(AishError):
    """Base class for failures that abort the current agent conversation."""


class AgentApiError(AgentError):
    """The language-model API request failed (network, auth, rate limit, bad response)."""


class MaxTurnsExceeded(AgentError):
    """The model kept requesting tools past the configured turn limit."""

    def __init__(self, max_turns: int):
        super().__init__(
            f"Agent exceeded the maximum of {max_turns} turns without a final answer.",
            {"max_turns": max_turns},
        )
        self.max_turns = max_turns
