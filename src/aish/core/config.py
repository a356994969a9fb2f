"""
Configuration module for the AI shell.

This module defines the configuration dataclasses used across the system:
- AI configuration (model, sampling parameters, credentials, turn limit)
- Shell configuration (prompts, history, mode toggle key, Unix prefix)
- Declarative tool specs registered with the agent at session start
- AppConfig, which aggregates them, loads them from a YAML file and renders
  the agent system prompt.

A missing config file is not an error. A malformed one is logged and the
defaults are used instead.
"""

import logging
import os
from dataclasses import MISSING, dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv

from aish.core.errors import ConfigError

load_dotenv()

logger = logging.getLogger(__name__)


def _config_search_paths() -> List[Path]:
    """Candidate config files, in priority order."""
    paths = []
    env_path = os.getenv("AISH_CONFIG")
    if env_path:
        paths.append(Path(env_path).expanduser())
    home = Path.home()
    paths.extend([home / ".aish.yaml", home / "aish.yaml", Path("aish.yaml")])
    return paths


@dataclass
class AIConfig:
    """Configuration for the language model and the agent loop.

    Attributes:
        model: Chat model name.
        temperature: Sampling temperature for generations.
        max_tokens: Cap for response tokens.
        api_key: API key; falls back to ``OPENAI_API_KEY``.
        base_url: API base URL; falls back to ``OPENAI_BASE_URL``.
        max_turns: Maximum model requests per agent conversation.
    """

    model: str = "gpt-3.5-turbo"
    temperature: float = 0.7
    max_tokens: int = 1000
    api_key: Optional[str] = field(default_factory=lambda: os.getenv("OPENAI_API_KEY"))
    base_url: Optional[str] = field(
        default_factory=lambda: os.getenv("OPENAI_BASE_URL")
    )
    max_turns: int = 10


@dataclass
class ShellConfig:
    """Interactive shell settings.

    Attributes:
        prompt: Prompt template (``$VAR`` and ``\\w``-style escapes).
        history_size: Number of history entries kept by the line editor.
        multiline_continuation: Prompt shown while a command is continued.
        mode_toggle_key: Key sequence that toggles Agent/Command mode.
        unix_prefix: Prefix that sends a line to Unix from Agent mode.
        tool_timeout: Seconds a command run by the agent may take.
    """

    prompt: str = "aish> "
    history_size: int = 1000
    multiline_continuation: str = "... "
    mode_toggle_key: str = "esc-x"
    unix_prefix: str = "$ "
    tool_timeout: float = 30.0


@dataclass
class ToolSpec:
    """Declarative description of an extra agent tool.

    Attributes:
        name: Tool name exposed to the model.
        description: What the tool does, shown to the model.
        command: Shell command template with ``{param}`` placeholders.
        parameters: JSON schema (``type: object``) of the tool arguments.
    """

    name: str
    description: str
    command: str
    parameters: Dict[str, Any] = field(
        default_factory=lambda: {"type": "object", "properties": {}, "required": []}
    )


def _coerce(section: str, cls: Any, raw: Any) -> Any:
    """Build dataclass ``cls`` from a mapping, converting scalar types."""
    if raw is None:
        return cls()
    if not isinstance(raw, dict):
        raise ConfigError(f"'{section}' must be a mapping", {"section": section})

    known = {f.name: f for f in fields(cls)}
    kwargs: Dict[str, Any] = {}
    for key, value in raw.items():
        f = known.get(key)
        if f is None:
            logger.warning("Ignoring unknown config key %s.%s", section, key)
            continue
        if value is None:
            continue
        default = None if f.default is MISSING else f.default
        try:
            if isinstance(default, bool):
                kwargs[key] = bool(value)
            elif isinstance(default, int):
                kwargs[key] = int(value)
            elif isinstance(default, float):
                kwargs[key] = float(value)
            else:
                kwargs[key] = str(value)
        except (TypeError, ValueError) as e:
            raise ConfigError(
                f"Invalid value for {section}.{key}: {value!r}",
                {"section": section, "key": key, "error": str(e)},
            ) from e
    return cls(**kwargs)


def _parse_tools(raw: Any) -> List[ToolSpec]:
    """Validate the ``tools`` list of the config file."""
    if raw is None:
        return []
    if not isinstance(raw, list):
        raise ConfigError("'tools' must be a list", {"section": "tools"})

    specs: List[ToolSpec] = []
    for i, item in enumerate(raw):
        if not isinstance(item, dict):
            raise ConfigError(f"tools[{i}] must be a mapping", {"index": i})
        missing = [k for k in ("name", "description", "command") if not item.get(k)]
        if missing:
            raise ConfigError(
                f"tools[{i}] is missing {', '.join(missing)}", {"index": i}
            )
        params = item.get("parameters") or {"type": "object", "properties": {}}
        if not isinstance(params, dict) or not isinstance(
            params.get("properties", {}), dict
        ):
            raise ConfigError(
                f"tools[{i}].parameters must be a JSON schema object", {"index": i}
            )
        specs.append(
            ToolSpec(
                name=str(item["name"]),
                description=str(item["description"]),
                command=str(item["command"]),
                parameters=params,
            )
        )
    return specs


@dataclass
class AppConfig:
    """Aggregate of model, shell and tool configuration.

    Attributes:
        ai: Language model and agent-loop configuration.
        shell: Interactive shell settings.
        tools: Declarative tools registered at session start.
        source: Path the configuration was loaded from, if any.
    """

    ai: AIConfig = field(default_factory=AIConfig)
    shell: ShellConfig = field(default_factory=ShellConfig)
    tools: List[ToolSpec] = field(default_factory=list)
    source: Optional[Path] = None

    @classmethod
    def from_dict(cls, data: Any, source: Optional[Path] = None) -> "AppConfig":
        """Construct an AppConfig from a parsed config mapping.

        Raises:
            ConfigError: If the mapping or one of its values is malformed.
        """
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ConfigError("Configuration root must be a mapping")
        return cls(
            ai=_coerce("ai", AIConfig, data.get("ai")),
            shell=_coerce("shell", ShellConfig, data.get("shell")),
            tools=_parse_tools(data.get("tools")),
            source=source,
        )

    @classmethod
    def load(cls, path: Optional[Path] = None) -> "AppConfig":
        """Discover and load the configuration file.

        Args:
            path: Explicit config file. When omitted, ``$AISH_CONFIG``,
                ``~/.aish.yaml``, ``~/aish.yaml`` and ``./aish.yaml`` are tried.

        Returns:
            AppConfig: Loaded configuration, or defaults when no file exists
            or the file is malformed.
        """
        candidates = [Path(path).expanduser()] if path else _config_search_paths()
        for candidate in candidates:
            if not candidate.is_file():
                continue
            try:
                with candidate.open("r", encoding="utf-8") as fh:
                    data = yaml.safe_load(fh)
                config = cls.from_dict(data, source=candidate)
            except (OSError, yaml.YAMLError) as e:
                logger.warning("Could not read config %s: %s. Using defaults.", candidate, e)
                return cls()
            except ConfigError as e:
                logger.warning("Invalid config %s: %s. Using defaults.", candidate, e)
                return cls()
            logger.info("Loaded configuration from %s", candidate)
            return config

        logger.debug("No configuration file found, using defaults.")
        return cls()

    def system_prompt(self, tool_names: List[str]) -> str:
        """Render the system prompt guiding the shell assistant.

        Args:
            tool_names: Names of the tools the model may call.
        """
        tools = ", ".join(f"`{name}`" for name in tool_names) or "none"
        return f"""
You are an AI assistant integrated into a Unix shell called 'aish'. Your role is to help users accomplish tasks by analyzing their requests and executing appropriate commands when needed.

### Tools
You can call these tools: {tools}.
- `run_command` executes a shell command in the user's current working directory and returns its output.
- A command starting with `cd` changes the shell's working directory for later commands.
- Use tools only when the request needs them. Call them one at a time in the order they must run.

### Rules
1. Do not run interactive or long-lived processes; commands time out after {self.shell.tool_timeout:g} seconds and receive no input.
2. Never escalate privileges (`sudo`, `su`) unless the user explicitly asks.
3. Always quote paths containing spaces.
4. If a command fails, read its output and exit code, then adapt or explain.

After running commands, give a short, helpful answer. If the command output already answers the question, simply acknowledge the result.
""".strip()
