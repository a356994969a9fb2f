"""
Agent tool registry.

Maps tool names to invocable handlers and the JSON schemas sent to the model.
The built-in `run_command` tool is always present; extra tools are declared in
the config file as shell command templates and registered at session start.

Tool failures never raise out of :meth:`ToolRegistry.invoke`: unknown tools,
malformed arguments and failed commands all come back as a
:class:`ToolResult` whose text the model can react to.
"""

import json
import logging
import re
import shlex
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PydanticUserError,
    ValidationError,
    create_model,
    model_validator,
)

from aish.core.config import ToolSpec
from aish.core.errors import DirectoryError, SpawnError, ToolError
from aish.core.state import WorkingDirectoryState
from aish.tools.shell.unix import ExecutionResult, UnixExecutor

log = logging.getLogger(__name__)

RUN_COMMAND = "run_command"
MAX_OUTPUT_CHARS = 16000


class ToolDefinition(BaseModel):
    """Name, description and parameter schema of a callable tool."""

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: Dict[str, Any]

    def to_openai(self) -> Dict[str, Any]:
        """Render as an OpenAI-style function tool declaration."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


class ToolResult(BaseModel):
    """Outcome of one tool invocation, fed back to the model.

    Attributes:
        call_id: Id of the tool call this result answers.
        output: Text returned to the model.
        exit_code: Exit status of the command run, if one ran.
        is_error: True when the tool could not be run as requested.
    """

    call_id: str = ""
    output: str
    exit_code: Optional[int] = None
    is_error: bool = False


def format_execution(result: ExecutionResult) -> str:
    """Render captured command output so failures are legible to the model."""
    parts: List[str] = []
    if result.changed_directory:
        parts.append(f"Changed directory to: {result.cwd}")
    if result.stdout.strip():
        parts.append(result.stdout.rstrip())
    if result.stderr.strip():
        parts.append("STDERR: " + result.stderr.rstrip())
    if result.exit_code != 0:
        parts.append(f"[exit code: {result.exit_code}]")
    text = "\n".join(parts) or "(no output)"
    if len(text) > MAX_OUTPUT_CHARS:
        text = text[:MAX_OUTPUT_CHARS] + "\n... [output truncated]"
    return text


class Tool(ABC):
    """Anything the agent can call.

    Implementations expose a :class:`ToolDefinition` and run with validated
    arguments in the session working directory.
    """

    @property
    @abstractmethod
    def definition(self) -> ToolDefinition:
        """Static description sent to the model."""

    @abstractmethod
    def invoke(
        self, arguments: Dict[str, Any], directory: WorkingDirectoryState
    ) -> ToolResult:
        """Run the tool.

        Raises:
            ToolError: If the arguments do not match the tool's schema.
        """

    @property
    def name(self) -> str:
        return self.definition.name


def _validate(
    schema: Type[BaseModel], tool: str, arguments: Dict[str, Any]
) -> BaseModel:
    try:
        return schema.model_validate(arguments)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'arguments'}: {err['msg']}"
            for err in e.errors()
        )
        raise ToolError(f"Invalid arguments for {tool}: {problems}", tool) from e


def _run_captured(
    executor: UnixExecutor, command: str, directory: WorkingDirectoryState
) -> ToolResult:
    try:
        result = executor.capture(command, directory)
    except DirectoryError as e:
        return ToolResult(output=f"{e}\n[exit code: 1]", exit_code=1)
    except SpawnError as e:
        return ToolResult(output=f"{e}\n[exit code: 127]", exit_code=127)
    return ToolResult(output=format_execution(result), exit_code=result.exit_code)


class RunCommandInput(BaseModel):
    """Input schema for the `run_command` tool.

    Attributes:
        command: Shell command to execute in the current working directory.
    """

    model_config = ConfigDict(extra="forbid")

    command: str = Field(
        ...,
        description="The shell command to execute",
        examples=["ls -la"],
    )

    @model_validator(mode="after")
    def _validate_non_empty(self) -> "RunCommandInput":
        """Ensure that the command is not blank.

        Raises:
            ValueError: If `command` is empty or all whitespace.
        """
        if not self.command.strip():
            raise ValueError("command must be a non-empty string")
        return self


class RunCommandTool(Tool):
    """Built-in tool that runs a shell command and returns its output."""

    _DEFINITION = ToolDefinition(
        name=RUN_COMMAND,
        description="Execute a shell command and return the output",
        parameters={
            "type": "object",
            "properties": {
                "command": {
                    "type": "string",
                    "description": "The shell command to execute",
                }
            },
            "required": ["command"],
        },
    )

    def __init__(self, executor: UnixExecutor):
        self._executor = executor

    @property
    def definition(self) -> ToolDefinition:
        return self._DEFINITION

    def invoke(
        self, arguments: Dict[str, Any], directory: WorkingDirectoryState
    ) -> ToolResult:
        params = _validate(RunCommandInput, self.name, arguments)
        return _run_captured(self._executor, params.command, directory)  # type: ignore[attr-defined]


_JSON_TYPES: Dict[str, Any] = {
    "string": str,
    "number": float,
    "integer": int,
    "boolean": bool,
    "array": list,
    "object": dict,
    "null": type(None),
}
_PLACEHOLDER = re.compile(r"\{(\w+)\}")


def _json_type(declared: Any) -> Any:
    """Map a JSON schema `type` (a name or a list of names) to a Python type."""
    if isinstance(declared, str):
        return _JSON_TYPES.get(declared, Any)
    if isinstance(declared, list) and declared:
        members = tuple(_json_type(member) for member in declared)
        if Any in members:
            return Any
        return Union[members] if len(members) > 1 else members[0]
    return Any


def schema_to_model(name: str, schema: Dict[str, Any]) -> Type[BaseModel]:
    """Build a pydantic model validating arguments against a JSON schema.

    Only the flat subset used for tool parameters is supported: top-level
    ``properties`` with a ``type``, ``required`` and ``default``.
    """
    required = set(schema.get("required") or [])
    fields: Dict[str, Tuple[Any, Any]] = {}
    for prop, prop_schema in (schema.get("properties") or {}).items():
        if not isinstance(prop_schema, dict):
            prop_schema = {}
        py_type = _json_type(prop_schema.get("type"))
        description = prop_schema.get("description")
        if prop in required:
            fields[prop] = (py_type, Field(..., description=description))
        else:
            fields[prop] = (
                Optional[py_type],
                Field(prop_schema.get("default"), description=description),
            )
    return create_model(  # type: ignore[call-overload]
        f"{name}_arguments",
        __config__=ConfigDict(extra="forbid"),
        **fields,
    )


def _shell_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, dict)):
        return shlex.quote(json.dumps(value))
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return shlex.quote(str(value))


class CommandTemplateTool(Tool):
    """Tool declared in the config file as a shell command template.

    ``{param}`` placeholders in the template are replaced with the
    shell-quoted argument values; other braces are left untouched.
    """

    def __init__(self, spec: ToolSpec, executor: UnixExecutor):
        self._spec = spec
        self._executor = executor
        self._definition = ToolDefinition(
            name=spec.name, description=spec.description, parameters=spec.parameters
        )
        self._schema = schema_to_model(spec.name, spec.parameters)

    @property
    def definition(self) -> ToolDefinition:
        return self._definition

    def render(self, arguments: Dict[str, Any]) -> str:
        """Validate ``arguments`` and substitute them into the template."""
        params = _validate(self._schema, self.name, arguments).model_dump()
        return _PLACEHOLDER.sub(
            lambda m: _shell_value(params[m.group(1)])
            if m.group(1) in params
            else m.group(0),
            self._spec.command,
        )

    def invoke(
        self, arguments: Dict[str, Any], directory: WorkingDirectoryState
    ) -> ToolResult:
        return _run_captured(self._executor, self.render(arguments), directory)


class ToolRegistry:
    """Ordered collection of tools available to the agent.

    Tools are registered at session start; :meth:`seal` makes the set
    immutable afterwards.
    """

    def __init__(self) -> None:
        self._tools: Dict[str, Tool] = {}
        self._sealed = False

    @classmethod
    def with_builtins(
        cls, executor: UnixExecutor, specs: Optional[List[ToolSpec]] = None
    ) -> "ToolRegistry":
        """Create a registry holding `run_command` plus declared tools."""
        registry = cls()
        registry.register(RunCommandTool(executor))
        for spec in specs or []:
            try:
                registry.register(CommandTemplateTool(spec, executor))
            except (ValueError, TypeError, PydanticUserError) as e:
                log.warning("Skipping tool %s: %s", spec.name, e)
        registry.seal()
        return registry

    def register(self, tool: Tool) -> None:
        """Add a tool.

        Raises:
            RuntimeError: If the registry has been sealed.
            ValueError: If a tool with the same name is already registered.
        """
        if self._sealed:
            raise RuntimeError("Tool registry is sealed; register tools at startup.")
        if tool.name in self._tools:
            raise ValueError(f"tool name already registered: {tool.name}")
        self._tools[tool.name] = tool
        log.info("Registered tool: %s", tool.name)

    def seal(self) -> None:
        self._sealed = True

    def names(self) -> List[str]:
        return list(self._tools)

    def definitions(self) -> List[ToolDefinition]:
        return [tool.definition for tool in self._tools.values()]

    def openai_tools(self) -> List[Dict[str, Any]]:
        return [definition.to_openai() for definition in self.definitions()]

    def invoke(
        self,
        name: str,
        arguments: Any,
        directory: WorkingDirectoryState,
        call_id: str = "",
    ) -> ToolResult:
        """Invoke a tool by name, turning every failure into a result.

        Args:
            name: Tool name requested by the model.
            arguments: Parsed argument mapping, or the raw JSON string.
            directory: Session working directory.
            call_id: Id of the tool call being answered.

        Returns:
            ToolResult: Tool output, or the text of the ToolError.
        """
        try:
            tool = self._tools.get(name)
            if tool is None:
                raise ToolError(f"Unknown tool: {name}", name)
            result = tool.invoke(_parse_arguments(name, arguments), directory)
        except ToolError as e:
            log.info("Tool %s failed: %s", name, e)
            return ToolResult(call_id=call_id, output=f"Tool error: {e}", is_error=True)
        return result.model_copy(update={"call_id": call_id})


def _parse_arguments(name: str, arguments: Any) -> Dict[str, Any]:
    if arguments is None or arguments == "":
        return {}
    if isinstance(arguments, str):
        try:
            arguments = json.loads(arguments)
        except json.JSONDecodeError as e:
            raise ToolError(f"Arguments for {name} are not valid JSON: {e}", name) from e
    if not isinstance(arguments, dict):
        raise ToolError(f"Arguments for {name} must be a JSON object", name)
    return arguments
