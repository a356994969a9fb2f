"""
Agent orchestrator.

Drives one natural-language request as a bounded multi-turn conversation with
the chat model. Each turn sends the full conversation plus the tool
declarations; when the model answers with tool calls they are executed
sequentially, in the order listed, and their results are appended as tool
messages before the next request. A reply without tool calls is the final
answer.

Model failures abort the conversation with :class:`AgentApiError`; tool
failures never do, their text is handed back to the model instead.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from langchain_core.messages import (
    AIMessage,
    BaseMessage,
    HumanMessage,
    SystemMessage,
    ToolMessage,
)

from aish.core.config import AppConfig
from aish.core.errors import AgentApiError, MaxTurnsExceeded, ToolError
from aish.core.state import Session, WorkingDirectoryState
from aish.llm import get_llm
from aish.tools.registry import ToolRegistry, ToolResult
from aish.utils.console_utils import show_tool_trace

logger = logging.getLogger(__name__)

Tracer = Callable[[str, Any, Path], None]


class ConversationState(str, Enum):
    """Lifecycle of a single agent conversation."""

    IDLE = "idle"
    AWAITING_MODEL = "awaiting_model"
    EXECUTING_TOOLS = "executing_tools"
    DONE = "done"
    FAILED = "failed"


@dataclass
class Conversation:
    """Messages exchanged for one top-level prompt.

    Attributes:
        messages: Ordered system, user, assistant and tool messages.
        state: Current lifecycle state.
        turns: Number of model requests sent so far.
        tool_invocations: Number of tool calls executed so far.
    """

    messages: List[BaseMessage] = field(default_factory=list)
    state: ConversationState = ConversationState.IDLE
    turns: int = 0
    tool_invocations: int = 0


@dataclass
class _PendingCall:
    id: str
    name: str
    args: Any
    error: Optional[str] = None


def _content_text(message: AIMessage) -> str:
    """Flatten message content, which may be a string or a list of parts."""
    content = message.content
    if isinstance(content, str):
        return content
    parts = []
    for part in content or []:
        if isinstance(part, str):
            parts.append(part)
        elif isinstance(part, dict) and part.get("type") == "text":
            parts.append(str(part.get("text", "")))
    return "".join(parts)


def _ordered_calls(message: AIMessage) -> List[_PendingCall]:
    """Collect valid and unparseable tool calls in the order the model issued them."""
    calls = [
        _PendingCall(id=tc.get("id") or "", name=tc["name"], args=tc.get("args", {}))
        for tc in message.tool_calls
    ]
    calls += [
        _PendingCall(
            id=tc.get("id") or "",
            name=tc.get("name") or "",
            args=tc.get("args"),
            error=tc.get("error") or "arguments could not be parsed",
        )
        for tc in message.invalid_tool_calls
    ]
    raw = message.additional_kwargs.get("tool_calls") or []
    order = {tc.get("id"): i for i, tc in enumerate(raw) if isinstance(tc, dict)}
    calls.sort(key=lambda call: order.get(call.id, len(order)))
    return calls


class AgentOrchestrator:
    """Runs agent conversations against a tool-calling chat model.

    Args:
        config: Application configuration (model parameters, turn limit,
            system prompt).
        registry: Tools the model may call.
        llm: Chat model exposing ``bind_tools`` and ``invoke``. Created from
            ``config.ai`` on first use when omitted.
        tracer: Called before every tool invocation with the tool name, its
            arguments and the working directory.
    """

    def __init__(
        self,
        config: AppConfig,
        registry: ToolRegistry,
        llm: Any = None,
        tracer: Tracer = show_tool_trace,
    ):
        self.config = config
        self.registry = registry
        self._llm = llm
        self._model: Any = None
        self._tracer = tracer
        self.total_input_tokens = 0
        self.total_output_tokens = 0
        self.total_calls = 0

    @property
    def max_turns(self) -> int:
        return max(1, self.config.ai.max_turns)

    def _bound_model(self) -> Any:
        """Return the chat model with the tool declarations bound to it."""
        if self._model is None:
            if self._llm is None:
                try:
                    self._llm = get_llm(self.config.ai)
                except ValueError as e:
                    raise AgentApiError(str(e)) from e
            self._model = self._llm.bind_tools(
                self.registry.openai_tools(), tool_choice="auto"
            )
        return self._model

    def new_conversation(self, prompt: str) -> Conversation:
        """Start a conversation with the system message and the user prompt."""
        system = self.config.system_prompt(self.registry.names())
        return Conversation(
            messages=[SystemMessage(content=system), HumanMessage(content=prompt)]
        )

    def converse(self, prompt: str, session: Session) -> str:
        """Answer a natural-language prompt, running tools as the model requests.

        Args:
            prompt: The user's request.
            session: Shell session; tools run in its working directory.

        Returns:
            str: The model's final answer (possibly empty).

        Raises:
            AgentApiError: If a model request fails.
            MaxTurnsExceeded: If the model still requests tools after the
                configured number of turns.
        """
        return self.run(self.new_conversation(prompt), session.directory)

    def run(self, conversation: Conversation, directory: WorkingDirectoryState) -> str:
        """Drive ``conversation`` until the model gives a final answer.

        The conversation is updated in place, so callers can inspect it after
        the call returns or raises.
        """
        model = self._bound_model()

        for turn in range(1, self.max_turns + 1):
            conversation.state = ConversationState.AWAITING_MODEL
            conversation.turns = turn
            logger.debug(
                "Turn %d/%d: sending %d messages",
                turn,
                self.max_turns,
                len(conversation.messages),
            )
            try:
                response = model.invoke(conversation.messages)
            except Exception as e:
                conversation.state = ConversationState.FAILED
                raise AgentApiError(
                    f"Language model request failed: {e}", {"turn": turn}
                ) from e
            if not isinstance(response, AIMessage):
                conversation.state = ConversationState.FAILED
                raise AgentApiError(
                    f"Unexpected response from language model: {type(response).__name__}",
                    {"turn": turn},
                )

            conversation.messages.append(response)
            self._log_token_usage(response)

            calls = _ordered_calls(response)
            if not calls:
                conversation.state = ConversationState.DONE
                return _content_text(response)
            if turn == self.max_turns:
                # Tool output from the last turn could never reach the model.
                break

            conversation.state = ConversationState.EXECUTING_TOOLS
            for call in calls:
                result = self._execute(call, directory)
                conversation.tool_invocations += 1
                conversation.messages.append(
                    ToolMessage(
                        content=result.output,
                        tool_call_id=call.id,
                        name=call.name,
                        status="error" if result.is_error else "success",
                    )
                )

        conversation.state = ConversationState.FAILED
        logger.warning("Conversation aborted after %d turns", self.max_turns)
        raise MaxTurnsExceeded(self.max_turns)

    def _execute(self, call: _PendingCall, directory: WorkingDirectoryState) -> ToolResult:
        self._tracer(call.name, call.args, directory.current())
        if call.error is not None:
            error = ToolError(
                f"Invalid arguments for {call.name}: {call.error}", call.name
            )
            logger.info("Rejected tool call %s: %s", call.id, error)
            return ToolResult(call_id=call.id, output=f"Tool error: {error}", is_error=True)

        logger.info("Dispatching tool %s (call %s)", call.name, call.id)
        return self.registry.invoke(call.name, call.args, directory, call_id=call.id)

    def _log_token_usage(self, message: AIMessage) -> None:
        """Extract and log token usage from an AIMessage."""
        usage: Optional[Dict[str, int]] = getattr(message, "usage_metadata", None)  # type: ignore[assignment]
        if not usage:
            return

        input_tokens = usage.get("input_tokens", 0)
        output_tokens = usage.get("output_tokens", 0)
        total_tokens = usage.get("total_tokens", input_tokens + output_tokens)

        self.total_input_tokens += input_tokens
        self.total_output_tokens += output_tokens
        self.total_calls += 1

        logger.debug(
            "Token usage: input=%d output=%d total=%d", input_tokens, output_tokens, total_tokens
        )
        logger.debug(
            "Session totals: input=%d output=%d calls=%d",
            self.total_input_tokens,
            self.total_output_tokens,
            self.total_calls,
        )

    def get_usage_stats(self) -> Dict[str, int]:
        """Get token usage statistics accumulated over the session."""
        return {
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_tokens": self.total_input_tokens + self.total_output_tokens,
            "total_calls": self.total_calls,
        }
