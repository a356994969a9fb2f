"""
Command routing.

Every logical command, and the mode-toggle key event, enters the shell through
:meth:`CommandRouter.route`. Dispatch order:

1. empty input does nothing;
2. the mode-toggle event flips Agent/Command mode;
3. the builtins ``help``, ``exit`` and ``quit`` run directly;
4. in Command mode the whole line is a Unix command;
5. in Agent mode a line starting with the Unix prefix (default ``"$ "``) is a
   Unix command with the prefix removed, anything else is a prompt for the
   agent.

Non-fatal errors are reported here and never escape to the REPL loop.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Union

from aish.core.errors import AgentError, DirectoryError, SpawnError
from aish.core.mode import Mode
from aish.core.state import Session
from aish.orchestrator import AgentOrchestrator
from aish.tools.shell.unix import UnixExecutor
from aish.utils.console_utils import console, print_error, print_info, show_help

logger = logging.getLogger(__name__)


class InputEvent(Enum):
    """Input signals that are not ordinary text."""

    MODE_TOGGLE = "mode_toggle"


MODE_TOGGLE = InputEvent.MODE_TOGGLE


class Route(str, Enum):
    """Path a command took through the router."""

    NOOP = "noop"
    TOGGLE = "toggle"
    BUILTIN = "builtin"
    UNIX = "unix"
    AGENT = "agent"


@dataclass
class Outcome:
    """Result of routing one command.

    Attributes:
        route: Which path handled the command.
        exit_code: Exit status (Unix path) or 0/1 for the agent path.
        should_exit: True when the session loop must terminate.
        output: The agent's answer, when the agent handled the command.
    """

    route: Route
    exit_code: int = 0
    should_exit: bool = False
    output: Optional[str] = None


class CommandRouter:
    """Chooses builtin, Unix or Agent handling for each command."""

    BUILTINS = ("help", "exit", "quit")

    def __init__(
        self,
        session: Session,
        executor: UnixExecutor,
        orchestrator: AgentOrchestrator,
    ):
        self.session = session
        self.executor = executor
        self.orchestrator = orchestrator

    def route(
        self, command: Union[str, InputEvent], mode: Optional[Mode] = None
    ) -> Outcome:
        """Dispatch one logical command or input event.

        Args:
            command: Assembled command line, or :data:`MODE_TOGGLE`.
            mode: Mode to route in; defaults to the session's current mode.
        """
        if command is MODE_TOGGLE:
            print_info(self.session.modes.toggle())
            return Outcome(Route.TOGGLE)

        text = str(command).strip()
        if not text:
            return Outcome(Route.NOOP)

        if text in self.BUILTINS:
            return self._builtin(text)

        mode = mode or self.session.mode
        if mode is Mode.COMMAND:
            return self._unix(text)

        prefix = self.session.config.shell.unix_prefix
        if prefix and (text.startswith(prefix) or text == prefix.strip()):
            return self._unix(text[len(prefix):].strip())
        return self._agent(text)

    def _builtin(self, name: str) -> Outcome:
        if name in ("exit", "quit"):
            console.print("Goodbye!")
            return Outcome(Route.BUILTIN, should_exit=True)
        shell = self.session.config.shell
        show_help(self.session.mode, shell.unix_prefix, shell.mode_toggle_key)
        return Outcome(Route.BUILTIN)

    def _unix(self, command_line: str) -> Outcome:
        if not command_line:
            return Outcome(Route.NOOP)
        try:
            result = self.executor.run(command_line, self.session.directory)
        except DirectoryError as e:
            print_error(str(e))
            return Outcome(Route.UNIX, exit_code=1)
        except SpawnError as e:
            print_error(str(e))
            return Outcome(Route.UNIX, exit_code=127)

        if result.changed_directory:
            console.print(f"Changed directory to: {result.cwd}", markup=False)
        elif result.exit_code != 0:
            print_error(f"Command exited with code: {result.exit_code}")
        return Outcome(Route.UNIX, exit_code=result.exit_code)

    def _agent(self, prompt: str) -> Outcome:
        try:
            with console.status("[bold cyan]Thinking…[/bold cyan]", spinner="dots"):
                answer = self.orchestrator.converse(prompt, self.session)
        except AgentError as e:
            logger.debug("Agent request failed: %s", e.detail)
            print_error(f"AI Error: {e}")
            return Outcome(Route.AGENT, exit_code=1)
        except KeyboardInterrupt:
            console.print("^C")
            return Outcome(Route.AGENT, exit_code=130)

        if answer.strip():
            console.print(answer, markup=False)
        return Outcome(Route.AGENT, output=answer)
