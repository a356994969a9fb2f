"""
Command-line entry point for the AI shell.

Runs either a single command (``aish -c "..."``) or the interactive loop.
Each input line is assembled into a logical command (trailing ``\\``
continues it) and handed to the command router, which sends it to a
builtin, to Unix, or to the agent.

Example:
    ```bash
    aish                      # interactive shell
    aish -c "$ ls -la"        # run one command and exit with its code
    aish -c "list all files"  # ask the agent once
    ```
"""

import argparse
import logging
import re
import sys
from pathlib import Path
from typing import Any, Iterable, List, Optional, Sequence

from prompt_toolkit import PromptSession
from prompt_toolkit.formatted_text import ANSI
from prompt_toolkit.history import FileHistory
from prompt_toolkit.key_binding import KeyBindings

from aish.core.config import AppConfig
from aish.core.logging import setup_logging
from aish.core.multiline import MultilineAssembler, assemble
from aish.core.state import Session
from aish.orchestrator import AgentOrchestrator
from aish.router import MODE_TOGGLE, CommandRouter, Outcome, Route
from aish.tools.registry import ToolRegistry
from aish.tools.shell.unix import UnixExecutor
from aish.utils.console_utils import console, print_error, show_banner
from aish.utils.prompt import render_prompt

logger = logging.getLogger(__name__)

HISTORY_FILE = Path.home() / ".aish_history"
DEFAULT_TOGGLE_KEYS = ("escape", "x")
_KEY_ALIASES = {"esc": "escape", "alt": "escape", "meta": "escape"}


class BoundedFileHistory(FileHistory):
    """File-backed history that loads at most ``max_entries`` entries."""

    def __init__(self, filename: str, max_entries: int):
        super().__init__(filename)
        self.max_entries = max_entries

    def load_history_strings(self) -> Iterable[str]:
        # Newest entries come first.
        for i, entry in enumerate(super().load_history_strings()):
            if i >= self.max_entries:
                break
            yield entry


def parse_toggle_key(spec: str) -> List[str]:
    """Turn a config key spec such as ``esc-x`` or ``c-t`` into key names.

    Keys are separated by ``-``; ``c-``/``s-`` stay attached to the key they
    modify, and ``esc``/``alt``/``meta`` mean the escape prefix.
    """
    keys = re.findall(r"(?:[cs]-)?[^-\s]+", spec.strip().lower())
    return [_KEY_ALIASES.get(key, key) for key in keys] or list(DEFAULT_TOGGLE_KEYS)


def build_key_bindings(toggle_key: str) -> KeyBindings:
    """Bind the mode-toggle key to end the current read with MODE_TOGGLE."""
    kb = KeyBindings()

    def _toggle(event: Any) -> None:
        event.app.exit(result=MODE_TOGGLE)

    try:
        kb.add(*parse_toggle_key(toggle_key))(_toggle)
    except ValueError:
        logger.warning("Invalid mode toggle key %r, using esc-x", toggle_key)
        kb = KeyBindings()
        kb.add(*DEFAULT_TOGGLE_KEYS)(_toggle)
    return kb


class InteractiveShell:
    """The read-assemble-route loop of the interactive shell.

    Args:
        session: Shell session state.
        router: Router every logical command goes through.
        prompt_session: Line editor; created from the config when omitted.
    """

    def __init__(
        self,
        session: Session,
        router: CommandRouter,
        prompt_session: Optional[PromptSession] = None,
    ):
        self.session = session
        self.router = router
        shell = session.config.shell
        self.prompt_session = prompt_session or PromptSession(
            history=BoundedFileHistory(str(HISTORY_FILE), shell.history_size),
            key_bindings=build_key_bindings(shell.mode_toggle_key),
        )
        self.assembler = MultilineAssembler()

    def _prompt_text(self) -> ANSI:
        shell = self.session.config.shell
        template = (
            shell.multiline_continuation if self.assembler.pending else shell.prompt
        )
        return ANSI(render_prompt(template, self.session.cwd, self.session.mode))

    def run(self) -> int:
        """Prompt until exit/quit or end of input.

        Returns:
            int: Process exit code.
        """
        shell = self.session.config.shell
        show_banner(self.session.mode, shell.unix_prefix, shell.mode_toggle_key)

        while True:
            try:
                line = self.prompt_session.prompt(self._prompt_text())
            except KeyboardInterrupt:
                console.print("^C")
                self.assembler.reset()
                continue
            except EOFError:
                console.print("^D")
                if self.assembler.pending:
                    self.router.route(self.assembler.flush())
                return 0

            if line is MODE_TOGGLE:
                # A toggle abandons any partially entered command.
                self.assembler.reset()
                self.router.route(MODE_TOGGLE)
                continue

            command = self.assembler.feed(line)
            if command is None:
                continue
            if self.router.route(command).should_exit:
                return 0


def run_single(router: CommandRouter, command: str) -> int:
    """Route one logical command string and return its exit code."""
    outcome = Outcome(Route.NOOP)
    for logical in assemble(command.splitlines() or [""]):
        outcome = router.route(logical)
        if outcome.should_exit:
            break
    return outcome.exit_code


def build_router(session: Session) -> CommandRouter:
    """Wire executor, tool registry and orchestrator for ``session``."""
    config = session.config
    executor = UnixExecutor(timeout=config.shell.tool_timeout)
    registry = ToolRegistry.with_builtins(executor, config.tools)
    orchestrator = AgentOrchestrator(config, registry)
    return CommandRouter(session, executor, orchestrator)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="aish",
        description="AI shell: natural-language prompts and Unix commands in one shell.",
    )
    parser.add_argument(
        "-c",
        "--command",
        help="Run a single command in the initial mode and exit with its code.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        help="Path to a YAML config file (default: ~/.aish.yaml).",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="count",
        default=0,
        help="Increase log verbosity (-v info, -vv debug).",
    )
    return parser.parse_args(argv)


def run(argv: Optional[Sequence[str]] = None) -> int:
    """Run the AI shell and return the process exit code."""
    args = parse_args(argv)
    setup_logging(
        {0: logging.WARNING, 1: logging.INFO}.get(args.verbose, logging.DEBUG)
    )

    config = AppConfig.load(args.config)
    session = Session(config=config)
    router = build_router(session)
    logger.info("Session %s started in %s", session.session_id, session.cwd)

    if args.command is not None:
        return run_single(router, args.command)

    try:
        shell = InteractiveShell(session, router)
    except Exception:
        logger.exception("Failed to initialize the line editor.")
        print_error("aish: cannot start interactive shell (is stdin a terminal?)")
        return 1
    return shell.run()


def main() -> None:
    """Entry point for the AI shell (console script)."""
    sys.exit(run())


if __name__ == "__main__":
    main()
