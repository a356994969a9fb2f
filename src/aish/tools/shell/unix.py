"""
Unix command execution.

Commands typed by the user run as child processes that inherit the shell's
terminal, so interactive programs work. Commands run on behalf of the agent
are captured instead, so their output can be returned to the model. Both
paths run in the session's working directory and intercept `cd`, which a
child process cannot apply to its parent.
"""

import logging
import os
import shlex
import signal
import subprocess
import sys
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional

from pydantic import BaseModel, Field

from aish.core.errors import DirectoryError, SpawnError
from aish.core.state import WorkingDirectoryState

log = logging.getLogger(__name__)


def _bash_executable() -> str:
    """Resolve the shell used for captured commands.

    Notes:
        Prefers `/bin/bash` when present; otherwise falls back to `/bin/sh`.
    """
    return "/bin/bash" if os.path.exists("/bin/bash") else "/bin/sh"


_SHELL = _bash_executable()
_OPERATOR_CHARS = set("();<>|&")


class ExecutionResult(BaseModel):
    """Outcome of one Unix command.

    Attributes:
        command: The command line as given.
        exit_code: Exit status of the child (0 for a successful `cd`).
        stdout: Captured standard output (captured runs only).
        stderr: Captured standard error (captured runs only).
        cwd: Working directory after the command.
        changed_directory: True if the command was a successful `cd`.
    """

    command: str
    exit_code: int = 0
    stdout: str = ""
    stderr: str = ""
    cwd: Path
    changed_directory: bool = Field(default=False)

    @property
    def success(self) -> bool:
        return self.exit_code == 0


def _tokenize(command_line: str) -> List[str]:
    """Split a command line, keeping shell operators as separate tokens."""
    lexer = shlex.shlex(command_line, posix=True, punctuation_chars=True)
    lexer.whitespace_split = True
    return list(lexer)


def _is_operator(token: str) -> bool:
    return bool(token) and set(token) <= _OPERATOR_CHARS


def _attached_to_terminal() -> bool:
    try:
        return os.isatty(sys.stdin.fileno())
    except (AttributeError, OSError, ValueError):
        return False


@contextmanager
def _interrupts_to_child(proc: "subprocess.Popen[bytes]") -> Iterator[None]:
    """Deliver SIGINT to the foreground child instead of the shell.

    A terminal already signals the whole foreground process group, so the
    signal is only re-sent when the shell is not attached to one.
    """
    if threading.current_thread() is not threading.main_thread():
        yield
        return

    def _forward(signum: int, frame: object) -> None:
        if not _attached_to_terminal() and proc.poll() is None:
            proc.send_signal(signum)

    previous = signal.signal(signal.SIGINT, _forward)
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)


class UnixExecutor:
    """Runs Unix commands in the session working directory.

    Args:
        timeout: Seconds a captured command may run before it is killed.
    """

    def __init__(self, timeout: float = 30.0):
        self.timeout = timeout

    def _change_directory(
        self, command_line: str, args: List[str], directory: WorkingDirectoryState
    ) -> ExecutionResult:
        if len(args) > 1:
            raise DirectoryError("cd: too many arguments", " ".join(args))
        new_cwd = directory.change(args[0] if args else "")
        return ExecutionResult(
            command=command_line, cwd=new_cwd, changed_directory=True
        )

    def run(
        self, command_line: str, directory: WorkingDirectoryState
    ) -> ExecutionResult:
        """Run a command attached to the terminal and wait for it to exit.

        The command line is split into words; no pipes or redirections are
        interpreted. A leading `cd` changes ``directory`` instead of spawning.

        Args:
            command_line: Command and arguments.
            directory: Session working directory; the child starts there.

        Returns:
            ExecutionResult: Exit status of the child.

        Raises:
            DirectoryError: If a `cd` target is invalid.
            SpawnError: If the command cannot be parsed or started.
        """
        try:
            argv = shlex.split(command_line)
        except ValueError as e:
            raise SpawnError(f"aish: {e}", command_line) from e

        cwd = directory.current()
        if not argv:
            return ExecutionResult(command=command_line, cwd=cwd)
        if argv[0] == "cd":
            return self._change_directory(command_line, argv[1:], directory)

        log.info("run: cwd=%s | cmd=%s", cwd, command_line)
        try:
            proc = subprocess.Popen(argv, cwd=str(cwd))
        except FileNotFoundError as e:
            raise SpawnError(f"aish: command not found: {argv[0]}", command_line) from e
        except PermissionError as e:
            raise SpawnError(f"aish: permission denied: {argv[0]}", command_line) from e
        except OSError as e:
            raise SpawnError(f"aish: {argv[0]}: {e.strerror or e}", command_line) from e

        with _interrupts_to_child(proc):
            returncode = proc.wait()

        # A child killed by a signal reports -N; shells report 128 + N.
        exit_code = 128 - returncode if returncode < 0 else returncode
        return ExecutionResult(command=command_line, exit_code=exit_code, cwd=cwd)

    def capture(
        self, command_line: str, directory: WorkingDirectoryState
    ) -> ExecutionResult:
        """Run a command through the system shell and capture its output.

        A bare `cd` (no pipes or command chaining) changes ``directory`` so
        later commands run there. Any other command runs in a subshell with no
        standard input.

        Args:
            command_line: Shell command line.
            directory: Session working directory.

        Returns:
            ExecutionResult: Exit status and captured stdout/stderr.

        Raises:
            DirectoryError: If a bare `cd` target is invalid.
            SpawnError: If the shell itself cannot be started.
        """
        cwd = directory.current()
        try:
            tokens: Optional[List[str]] = _tokenize(command_line)
        except ValueError:
            # Unbalanced quotes: let the shell report it.
            tokens = None

        if (
            tokens
            and tokens[0] == "cd"
            and "`" not in command_line
            and not any(_is_operator(t) for t in tokens)
        ):
            # Parameter expansion is applied as bash would before `cd`.
            targets = [os.path.expandvars(t) for t in tokens[1:]]
            return self._change_directory(command_line, targets, directory)

        log.info("capture: cwd=%s | cmd=%s", cwd, command_line)
        try:
            proc = subprocess.run(
                command_line,
                shell=True,
                executable=_SHELL,
                cwd=str(cwd),
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
                timeout=self.timeout,
            )
            stdout = proc.stdout or ""
            stderr = proc.stderr or ""
            rc = proc.returncode
        except subprocess.TimeoutExpired as e:
            stdout = _decode(e.stdout)
            stderr = (_decode(e.stderr) + f"\n[TIMEOUT after {self.timeout:g}s]").strip()
            rc = 124
        except OSError as e:
            raise SpawnError(f"aish: cannot start {_SHELL}: {e}", command_line) from e

        return ExecutionResult(
            command=command_line,
            exit_code=rc,
            stdout=stdout,
            stderr=stderr,
            cwd=cwd,
        )


def _decode(data: object) -> str:
    if isinstance(data, bytes):
        return data.decode(errors="replace")
    return str(data) if data else ""
