"""
Prompt string rendering.

Templates may reference environment variables (``$VAR`` / ``${VAR}``) and
use the bash-style escapes ``\\u`` (user), ``\\h``/``\\H`` (host), ``\\w``
(working directory, ``~``-abbreviated), ``\\W`` (its basename), ``\\m``/``\\M``
(mode, lower/upper case), ``\\$`` (``#`` for root, ``$`` otherwise),
``\\n``, ``\\t`` and ``\\[``/``\\]`` around ANSI sequences.
"""

import getpass
import os
import re
import socket
from pathlib import Path

from aish.core.mode import Mode

_ENV_VAR = re.compile(r"\$\{(\w+)\}|\$(\w+)")


def _user() -> str:
    try:
        return os.getenv("USER") or getpass.getuser()
    except (KeyError, OSError):
        return "user"


def _host() -> str:
    return os.getenv("HOSTNAME") or socket.gethostname() or "localhost"


def _tilde(cwd: Path) -> str:
    home = str(Path.home())
    path = str(cwd)
    if path == home:
        return "~"
    if path.startswith(home + os.sep):
        return "~" + path[len(home):]
    return path


def render_prompt(template: str, cwd: Path, mode: Mode) -> str:
    """Expand a prompt template for the given directory and mode."""
    result = _ENV_VAR.sub(lambda m: os.getenv(m.group(1) or m.group(2), ""), template)

    user = _user()
    escapes = {
        "u": user,
        "h": _host().split(".")[0],
        "H": _host(),
        "w": _tilde(cwd),
        "W": "~" if _tilde(cwd) == "~" else (cwd.name or "/"),
        "m": mode.value,
        "M": mode.value.upper(),
        "$": "#" if user == "root" else "$",
        "n": "\n",
        "t": "\t",
        "[": "\x1b[",
        "]": "",
    }
    return re.sub(
        r"\\(.)",
        lambda m: escapes.get(m.group(1), m.group(0)),
        result,
    )
