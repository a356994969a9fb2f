"""
Helper utilities for Rich-based console output of the AI shell.

Includes the shared `console`, the startup banner, help text, error
reporting and the trace printed before each agent tool call.
"""

import json
from pathlib import Path
from typing import Any, Dict

from rich.console import Console
from rich.markup import escape
from rich.panel import Panel

from aish.core.mode import Mode

# Global Console object
console = Console(highlight=False)


def show_banner(mode: Mode, unix_prefix: str, toggle_key: str = "esc-x") -> None:
    """Render the welcome panel shown when the interactive shell starts."""
    if mode is Mode.AGENT:
        routing = f"Prefix commands with '{escape(unix_prefix.strip())}' for Unix shell execution."
    else:
        routing = "All commands are executed as Unix shell commands."
    console.print(
        Panel.fit(
            "[bold green]aish[/bold green] (AI Shell)\n"
            f"Current mode: [bold]{mode.value.upper()}[/bold]\n\n"
            f"Type 'exit' to quit, 'help' for help, press {escape(toggle_key)} to toggle mode.\n"
            f"{routing}\n"
            "Use '\\' at the end of a line for multiline commands.",
            border_style="green",
        )
    )


def show_help(mode: Mode, unix_prefix: str, toggle_key: str = "esc-x") -> None:
    """Print usage for the built-in commands and the current mode."""
    prefix = escape(unix_prefix)
    lines = [
        "aish (AI Shell) - A shell that handles both natural language and Unix commands",
        "",
        f"Current mode: [bold]{mode.value.upper()}[/bold]",
        "",
        "Built-in commands:",
        "  help       - Show this help message",
        "  exit       - Exit the shell",
        "  quit       - Exit the shell",
        f"  {escape(toggle_key):<10} - Toggle between AGENT and COMMAND modes",
        "",
    ]
    if mode is Mode.AGENT:
        lines += [
            "AGENT MODE - Command routing:",
            f"  {prefix}<command>  - Execute Unix shell command (e.g., '{prefix}ls -la')",
            "  <text>       - AI prompt for natural language processing",
            "",
            "Examples:",
            f"  {prefix}echo 'Hello World'     - Execute echo command",
            "  list all files           - AI prompt to list files",
        ]
    else:
        lines += [
            "COMMAND MODE - All input is executed as Unix commands:",
            "  <command>    - Execute Unix shell command directly",
            "",
            "Examples:",
            "  ls -la                    - Execute ls command",
            "  cd /tmp                   - Change directory",
        ]
    console.print("\n".join(lines))


def show_tool_trace(name: str, arguments: Dict[str, Any], cwd: Path) -> None:
    """Print the tool call the agent is about to make.

    Args:
        name: Tool name.
        arguments: Parsed tool arguments.
        cwd: Directory the tool will run in.
    """
    command = arguments.get("command") if isinstance(arguments, dict) else None
    if isinstance(command, str):
        console.print("[bold cyan]**** Running command[/bold cyan]")
        console.print(f"   [dim]{escape(str(cwd))}[/dim] $ {escape(command)}")
        return
    try:
        rendered = json.dumps(arguments, ensure_ascii=False)
    except (TypeError, ValueError):
        rendered = str(arguments)
    console.print(f"[bold cyan]**** Calling tool: {escape(name)}[/bold cyan]")
    console.print(f"   [dim]{escape(str(cwd))}[/dim] {escape(rendered)}")


def print_error(message: str) -> None:
    console.print(f"[red]{escape(message)}[/red]")


def print_info(message: str) -> None:
    console.print(f"[yellow]{escape(message)}[/yellow]")
