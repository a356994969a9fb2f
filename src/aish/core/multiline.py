"""
Multiline command assembly.

A line ending in a single backslash continues on the next line. The marker
is stripped, each physical line is trimmed, and the pieces are joined with a
single space. A trailing escaped backslash (``\\\\``) is literal text, not a
continuation marker.
"""

from typing import Iterable, List, Optional

CONTINUATION_MARKER = "\\"


def is_continued(line: str) -> bool:
    """Return True if ``line`` ends with an unescaped continuation marker."""
    trimmed = line.strip()
    return trimmed.endswith(CONTINUATION_MARKER) and not trimmed.endswith(
        CONTINUATION_MARKER * 2
    )


class MultilineAssembler:
    """Collects continuation-marked lines into one logical command."""

    def __init__(self) -> None:
        self._parts: List[str] = []

    @property
    def pending(self) -> bool:
        """True while a continued command is waiting for more lines."""
        return bool(self._parts)

    def feed(self, line: str) -> Optional[str]:
        """Consume one physical line.

        Returns:
            The complete logical command, or None if assembly continues.
        """
        trimmed = line.strip()
        if is_continued(trimmed):
            self._parts.append(trimmed[: -len(CONTINUATION_MARKER)].strip())
            return None
        self._parts.append(trimmed)
        return self.flush()

    def flush(self) -> str:
        """Return whatever has been collected so far and reset."""
        command = " ".join(part for part in self._parts if part)
        self._parts = []
        return command

    def reset(self) -> None:
        self._parts = []


def assemble(lines: Iterable[str]) -> List[str]:
    """Assemble a sequence of physical lines into logical commands.

    A trailing continued line without a successor is emitted as-is.
    """
    assembler = MultilineAssembler()
    commands = []
    for line in lines:
        command = assembler.feed(line)
        if command is not None:
            commands.append(command)
    if assembler.pending:
        commands.append(assembler.flush())
    return commands
