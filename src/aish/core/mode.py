"""
Agent/Command mode tracking.

The shell interprets each line either as a natural-language prompt (Agent
mode) or as a Unix command line (Command mode). The active mode is mirrored
into the ``AISH_MODE`` environment variable so spawned commands and prompt
rendering can observe it.
"""

import logging
import os
from enum import Enum
from typing import Optional

logger = logging.getLogger(__name__)

MODE_ENV_VAR = "AISH_MODE"


class Mode(str, Enum):
    """Top-level interpretation modes for input lines."""

    AGENT = "agent"
    COMMAND = "command"

    @classmethod
    def parse(cls, value: Optional[str]) -> "Mode":
        """Parse a mode name; anything but ``command`` means Agent mode."""
        if value and value.strip().lower() == cls.COMMAND.value:
            return cls.COMMAND
        return cls.AGENT


class ModeController:
    """Holds the current mode and performs the single toggle transition."""

    def __init__(self, initial: Mode = Mode.AGENT):
        self._mode = initial
        self._export()

    @classmethod
    def from_env(cls) -> "ModeController":
        """Start in the mode named by ``$AISH_MODE`` (Agent when unset)."""
        return cls(Mode.parse(os.getenv(MODE_ENV_VAR)))

    def current(self) -> Mode:
        return self._mode

    def toggle(self) -> str:
        """Flip between Agent and Command mode.

        Returns:
            str: Human-readable confirmation of the new mode.
        """
        self._mode = Mode.COMMAND if self._mode is Mode.AGENT else Mode.AGENT
        self._export()
        logger.info("Mode toggled to %s", self._mode.value)
        return f"Mode switched to: {self._mode.value.upper()}"

    def _export(self) -> None:
        os.environ[MODE_ENV_VAR] = self._mode.value
