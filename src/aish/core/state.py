"""
State models for shell sessions.

This module defines the Pydantic models that encapsulate the process-lifetime
context of the shell: the working directory shared by the Unix and Agent
execution paths, the active mode and the loaded configuration.
"""

import logging
import os
import uuid
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, InstanceOf, field_validator

from aish.core.config import AppConfig
from aish.core.errors import DirectoryError
from aish.core.mode import Mode, ModeController

logger = logging.getLogger(__name__)


class WorkingDirectoryState(BaseModel):
    """The single shared working directory of the shell.

    The stored path is always absolute and always an existing directory.
    Only :meth:`change` mutates it, and it keeps the process working
    directory in step so spawned commands default into it.

    Attributes:
        cwd: Absolute path of the current working directory.
    """

    cwd: Path = Field(
        default_factory=Path.cwd,
        description="Absolute current working directory for shell operations.",
    )

    @field_validator("cwd")
    @classmethod
    def _must_be_directory(cls, value: Path) -> Path:
        resolved = value.expanduser().resolve()
        if not resolved.is_dir():
            raise ValueError(f"{value} is not a directory")
        return resolved

    def current(self) -> Path:
        return self.cwd

    def change(self, target: str = "") -> Path:
        """Change the working directory.

        Args:
            target: Absolute path, path relative to the current directory,
                ``~``-prefixed path, or empty for the home directory.

        Returns:
            Path: The new canonical working directory.

        Raises:
            DirectoryError: If the target does not exist, is not a directory
                or cannot be entered. The stored directory is unchanged.
        """
        target = target.strip()
        if not target or target == "~":
            path = Path.home()
        else:
            path = Path(target).expanduser()
            if not path.is_absolute():
                path = self.cwd / path

        resolved = path.resolve()
        if not resolved.exists():
            raise DirectoryError(f"cd: {target}: No such file or directory", target)
        if not resolved.is_dir():
            raise DirectoryError(f"cd: {target}: Not a directory", target)

        try:
            os.chdir(resolved)
        except OSError as e:
            raise DirectoryError(f"cd: {target}: {e.strerror or e}", target) from e

        self.cwd = resolved
        logger.debug("Working directory changed to %s", resolved)
        return resolved


class Session(BaseModel):
    """Process-lifetime shell state, owned by the REPL loop.

    Attributes:
        session_id: Unique identifier used to correlate log records.
        directory: Shared working directory state.
        modes: Agent/Command mode controller.
        config: Loaded, read-only configuration.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    session_id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    directory: WorkingDirectoryState = Field(default_factory=WorkingDirectoryState)
    modes: ModeController = Field(default_factory=ModeController.from_env)
    config: InstanceOf[AppConfig] = Field(default_factory=AppConfig)

    @property
    def mode(self) -> Mode:
        return self.modes.current()

    @property
    def cwd(self) -> Path:
        return self.directory.current()
