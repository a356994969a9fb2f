"""
Logging configuration for the AI shell.
"""

import logging
import logging.config


def setup_logging(default_level: int = logging.WARNING) -> None:
    """Configure logging for the entire package.

    This function sets up a root logger using Python's ``logging.config``
    dictionary configuration. Records go to stderr so they never mix with
    the output of commands run by the shell.

    Example:
        ```python
        from aish.core.logging import setup_logging

        setup_logging(logging.DEBUG)
        logger = logging.getLogger(__name__)
        logger.debug("Logging initialized successfully.")
        ```

    Args:
        default_level: The level for the root logger. The interactive shell
            uses ``logging.WARNING`` unless ``-v`` is given.
    """
    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "[%(asctime)s] - [%(levelname)s] - %(name)s: %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "standard",
                "stream": "ext://sys.stderr",
                "level": default_level,
            },
        },
        "loggers": {
            # Client libraries are chatty at INFO.
            "httpx": {"level": max(default_level, logging.WARNING)},
            "openai": {"level": max(default_level, logging.WARNING)},
        },
        "root": {
            "handlers": ["console"],
            "level": default_level,
        },
    }

    logging.config.dictConfig(logging_config)
