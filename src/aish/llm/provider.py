from __future__ import annotations

import logging
from typing import Any

from langchain_openai import ChatOpenAI

from aish.core.config import AIConfig


def get_llm(config: AIConfig, **kwargs: Any) -> ChatOpenAI:
    """Create the chat model client for an OpenAI-compatible API.

    A custom ``base_url`` points the client at any OpenAI-compatible
    endpoint.

    Example:
      >>> llm = get_llm(AppConfig.load().ai)
      >>> response = llm.invoke("Summarize the files in this directory.")

    Args:
        config: Model name, sampling parameters and credentials.
        **kwargs: Optional client overrides (e.g., timeout).

    Returns:
        ChatOpenAI: A fully initialized LangChain `ChatOpenAI` instance.

    Raises:
        ValueError: If the API key or model name is missing.
    """
    if not config.api_key or not config.model:
        raise ValueError(
            "OpenAI API key not found. Set ai.api_key in ~/.aish.yaml "
            "or the OPENAI_API_KEY environment variable."
        )

    logging.debug(f"Initializing OpenAI Chat model: {config.model}")

    options: dict[str, Any] = {
        "temperature": config.temperature,
        "max_tokens": config.max_tokens,
        # Failed requests are reported, never retried automatically.
        "max_retries": 0,
    }
    if config.base_url:
        options["base_url"] = config.base_url
    options.update(kwargs)

    client = ChatOpenAI(
        api_key=config.api_key,  # type: ignore
        model=config.model,
        **options,
    )
    logging.info(f"Created OpenAI LLM client for model {config.model}.")
    return client
