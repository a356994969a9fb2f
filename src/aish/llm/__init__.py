"""LLM module - builds the chat model client used by the agent."""

from .provider import get_llm

__all__ = ["get_llm"]
