"""LLM adapter layer - abstracts over multiple LLM providers."""

from coach_relay.adapters.llm.base import AbstractLLMClient
from coach_relay.adapters.llm.factory import create_llm_client
from coach_relay.adapters.llm.openai_client import OpenAIClient

__all__ = [
    "AbstractLLMClient",
    "OpenAIClient",
    "create_llm_client",
]
