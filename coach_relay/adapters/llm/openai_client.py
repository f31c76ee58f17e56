"""OpenAI LLM client adapter."""

from typing import Any

from openai import AsyncOpenAI

from coach_relay.adapters.llm.base import AbstractLLMClient, ChatMessage


class OpenAIClient(AbstractLLMClient):
    """Client for OpenAI chat completions.

    Uses the official OpenAI Python SDK with async support.
    """

    # Options callers may forward to the completions endpoint
    ALLOWED_PARAMS = frozenset(
        {
            "temperature",
            "max_tokens",
            "top_p",
            "frequency_penalty",
            "presence_penalty",
            "seed",
        }
    )

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str | None = None,
        timeout_seconds: float = 45.0,
    ) -> None:
        """Initialize OpenAI async client.

        Args:
            api_key: OpenAI API key for authentication.
            model: Model name (e.g., "gpt-4o-mini").
            base_url: Optional custom base URL for OpenAI API.
            timeout_seconds: Timeout for requests in seconds.
        """
        self.client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout_seconds,
        )
        self.model = model

    async def complete(
        self,
        messages: list[ChatMessage],
        **kwargs: Any,
    ) -> str:
        """Run a chat completion and return the first choice's text.

        Raises:
            RuntimeError: If the API call fails or returns no choices.
        """
        request_params: dict[str, Any] = {
            "model": self.model,
            "messages": messages,
        }
        for param, value in kwargs.items():
            if param in self.ALLOWED_PARAMS:
                request_params[param] = value

        try:
            response = await self.client.chat.completions.create(**request_params)
        except Exception as exc:
            raise RuntimeError(f"OpenAI API error: {str(exc)}") from exc

        if not response.choices:
            raise RuntimeError("OpenAI API returned no choices")

        return response.choices[0].message.content or ""
