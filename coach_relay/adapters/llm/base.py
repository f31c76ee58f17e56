from abc import ABC, abstractmethod
from typing import Any

ChatMessage = dict[str, Any]


class AbstractLLMClient(ABC):
	"""Interface for LLM clients that continue a chat conversation."""

	@abstractmethod
	async def complete(
		self,
		messages: list[ChatMessage],
		**kwargs: Any,
	) -> str:
		"""Generate the next assistant reply for a conversation.

		Args:
			messages: OpenAI-style message list (system, user, assistant). User
				content may be a string or a list of multimodal parts.
			**kwargs: Provider-specific options (e.g., temperature, max_tokens).

		Returns:
			str: Reply text; empty when the provider returned no content.

		Raises:
			RuntimeError: If the provider call fails.
		"""
		...
