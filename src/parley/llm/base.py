from abc import ABC, abstractmethod
from typing import Any

from .errors import PromptValidationError
from .formatting import build_request_messages, format_system_prompt
from .models import LLMMessage, ProviderResponse
from .registry import GptModel, ModelProvider


class LLMProvider(ABC):
    """Abstract base class for LLM provider clients.

    This module hides the design decision of which vendor serves a model.
    Implementations must handle provider-specific details like:
    - HTTP client setup and authentication
    - Request/response format conversion
    - Mapping vendor error bodies to readable messages
    - Token accounting, where the vendor supports it

    Supports async context manager protocol for proper resource cleanup:
        async with provider:
            text = await provider.generate_response(prompt, system_prompt, model)
        # Automatically cleaned up
    """

    @property
    @abstractmethod
    def provider(self) -> ModelProvider:
        """The vendor this client talks to."""

    @property
    def supports_token_info(self) -> bool:
        """Whether generate_response_with_tokens reports telemetry."""
        return False

    @abstractmethod
    async def generate_response(
        self,
        prompt: str,
        system_prompt: str,
        model: GptModel,
        temperature: float = 0.6,
        max_tokens: int = 2000,
        history: list[LLMMessage] | None = None,
    ) -> str:
        """Generate a completion for the prompt.

        Args:
            prompt: Current user prompt (must not be blank)
            system_prompt: Caller-supplied system prompt
            model: Registry model to address
            temperature: Sampling temperature, clamped to the provider's range
            max_tokens: Completion budget, clamped to [1, 32000]
            history: Prior conversation, oldest first, without the current prompt

        Returns:
            Response text with code fences stripped

        Raises:
            PromptValidationError: If the prompt is blank
            ProviderHTTPError: If the provider answers with a non-2xx status
            LLMError: If the response has an unexpected shape
        """

    async def generate_response_with_tokens(
        self,
        prompt: str,
        system_prompt: str,
        model: GptModel,
        temperature: float = 0.6,
        max_tokens: int = 2000,
        history: list[LLMMessage] | None = None,
    ) -> ProviderResponse:
        """Generate a completion together with token telemetry.

        Providers without telemetry return the text with `token_info=None`.
        """
        text = await self.generate_response(
            prompt, system_prompt, model, temperature, max_tokens, history
        )
        return ProviderResponse(text=text)

    @abstractmethod
    async def close(self) -> None:
        """Close any open connections or resources."""

    def _prepare_messages(
        self,
        prompt: str,
        system_prompt: str,
        model: GptModel,
        history: list[LLMMessage] | None,
    ) -> list[LLMMessage]:
        """Validate the prompt and assemble the framed request messages."""
        if not prompt.strip():
            raise PromptValidationError("Prompt must not be blank")
        if model.provider is not self.provider:
            raise ValueError(
                f"{model.name} is served by {model.provider.tag}, not {self.provider.tag}"
            )
        return build_request_messages(
            format_system_prompt(system_prompt, model),
            list(history or []),
            prompt,
        )

    async def __aenter__(self) -> "LLMProvider":
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Async context manager exit with automatic cleanup.

        Note: Suppresses "Event loop is closed" errors during cleanup.
        This is a known harmless race condition in httpx/anyio cleanup:
        https://github.com/encode/httpx/issues/914
        """
        try:
            await self.close()
        except RuntimeError as e:
            if "Event loop is closed" not in str(e):
                raise
