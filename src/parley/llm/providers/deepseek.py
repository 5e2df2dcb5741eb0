from typing import Any

import structlog
from openai import APIStatusError, AsyncOpenAI
from pydantic import BaseModel, ConfigDict

from ..base import LLMProvider
from ..errors import ProviderHTTPError
from ..formatting import clamp_max_tokens, clamp_temperature, strip_code_fences
from ..models import LLMMessage
from ..registry import GptModel, ModelProvider

logger = structlog.get_logger(__name__)

DEEPSEEK_BASE_URL = "https://api.deepseek.com/v1"


class _ErrorDetail(BaseModel):
    model_config = ConfigDict(extra="ignore")

    message: str | None = None
    type: str | None = None
    code: Any = None


class _ApiError(BaseModel):
    model_config = ConfigDict(extra="ignore")

    error: _ErrorDetail | None = None


def extract_error_message(body: str | None, fallback: str | None) -> str:
    """Pull a readable message out of a DeepSeek error body.

    Prefers `error.message`, then the raw body, then `fallback`.
    """
    if body:
        try:
            parsed = _ApiError.model_validate_json(body)
        except ValueError:
            parsed = None
        if parsed is not None and parsed.error is not None and parsed.error.message:
            return parsed.error.message
        return body
    return fallback or "Unknown error"


class DeepSeekProvider(LLMProvider):
    """DeepSeek LLM provider implementation using OpenAI-compatible API.

    Hidden design decisions:
    - DeepSeek API client initialization (via OpenAI SDK)
    - Message format conversion
    - Error body parsing
    - Authentication mechanism

    DeepSeek does not report token telemetry to the caller.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEEPSEEK_BASE_URL,
        timeout: float = 30.0,
        **client_kwargs: Any
    ):
        """Initialize DeepSeek provider.

        Args:
            api_key: DeepSeek API key
            base_url: DeepSeek API base URL
            timeout: Request timeout in seconds
            **client_kwargs: Additional kwargs for AsyncOpenAI client
        """
        # Retries are left to the user
        self._client = AsyncOpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            max_retries=0,
            **client_kwargs
        )

    @property
    def provider(self) -> ModelProvider:
        return ModelProvider.DEEPSEEK

    async def generate_response(
        self,
        prompt: str,
        system_prompt: str,
        model: GptModel,
        temperature: float = 0.6,
        max_tokens: int = 2000,
        history: list[LLMMessage] | None = None,
    ) -> str:
        messages = self._prepare_messages(prompt, system_prompt, model, history)
        deepseek_messages = [
            {"role": msg.role, "content": msg.content}
            for msg in messages
        ]
        clamped_temperature = clamp_temperature(temperature, model)
        logger.debug(
            "deepseek.request",
            model=model.model_path,
            temperature=clamped_temperature,
            messages=len(deepseek_messages),
        )

        try:
            completion = await self._client.chat.completions.create(
                model=model.get_model_uri(""),
                messages=deepseek_messages,
                temperature=clamped_temperature,
                max_tokens=clamp_max_tokens(max_tokens),
                stream=False,
            )
        except APIStatusError as e:
            message = extract_error_message(e.response.text, e.message)
            logger.error("deepseek.http_error", status=e.status_code, message=message)
            raise ProviderHTTPError(message, status_code=e.status_code) from e

        raw = ""
        if completion.choices:
            raw = completion.choices[0].message.content or ""
        logger.debug("deepseek.response", raw_length=len(raw))
        return strip_code_fences(raw)

    async def close(self) -> None:
        """Close the DeepSeek client.

        Note: Uses the OpenAI SDK's async context manager for proper cleanup.
        See: https://github.com/openai/openai-python#async-usage
        """
        await self._client.close()
