import time
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, ConfigDict, ValidationError

from ..base import LLMProvider
from ..errors import LLMError, ProviderHTTPError
from ..formatting import clamp_max_tokens, clamp_temperature, request_text, strip_code_fences
from ..models import LLMMessage, ProviderResponse, TokenInfo
from ..registry import GptModel, ModelProvider

logger = structlog.get_logger(__name__)

YANDEX_BASE_URL = "https://llm.api.cloud.yandex.net/"
COMPLETION_PATH = "foundationModels/v1/completion"
TOKENIZE_PATH = "foundationModels/v1/tokenize"

# USD per 1,000 tokens, request and response billed alike
COST_PER_1K_TOKENS = 0.006668


class _WireModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class _Message(_WireModel):
    role: str
    text: str = ""


class _Alternative(_WireModel):
    message: _Message | None = None
    status: str | None = None


class _Usage(_WireModel):
    inputTextTokens: str | int | None = None
    completionTokens: str | int | None = None
    totalTokens: str | int | None = None
    input_tokens: str | int | None = None
    completion_tokens: str | int | None = None
    total_tokens: str | int | None = None


class _ResultPayload(_WireModel):
    alternatives: list[_Alternative] | None = None
    usage: _Usage | None = None


class _CompletionResponse(_WireModel):
    result: _ResultPayload | None = None


class _TokenizeResponse(_WireModel):
    tokens: list[dict[str, Any]] | None = None
    modelVersion: str | None = None


class _ErrorPayload(_WireModel):
    code: Any = None
    message: str | None = None


class _ApiError(_WireModel):
    message: str | None = None
    error: _ErrorPayload | None = None


def _positive_int(value: str | int | None) -> int | None:
    """Parse a usage counter, treating absent, malformed and zero alike."""
    if value is None:
        return None
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return None
    return parsed if parsed > 0 else None


def extract_error_message(body: str | None, fallback: str) -> str:
    """Pull a readable message out of a Yandex error body.

    Prefers the nested `error.message`, then a top-level `message`,
    then the raw body, then `fallback`.
    """
    if body:
        try:
            parsed = _ApiError.model_validate_json(body)
        except ValueError:
            parsed = None
        if parsed is not None:
            if parsed.error is not None and parsed.error.message:
                return parsed.error.message
            if parsed.message:
                return parsed.message
        return body
    return fallback


async def _log_request(request: httpx.Request) -> None:
    logger.debug("yandex.http_request", method=request.method, url=str(request.url))


async def _log_response(response: httpx.Response) -> None:
    logger.debug(
        "yandex.http_response",
        status=response.status_code,
        url=str(response.request.url),
    )


class YandexProvider(LLMProvider):
    """Yandex Foundation Models client over plain HTTP.

    Hidden design decisions:
    - Api-Key and folder-id header authentication
    - Folder-scoped model URIs
    - Completion and tokenize endpoint shapes
    - Token counting and cost estimation
    """

    def __init__(
        self,
        api_key: str,
        folder_id: str,
        base_url: str = YANDEX_BASE_URL,
        timeout: httpx.Timeout | None = None,
        **client_kwargs: Any
    ):
        """Initialize the Yandex provider.

        Args:
            api_key: Yandex Cloud API key
            folder_id: Folder the models are billed to
            base_url: API base URL
            timeout: Transport timeouts (default: 60s connect/write, 120s read)
            **client_kwargs: Additional kwargs for httpx.AsyncClient
        """
        self._folder_id = folder_id
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={
                "Authorization": f"Api-Key {api_key}",
                "x-folder-id": folder_id,
            },
            timeout=timeout or httpx.Timeout(60.0, read=120.0),
            event_hooks={"request": [_log_request], "response": [_log_response]},
            **client_kwargs
        )

    @property
    def provider(self) -> ModelProvider:
        return ModelProvider.YANDEX

    @property
    def supports_token_info(self) -> bool:
        return True

    @property
    def folder_id(self) -> str:
        """Folder used to build model URIs."""
        return self._folder_id

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
        raw, _ = await self._complete(messages, model, temperature, max_tokens)
        return strip_code_fences(raw)

    async def generate_response_with_tokens(
        self,
        prompt: str,
        system_prompt: str,
        model: GptModel,
        temperature: float = 0.6,
        max_tokens: int = 2000,
        history: list[LLMMessage] | None = None,
    ) -> ProviderResponse:
        """Generate a completion and measure tokens, latency and cost.

        Request tokens come from the completion usage when reported,
        otherwise from tokenizing the assembled request. Response tokens
        come from usage, otherwise from tokenizing the raw answer. A count
        that cannot be obtained is left as None and so is the cost.
        """
        messages = self._prepare_messages(prompt, system_prompt, model, history)
        model_uri = model.get_model_uri(self._folder_id)

        counted_request_tokens = await self.count_tokens(model_uri, request_text(messages))

        started = time.monotonic()
        raw, usage = await self._complete(messages, model, temperature, max_tokens)
        response_time_ms = int((time.monotonic() - started) * 1000)

        request_tokens = counted_request_tokens
        response_tokens = None
        if usage is not None:
            request_tokens = (
                _positive_int(usage.inputTextTokens)
                or _positive_int(usage.input_tokens)
                or counted_request_tokens
            )
            response_tokens = (
                _positive_int(usage.completionTokens)
                or _positive_int(usage.completion_tokens)
            )
        if response_tokens is None:
            response_tokens = await self.count_tokens(model_uri, raw) if raw else 0

        cost_usd = None
        if request_tokens is not None and response_tokens is not None:
            cost_usd = (request_tokens + response_tokens) / 1000 * COST_PER_1K_TOKENS

        logger.debug(
            "yandex.tokens",
            request_tokens=request_tokens,
            response_tokens=response_tokens,
            response_time_ms=response_time_ms,
            cost_usd=cost_usd,
        )

        return ProviderResponse(
            text=strip_code_fences(raw),
            token_info=TokenInfo(
                request_tokens=request_tokens,
                response_tokens=response_tokens,
                response_time_ms=response_time_ms,
                cost_usd=cost_usd,
            ),
        )

    async def count_tokens(self, model_uri: str, text: str) -> int | None:
        """Count tokens through the tokenize endpoint.

        Returns:
            Number of tokens, or None if the count could not be obtained
        """
        try:
            data = await self._post(TOKENIZE_PATH, {"modelUri": model_uri, "text": text})
            parsed = _TokenizeResponse.model_validate(data)
        except (httpx.HTTPError, LLMError, ValueError) as e:
            logger.warning("yandex.tokenize_failed", error=str(e))
            return None
        return len(parsed.tokens or [])

    async def _complete(
        self,
        messages: list[LLMMessage],
        model: GptModel,
        temperature: float,
        max_tokens: int,
    ) -> tuple[str, _Usage | None]:
        """Call the completion endpoint and return raw text plus usage."""
        payload = {
            "modelUri": model.get_model_uri(self._folder_id),
            "completionOptions": {
                "stream": False,
                "temperature": clamp_temperature(temperature, model),
                "maxTokens": clamp_max_tokens(max_tokens),
            },
            "messages": [{"role": msg.role, "text": msg.content} for msg in messages],
        }
        logger.debug(
            "yandex.request",
            model=model.display_name,
            temperature=payload["completionOptions"]["temperature"],
            messages=len(messages),
        )

        data = await self._post(COMPLETION_PATH, payload)
        try:
            response = _CompletionResponse.model_validate(data)
        except ValidationError as e:
            raise LLMError(f"Unexpected response from Yandex: {e}") from e

        result = response.result
        raw = ""
        if result is not None and result.alternatives:
            message = result.alternatives[0].message
            raw = message.text if message is not None else ""
        logger.debug("yandex.response", raw_length=len(raw))
        return raw, result.usage if result is not None else None

    async def _post(self, path: str, payload: dict[str, Any]) -> Any:
        response = await self._client.post(path, json=payload)
        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = extract_error_message(response.text, str(e))
            logger.error("yandex.http_error", status=response.status_code, message=message)
            raise ProviderHTTPError(message, status_code=response.status_code) from e
        try:
            return response.json()
        except ValueError as e:
            raise LLMError(f"Malformed response from Yandex: {e}") from e

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()
