from .base import LLMProvider
from .errors import LLMError, PromptValidationError, ProviderHTTPError, ProviderNotConfiguredError
from .factory import create_llm_provider
from .formatting import clamp_max_tokens, clamp_temperature, strip_code_fences
from .models import LLMMessage, ProviderResponse, TokenInfo
from .providers import DeepSeekProvider, YandexProvider
from .registry import DEFAULT_MODEL, GptModel, ModelProvider

__all__ = [
    "LLMProvider",
    "create_llm_provider",
    "LLMError",
    "PromptValidationError",
    "ProviderHTTPError",
    "ProviderNotConfiguredError",
    "LLMMessage",
    "ProviderResponse",
    "TokenInfo",
    "clamp_max_tokens",
    "clamp_temperature",
    "strip_code_fences",
    "DEFAULT_MODEL",
    "GptModel",
    "ModelProvider",
    "DeepSeekProvider",
    "YandexProvider",
]
