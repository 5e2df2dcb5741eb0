from typing import Any

from .base import LLMProvider
from .providers import DeepSeekProvider, YandexProvider
from .registry import ModelProvider


def create_llm_provider(provider: str | ModelProvider, **config: Any) -> LLMProvider:
    """Create an LLM provider client.

    This factory function hides the instantiation logic for different providers.

    Args:
        provider: Provider tag ('yandex', 'deepseek') or ModelProvider member
        **config: Provider-specific configuration
            For Yandex:
                - api_key: str (required)
                - folder_id: str (required)
                - base_url: str (default: 'https://llm.api.cloud.yandex.net/')
            For DeepSeek:
                - api_key: str (required)
                - base_url: str (default: 'https://api.deepseek.com/v1')

    Returns:
        Initialized LLM provider instance

    Raises:
        ValueError: If provider type is not supported
        TypeError: If required configuration is missing

    Examples:
        >>> provider = create_llm_provider(
        ...     "yandex",
        ...     api_key="AQVN...",
        ...     folder_id="b1g..."
        ... )

        >>> provider = create_llm_provider("deepseek", api_key="sk-...")
    """
    if isinstance(provider, ModelProvider):
        provider_lower = provider.tag
    else:
        provider_lower = provider.lower()

    if provider_lower == "yandex":
        if "api_key" not in config or "folder_id" not in config:
            raise TypeError("Yandex provider requires 'api_key' and 'folder_id' in config")
        return YandexProvider(**config)

    if provider_lower == "deepseek":
        if "api_key" not in config:
            raise TypeError("DeepSeek provider requires 'api_key' in config")
        return DeepSeekProvider(**config)

    raise ValueError(
        f"Unsupported provider: {provider}. "
        f"Supported providers: 'yandex', 'deepseek'"
    )
