"""Static catalog of the models parley can talk to.

This module hides which vendors exist, which parameter ranges they accept
and how a model is addressed on the wire. Adding a model is an edit here,
never a runtime operation.
"""

from enum import Enum


class ModelProvider(Enum):
    """Remote LLM vendors with their valid sampling-temperature ranges."""

    YANDEX = ("yandex", 0.0, 1.0)
    DEEPSEEK = ("deepseek", 0.0, 2.0)

    def __init__(self, tag: str, min_temperature: float, max_temperature: float):
        self.tag = tag
        self.min_temperature = min_temperature
        self.max_temperature = max_temperature

    @classmethod
    def from_tag(cls, tag: str) -> "ModelProvider":
        """Look up a provider by its lowercase tag."""
        for provider in cls:
            if provider.tag == tag.lower():
                return provider
        raise ValueError(f"Unknown provider: {tag}")


class GptModel(Enum):
    """Available models, each tagged with the provider that serves it."""

    YANDEX_LATEST = ("YandexGPT 5.1 Pro", "yandexgpt-5.1/latest", ModelProvider.YANDEX)
    YANDEX_LITE = ("YandexGPT 5 Lite", "yandexgpt-5-lite/latest", ModelProvider.YANDEX)
    DEEPSEEK_CHAT = ("DeepSeek Chat", "deepseek-chat", ModelProvider.DEEPSEEK)
    DEEPSEEK_REASONER = ("DeepSeek Reasoner", "deepseek-reasoner", ModelProvider.DEEPSEEK)

    def __init__(self, display_name: str, model_path: str, provider: ModelProvider):
        self.display_name = display_name
        self.model_path = model_path
        self.provider = provider

    def get_model_uri(self, folder_id: str) -> str:
        """Build the identifier the provider expects in requests.

        Yandex models are addressed by a folder-scoped URI,
        DeepSeek takes the model name directly.
        """
        if self.provider is ModelProvider.YANDEX:
            return f"gpt://{folder_id}/{self.model_path}"
        return self.model_path

    @classmethod
    def from_name(cls, name: str | None, default: "GptModel | None" = None) -> "GptModel | None":
        """Resolve a persisted enum name, returning `default` for unknown names."""
        if not name:
            return default
        try:
            return cls[name]
        except KeyError:
            return default


DEFAULT_MODEL = GptModel.YANDEX_LATEST


def models_for(provider: ModelProvider) -> list[GptModel]:
    """List the registered models served by a provider."""
    return [model for model in GptModel if model.provider is provider]
