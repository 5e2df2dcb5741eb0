from .deepseek import DeepSeekProvider
from .yandex import YandexProvider

__all__ = ["DeepSeekProvider", "YandexProvider"]
