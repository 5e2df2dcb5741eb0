import math

from ..llm import DEFAULT_MODEL, GptModel
from ..store import PreferenceStore
from .models import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, Settings

TEMPERATURE_KEY = "temperature"
SELECTED_MODEL_KEY = "selected_model"
MAX_TOKENS_KEY = "max_tokens"


class SettingsManager:
    """Reads and writes generation settings in the preference store.

    Values are clamped on write; reads fall back to defaults when a key
    is missing or holds something unusable.
    """

    def __init__(self, store: PreferenceStore):
        self._store = store

    async def temperature(self) -> float:
        value = await self._store.get(TEMPERATURE_KEY)
        if isinstance(value, (int, float)) and not isinstance(value, bool) and not math.isnan(value):
            return float(value)
        return DEFAULT_TEMPERATURE

    async def set_temperature(self, temperature: float) -> None:
        """Store `temperature` clamped to [0.0, 2.0].

        Raises:
            ValueError: If temperature is NaN
        """
        if math.isnan(temperature):
            raise ValueError("Temperature must be a number")
        await self._store.set(TEMPERATURE_KEY, min(max(float(temperature), 0.0), 2.0))

    async def max_tokens(self) -> int:
        value = await self._store.get(MAX_TOKENS_KEY)
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        return DEFAULT_MAX_TOKENS

    async def set_max_tokens(self, max_tokens: int) -> None:
        await self._store.set(MAX_TOKENS_KEY, min(max(int(max_tokens), 1), 32000))

    async def selected_model(self) -> GptModel:
        value = await self._store.get(SELECTED_MODEL_KEY)
        return GptModel.from_name(value if isinstance(value, str) else None, DEFAULT_MODEL)

    async def set_selected_model(self, model: GptModel) -> None:
        await self._store.set(SELECTED_MODEL_KEY, model.name)

    async def load(self) -> Settings:
        """Read all settings at once."""
        return Settings(
            temperature=min(max(await self.temperature(), 0.0), 2.0),
            max_tokens=min(max(await self.max_tokens(), 1), 32000),
            selected_model=await self.selected_model(),
        )
