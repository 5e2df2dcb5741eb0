"""In-memory preference store.

Simple dict-based storage for session-only preferences.
Data is lost when the application exits.
"""

import copy
from typing import Any

from .base import PreferenceStore


class InMemoryPreferenceStore(PreferenceStore):
    """In-memory preference store (session-only).

    Suitable for single-session use or testing.
    """

    def __init__(self, initial: dict[str, Any] | None = None):
        super().__init__()
        self._values: dict[str, Any] = copy.deepcopy(initial or {})

    async def connect(self) -> None:
        """Initialize store (no-op for in-memory)."""
        pass

    async def disconnect(self) -> None:
        """Close store (no-op for in-memory)."""
        pass

    async def get(self, key: str, default: Any = None) -> Any:
        if key not in self._values:
            return default
        return copy.deepcopy(self._values[key])

    async def set(self, key: str, value: Any) -> None:
        self._values[key] = copy.deepcopy(value)
        self._notify(key, copy.deepcopy(value))

    async def remove(self, key: str) -> None:
        if key in self._values:
            del self._values[key]
            self._notify(key)

    @property
    def backend_type(self) -> str:
        return "memory"
