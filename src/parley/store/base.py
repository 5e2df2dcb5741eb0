"""Abstract base class for preference store backends.

This module defines the key-value interface settings, prompts and chat
history are persisted through. The abstraction hides:
- Storage format (JSON text, SQLite rows, plain dict)
- Persistence mechanism (file, database, in-memory)
- Change notification plumbing
"""

import asyncio
from abc import ABC, abstractmethod
from collections import defaultdict
from collections.abc import AsyncIterator
from typing import Any

_REMOVED = object()


class PreferenceStore(ABC):
    """Abstract async key-value store with change notification.

    Values are JSON-compatible Python objects. Every `set` replaces the
    whole value stored under the key.
    """

    def __init__(self) -> None:
        self._watchers: dict[str, set[asyncio.Queue[Any]]] = defaultdict(set)

    @abstractmethod
    async def connect(self) -> None:
        """Initialize the store."""

    @abstractmethod
    async def disconnect(self) -> None:
        """Close the store gracefully."""

    @abstractmethod
    async def get(self, key: str, default: Any = None) -> Any:
        """Read the value under `key`, or `default` if absent."""

    @abstractmethod
    async def set(self, key: str, value: Any) -> None:
        """Replace the value under `key`."""

    @abstractmethod
    async def remove(self, key: str) -> None:
        """Delete `key` if present."""

    @property
    @abstractmethod
    def backend_type(self) -> str:
        """Get the backend type identifier."""

    async def observe(self, key: str, default: Any = None) -> AsyncIterator[Any]:
        """Yield the current value of `key`, then every later change.

        The iterator never ends on its own; stop iterating (or cancel the
        consuming task) to unsubscribe.
        """
        queue: asyncio.Queue[Any] = asyncio.Queue()
        self._watchers[key].add(queue)
        try:
            yield await self.get(key, default)
            while True:
                value = await queue.get()
                yield default if value is _REMOVED else value
        finally:
            self._watchers[key].discard(queue)

    def _notify(self, key: str, value: Any = _REMOVED) -> None:
        """Push a change to every observer of `key`."""
        for queue in self._watchers.get(key, ()):
            queue.put_nowait(value)

    async def __aenter__(self) -> "PreferenceStore":
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()
