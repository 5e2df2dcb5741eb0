"""Observable state exposed to front ends.

Hides how a rendering layer learns about turn outcomes and history changes.
"""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass(frozen=True)
class Idle:
    """No turn has run yet, or the conversation was cleared."""


@dataclass(frozen=True)
class Loading:
    """A turn is in flight."""


@dataclass(frozen=True)
class Success:
    """The last turn produced a reply."""

    text: str


@dataclass(frozen=True)
class Error:
    """The last turn failed; the message is also shown as a chat bubble."""

    message: str


UiState = Idle | Loading | Success | Error


class ObservableState(Generic[T]):
    """A value holder that calls subscribers synchronously on every change."""

    def __init__(self, initial: T) -> None:
        self._value = initial
        self._subscribers: list[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    def set(self, value: T) -> None:
        self._value = value
        for callback in list(self._subscribers):
            callback(value)

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register a callback and return a function that removes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe
