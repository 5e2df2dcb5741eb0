"""Exceptions raised by provider clients.

The orchestrator turns every one of these into a chat message,
so each carries a message fit to show to the user.
"""


class LLMError(Exception):
    """Base class for provider failures."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class PromptValidationError(LLMError):
    """The prompt was rejected locally before any network call."""


class ProviderHTTPError(LLMError):
    """The provider answered with a non-2xx status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ProviderNotConfiguredError(LLMError):
    """No client is registered for the requested provider."""
