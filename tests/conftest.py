"""Pytest configuration and shared fixtures."""
import os
from collections.abc import Awaitable, Callable
from typing import Any

import pytest
import structlog

from parley.chat import (
    ChatHistoryManager,
    ChatMessage,
    ConversationOrchestrator,
    SettingsManager,
    SystemPromptManager,
)
from parley.chat.orchestrator import SUMMARY_SYSTEM_PROMPT
from parley.llm import GptModel, LLMMessage, LLMProvider, ModelProvider, ProviderResponse, TokenInfo
from parley.store import InMemoryPreferenceStore


class FakeProvider(LLMProvider):
    """Scripted provider client that records every call.

    `replies` is consumed one entry per turn call; an Exception entry is
    raised instead of returned. Summary requests are answered from
    `summary_reply` instead. Telemetry is supported only when
    `token_info` is given.
    """

    def __init__(
        self,
        provider: ModelProvider = ModelProvider.YANDEX,
        replies: list[str | Exception] | None = None,
        summary_reply: str | Exception = "Summary of the earlier conversation",
        token_info: TokenInfo | None = None,
        on_call: Callable[[dict[str, Any]], Awaitable[None]] | None = None,
    ):
        self._provider = provider
        self._replies = list(replies or [])
        self._summary_reply = summary_reply
        self._token_info = token_info
        self._on_call = on_call
        self.calls: list[dict[str, Any]] = []
        self.token_calls = 0
        self.closed = False

    @property
    def provider(self) -> ModelProvider:
        return self._provider

    @property
    def supports_token_info(self) -> bool:
        return self._token_info is not None

    @property
    def turn_calls(self) -> list[dict[str, Any]]:
        return [call for call in self.calls if call["system_prompt"] != SUMMARY_SYSTEM_PROMPT]

    @property
    def summary_calls(self) -> list[dict[str, Any]]:
        return [call for call in self.calls if call["system_prompt"] == SUMMARY_SYSTEM_PROMPT]

    async def generate_response(
        self,
        prompt: str,
        system_prompt: str,
        model: GptModel,
        temperature: float = 0.6,
        max_tokens: int = 2000,
        history: list[LLMMessage] | None = None,
    ) -> str:
        call = {
            "prompt": prompt,
            "system_prompt": system_prompt,
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "history": list(history or []),
        }
        self.calls.append(call)
        if self._on_call is not None:
            await self._on_call(call)

        if system_prompt == SUMMARY_SYSTEM_PROMPT:
            reply = self._summary_reply
        elif self._replies:
            reply = self._replies.pop(0)
        else:
            reply = f"Reply to: {prompt}"
        if isinstance(reply, Exception):
            raise reply
        return reply

    async def generate_response_with_tokens(self, *args: Any, **kwargs: Any) -> ProviderResponse:
        self.token_calls += 1
        text = await self.generate_response(*args, **kwargs)
        return ProviderResponse(text=text, token_info=self._token_info)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo any structlog configuration a test (or the CLI callback) applied."""
    yield
    structlog.reset_defaults()


def make_messages(count: int, start_ms: int = 1_000) -> list[ChatMessage]:
    """Alternating user/assistant messages with increasing timestamps."""
    messages = []
    for i in range(count):
        is_user = i % 2 == 0
        messages.append(ChatMessage(
            id=start_ms + i,
            text=f"{'question' if is_user else 'answer'} {i}",
            is_user=is_user,
            timestamp_ms=start_ms + i,
            model=None if is_user else GptModel.YANDEX_LATEST,
        ))
    return messages


@pytest.fixture(scope="session")
def api_keys():
    """Return API keys from environment."""
    return {
        "yandex": os.getenv("YANDEX_API_KEY"),
        "yandex_folder": os.getenv("YANDEX_FOLDER_ID"),
        "deepseek": os.getenv("DEEPSEEK_API_KEY"),
    }


@pytest.fixture
def store():
    return InMemoryPreferenceStore()


@pytest.fixture
def settings(store):
    return SettingsManager(store)


@pytest.fixture
def prompts(store):
    return SystemPromptManager(store)


@pytest.fixture
def history(store):
    return ChatHistoryManager(store)


@pytest.fixture
def yandex():
    return FakeProvider(ModelProvider.YANDEX)


@pytest.fixture
def deepseek():
    return FakeProvider(ModelProvider.DEEPSEEK)


@pytest.fixture
def make_orchestrator(settings, prompts, history):
    """Build an initialized orchestrator around the given provider fakes."""
    async def _make(*providers: FakeProvider, seed: list[ChatMessage] | None = None):
        if seed:
            await history.save(seed)
        orchestrator = ConversationOrchestrator(
            {provider.provider: provider for provider in providers},
            settings,
            prompts,
            history,
        )
        await orchestrator.initialize()
        return orchestrator

    return _make


@pytest.fixture
def make_history():
    return make_messages
