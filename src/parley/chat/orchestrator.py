"""Conversation orchestration: one prompt in, one reply out, bounded context.

Hidden design decisions:
- How the conversation history payload is assembled for a turn
- Which provider client serves the selected model
- When and how old messages are compacted into summaries
- The order in which history is persisted around a turn
"""

import asyncio
from collections.abc import Mapping

import structlog

from ..llm import (
    LLMError,
    LLMMessage,
    LLMProvider,
    ModelProvider,
    ProviderNotConfiguredError,
    ProviderResponse,
)
from ..prompts import get_summary_instruction
from .clock import MonotonicClock
from .history import ChatHistoryManager
from .models import ChatMessage, TurnSnapshot
from .settings import SettingsManager
from .state import Error, Idle, Loading, ObservableState, Success, UiState
from .system_prompts import SystemPromptManager

logger = structlog.get_logger(__name__)

COMPACTION_THRESHOLD = 10
COMPACTION_BATCH_SIZE = 10

UNKNOWN_ERROR = "Unknown error"
SUMMARY_SYSTEM_PROMPT = "You condense chat transcripts into short, faithful summaries."
ROLE_LABELS = {True: "User", False: "Assistant"}


def build_history_payload(messages: list[ChatMessage]) -> list[LLMMessage]:
    """Map prior messages, summaries included, to role-tagged payload entries.

    Messages are ordered by timestamp; the sort is stable, so messages
    sharing a timestamp keep their insertion order.
    """
    ordered = sorted(messages, key=lambda msg: msg.timestamp_ms)
    return [LLMMessage(role=msg.role, content=msg.text) for msg in ordered]


def build_summary_prompt(messages: list[ChatMessage]) -> str:
    """Wrap a transcript of `messages` in the summary instruction."""
    transcript = "\n".join(f"{ROLE_LABELS[msg.is_user]}: {msg.text}" for msg in messages)
    return f"{get_summary_instruction()}\n\n{transcript}"


def describe_error(error: BaseException) -> str:
    """Readable description of a failed turn."""
    if isinstance(error, LLMError):
        message = error.message
    else:
        message = str(error)
    return message.strip() or UNKNOWN_ERROR


class ConversationOrchestrator:
    """Runs chat turns against the provider serving the selected model.

    The orchestrator is the only writer of the conversation: it owns the
    in-memory message list, persists it after every change and exposes
    it, together with the outcome of the last turn, as observable state.
    """

    def __init__(
        self,
        providers: Mapping[ModelProvider, LLMProvider],
        settings: SettingsManager,
        prompts: SystemPromptManager,
        history: ChatHistoryManager,
        clock: MonotonicClock | None = None,
        compaction_threshold: int = COMPACTION_THRESHOLD,
        compaction_batch_size: int = COMPACTION_BATCH_SIZE,
    ):
        """Initialize the orchestrator.

        Args:
            providers: Provider clients keyed by the vendor they serve
            settings: Source of temperature, max tokens and selected model
            prompts: Source of the current system prompt
            history: Persistence for the message list
            clock: Source of message ids and timestamps
            compaction_threshold: Non-summary count that triggers compaction
            compaction_batch_size: Number of oldest messages folded into one summary
        """
        if compaction_batch_size > compaction_threshold:
            raise ValueError("compaction_batch_size must not exceed compaction_threshold")
        self._providers = dict(providers)
        self._settings = settings
        self._prompts = prompts
        self._history = history
        self._clock = clock or MonotonicClock()
        self._compaction_threshold = compaction_threshold
        self._compaction_batch_size = compaction_batch_size
        self._background: set[asyncio.Task[UiState]] = set()

        self.state: ObservableState[UiState] = ObservableState(Idle())
        self.messages: ObservableState[list[ChatMessage]] = ObservableState([])

    async def initialize(self) -> None:
        """Install the default system prompt if needed and restore history."""
        await self._prompts.initialize_default_prompt()
        await self.load_history()

    async def load_history(self) -> list[ChatMessage]:
        messages = await self._history.load()
        self.messages.set(sorted(messages, key=lambda msg: msg.timestamp_ms))
        logger.debug("orchestrator.history_loaded", messages=len(messages))
        return self.messages.value

    async def clear_history(self) -> None:
        self.messages.set([])
        await self._history.clear()
        self.state.set(Idle())
        logger.info("orchestrator.history_cleared")

    async def snapshot(self) -> TurnSnapshot:
        """Read settings and the current system prompt once for a turn."""
        settings = await self._settings.load()
        prompt = await self._prompts.current_prompt()
        return TurnSnapshot(
            temperature=settings.temperature,
            max_tokens=settings.max_tokens,
            model=settings.selected_model,
            system_prompt=prompt.content if prompt is not None else "",
        )

    async def send_prompt(self, prompt: str) -> UiState | None:
        """Run one turn to completion.

        Blank prompts are ignored. Otherwise exactly one user message and
        exactly one assistant message (the reply or an error bubble) are
        added. Failures never raise; they end in an `Error` state.

        Returns:
            The terminal state of the turn, or None for a blank prompt
        """
        if not prompt.strip():
            return None
        user_message = self._begin_turn(prompt)
        return await self._run_turn(user_message)

    def submit_prompt(self, prompt: str) -> "asyncio.Task[UiState] | None":
        """Start a turn in the background and return its task.

        The user message and the `Loading` state are published before this
        method returns.
        """
        if not prompt.strip():
            return None
        user_message = self._begin_turn(prompt)
        task = asyncio.create_task(self._run_turn(user_message))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    def _begin_turn(self, prompt: str) -> ChatMessage:
        now = self._clock.now_ms()
        user_message = ChatMessage(id=now, text=prompt, is_user=True, timestamp_ms=now)
        self.messages.set([*self.messages.value, user_message])
        self.state.set(Loading())
        return user_message

    async def _run_turn(self, user_message: ChatMessage) -> UiState:
        await self._history.save(self.messages.value)
        snapshot = await self.snapshot()
        payload = build_history_payload(
            [msg for msg in self.messages.value if msg.id != user_message.id]
        )
        logger.info(
            "orchestrator.turn_started",
            model=snapshot.model.name,
            history=len(payload),
            prompt_length=len(user_message.text),
        )

        outcome: UiState
        try:
            response = await self._request_reply(snapshot, user_message.text, payload)
        except Exception as e:
            message = describe_error(e)
            logger.warning("orchestrator.turn_failed", model=snapshot.model.name, error=message)
            self._append(self._assistant_message(f"Error: {message}", snapshot))
            outcome = Error(message)
        else:
            info = response.token_info
            if info is not None and info.request_tokens is not None:
                self._patch(user_message.id, request_tokens=info.request_tokens)
            reply = self._assistant_message(response.text, snapshot)
            if info is not None:
                reply = reply.model_copy(update={
                    "request_tokens": info.request_tokens,
                    "response_tokens": info.response_tokens,
                    "response_time_ms": info.response_time_ms,
                    "cost_usd": info.cost_usd,
                })
            self._append(reply)
            outcome = Success(response.text)
            logger.info("orchestrator.turn_succeeded", model=snapshot.model.name)

        await self._history.save(self.messages.value)
        self.state.set(outcome)
        await self.compress_history_if_needed(snapshot)
        return outcome

    async def compress_history_if_needed(self, snapshot: TurnSnapshot | None = None) -> bool:
        """Fold the oldest non-summary messages into one summary.

        Runs at most one compaction. When the summary cannot be produced
        the history is left untouched and the next turn tries again.

        Returns:
            True if a summary replaced a batch of messages
        """
        regular = sorted(
            (msg for msg in self.messages.value if not msg.is_summary),
            key=lambda msg: msg.timestamp_ms,
        )
        if len(regular) < self._compaction_threshold:
            return False

        snapshot = snapshot or await self.snapshot()
        batch = regular[:self._compaction_batch_size]
        summary_text = await self.generate_summary(batch, snapshot)
        if summary_text is None:
            return False

        summary = ChatMessage(
            id=self._clock.now_ms(),
            text=summary_text,
            is_user=False,
            timestamp_ms=batch[0].timestamp_ms,
            model=snapshot.model,
            is_summary=True,
        )
        compressed_ids = {msg.id for msg in batch}
        remaining = [msg for msg in self.messages.value if msg.id not in compressed_ids]
        self.messages.set(sorted([*remaining, summary], key=lambda msg: msg.timestamp_ms))
        await self._history.save(self.messages.value)
        logger.info("orchestrator.history_compacted", compressed=len(batch), remaining=len(remaining))
        return True

    async def generate_summary(
        self,
        messages: list[ChatMessage],
        snapshot: TurnSnapshot
    ) -> str | None:
        """Ask the selected model for a summary of `messages`.

        The request is standalone: it carries no conversation history and
        never touches the message list. Failures are logged and reported
        as None.
        """
        try:
            text = await self._provider_for(snapshot).generate_response(
                build_summary_prompt(messages),
                SUMMARY_SYSTEM_PROMPT,
                snapshot.model,
                snapshot.temperature,
                snapshot.max_tokens,
                [],
            )
        except Exception as e:
            logger.warning("orchestrator.summary_failed", error=describe_error(e))
            return None
        if not text.strip():
            logger.warning("orchestrator.summary_empty")
            return None
        return text.strip()

    async def _request_reply(
        self,
        snapshot: TurnSnapshot,
        prompt: str,
        payload: list[LLMMessage]
    ) -> ProviderResponse:
        provider = self._provider_for(snapshot)
        args = (prompt, snapshot.system_prompt, snapshot.model, snapshot.temperature, snapshot.max_tokens, payload)
        if provider.supports_token_info:
            return await provider.generate_response_with_tokens(*args)
        return ProviderResponse(text=await provider.generate_response(*args))

    def _provider_for(self, snapshot: TurnSnapshot) -> LLMProvider:
        provider = self._providers.get(snapshot.model.provider)
        if provider is None:
            raise ProviderNotConfiguredError(
                f"Provider '{snapshot.model.provider.tag}' is not configured"
            )
        return provider

    def _assistant_message(self, text: str, snapshot: TurnSnapshot) -> ChatMessage:
        now = self._clock.now_ms()
        return ChatMessage(id=now, text=text, is_user=False, timestamp_ms=now, model=snapshot.model)

    def _append(self, message: ChatMessage) -> None:
        self.messages.set([*self.messages.value, message])

    def _patch(self, message_id: int, **changes: object) -> None:
        self.messages.set([
            msg.model_copy(update=changes) if msg.id == message_id else msg
            for msg in self.messages.value
        ])
