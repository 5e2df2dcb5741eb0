"""Unit tests for the conversation orchestrator."""
import asyncio

import pytest

from parley.chat import Error, Idle, Loading, Success
from parley.chat.orchestrator import (
    SUMMARY_SYSTEM_PROMPT,
    build_history_payload,
    build_summary_prompt,
    describe_error,
)
from parley.llm import GptModel, LLMMessage, ModelProvider, ProviderHTTPError, TokenInfo

from conftest import FakeProvider


class TestHistoryPayload:
    """Tests for the role-tagged history sent with each turn."""

    def test_orders_by_timestamp_and_maps_roles(self, make_history):
        messages = make_history(3)
        payload = build_history_payload(list(reversed(messages)))

        assert payload == [
            LLMMessage(role="user", content="question 0"),
            LLMMessage(role="assistant", content="answer 1"),
            LLMMessage(role="user", content="question 2"),
        ]

    def test_summaries_are_sent_as_assistant_messages(self, make_history):
        summary = make_history(2)[1].model_copy(update={"is_summary": True, "text": "earlier"})
        payload = build_history_payload([summary])

        assert payload == [LLMMessage(role="assistant", content="earlier")]

    def test_summary_prompt_lists_messages_with_role_labels(self, make_history):
        prompt = build_summary_prompt(make_history(2))

        assert "User: question 0" in prompt
        assert "Assistant: answer 1" in prompt
        assert prompt.index("User: question 0") < prompt.index("Assistant: answer 1")


class TestDescribeError:
    def test_uses_llm_error_message(self):
        assert describe_error(ProviderHTTPError("quota exceeded", 429)) == "quota exceeded"

    def test_falls_back_to_unknown_error(self):
        assert describe_error(RuntimeError()) == "Unknown error"

    def test_uses_exception_text(self):
        assert describe_error(TimeoutError("read timed out")) == "read timed out"


class TestSendPrompt:
    """Tests for a single turn."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("prompt", ["", "   ", "\n\t"])
    async def test_blank_prompt_is_ignored(self, make_orchestrator, yandex, prompt):
        orchestrator = await make_orchestrator(yandex)

        assert await orchestrator.send_prompt(prompt) is None
        assert orchestrator.messages.value == []
        assert isinstance(orchestrator.state.value, Idle)
        assert yandex.calls == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("prompt", ["hi", "What can I cook with rice?", "  padded  "])
    async def test_appends_one_user_and_one_assistant_message(self, make_orchestrator, yandex, history, prompt):
        orchestrator = await make_orchestrator(yandex)

        outcome = await orchestrator.send_prompt(prompt)

        messages = orchestrator.messages.value
        assert [msg.is_user for msg in messages] == [True, False]
        assert messages[0].text == prompt
        assert messages[0].model is None
        assert messages[1].text == f"Reply to: {prompt}"
        assert messages[1].model is GptModel.YANDEX_LATEST
        assert outcome == Success(f"Reply to: {prompt}")
        assert orchestrator.state.value == outcome
        assert await history.load() == messages

    @pytest.mark.asyncio
    async def test_user_message_is_persisted_before_the_provider_call(self, make_orchestrator, history):
        persisted_during_call = []

        async def on_call(call):
            persisted_during_call.extend(await history.load())

        provider = FakeProvider(on_call=on_call)
        orchestrator = await make_orchestrator(provider)

        await orchestrator.send_prompt("remember me")

        assert [msg.text for msg in persisted_during_call] == ["remember me"]

    @pytest.mark.asyncio
    async def test_loading_is_published_before_the_turn_runs(self, make_orchestrator, yandex):
        orchestrator = await make_orchestrator(yandex)
        states = []
        orchestrator.state.subscribe(states.append)

        task = orchestrator.submit_prompt("hello")

        assert isinstance(orchestrator.state.value, Loading)
        assert [msg.text for msg in orchestrator.messages.value] == ["hello"]
        assert await task == Success("Reply to: hello")
        assert states == [Loading(), Success("Reply to: hello")]

    @pytest.mark.asyncio
    async def test_submit_blank_prompt_returns_none(self, make_orchestrator, yandex):
        orchestrator = await make_orchestrator(yandex)

        assert orchestrator.submit_prompt(" ") is None

    @pytest.mark.asyncio
    async def test_history_payload_excludes_the_current_prompt(self, make_orchestrator, yandex, make_history):
        orchestrator = await make_orchestrator(yandex, seed=make_history(2))

        await orchestrator.send_prompt("next question")

        call = yandex.turn_calls[0]
        assert call["prompt"] == "next question"
        assert call["history"] == [
            LLMMessage(role="user", content="question 0"),
            LLMMessage(role="assistant", content="answer 1"),
        ]

    @pytest.mark.asyncio
    async def test_passes_settings_and_current_system_prompt(self, make_orchestrator, settings, prompts):
        provider = FakeProvider()
        orchestrator = await make_orchestrator(provider)
        await settings.set_temperature(1.7)
        await settings.set_max_tokens(500)
        custom = prompts.create_prompt("Terse", "Answer in one sentence.")
        await prompts.add_prompt(custom)
        await prompts.set_current_prompt(custom.id)

        await orchestrator.send_prompt("hi")

        call = provider.turn_calls[0]
        assert call["temperature"] == 1.7
        assert call["max_tokens"] == 500
        assert call["system_prompt"] == "Answer in one sentence."

    @pytest.mark.asyncio
    async def test_settings_changed_mid_flight_do_not_affect_the_turn(self, make_orchestrator, settings):
        async def on_call(call):
            await settings.set_selected_model(GptModel.DEEPSEEK_CHAT)
            await settings.set_temperature(0.1)

        provider = FakeProvider(on_call=on_call)
        orchestrator = await make_orchestrator(provider)

        await orchestrator.send_prompt("hi")

        assert provider.turn_calls[0]["temperature"] == 0.6
        assert orchestrator.messages.value[-1].model is GptModel.YANDEX_LATEST

    @pytest.mark.asyncio
    async def test_unusable_stored_temperature_does_not_break_the_turn(self, make_orchestrator, store, yandex):
        orchestrator = await make_orchestrator(yandex)
        await store.set("temperature", float("nan"))

        outcome = await orchestrator.send_prompt("hello")

        assert outcome == Success("Reply to: hello")
        assert [msg.is_user for msg in orchestrator.messages.value] == [True, False]
        assert yandex.turn_calls[0]["temperature"] == 0.6

    @pytest.mark.asyncio
    async def test_dispatches_by_selected_model_provider(self, make_orchestrator, settings, yandex, deepseek):
        orchestrator = await make_orchestrator(yandex, deepseek)
        await settings.set_selected_model(GptModel.DEEPSEEK_REASONER)

        await orchestrator.send_prompt("hi")

        assert yandex.calls == []
        assert deepseek.turn_calls[0]["model"] is GptModel.DEEPSEEK_REASONER


class TestTelemetry:
    """Tests for token and cost accounting on messages."""

    @pytest.mark.asyncio
    async def test_token_info_is_attached_and_user_message_patched(self, make_orchestrator):
        info = TokenInfo(request_tokens=42, response_tokens=17, response_time_ms=350, cost_usd=0.0004)
        orchestrator = await make_orchestrator(FakeProvider(token_info=info))

        await orchestrator.send_prompt("count me")

        user, reply = orchestrator.messages.value
        assert user.request_tokens == 42
        assert user.response_tokens is None
        assert reply.request_tokens == 42
        assert reply.response_tokens == 17
        assert reply.response_time_ms == 350
        assert reply.cost_usd == pytest.approx(0.0004)

    @pytest.mark.asyncio
    async def test_unknown_request_tokens_leave_user_message_untouched(self, make_orchestrator):
        info = TokenInfo(request_tokens=None, response_tokens=5, response_time_ms=10)
        orchestrator = await make_orchestrator(FakeProvider(token_info=info))

        await orchestrator.send_prompt("hi")

        user, reply = orchestrator.messages.value
        assert user.request_tokens is None
        assert reply.response_tokens == 5
        assert reply.cost_usd is None

    @pytest.mark.asyncio
    async def test_provider_without_telemetry_leaves_fields_absent(self, make_orchestrator, settings, deepseek):
        orchestrator = await make_orchestrator(deepseek)
        await settings.set_selected_model(GptModel.DEEPSEEK_CHAT)

        outcome = await orchestrator.send_prompt("hi")

        reply = orchestrator.messages.value[-1]
        assert outcome == Success("Reply to: hi")
        assert reply.text == "Reply to: hi"
        assert reply.request_tokens is None
        assert reply.response_tokens is None
        assert reply.response_time_ms is None
        assert reply.cost_usd is None

    @pytest.mark.asyncio
    async def test_telemetry_is_requested_only_from_supporting_providers(self, make_orchestrator, settings):
        counting = FakeProvider(ModelProvider.YANDEX, token_info=TokenInfo(request_tokens=1, response_tokens=1))
        plain = FakeProvider(ModelProvider.DEEPSEEK)
        orchestrator = await make_orchestrator(counting, plain)

        await orchestrator.send_prompt("first")
        await settings.set_selected_model(GptModel.DEEPSEEK_CHAT)
        await orchestrator.send_prompt("second")

        assert counting.token_calls == 1
        assert plain.token_calls == 0
        assert len(plain.turn_calls) == 1


class TestFailures:
    """Tests for failed turns becoming error bubbles."""

    @pytest.mark.asyncio
    async def test_structured_error_message_is_shown(self, make_orchestrator, history):
        provider = FakeProvider(replies=[ProviderHTTPError("quota exceeded", status_code=429)])
        orchestrator = await make_orchestrator(provider)

        outcome = await orchestrator.send_prompt("hi")

        user, reply = orchestrator.messages.value
        assert user.is_user
        assert not reply.is_user
        assert "quota exceeded" in reply.text
        assert reply.text == "Error: quota exceeded"
        assert reply.model is GptModel.YANDEX_LATEST
        assert outcome == Error("quota exceeded")
        assert orchestrator.state.value == outcome
        assert await history.load() == orchestrator.messages.value

    @pytest.mark.asyncio
    async def test_exception_without_description_reads_unknown_error(self, make_orchestrator):
        orchestrator = await make_orchestrator(FakeProvider(replies=[RuntimeError()]))

        outcome = await orchestrator.send_prompt("hi")

        assert orchestrator.messages.value[-1].text == "Error: Unknown error"
        assert outcome == Error("Unknown error")

    @pytest.mark.asyncio
    async def test_transport_failure_becomes_error_bubble(self, make_orchestrator):
        orchestrator = await make_orchestrator(FakeProvider(replies=[asyncio.TimeoutError("timed out")]))

        outcome = await orchestrator.send_prompt("hi")

        assert outcome == Error("timed out")
        assert len(orchestrator.messages.value) == 2

    @pytest.mark.asyncio
    async def test_missing_provider_becomes_error_bubble(self, make_orchestrator, settings, yandex):
        orchestrator = await make_orchestrator(yandex)
        await settings.set_selected_model(GptModel.DEEPSEEK_CHAT)

        outcome = await orchestrator.send_prompt("hi")

        assert isinstance(outcome, Error)
        assert "not configured" in outcome.message
        assert yandex.calls == []


class TestCompaction:
    """Tests for folding old messages into summaries."""

    @pytest.mark.asyncio
    async def test_below_threshold_does_nothing(self, make_orchestrator, yandex, make_history):
        orchestrator = await make_orchestrator(yandex, seed=make_history(7))

        await orchestrator.send_prompt("hi")

        assert len(orchestrator.messages.value) == 9
        assert yandex.summary_calls == []

    @pytest.mark.asyncio
    async def test_oldest_ten_collapse_into_one_summary(self, make_orchestrator, yandex, history, make_history):
        seed = make_history(9)
        orchestrator = await make_orchestrator(yandex, seed=seed)

        await orchestrator.send_prompt("tenth")

        messages = orchestrator.messages.value
        assert len(messages) == 2
        summary, newest = messages
        assert summary.is_summary
        assert not summary.is_user
        assert summary.text == "Summary of the earlier conversation"
        assert summary.timestamp_ms == seed[0].timestamp_ms
        assert summary.model is GptModel.YANDEX_LATEST
        assert newest.text == "Reply to: tenth"
        assert not newest.is_summary
        assert await history.load() == messages

    @pytest.mark.asyncio
    async def test_summary_request_is_standalone(self, make_orchestrator, yandex, make_history):
        orchestrator = await make_orchestrator(yandex, seed=make_history(9))

        await orchestrator.send_prompt("tenth")

        assert len(yandex.summary_calls) == 1
        call = yandex.summary_calls[0]
        assert call["history"] == []
        assert "User: question 0" in call["prompt"]
        assert "User: tenth" in call["prompt"]
        assert "Reply to: tenth" not in call["prompt"]

    @pytest.mark.asyncio
    async def test_summary_is_part_of_the_next_payload(self, make_orchestrator, yandex, make_history):
        orchestrator = await make_orchestrator(yandex, seed=make_history(9))
        await orchestrator.send_prompt("tenth")

        await orchestrator.send_prompt("follow-up")

        history = yandex.turn_calls[-1]["history"]
        assert history[0] == LLMMessage(role="assistant", content="Summary of the earlier conversation")
        assert history[1] == LLMMessage(role="assistant", content="Reply to: tenth")

    @pytest.mark.asyncio
    async def test_failed_summary_leaves_history_untouched(self, make_orchestrator, make_history):
        provider = FakeProvider(summary_reply=ProviderHTTPError("overloaded", 503))
        orchestrator = await make_orchestrator(provider, seed=make_history(9))

        outcome = await orchestrator.send_prompt("tenth")

        messages = orchestrator.messages.value
        assert len(messages) == 11
        assert not any(msg.is_summary for msg in messages)
        assert outcome == Success("Reply to: tenth")
        assert not any(msg.text.startswith("Error:") for msg in messages)

    @pytest.mark.asyncio
    async def test_empty_summary_counts_as_failure(self, make_orchestrator, make_history):
        provider = FakeProvider(summary_reply="   ")
        orchestrator = await make_orchestrator(provider, seed=make_history(9))

        await orchestrator.send_prompt("tenth")

        assert len(orchestrator.messages.value) == 11

    @pytest.mark.asyncio
    async def test_failed_summary_is_retried_on_next_turn(self, make_orchestrator, make_history):
        provider = FakeProvider(summary_reply=RuntimeError("boom"))
        orchestrator = await make_orchestrator(provider, seed=make_history(9))
        await orchestrator.send_prompt("tenth")

        provider._summary_reply = "Recovered summary"
        await orchestrator.send_prompt("eleventh")

        messages = orchestrator.messages.value
        regular = [msg for msg in messages if not msg.is_summary]
        summaries = [msg for msg in messages if msg.is_summary]
        assert len(summaries) == 1
        assert len(regular) == 3
        assert len(provider.summary_calls) == 2

    @pytest.mark.asyncio
    async def test_at_most_one_summary_per_turn(self, make_orchestrator, yandex, make_history):
        orchestrator = await make_orchestrator(yandex, seed=make_history(14))

        await orchestrator.send_prompt("hi")

        messages = orchestrator.messages.value
        assert sum(msg.is_summary for msg in messages) == 1
        assert sum(not msg.is_summary for msg in messages) == 6
        assert len(yandex.summary_calls) == 1

    @pytest.mark.asyncio
    async def test_existing_summaries_do_not_count(self, make_orchestrator, yandex, make_history):
        seed = make_history(8)
        seed[0] = seed[0].model_copy(update={"is_user": False, "is_summary": True})
        orchestrator = await make_orchestrator(yandex, seed=seed)

        await orchestrator.send_prompt("hi")

        assert len(orchestrator.messages.value) == 10
        assert yandex.summary_calls == []

    @pytest.mark.asyncio
    async def test_compaction_runs_after_a_failed_turn(self, make_orchestrator, make_history):
        provider = FakeProvider(replies=[ProviderHTTPError("quota exceeded", 429)])
        orchestrator = await make_orchestrator(provider, seed=make_history(9))

        outcome = await orchestrator.send_prompt("tenth")

        messages = orchestrator.messages.value
        assert outcome == Error("quota exceeded")
        assert len(messages) == 2
        assert messages[0].is_summary
        assert messages[1].text == "Error: quota exceeded"

    @pytest.mark.asyncio
    async def test_direct_call_uses_a_fresh_snapshot(self, make_orchestrator, yandex, make_history):
        orchestrator = await make_orchestrator(yandex, seed=make_history(10))

        assert await orchestrator.compress_history_if_needed() is True
        assert len(orchestrator.messages.value) == 1
        assert yandex.summary_calls[0]["model"] is GptModel.YANDEX_LATEST


class TestHistoryLifecycle:
    @pytest.mark.asyncio
    async def test_initialize_restores_persisted_history(self, make_orchestrator, yandex, make_history):
        seed = make_history(4)
        orchestrator = await make_orchestrator(yandex, seed=list(reversed(seed)))

        assert orchestrator.messages.value == seed

    @pytest.mark.asyncio
    async def test_clear_history_empties_memory_and_store(self, make_orchestrator, yandex, history):
        orchestrator = await make_orchestrator(yandex)
        await orchestrator.send_prompt("hi")

        await orchestrator.clear_history()

        assert orchestrator.messages.value == []
        assert await history.load() == []
        assert isinstance(orchestrator.state.value, Idle)

    @pytest.mark.asyncio
    async def test_initialize_installs_default_prompt(self, make_orchestrator, yandex, prompts):
        await make_orchestrator(yandex)

        current = await prompts.current_prompt()
        assert current is not None
        assert current.is_default

    def test_batch_larger_than_threshold_is_rejected(self, settings, prompts, history):
        from parley.chat import ConversationOrchestrator

        with pytest.raises(ValueError):
            ConversationOrchestrator({}, settings, prompts, history, compaction_threshold=5, compaction_batch_size=6)


def test_summary_system_prompt_is_not_empty():
    assert SUMMARY_SYSTEM_PROMPT.strip()
