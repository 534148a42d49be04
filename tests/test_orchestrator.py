"""
Tests for the chat orchestrator: turn lifecycle, streaming placeholder updates,
fallback handling and read/unread bookkeeping.
"""
import asyncio

import allure
import httpx
import pytest

from tradesxbt.chat.orchestrator import ChatOrchestrator, build_api_messages
from tradesxbt.constants import ANALYZING_PLACEHOLDER, SYSTEM_PROMPT
from tradesxbt.errors import ChatBusyError, ProviderAPIError, TradesXBTError
from tradesxbt.history.models import AI, USER, Message
from tradesxbt.history.thread_store import ConversationStore
from tradesxbt.llm.base import (
    DeltaEvent,
    DoneEvent,
    GenerationResult,
    StartEvent,
    ToolCall,
    ToolCallEvent,
    ToolResult,
)
from tradesxbt.llm.stream_aggregator import Completed, Started, TextAppended, ToolCallUpdated
from tradesxbt.services.market_data import CoinGeckoClient
from tradesxbt.tools.registry import ToolRegistry

from conftest import ScriptedProvider, mock_client, text_script


def make_orchestrator(kv_store, provider, **kwargs) -> ChatOrchestrator:
    return ChatOrchestrator(ConversationStore(kv_store), lambda: provider, **kwargs)


class GatedProvider(ScriptedProvider):
    """Streams a Start event, then waits for the gate before finishing."""

    def __init__(self) -> None:
        super().__init__([])
        self.gate = asyncio.Event()

    async def stream_events(self, messages, tools=None, model=None, temperature=None, max_tokens=None):
        self.calls.append({"messages": messages, "tools": tools, "model": model})
        yield StartEvent()
        await self.gate.wait()
        yield DeltaEvent("done")
        yield DoneEvent(GenerationResult("done"))


@allure.feature("Chat")
@allure.story("Turn lifecycle")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.asyncio
async def test_first_message_creates_thread(kv_store):
    provider = ScriptedProvider([text_script("Hi ", "there!")])
    orchestrator = make_orchestrator(kv_store, provider)

    reply = await orchestrator.send_message("  Hello  ")

    thread = orchestrator.current_thread
    assert reply.content == "Hi there!"
    assert thread.title == "Hello"
    assert [m.sender for m in thread.messages] == [USER, AI]
    assert thread.messages[0].content == "Hello"
    assert thread.messages[1].content == "Hi there!"
    assert thread.is_read is True
    assert orchestrator.is_processing is False
    assert orchestrator.last_error is None


@allure.feature("Chat")
@allure.story("Turn lifecycle")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.asyncio
async def test_follow_up_appends_to_current_thread(kv_store):
    provider = ScriptedProvider([text_script("one"), text_script("two")])
    orchestrator = make_orchestrator(kv_store, provider)

    await orchestrator.send_message("first")
    thread_id = orchestrator.current_thread.id
    await orchestrator.send_message("second")

    thread = orchestrator.current_thread
    assert thread.id == thread_id
    assert len(thread.messages) == 4
    assert len(orchestrator.store.threads) == 1

    sent = provider.calls[1]["messages"]
    assert sent[0]["role"] == "system"
    assert [m["content"] for m in sent[1:]] == ["first", "one", "second"]
    assert [m["role"] for m in sent[1:]] == ["user", "assistant", "user"]


@allure.feature("Chat")
@allure.story("Turn lifecycle")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["", "   ", "\n\t"])
async def test_blank_input_is_ignored(kv_store, text):
    provider = ScriptedProvider([])
    orchestrator = make_orchestrator(kv_store, provider)

    assert await orchestrator.send_message(text) is None
    assert orchestrator.store.threads == ()
    assert provider.calls == []


@allure.feature("Chat")
@allure.story("Failures")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.asyncio
async def test_failed_turn_keeps_placeholder_and_records_error(kv_store):
    provider = ScriptedProvider([
        ProviderAPIError("primary down", 500),
        ProviderAPIError("fallback down", 500),
    ])
    orchestrator = make_orchestrator(kv_store, provider)

    assert await orchestrator.send_message("Hello") is None

    thread = orchestrator.current_thread
    assert len(thread.messages) == 2
    assert thread.messages[1].sender == AI
    assert thread.messages[1].content == ""
    assert isinstance(orchestrator.last_error, ProviderAPIError)
    assert str(orchestrator.last_error) == "fallback down"
    assert orchestrator.is_processing is False


@allure.feature("Chat")
@allure.story("Failures")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.asyncio
async def test_fallback_retry_uses_fallback_model(kv_store):
    provider = ScriptedProvider([ProviderAPIError("overloaded", 503), text_script("Recovered")])
    orchestrator = make_orchestrator(kv_store, provider, fallback_model="backup-model")

    reply = await orchestrator.send_message("price of btc?")

    assert reply.content == "Recovered"
    assert provider.calls[1]["model"] == "backup-model"
    assert provider.calls[1]["tools"] is None
    assert orchestrator.last_error is None


@allure.feature("Chat")
@allure.story("Concurrency")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.asyncio
async def test_second_submit_while_busy_is_rejected(kv_store):
    provider = GatedProvider()
    orchestrator = make_orchestrator(kv_store, provider)

    first = asyncio.create_task(orchestrator.send_message("one"))
    while not provider.calls:
        await asyncio.sleep(0)

    assert orchestrator.is_processing is True
    with pytest.raises(ChatBusyError):
        await orchestrator.send_message("two")

    provider.gate.set()
    reply = await first

    assert reply.content == "done"
    assert len(orchestrator.current_thread.messages) == 2
    assert orchestrator.is_processing is False


@allure.feature("Chat")
@allure.story("Streaming")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.asyncio
async def test_placeholder_follows_stream(kv_store):
    tool_call = ToolCall.create("c1", "get_crypto_price", '{"symbol": "BTC"}')
    result = GenerationResult(
        "BTC trades at $50,000.",
        tool_calls=(tool_call,),
        tool_results=(ToolResult("c1", '{"price": 50000}'),),
    )
    provider = ScriptedProvider([[
        StartEvent(),
        ToolCallEvent.from_fragment("c1", "get_crypto_price", '{"symbol": '),
        ToolCallEvent(tool_call, arguments_delta='"BTC"}'),
        DeltaEvent("BTC trades "),
        DeltaEvent("at $50,000."),
        DoneEvent(result),
    ]])
    orchestrator = make_orchestrator(kv_store, provider)
    seen = []

    def listener(snapshot, diff):
        thread = orchestrator.current_thread
        seen.append((type(diff), thread.messages[-1].content))

    orchestrator.subscribe(listener)
    reply = await orchestrator.send_message("What is BTC at?")

    tool_updates = [content for kind, content in seen if kind is ToolCallUpdated]
    text_updates = [content for kind, content in seen if kind is TextAppended]
    assert tool_updates == [ANALYZING_PLACEHOLDER, ANALYZING_PLACEHOLDER]
    assert text_updates == ["BTC trades ", "BTC trades at $50,000."]
    assert seen[-1][0] is Completed

    assert reply.content == "BTC trades at $50,000."
    assert reply.tool_calls == (tool_call,)
    assert reply.tool_results[0].result == '{"price": 50000}'
    assert orchestrator.current_thread.messages[-1] == reply


@allure.feature("Chat")
@allure.story("Streaming")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_unsubscribed_listener_is_not_called(kv_store):
    provider = ScriptedProvider([text_script("a"), text_script("b")])
    orchestrator = make_orchestrator(kv_store, provider)
    calls = []
    unsubscribe = orchestrator.subscribe(lambda snapshot, diff: calls.append(diff))

    await orchestrator.send_message("first")
    count = len(calls)
    unsubscribe()
    await orchestrator.send_message("second")

    assert count > 0
    assert len(calls) == count


@allure.feature("Chat")
@allure.story("Streaming")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_single_shot_mode_skips_streaming(kv_store):
    provider = ScriptedProvider([text_script("whole answer")])
    orchestrator = make_orchestrator(kv_store, provider, streaming=False)
    calls = []
    orchestrator.subscribe(lambda snapshot, diff: calls.append(diff))

    reply = await orchestrator.send_message("hi")

    assert reply.content == "whole answer"
    assert calls == []


@allure.feature("Chat")
@allure.story("Tools")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
@pytest.mark.parametrize("supports_functions", [True, False])
async def test_tools_offered_only_to_capable_providers(kv_store, supports_functions):
    async with mock_client(lambda request: httpx.Response(404)) as client:
        registry = ToolRegistry(CoinGeckoClient(client))
        provider = ScriptedProvider([text_script("ok")], supports_functions=supports_functions)
        orchestrator = make_orchestrator(kv_store, provider, tool_registry=registry)

        await orchestrator.send_message("analyze SOL")

    tools = provider.calls[0]["tools"]
    if supports_functions:
        names = {tool["function"]["name"] for tool in tools}
        assert "get_crypto_price" in names
        assert provider.calls[0]["messages"][0]["content"].startswith(SYSTEM_PROMPT)
    else:
        assert tools is None
        assert provider.calls[0]["messages"][0]["content"] == SYSTEM_PROMPT


@allure.feature("Chat")
@allure.story("Unread tracking")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_unfocused_reply_is_unread(kv_store):
    provider = ScriptedProvider([text_script("first"), text_script("second")])
    orchestrator = make_orchestrator(kv_store, provider)

    orchestrator.set_focused(False)
    await orchestrator.send_message("one")
    thread_id = orchestrator.current_thread.id

    assert orchestrator.unread_count == 1
    assert orchestrator.store.get(thread_id).is_read is False

    orchestrator.new_chat()
    orchestrator.select_thread(thread_id)
    assert orchestrator.unread_count == 0
    assert orchestrator.store.get(thread_id).is_read is True

    await orchestrator.send_message("two")
    assert orchestrator.unread_count == 1
    orchestrator.set_focused(True)
    assert orchestrator.unread_count == 0


@allure.feature("Chat")
@allure.story("Thread management")
@allure.severity(allure.severity_level.NORMAL)
@pytest.mark.asyncio
async def test_new_chat_starts_fresh_thread(kv_store):
    provider = ScriptedProvider([text_script("a"), text_script("b")])
    orchestrator = make_orchestrator(kv_store, provider)

    await orchestrator.send_message("first topic")
    first_id = orchestrator.current_thread.id
    orchestrator.new_chat()
    await orchestrator.send_message("second topic")

    threads = orchestrator.store.threads
    assert [t.title for t in threads] == ["second topic", "first topic"]
    assert orchestrator.delete_thread(first_id) is True
    assert len(orchestrator.store.threads) == 1


@allure.feature("Chat")
@allure.story("Request building")
@allure.severity(allure.severity_level.MINOR)
def test_build_api_messages_maps_senders():
    messages = (Message.user("hi"), Message(id="a", content="hello", sender=AI))
    api = build_api_messages(messages, system_prompt="sys")
    assert api == [
        {"role": "system", "content": "sys"},
        {"role": "user", "content": "hi"},
        {"role": "assistant", "content": "hello"},
    ]


class TrackingProvider(ScriptedProvider):
    """Scripted provider that records when its event stream is closed."""

    def __init__(self, scripts: list) -> None:
        super().__init__(scripts)
        self.closed = False

    async def stream_events(self, messages, tools=None, model=None, temperature=None, max_tokens=None):
        try:
            async for event in super().stream_events(messages, tools, model, temperature, max_tokens):
                yield event
        finally:
            self.closed = True


@allure.feature("Chat")
@allure.story("Failures")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.asyncio
async def test_thread_deleted_mid_stream_is_not_retried(kv_store):
    provider = TrackingProvider([text_script("partial ", "answer"), text_script("unused")])
    orchestrator = make_orchestrator(kv_store, provider, fallback_model="backup-model")

    def delete_on_start(snapshot, diff):
        if isinstance(diff, Started):
            orchestrator.delete_thread(orchestrator.current_thread.id)

    orchestrator.subscribe(delete_on_start)
    reply = await orchestrator.send_message("Hello")

    assert reply is None
    assert len(provider.calls) == 1
    assert provider.closed is True
    assert isinstance(orchestrator.last_error, TradesXBTError)
    assert "Thread not found" in str(orchestrator.last_error)
    assert orchestrator.store.threads == ()
    assert orchestrator.is_processing is False


@allure.feature("Chat")
@allure.story("Streaming")
@allure.severity(allure.severity_level.CRITICAL)
@pytest.mark.asyncio
async def test_switching_threads_mid_stream_keeps_reply_in_origin(kv_store):
    provider = ScriptedProvider([text_script("x"), text_script("a", "b")])
    orchestrator = make_orchestrator(kv_store, provider)

    await orchestrator.send_message("other")
    other_id = orchestrator.current_thread.id
    orchestrator.new_chat()

    def switch_after_first_delta(snapshot, diff):
        if isinstance(diff, TextAppended) and snapshot.text == "a":
            orchestrator.select_thread(other_id)

    orchestrator.subscribe(switch_after_first_delta)
    reply = await orchestrator.send_message("main")

    main = next(t for t in orchestrator.store.threads if t.id != other_id)
    other = orchestrator.store.get(other_id)
    assert reply.content == "ab"
    assert [m.content for m in main.messages] == ["main", "ab"]
    assert [m.content for m in other.messages] == ["other", "x"]
    assert orchestrator.current_thread.id == other_id


@allure.feature("Chat")
@allure.story("Streaming")
@allure.severity(allure.severity_level.MINOR)
def test_unsubscribe_twice_is_harmless(kv_store):
    orchestrator = make_orchestrator(kv_store, ScriptedProvider([]))
    unsubscribe_stream = orchestrator.subscribe(lambda snapshot, diff: None)
    unsubscribe_store = orchestrator.store.subscribe(lambda: None)

    unsubscribe_stream()
    unsubscribe_stream()
    unsubscribe_store()
    unsubscribe_store()
