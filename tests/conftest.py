"""
Shared fixtures and fakes for the tradesxbt test suite.
"""
import json
from typing import AsyncGenerator, Callable, Iterable, Optional

import httpx
import pytest

from tradesxbt.config import ConfigManager
from tradesxbt.llm.base import (
    DeltaEvent,
    DoneEvent,
    ErrorEvent,
    GenerationResult,
    LLMProvider,
    ProviderConfig,
    StartEvent,
    StreamEvent,
)
from tradesxbt.storage.db import KeyValueStore


Handler = Callable[[httpx.Request], httpx.Response]


def mock_client(handler: Handler) -> httpx.AsyncClient:
    """AsyncClient whose requests are answered by handler."""
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def sse_body(chunks: Iterable, done: bool = True) -> bytes:
    """Encode chunk dicts (or raw strings) as an SSE response body."""
    lines = []
    for chunk in chunks:
        payload = chunk if isinstance(chunk, str) else json.dumps(chunk)
        lines.append(f"data: {payload}\n\n")
    if done:
        lines.append("data: [DONE]\n\n")
    return "".join(lines).encode()


def content_chunk(text: str) -> dict:
    return {"choices": [{"delta": {"content": text}}]}


def tool_chunk(index: int, call_id: Optional[str] = None, name: Optional[str] = None, arguments: str = "") -> dict:
    call: dict = {"index": index, "function": {"arguments": arguments}}
    if call_id:
        call["id"] = call_id
        call["type"] = "function"
    if name:
        call["function"]["name"] = name
    return {"choices": [{"delta": {"tool_calls": [call]}}]}


async def no_sleep(_seconds: float) -> None:
    return None


class ScriptedProvider(LLMProvider):
    """
    Provider that replays scripted events.

    Each entry of `scripts` serves one call: a list of events to stream, or
    an exception raised before anything is streamed.
    """

    def __init__(self, scripts: list, supports_functions: bool = True) -> None:
        self._supports = supports_functions
        super().__init__()
        self._scripts = list(scripts)
        self.calls: list[dict] = []

    def _default_config(self) -> ProviderConfig:
        return ProviderConfig(
            name="Scripted",
            base_url="http://scripted.invalid",
            default_model="primary",
            fallback_model="backup",
            supports_functions=self._supports,
            requires_api_key=False,
        )

    def _next(self, messages, tools, model) -> list:
        self.calls.append({"messages": messages, "tools": tools, "model": model})
        script = self._scripts.pop(0)
        if isinstance(script, BaseException):
            raise script
        return script

    async def generate(self, messages, tools=None, model=None, temperature=None, max_tokens=None) -> GenerationResult:
        for event in self._next(messages, tools, model):
            if isinstance(event, DoneEvent):
                return event.result
            if isinstance(event, ErrorEvent):
                raise event.error
        raise AssertionError("script has no terminal event")

    async def stream_events(
        self, messages, tools=None, model=None, temperature=None, max_tokens=None
    ) -> AsyncGenerator[StreamEvent, None]:
        for event in self._next(messages, tools, model):
            if isinstance(event, ErrorEvent):
                yield event
                raise event.error
            yield event


def text_script(*deltas: str) -> list:
    """Start, one DeltaEvent per fragment, Done with the joined text."""
    return [StartEvent(), *(DeltaEvent(d) for d in deltas), DoneEvent(GenerationResult("".join(deltas)))]


@pytest.fixture
def kv_store():
    store = KeyValueStore(":memory:")
    yield store
    store.close()


@pytest.fixture
def config(tmp_path):
    return ConfigManager(config_file=tmp_path / "config.json", env={})
