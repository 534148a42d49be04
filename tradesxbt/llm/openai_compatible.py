"""
Shared implementation for providers speaking the OpenAI chat-completions protocol.

Handles request construction, server-sent-event parsing, tool-call merging,
local tool resolution and HTTP error classification.
"""
import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, AsyncIterator, Optional

import httpx

from .base import (
    DeltaEvent,
    DoneEvent,
    ErrorEvent,
    GenerationResult,
    LLMProvider,
    StartEvent,
    StreamEvent,
    ToolCall,
    ToolCallEvent,
    ToolResult,
)
from .context_window import estimate_tokens
from .sanitizer import SystemPromptSanitizer
from ..constants import CONTEXT_LENGTH_LIMIT
from ..errors import (
    ErrorCode,
    ProviderAPIError,
    RateLimitError,
    TradesXBTError,
    parse_error_body,
)
from ..tools.formatting import format_tool_section


logger = logging.getLogger(__name__)

SSE_PREFIX = "data: "
SSE_DONE = "[DONE]"


def _error_text(details: Any) -> str:
    if isinstance(details, dict):
        error = details.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error)
        if error:
            return str(error)
        return json.dumps(details)
    return str(details or "")


def classify_http_error(
    provider: str,
    status: int,
    details: Any,
    messages: Optional[list[dict]] = None
) -> ProviderAPIError:
    """
    Build a typed error for a non-2xx provider response.

    Args:
        provider: Provider name for the message
        status: HTTP status code
        details: Parsed vendor error body
        messages: Request messages (used to detect oversized contexts)

    Returns:
        ProviderAPIError (RateLimitError for 429)
    """
    text = _error_text(details)
    lowered = text.lower()

    if status == 429:
        return RateLimitError(details=details)
    if status == 401:
        return ProviderAPIError(
            "Authentication error: Invalid API key", status, ErrorCode.AUTH_ERROR, details
        )
    if status == 400:
        if "context_length" in lowered or (
            messages is not None and estimate_tokens(messages) > CONTEXT_LENGTH_LIMIT
        ):
            code = ErrorCode.CONTEXT_LENGTH_EXCEEDED
        elif "model" in lowered:
            code = ErrorCode.MODEL_ERROR
        elif "tool" in lowered or "function" in lowered:
            code = ErrorCode.TOOL_ERROR
        else:
            code = ErrorCode.INVALID_REQUEST
        return ProviderAPIError(f"{provider} rejected the request: {text}", status, code, details)

    return ProviderAPIError(f"{provider} API error {status}: {text}", status, ErrorCode.UNKNOWN, details)


class ToolCallMerger:
    """
    Merges streamed tool-call deltas by id.

    Continuation fragments without an id are matched through their index.
    """

    def __init__(self) -> None:
        self._calls: dict[str, ToolCall] = {}
        self._ids_by_index: dict[int, str] = {}

    def merge(self, delta: dict) -> ToolCallEvent:
        """
        Merge one vendor tool-call delta.

        Args:
            delta: Entry of choices[0].delta.tool_calls

        Returns:
            ToolCallEvent with the cumulative call and the new fragment
        """
        index = delta.get("index", len(self._ids_by_index))
        call_id = delta.get("id") or self._ids_by_index.get(index) or f"call_{index}"
        self._ids_by_index.setdefault(index, call_id)

        function = delta.get("function") or {}
        fragment = function.get("arguments") or ""

        existing = self._calls.get(call_id)
        if existing is None:
            call = ToolCall.create(call_id, function.get("name") or "", fragment)
        else:
            call = existing.with_arguments(existing.function.arguments + fragment)
        self._calls[call_id] = call
        return ToolCallEvent(tool_call=call, arguments_delta=fragment)

    @property
    def calls(self) -> tuple[ToolCall, ...]:
        return tuple(self._calls.values())


class OpenAICompatibleProvider(LLMProvider):
    """
    Provider base for OpenAI-compatible chat-completions endpoints.

    Subclasses only supply their default configuration.
    """

    def __init__(
        self,
        *args: Any,
        sanitizer: Optional[SystemPromptSanitizer] = None,
        **kwargs: Any
    ) -> None:
        super().__init__(*args, **kwargs)
        self._sanitizer = sanitizer

    @property
    def endpoint(self) -> str:
        return f"{self._config.base_url}/chat/completions"

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient(timeout=self._config.timeout) as client:
                yield client

    def _build_payload(
        self,
        messages: list[dict],
        tools: Optional[list[dict]],
        model: Optional[str],
        temperature: Optional[float],
        max_tokens: Optional[int],
        stream: bool
    ) -> dict:
        payload = {
            "model": model or self._model,
            "messages": messages,
            "temperature": temperature if temperature is not None else self._config.temperature,
            "max_tokens": max_tokens or self._config.max_tokens,
            "stream": stream,
        }
        if tools and self._config.supports_functions:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        return payload

    async def _resolve_tools(self, calls: tuple[ToolCall, ...]) -> tuple[str, tuple[ToolResult, ...]]:
        """Execute tool calls and build the text appended to the response."""
        if not calls:
            return "", ()
        if self._tool_executor is None:
            logger.warning(f"{self.name} requested {len(calls)} tool call(s) but no executor is configured")
            return "", ()

        text = ""
        results = []
        for call in calls:
            result = await self._tool_executor.process_tool_call(call)
            results.append(result)
            text += format_tool_section(call.function.name, result.result)
        return text, tuple(results)

    def _finish_text(self, text: str) -> str:
        if self._sanitizer is not None:
            return self._sanitizer.sanitize(text)
        return text

    async def generate(
        self,
        messages: list[dict],
        tools: Optional[list[dict]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> GenerationResult:
        """Send a chat completion request and resolve returned tool calls."""
        self._require_api_key()
        payload = self._build_payload(messages, tools, model, temperature, max_tokens, stream=False)
        logger.debug(f"{self.name} request: model={payload['model']} messages={len(messages)}")

        async with self._client() as client:
            try:
                response = await client.post(
                    self.endpoint,
                    headers=self._build_headers(),
                    json=payload,
                    timeout=self._config.timeout
                )
            except httpx.HTTPError as e:
                raise ProviderAPIError(
                    f"{self.name} request failed: {e}", code=ErrorCode.NETWORK_ERROR
                ) from e

            if response.is_error:
                raise classify_http_error(
                    self.name, response.status_code, parse_error_body(response), messages
                )
            try:
                data = response.json()
            except ValueError as e:
                raise ProviderAPIError(
                    f"{self.name} returned invalid JSON",
                    status=response.status_code,
                    code=ErrorCode.NETWORK_ERROR,
                ) from e

        choices = data.get("choices") or []
        message = choices[0].get("message", {}) if choices else {}
        text = message.get("content") or ""
        calls = tuple(ToolCall.from_dict(tc) for tc in message.get("tool_calls") or [])

        tool_text, results = await self._resolve_tools(calls)
        return GenerationResult(
            text=self._finish_text(text + tool_text),
            tool_calls=calls,
            tool_results=results,
        )

    async def stream_events(
        self,
        messages: list[dict],
        tools: Optional[list[dict]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncGenerator[StreamEvent, None]:
        """Stream a chat completion as StreamEvents."""
        self._require_api_key()
        payload = self._build_payload(messages, tools, model, temperature, max_tokens, stream=True)
        logger.debug(f"{self.name} stream: model={payload['model']} messages={len(messages)}")

        text = ""
        merger = ToolCallMerger()

        try:
            async with self._client() as client:
                async with client.stream(
                    "POST",
                    self.endpoint,
                    headers=self._build_headers(),
                    json=payload,
                    timeout=self._config.timeout
                ) as response:
                    if response.is_error:
                        await response.aread()
                        raise classify_http_error(
                            self.name, response.status_code, parse_error_body(response), messages
                        )

                    yield StartEvent()

                    async for line in response.aiter_lines():
                        if not line or not line.startswith(SSE_PREFIX):
                            continue

                        data_str = line[len(SSE_PREFIX):].strip()
                        if data_str == SSE_DONE:
                            break

                        try:
                            data = json.loads(data_str)
                        except json.JSONDecodeError as e:
                            logger.warning(f"Skipping malformed {self.name} stream line: {e}")
                            continue

                        choices = data.get("choices") if isinstance(data, dict) else None
                        if not choices:
                            continue
                        delta = choices[0].get("delta") or {}

                        content = delta.get("content")
                        if content:
                            text += content
                            yield DeltaEvent(content)

                        for tool_delta in delta.get("tool_calls") or []:
                            yield merger.merge(tool_delta)

            calls = merger.calls
            tool_text, results = await self._resolve_tools(calls)
            yield DoneEvent(GenerationResult(
                text=self._finish_text(text + tool_text),
                tool_calls=calls,
                tool_results=results,
            ))
        except httpx.HTTPError as e:
            error = ProviderAPIError(f"{self.name} stream failed: {e}", code=ErrorCode.NETWORK_ERROR)
            yield ErrorEvent(error)
            raise error from e
        except TradesXBTError as e:
            yield ErrorEvent(e)
            raise
