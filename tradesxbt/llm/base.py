"""
Base classes for LLM providers in tradesxbt.
Defines the stream event vocabulary and the abstract interface that all providers implement.
"""
import logging
from abc import ABC, abstractmethod
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncGenerator, Awaitable, Callable, ClassVar, Optional, Protocol, Union

import httpx

from ..constants import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    FALLBACK_MODEL,
    LLM_TIMEOUT,
    TEXT_RESPONSE_REMINDER,
)
from ..errors import ErrorCode, MissingAPIKeyError, ProviderAPIError, TradesXBTError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FunctionCall:
    """Name and JSON-encoded arguments of a requested function."""
    name: str
    arguments: str = ""


@dataclass(frozen=True)
class ToolCall:
    """A function invocation requested by the model."""
    id: str
    function: FunctionCall
    type: str = "function"

    @classmethod
    def create(cls, call_id: str, name: str, arguments: str = "") -> 'ToolCall':
        return cls(id=call_id, function=FunctionCall(name=name, arguments=arguments))

    def with_arguments(self, arguments: str) -> 'ToolCall':
        """Return a copy with the arguments replaced."""
        return ToolCall(
            id=self.id,
            function=FunctionCall(name=self.function.name, arguments=arguments),
            type=self.type,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "type": self.type,
            "function": {
                "name": self.function.name,
                "arguments": self.function.arguments,
            },
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'ToolCall':
        function = data.get("function") or {}
        return cls(
            id=data["id"],
            function=FunctionCall(
                name=function.get("name", ""),
                arguments=function.get("arguments") or "",
            ),
            type=data.get("type", "function"),
        )


@dataclass(frozen=True)
class ToolResult:
    """JSON-encoded outcome of one tool call."""
    tool_call_id: str
    result: str

    def to_dict(self) -> dict:
        return {"toolCallId": self.tool_call_id, "result": self.result}

    @classmethod
    def from_dict(cls, data: dict) -> 'ToolResult':
        return cls(tool_call_id=data["toolCallId"], result=data["result"])


@dataclass(frozen=True)
class GenerationResult:
    """Fully resolved output of one chat completion."""
    text: str
    tool_calls: tuple[ToolCall, ...] = ()
    tool_results: tuple[ToolResult, ...] = ()


@dataclass(frozen=True)
class StartEvent:
    """The provider has opened the response stream."""
    type: ClassVar[str] = "start"


@dataclass(frozen=True)
class DeltaEvent:
    """An incremental text fragment."""
    data: str
    type: ClassVar[str] = "delta"


@dataclass(frozen=True)
class ToolCallEvent:
    """
    An update to one tool call.

    Attributes:
        tool_call: Cumulative state of the call as known to the provider
        arguments_delta: The argument fragment that arrived with this update
    """
    tool_call: ToolCall
    arguments_delta: str
    type: ClassVar[str] = "tool_call"

    @classmethod
    def from_fragment(cls, call_id: str, name: str, arguments: str) -> 'ToolCallEvent':
        """Build an event for a single fragment with no prior state."""
        return cls(tool_call=ToolCall.create(call_id, name, arguments), arguments_delta=arguments)


@dataclass(frozen=True)
class DoneEvent:
    """Terminal event carrying the resolved result."""
    result: GenerationResult
    type: ClassVar[str] = "done"


@dataclass(frozen=True)
class ErrorEvent:
    """Terminal event for a failed stream."""
    error: BaseException
    type: ClassVar[str] = "error"


StreamEvent = Union[StartEvent, DeltaEvent, ToolCallEvent, DoneEvent, ErrorEvent]

EventCallback = Callable[[StreamEvent], Union[None, Awaitable[None]]]


class ToolExecutor(Protocol):
    """Anything that can resolve a tool call into a result."""

    async def process_tool_call(self, tool_call: ToolCall) -> ToolResult:
        ...


@dataclass
class ProviderConfig:
    """Configuration for an LLM provider."""
    name: str
    base_url: str
    api_key: Optional[str] = None
    default_model: str = ""
    fallback_model: str = FALLBACK_MODEL
    available_models: list[str] = field(default_factory=list)
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE
    timeout: float = LLM_TIMEOUT
    supports_streaming: bool = True
    supports_functions: bool = False
    requires_api_key: bool = True


async def emit(callback: Optional[EventCallback], event: StreamEvent) -> None:
    """Deliver an event to a sync or async callback."""
    if callback is None:
        return
    outcome = callback(event)
    if outcome is not None:
        await outcome


def reinforce_system_message(messages: list[dict]) -> list[dict]:
    """
    Append the text-response reminder to the first system message.

    Returns a new list; the input is left untouched.
    """
    result = []
    reinforced = False
    for message in messages:
        if not reinforced and message.get("role") == "system":
            message = {**message, "content": f"{message.get('content', '')}\n\n{TEXT_RESPONSE_REMINDER}"}
            reinforced = True
        result.append(message)
    if not reinforced:
        result.insert(0, {"role": "system", "content": TEXT_RESPONSE_REMINDER})
    return result


class LLMProvider(ABC):
    """
    Abstract base class for LLM providers.

    Providers normalize their vendor's response format into StreamEvents.
    A provider holds no state between calls except its configuration.
    """

    def __init__(
        self,
        config: Optional[ProviderConfig] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        tool_executor: Optional[ToolExecutor] = None,
    ) -> None:
        """
        Initialize the provider.

        Args:
            config: Provider configuration
            http_client: Shared HTTP client (a temporary one is used per call if omitted)
            tool_executor: Resolves tool calls requested by the model
        """
        self._config = config or self._default_config()
        self._api_key = self._config.api_key
        self._model = self._config.default_model
        self._http_client = http_client
        self._tool_executor = tool_executor

    @abstractmethod
    def _default_config(self) -> ProviderConfig:
        """
        Get the default configuration for this provider.

        Returns:
            Default ProviderConfig
        """
        pass

    @property
    def name(self) -> str:
        """Provider name."""
        return self._config.name

    @property
    def model(self) -> str:
        """Current model."""
        return self._model

    @model.setter
    def model(self, value: str) -> None:
        self._model = value

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key

    @property
    def supports_functions(self) -> bool:
        return self._config.supports_functions

    @property
    def fallback_model(self) -> str:
        return self._config.fallback_model

    def _require_api_key(self) -> str:
        """Return the API key or raise before any network call is made."""
        if self._config.requires_api_key and not self._api_key:
            raise MissingAPIKeyError(self.name)
        return self._api_key or ""

    @abstractmethod
    async def generate(
        self,
        messages: list[dict],
        tools: Optional[list[dict]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> GenerationResult:
        """
        Send a single-shot chat completion request.

        Tool calls returned by the model are executed and their formatted
        results appended to the text.

        Args:
            messages: List of message dicts with 'role' and 'content'
            tools: Optional tool definitions in OpenAI format
            model: Optional model override
            temperature: Optional temperature override
            max_tokens: Optional max tokens override

        Returns:
            GenerationResult with the assembled text
        """
        pass

    @abstractmethod
    def stream_events(
        self,
        messages: list[dict],
        tools: Optional[list[dict]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncGenerator[StreamEvent, None]:
        """
        Send a streaming chat completion request.

        Yields:
            StartEvent, then DeltaEvent/ToolCallEvent in arrival order, then
            DoneEvent carrying the resolved GenerationResult. Failures yield an
            ErrorEvent before the exception propagates.
        """
        pass

    async def stream(
        self,
        messages: list[dict],
        on_event: Optional[EventCallback] = None,
        tools: Optional[list[dict]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> GenerationResult:
        """
        Stream a completion, forwarding every event to a callback.

        Returns:
            The GenerationResult carried by the terminal DoneEvent
        """
        result: Optional[GenerationResult] = None
        async with aclosing(self.stream_events(
            messages, tools=tools, model=model,
            temperature=temperature, max_tokens=max_tokens,
        )) as events:
            async for event in events:
                await emit(on_event, event)
                if isinstance(event, DoneEvent):
                    result = event.result
        if result is None:
            raise ProviderAPIError(f"{self.name} stream ended without a result", code=ErrorCode.NETWORK_ERROR)
        return result

    async def generate_with_fallback(
        self,
        messages: list[dict],
        tools: Optional[list[dict]] = None,
        fallback_model: Optional[str] = None,
        on_event: Optional[EventCallback] = None,
    ) -> GenerationResult:
        """
        Run a completion, retrying once against a fallback model on failure.

        The primary attempt carries the tool definitions and a reinforced
        system message. The fallback attempt sends the original messages
        without tools and is never retried itself. Only provider failures
        trigger the retry; errors raised by on_event propagate unchanged.

        Args:
            messages: Conversation messages
            tools: Tool definitions for the primary attempt
            fallback_model: Model for the retry (provider default if omitted)
            on_event: Stream callback; streams when given, single-shot otherwise

        Returns:
            GenerationResult from whichever attempt succeeded
        """
        primary_messages = reinforce_system_message(messages) if tools else messages
        try:
            if on_event is not None:
                return await self.stream(primary_messages, on_event, tools=tools)
            return await self.generate(primary_messages, tools=tools)
        except (ProviderAPIError, httpx.HTTPError) as e:
            fallback = fallback_model or self._config.fallback_model
            logger.warning(f"{self.name} request failed ({e!r}), retrying with {fallback}")

        if on_event is not None:
            return await self.stream(messages, on_event, model=fallback)
        return await self.generate(messages, model=fallback)

    async def verify_connection(self) -> bool:
        """
        Check that the provider is reachable with the configured key.

        Returns:
            True if a minimal request succeeds
        """
        try:
            await self.generate(
                messages=[{"role": "user", "content": "Hi"}],
                max_tokens=5,
            )
            return True
        except (TradesXBTError, httpx.HTTPError) as e:
            logger.debug(f"{self.name} connection check failed: {e}")
            return False

    def _build_headers(self) -> dict[str, str]:
        """Build request headers with authentication."""
        headers = {
            "Content-Type": "application/json",
        }
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(model={self._model})"
