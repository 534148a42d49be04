"""
Chat orchestration for tradesxbt.

Runs one chat turn at a time: records the user message, streams the AI
answer into a placeholder message, and finalizes it with the provider's
resolved text, tool calls and tool results.
"""
import logging
from dataclasses import replace
from typing import Callable, Optional

from ..constants import ANALYZING_PLACEHOLDER, SYSTEM_PROMPT
from ..errors import ChatBusyError
from ..history.models import Message, Thread
from ..history.thread_store import ConversationStore
from ..llm.base import LLMProvider, StreamEvent
from ..llm.context_window import trim_messages
from ..llm.stream_aggregator import (
    MessageSnapshot,
    SnapshotDiff,
    Started,
    StreamAggregator,
    TextAppended,
    ToolCallUpdated,
)
from ..tools.registry import ToolRegistry


logger = logging.getLogger(__name__)

ProviderFactory = Callable[[], LLMProvider]
StreamListener = Callable[[MessageSnapshot, SnapshotDiff], None]


def build_api_messages(messages: tuple[Message, ...], system_prompt: str = SYSTEM_PROMPT) -> list[dict]:
    """
    Convert a thread transcript to provider messages.

    Args:
        messages: Messages in thread order
        system_prompt: Prompt placed before the transcript

    Returns:
        System message followed by the trimmed transcript
    """
    api_messages = [{"role": "system", "content": system_prompt}]
    api_messages.extend(message.to_api_message() for message in messages)
    return trim_messages(api_messages)


class ChatOrchestrator:
    """
    Drives chat turns against the preferred AI provider.

    Args:
        store: Conversation store the turn is written to
        provider_factory: Returns the provider for a turn
        tool_registry: Tools offered to providers that support function calling
        fallback_model: Model for the single retry after a failed attempt
        streaming: Stream responses when True, single-shot otherwise
    """

    def __init__(
        self,
        store: ConversationStore,
        provider_factory: ProviderFactory,
        tool_registry: Optional[ToolRegistry] = None,
        fallback_model: Optional[str] = None,
        streaming: bool = True,
    ) -> None:
        self._store = store
        self._provider_factory = provider_factory
        self._tool_registry = tool_registry
        self._fallback_model = fallback_model
        self._streaming = streaming
        self._is_processing = False
        self._is_focused = True
        self._unread_count = 0
        self._last_error: Optional[BaseException] = None
        self._listeners: list[StreamListener] = []

    @property
    def store(self) -> ConversationStore:
        return self._store

    @property
    def is_processing(self) -> bool:
        return self._is_processing

    @property
    def is_focused(self) -> bool:
        return self._is_focused

    @property
    def unread_count(self) -> int:
        return self._unread_count

    @property
    def last_error(self) -> Optional[BaseException]:
        return self._last_error

    @property
    def current_thread(self) -> Optional[Thread]:
        return self._store.current_thread

    def subscribe(self, listener: StreamListener) -> Callable[[], None]:
        """
        Receive every (snapshot, diff) pair of the streaming AI message.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def new_chat(self) -> None:
        """Deselect the current thread; the next message starts a new one."""
        self._store.select_thread(None)

    def select_thread(self, thread_id: str) -> Optional[Thread]:
        thread = self._store.get(thread_id)
        if thread is not None and not thread.is_read and self._unread_count:
            self._unread_count -= 1
        return self._store.select_thread(thread_id)

    def delete_thread(self, thread_id: str) -> bool:
        return self._store.delete_thread(thread_id)

    def set_focused(self, focused: bool) -> None:
        self._is_focused = focused
        if focused:
            self._unread_count = 0

    async def send_message(self, text: str) -> Optional[Message]:
        """
        Run one chat turn.

        Empty input is ignored. Provider failures are logged and kept in
        last_error; whatever was streamed so far stays in the thread.

        Args:
            text: User input

        Returns:
            The finalized AI message, or None if nothing was sent or the turn failed

        Raises:
            ChatBusyError: If a turn is already in progress
        """
        text = text.strip()
        if not text:
            return None
        if self._is_processing:
            raise ChatBusyError()

        self._is_processing = True
        self._last_error = None
        try:
            user_message = Message.user(text)
            thread = self._store.current_thread
            if thread is None:
                thread = self._store.create_thread(user_message)
            else:
                thread = self._store.append_message(thread.id, user_message)

            history = thread.messages
            placeholder = Message.placeholder()
            self._store.append_message(thread.id, placeholder)
            return await self._run_turn(thread.id, placeholder.id, history)
        finally:
            self._is_processing = False

    async def _run_turn(self, thread_id: str, message_id: str, history: tuple[Message, ...]) -> Optional[Message]:
        aggregator = StreamAggregator()

        def on_event(event: StreamEvent) -> None:
            snapshot, diff = aggregator.apply(event)
            if isinstance(diff, (Started, TextAppended, ToolCallUpdated)):
                self._apply_snapshot(thread_id, message_id, snapshot)
            for listener in list(self._listeners):
                listener(snapshot, diff)

        try:
            provider = self._provider_factory()
            tools = None
            if self._tool_registry is not None and provider.supports_functions:
                tools = self._tool_registry.definitions()
            result = await provider.generate_with_fallback(
                build_api_messages(history),
                tools=tools,
                fallback_model=self._fallback_model,
                on_event=on_event if self._streaming else None,
            )

            final = self._store.get(thread_id).find_message(message_id)
            final = replace(
                final,
                content=result.text,
                tool_calls=result.tool_calls,
                tool_results=result.tool_results,
            )
            self._store.replace_message(thread_id, final)
            self._store.set_read(thread_id, self._is_focused)
            if not self._is_focused:
                self._unread_count += 1
            return final
        except Exception as e:
            logger.exception(f"Chat turn failed in thread {thread_id}")
            self._last_error = e
            return None

    def _apply_snapshot(self, thread_id: str, message_id: str, snapshot: MessageSnapshot) -> None:
        content = snapshot.text
        if not content and snapshot.tool_calls:
            content = ANALYZING_PLACEHOLDER
        self._store.update_message(
            thread_id,
            message_id,
            lambda message: replace(message, content=content, tool_calls=snapshot.tool_calls),
        )
