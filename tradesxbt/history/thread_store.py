"""
Conversation storage for tradesxbt.

Holds the chat threads as an immutable tuple that is replaced on every
change, persisted as one JSON document under the chatThreads key.
"""
import logging
from dataclasses import replace
from typing import Callable, Optional

from .models import Message, Thread
from ..constants import THREADS_KEY
from ..errors import TradesXBTError
from ..storage.db import KeyValueStore


logger = logging.getLogger(__name__)

Listener = Callable[[], None]


class ConversationStore:
    """
    Manages chat threads and the currently selected thread.

    Every mutation builds a new tuple of threads, writes the whole collection
    to the key/value store and notifies listeners. New threads go first.

    Args:
        kv_store: Backing key/value store
    """

    def __init__(self, kv_store: KeyValueStore) -> None:
        self._kv = kv_store
        self._threads: tuple[Thread, ...] = self._load()
        self._current_id: Optional[str] = None
        self._listeners: list[Listener] = []

    def _load(self) -> tuple[Thread, ...]:
        raw = self._kv.get_json(THREADS_KEY, default=[])
        threads = []
        for item in raw if isinstance(raw, list) else []:
            try:
                threads.append(Thread.from_dict(item))
            except (KeyError, TypeError) as e:
                logger.warning(f"Skipping unreadable stored thread: {e!r}")
        return tuple(threads)

    def _commit(self, threads: tuple[Thread, ...]) -> None:
        self._threads = threads
        self._kv.set_json(THREADS_KEY, [thread.to_dict() for thread in threads])
        self._notify()

    def _notify(self) -> None:
        for listener in list(self._listeners):
            listener()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a change listener.

        Returns:
            Function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    @property
    def threads(self) -> tuple[Thread, ...]:
        return self._threads

    @property
    def current_thread_id(self) -> Optional[str]:
        return self._current_id

    @property
    def current_thread(self) -> Optional[Thread]:
        return self.get(self._current_id) if self._current_id else None

    def get(self, thread_id: str) -> Optional[Thread]:
        for thread in self._threads:
            if thread.id == thread_id:
                return thread
        return None

    def _require(self, thread_id: str) -> Thread:
        thread = self.get(thread_id)
        if thread is None:
            raise TradesXBTError(f"Thread not found: {thread_id}")
        return thread

    def _put(self, thread: Thread) -> None:
        self._commit(tuple(thread if t.id == thread.id else t for t in self._threads))

    def create_thread(self, first_message: Message) -> Thread:
        """
        Start a thread with its first user message and select it.

        Args:
            first_message: Opening user message (also provides the title)

        Returns:
            The new thread
        """
        thread = Thread.start(first_message)
        self._current_id = thread.id
        self._commit((thread,) + self._threads)
        return thread

    def append_message(self, thread_id: str, message: Message) -> Thread:
        thread = self._require(thread_id).with_message(message)
        self._put(thread)
        return thread

    def update_message(
        self,
        thread_id: str,
        message_id: str,
        update: Callable[[Message], Message]
    ) -> Thread:
        """
        Replace a message with the result of applying a function to it.

        Args:
            thread_id: Owning thread
            message_id: Message to update
            update: Function producing the new message value

        Returns:
            The updated thread
        """
        thread = self._require(thread_id)
        message = thread.find_message(message_id)
        if message is None:
            raise TradesXBTError(f"Message not found: {message_id}")
        updated = thread.with_replaced(update(message))
        self._put(updated)
        return updated

    def replace_message(self, thread_id: str, message: Message) -> Thread:
        return self.update_message(thread_id, message.id, lambda _: message)

    def set_read(self, thread_id: str, is_read: bool) -> None:
        thread = self._require(thread_id)
        if thread.is_read != is_read:
            self._put(replace(thread, is_read=is_read))

    def mark_read(self, thread_id: str) -> None:
        self.set_read(thread_id, True)

    def select_thread(self, thread_id: Optional[str]) -> Optional[Thread]:
        """Make a thread current and mark it read (None deselects)."""
        if thread_id is None:
            self._current_id = None
            self._notify()
            return None
        self._require(thread_id)
        self._current_id = thread_id
        self.mark_read(thread_id)
        self._notify()
        return self.get(thread_id)

    def delete_thread(self, thread_id: str) -> bool:
        """
        Delete a thread. The selection is cleared only when the deleted
        thread was the selected one.

        Returns:
            True if a thread was removed
        """
        remaining = tuple(t for t in self._threads if t.id != thread_id)
        if len(remaining) == len(self._threads):
            return False
        if self._current_id == thread_id:
            self._current_id = None
        self._commit(remaining)
        return True

    def unread_count(self) -> int:
        return sum(1 for thread in self._threads if not thread.is_read)

    def clear(self) -> None:
        self._current_id = None
        self._commit(())
