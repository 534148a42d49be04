"""Streaming aggregation of provider events into message snapshots.

StreamAggregator folds StreamEvents into immutable MessageSnapshots and
reports each step as a diff, so the presentation layer can subscribe to
changes without the aggregation logic knowing about rendering.

Merge rules:
- Text deltas are appended in arrival order.
- Tool-call fragments are merged by id. The first fragment for an id seeds
  the record; later fragments only append to its arguments. The name of a
  call is never replaced once seen.
- A StartEvent begins a fresh message (a fallback attempt re-streams from
  the beginning).
- Done and error events do not change the accumulated state.
"""

from dataclasses import dataclass
from typing import AsyncIterable, AsyncIterator, Iterable, Iterator, Optional, Union

from .base import (
    DeltaEvent,
    DoneEvent,
    ErrorEvent,
    GenerationResult,
    StartEvent,
    StreamEvent,
    ToolCall,
    ToolCallEvent,
)


@dataclass(frozen=True)
class MessageSnapshot:
    """Immutable view of an AI message being assembled."""
    text: str = ""
    tool_calls: tuple[ToolCall, ...] = ()
    result: Optional[GenerationResult] = None
    error: Optional[BaseException] = None

    @property
    def is_complete(self) -> bool:
        return self.result is not None

    @property
    def is_failed(self) -> bool:
        return self.error is not None

    def find_call(self, call_id: str) -> Optional[ToolCall]:
        for call in self.tool_calls:
            if call.id == call_id:
                return call
        return None


@dataclass(frozen=True)
class Started:
    """A new message began."""


@dataclass(frozen=True)
class TextAppended:
    """Only the newly arrived text slice."""
    text: str


@dataclass(frozen=True)
class ToolCallUpdated:
    """The full current state of one tool call."""
    tool_call: ToolCall
    is_new: bool


@dataclass(frozen=True)
class Completed:
    result: GenerationResult


@dataclass(frozen=True)
class Failed:
    error: BaseException


SnapshotDiff = Union[Started, TextAppended, ToolCallUpdated, Completed, Failed]


class StreamAggregator:
    """Folds StreamEvents into MessageSnapshots.

    Example:
        aggregator = StreamAggregator()
        for event in events:
            snapshot, diff = aggregator.apply(event)
    """

    def __init__(self) -> None:
        self._snapshot = MessageSnapshot()

    @property
    def snapshot(self) -> MessageSnapshot:
        """Current snapshot."""
        return self._snapshot

    def apply(self, event: StreamEvent) -> tuple[MessageSnapshot, SnapshotDiff]:
        """Apply one event.

        Args:
            event: The next event in arrival order

        Returns:
            Tuple of (new snapshot, diff describing the change)
        """
        snapshot = self._snapshot

        if isinstance(event, StartEvent):
            self._snapshot = MessageSnapshot()
            return self._snapshot, Started()

        if isinstance(event, DeltaEvent):
            self._snapshot = MessageSnapshot(
                text=snapshot.text + event.data,
                tool_calls=snapshot.tool_calls,
            )
            return self._snapshot, TextAppended(event.data)

        if isinstance(event, ToolCallEvent):
            call, calls, is_new = _merge_tool_call(snapshot.tool_calls, event)
            self._snapshot = MessageSnapshot(text=snapshot.text, tool_calls=calls)
            return self._snapshot, ToolCallUpdated(call, is_new)

        if isinstance(event, DoneEvent):
            self._snapshot = MessageSnapshot(
                text=snapshot.text,
                tool_calls=snapshot.tool_calls,
                result=event.result,
            )
            return self._snapshot, Completed(event.result)

        if isinstance(event, ErrorEvent):
            self._snapshot = MessageSnapshot(
                text=snapshot.text,
                tool_calls=snapshot.tool_calls,
                error=event.error,
            )
            return self._snapshot, Failed(event.error)

        raise TypeError(f"Unknown stream event: {event!r}")


def _merge_tool_call(
    calls: tuple[ToolCall, ...],
    event: ToolCallEvent
) -> tuple[ToolCall, tuple[ToolCall, ...], bool]:
    incoming = event.tool_call
    for position, existing in enumerate(calls):
        if existing.id == incoming.id:
            merged = existing.with_arguments(existing.function.arguments + event.arguments_delta)
            return merged, calls[:position] + (merged,) + calls[position + 1:], False

    seeded = ToolCall.create(incoming.id, incoming.function.name, event.arguments_delta)
    return seeded, calls + (seeded,), True


def aggregate(events: Iterable[StreamEvent]) -> Iterator[MessageSnapshot]:
    """Lazily yield the snapshot after each event."""
    aggregator = StreamAggregator()
    for event in events:
        snapshot, _ = aggregator.apply(event)
        yield snapshot


async def aggregate_stream(events: AsyncIterable[StreamEvent]) -> AsyncIterator[tuple[MessageSnapshot, SnapshotDiff]]:
    """Async variant yielding (snapshot, diff) pairs as events arrive."""
    aggregator = StreamAggregator()
    async for event in events:
        yield aggregator.apply(event)
