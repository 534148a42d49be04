"""
Chat thread and token history records.

All records are frozen; changes produce new values via dataclasses.replace.
to_dict/from_dict use the camelCase keys of the stored JSON documents.
"""
import time
from dataclasses import dataclass, field, replace
from typing import Any, Optional

from ..llm.base import ToolCall, ToolResult
from ..utils import generate_id, make_thread_title


USER = "user"
AI = "ai"


@dataclass(frozen=True)
class Message:
    """A single chat message."""
    id: str
    content: str
    sender: str
    timestamp: float = field(default_factory=time.time)
    tool_calls: tuple[ToolCall, ...] = ()
    tool_results: tuple[ToolResult, ...] = ()

    @classmethod
    def user(cls, content: str) -> 'Message':
        return cls(id=generate_id(), content=content, sender=USER)

    @classmethod
    def placeholder(cls) -> 'Message':
        """Empty AI message filled in while a response streams."""
        return cls(id=generate_id(), content="", sender=AI)

    @property
    def is_ai(self) -> bool:
        return self.sender == AI

    def to_api_message(self) -> dict:
        """Convert to a role-tagged message for the LLM API."""
        return {"role": "assistant" if self.is_ai else "user", "content": self.content}

    def to_dict(self) -> dict:
        data: dict[str, Any] = {
            "id": self.id,
            "content": self.content,
            "sender": self.sender,
            "timestamp": self.timestamp,
        }
        if self.tool_calls:
            data["toolCalls"] = [call.to_dict() for call in self.tool_calls]
        if self.tool_results:
            data["toolResults"] = [result.to_dict() for result in self.tool_results]
        return data

    @classmethod
    def from_dict(cls, data: dict) -> 'Message':
        return cls(
            id=data["id"],
            content=data.get("content", ""),
            sender=data.get("sender", USER),
            timestamp=data.get("timestamp", 0.0),
            tool_calls=tuple(ToolCall.from_dict(c) for c in data.get("toolCalls") or ()),
            tool_results=tuple(ToolResult.from_dict(r) for r in data.get("toolResults") or ()),
        )


@dataclass(frozen=True)
class Thread:
    """A conversation: an ordered run of messages with a title."""
    id: str
    title: str
    messages: tuple[Message, ...] = ()
    created_at: float = field(default_factory=time.time)
    updated_at: float = 0.0
    is_read: bool = True

    def __post_init__(self) -> None:
        if not self.updated_at:
            object.__setattr__(self, "updated_at", self.created_at)

    @classmethod
    def start(cls, first_message: Message) -> 'Thread':
        """New thread titled after its first user message."""
        now = time.time()
        return cls(
            id=generate_id(),
            title=make_thread_title(first_message.content),
            messages=(first_message,),
            created_at=now,
            updated_at=now,
        )

    def find_message(self, message_id: str) -> Optional[Message]:
        for message in self.messages:
            if message.id == message_id:
                return message
        return None

    def with_message(self, message: Message) -> 'Thread':
        return replace(self, messages=self.messages + (message,), updated_at=time.time())

    def with_replaced(self, message: Message) -> 'Thread':
        """Copy with the message of the same id replaced."""
        messages = tuple(message if m.id == message.id else m for m in self.messages)
        return replace(self, messages=messages, updated_at=time.time())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "messages": [message.to_dict() for message in self.messages],
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "isRead": self.is_read,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'Thread':
        return cls(
            id=data["id"],
            title=data.get("title", "New Chat"),
            messages=tuple(Message.from_dict(m) for m in data.get("messages") or ()),
            created_at=data.get("createdAt", 0.0),
            updated_at=data.get("updatedAt", 0.0),
            is_read=data.get("isRead", True),
        )


@dataclass(frozen=True)
class TokenHistoryItem:
    """A token the user looked at, newest first in the history."""
    token: str
    details: Optional[dict] = None
    added_at: float = field(default_factory=time.time)
    has_notifications: bool = False

    def to_dict(self) -> dict:
        return {
            "token": self.token,
            "details": self.details,
            "addedAt": self.added_at,
            "hasNotifications": self.has_notifications,
        }

    @classmethod
    def from_dict(cls, data: dict) -> 'TokenHistoryItem':
        return cls(
            token=data["token"],
            details=data.get("details"),
            added_at=data.get("addedAt", 0.0),
            has_notifications=bool(data.get("hasNotifications", False)),
        )
