"""Conversation and token history for tradesxbt."""
from .models import AI, USER, Message, Thread, TokenHistoryItem
from .thread_store import ConversationStore
from .token_history import TokenHistoryStore

__all__ = [
    'AI',
    'USER',
    'Message',
    'Thread',
    'TokenHistoryItem',
    'ConversationStore',
    'TokenHistoryStore',
]
