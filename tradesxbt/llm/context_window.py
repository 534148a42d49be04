"""
Context window management for chat requests.

Token counts are estimated at a consistent 4 characters per token.
"""
from dataclasses import dataclass

from ..constants import CONTEXT_LENGTH_LIMIT, MAX_CONTEXT_TOKENS
from ..utils import count_tokens


@dataclass
class ContextMetrics:
    """Metrics for context window usage.

    Attributes:
        total_tokens: Estimated total tokens in the context.
        percentage: Context usage as percentage (0-100).
        message_count: Number of messages in the context.
    """
    total_tokens: int
    percentage: int
    message_count: int


def estimate_message_tokens(message: dict) -> int:
    """Estimate tokens for one role-tagged message."""
    return count_tokens(message.get("content") or "")


def estimate_tokens(messages: list[dict]) -> int:
    """Estimate total tokens for a message list."""
    return sum(estimate_message_tokens(m) for m in messages)


def calculate_metrics(messages: list[dict], limit: int = CONTEXT_LENGTH_LIMIT) -> ContextMetrics:
    """
    Calculate context usage for a message list.

    Args:
        messages: Role-tagged messages
        limit: Context size in tokens

    Returns:
        ContextMetrics with the percentage clamped to 0-100
    """
    total = estimate_tokens(messages)
    percentage = min(100, max(0, int(total * 100 / limit))) if limit > 0 else 0
    return ContextMetrics(total_tokens=total, percentage=percentage, message_count=len(messages))


def trim_messages(messages: list[dict], max_tokens: int = MAX_CONTEXT_TOKENS) -> list[dict]:
    """
    Trim a conversation to fit the token budget.

    System messages and everything from the latest user message on are
    always kept. Older messages are then added back newest-first while the
    estimate stays within the budget. Original order is preserved.

    Args:
        messages: Role-tagged messages in conversation order
        max_tokens: Token budget

    Returns:
        A new, possibly shorter, list of messages
    """
    if estimate_tokens(messages) <= max_tokens:
        return list(messages)

    last_user = max(
        (i for i, m in enumerate(messages) if m.get("role") == "user"),
        default=len(messages)
    )

    keep: set[int] = {
        i for i, m in enumerate(messages)
        if m.get("role") == "system" or i >= last_user
    }
    budget = sum(estimate_message_tokens(messages[i]) for i in keep)

    for i in range(last_user - 1, -1, -1):
        if i in keep:
            continue
        cost = estimate_message_tokens(messages[i])
        if budget + cost > max_tokens:
            break
        keep.add(i)
        budget += cost

    return [m for i, m in enumerate(messages) if i in keep]
