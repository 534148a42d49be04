"""
Utility functions for tradesxbt.
"""
import secrets
import time
from datetime import datetime
from typing import Optional

from .constants import CHARS_PER_TOKEN, THREAD_TITLE_LENGTH

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def truncate_string(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """
    Truncate a string to a maximum length.

    Args:
        text: The string to truncate
        max_length: Maximum length of the output string
        suffix: Suffix to append when truncating

    Returns:
        Truncated string
    """
    if len(text) <= max_length:
        return text
    return text[:max_length - len(suffix)] + suffix


def make_thread_title(text: str, length: int = THREAD_TITLE_LENGTH) -> str:
    """
    Derive a thread title from the first user message.

    The first `length` characters are kept and "..." is appended when the
    message is longer.
    """
    text = text.strip()
    if len(text) > length:
        return text[:length] + "..."
    return text


def count_tokens(text: str) -> int:
    """
    Estimate token count for a text string.
    Uses a simple approximation (4 chars per token).

    Args:
        text: The text to count tokens for

    Returns:
        Estimated token count
    """
    if not text:
        return 0
    return len(text) // CHARS_PER_TOKEN


def _to_base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_id() -> str:
    """
    Generate a unique, roughly time-ordered identifier.

    Returns:
        Base36 millisecond timestamp followed by random base36 characters
    """
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(8))
    return _to_base36(millis) + suffix


def format_timestamp(timestamp: Optional[float] = None, fmt: str = "%Y-%m-%d %H:%M:%S") -> str:
    """
    Format a timestamp to a human-readable string.

    Args:
        timestamp: Unix timestamp (uses current time if None)
        fmt: strftime format string

    Returns:
        Formatted timestamp string
    """
    if timestamp is None:
        timestamp = time.time()
    return datetime.fromtimestamp(timestamp).strftime(fmt)


def format_price(price: Optional[float], currency: str = "usd") -> str:
    """
    Format a price with precision suited to its magnitude.

    Args:
        price: Price value
        currency: Currency code

    Returns:
        Formatted price string (e.g., "$64,250.12" or "$0.000012")
    """
    if price is None:
        return "n/a"
    symbol = "$" if currency.lower() == "usd" else f"{currency.upper()} "
    if abs(price) >= 1:
        return f"{symbol}{price:,.2f}"
    return f"{symbol}{price:.6f}".rstrip("0").rstrip(".")


def format_large_number(value: Optional[float]) -> str:
    """
    Format a large number with a magnitude suffix.

    Args:
        value: Number to format

    Returns:
        Formatted string (e.g., "1.23B")
    """
    if value is None:
        return "n/a"
    for threshold, suffix in ((1e12, "T"), (1e9, "B"), (1e6, "M"), (1e3, "K")):
        if abs(value) >= threshold:
            return f"{value / threshold:.2f}{suffix}"
    return f"{value:.2f}"


def format_percent(value: Optional[float]) -> str:
    """Format a percentage change with an explicit sign."""
    if value is None:
        return "n/a"
    return f"{value:+.2f}%"
