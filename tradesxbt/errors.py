"""
Error types for tradesxbt.

Every failure the application reports derives from TradesXBTError so callers
at the chat boundary can catch one family and render it.
"""
import json
from enum import Enum
from typing import Any, Optional

import httpx


class ErrorCode(Enum):
    """Machine-readable error categories."""
    MISSING_API_KEY = "MISSING_API_KEY"
    AUTH_ERROR = "AUTH_ERROR"
    RATE_LIMIT = "RATE_LIMIT"
    INVALID_REQUEST = "INVALID_REQUEST"
    MODEL_ERROR = "MODEL_ERROR"
    TOOL_ERROR = "TOOL_ERROR"
    CONTEXT_LENGTH_EXCEEDED = "CONTEXT_LENGTH_EXCEEDED"
    NETWORK_ERROR = "NETWORK_ERROR"
    UNKNOWN = "UNKNOWN"


class TradesXBTError(Exception):
    """Base class for application errors."""

    code: ErrorCode = ErrorCode.UNKNOWN

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ConfigurationError(TradesXBTError):
    """Raised when the application is not configured to perform a request."""


class MissingAPIKeyError(ConfigurationError):
    """Raised before any network call when a required API key is absent."""

    code = ErrorCode.MISSING_API_KEY

    def __init__(self, service: str) -> None:
        super().__init__(f"{service} API key is missing")
        self.service = service
        self.status = 401


class ProviderAPIError(TradesXBTError):
    """
    Raised when an LLM provider returns a non-2xx response or cannot be reached.

    Attributes:
        status: HTTP status code (0 for transport failures)
        code: ErrorCode classifying the failure
        details: Parsed vendor error body, if any
    """

    def __init__(
        self,
        message: str,
        status: int = 0,
        code: ErrorCode = ErrorCode.UNKNOWN,
        details: Optional[Any] = None
    ) -> None:
        super().__init__(message)
        self.status = status
        self.code = code
        self.details = details

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(status={self.status}, code={self.code.value})"


class RateLimitError(ProviderAPIError):
    """LLM provider rate limit (HTTP 429)."""

    def __init__(self, message: str = "Rate limit exceeded", details: Optional[Any] = None) -> None:
        super().__init__(message, status=429, code=ErrorCode.RATE_LIMIT, details=details)


class MarketDataError(TradesXBTError):
    """Raised by the market data client for failed requests."""

    code = ErrorCode.NETWORK_ERROR

    def __init__(self, message: str, status: Optional[int] = None) -> None:
        super().__init__(message)
        self.status = status


class MarketDataRateLimitError(MarketDataError):
    """Market data rate limit (HTTP 429)."""

    code = ErrorCode.RATE_LIMIT

    def __init__(self, message: str = "Rate limit exceeded. Please try again later.") -> None:
        super().__init__(message, status=429)


class ChatBusyError(TradesXBTError):
    """Raised when a message is submitted while another turn is in flight."""

    def __init__(self) -> None:
        super().__init__("A response is already being generated")


class FeedError(TradesXBTError):
    """Raised or returned when a news or social feed cannot be fetched."""

    code = ErrorCode.NETWORK_ERROR


def parse_error_body(response: httpx.Response) -> Any:
    """Return the JSON body of an error response, or its text."""
    try:
        return response.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return response.text


def format_error(error: BaseException) -> str:
    """
    Format an exception as a single user-facing line.

    Args:
        error: The exception to format

    Returns:
        Human-readable message
    """
    if isinstance(error, MissingAPIKeyError):
        return f"{error.message}. Set it in your environment or config file."
    if isinstance(error, (RateLimitError, MarketDataRateLimitError)):
        return f"{error.message.rstrip('.')}. Please wait a moment and try again."
    if isinstance(error, ProviderAPIError):
        if error.code is ErrorCode.AUTH_ERROR:
            return "Authentication error: Invalid API key"
        if error.code is ErrorCode.CONTEXT_LENGTH_EXCEEDED:
            return "The conversation is too long. Start a new chat and try again."
        return f"AI service error ({error.status}): {error.message}"
    if isinstance(error, TradesXBTError):
        return error.message
    if isinstance(error, httpx.TimeoutException):
        return "The request timed out"
    if isinstance(error, httpx.HTTPError):
        return f"Network error: {error}"
    return f"Unexpected error: {error}"