"""
Groq LLM provider implementation for tradesxbt.
"""
from typing import Any, Optional

from .base import ProviderConfig
from .openai_compatible import OpenAICompatibleProvider
from ..constants import DEFAULT_MODEL, FALLBACK_MODEL, PROVIDERS


class GroqProvider(OpenAICompatibleProvider):
    """
    Groq API provider for fast inference.

    The primary provider: supports streaming and tool calls.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        """
        Initialize Groq provider.

        Args:
            api_key: Groq API key
            model: Default model to use
            **kwargs: http_client, tool_executor, sanitizer
        """
        config = self._default_config()
        if api_key:
            config.api_key = api_key
        if model:
            config.default_model = model
        super().__init__(config, **kwargs)

    def _default_config(self) -> ProviderConfig:
        info = PROVIDERS["groq"]
        return ProviderConfig(
            name=info["name"],
            base_url=info["base_url"],
            default_model=DEFAULT_MODEL,
            fallback_model=FALLBACK_MODEL,
            available_models=list(info["models"]),
            supports_streaming=True,
            supports_functions=True,
        )
