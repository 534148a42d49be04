"""
Perplexity LLM provider implementation for tradesxbt.
"""
from typing import Any, Optional

from .base import ProviderConfig
from .openai_compatible import OpenAICompatibleProvider
from ..constants import PERPLEXITY_MODEL, PROVIDERS


class PerplexityProvider(OpenAICompatibleProvider):
    """
    Perplexity API provider.

    Used when no Groq key is configured. Tool definitions are not sent.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        **kwargs: Any
    ) -> None:
        config = self._default_config()
        if api_key:
            config.api_key = api_key
        if model:
            config.default_model = model
        super().__init__(config, **kwargs)

    def _default_config(self) -> ProviderConfig:
        info = PROVIDERS["perplexity"]
        return ProviderConfig(
            name=info["name"],
            base_url=info["base_url"],
            default_model=PERPLEXITY_MODEL,
            fallback_model=PERPLEXITY_MODEL,
            available_models=list(info["models"]),
            supports_streaming=True,
            supports_functions=False,
        )
