"""
Provider registry for managing LLM providers in tradesxbt.
Handles registration and selection of the preferred AI service.
"""
import logging
from typing import Any, Callable, Dict, Optional

import httpx

from .base import LLMProvider, ToolExecutor
from .demo import DemoProvider
from .groq import GroqProvider
from .perplexity import PerplexityProvider
from .sanitizer import SystemPromptSanitizer
from ..config import ConfigManager
from ..constants import PROVIDERS, SYSTEM_PROMPT
from ..errors import ConfigurationError


logger = logging.getLogger(__name__)

ProviderFactory = Callable[..., LLMProvider]

# Selection order when no provider is requested explicitly
PREFERENCE_ORDER = ("groq", "perplexity")


class ProviderRegistry:
    """
    Registry for LLM providers.

    Constructed once per application with the configuration and shared
    resources it hands to every provider it creates.
    """

    def __init__(
        self,
        config: ConfigManager,
        http_client: Optional[httpx.AsyncClient] = None,
        tool_executor: Optional[ToolExecutor] = None,
    ) -> None:
        self._config = config
        self._http_client = http_client
        self._tool_executor = tool_executor
        self._factories: Dict[str, ProviderFactory] = {}
        self._instances: Dict[str, LLMProvider] = {}
        self._register_default_providers()

    def _register_default_providers(self) -> None:
        """Register built-in providers."""
        self.register("groq", GroqProvider)
        self.register("perplexity", PerplexityProvider)
        self.register("demo", DemoProvider)

    def register(self, name: str, factory: ProviderFactory) -> None:
        """
        Register a provider factory.

        Args:
            name: Provider name/identifier
            factory: Class or callable building the provider
        """
        self._factories[name.lower()] = factory
        self._instances.pop(name.lower(), None)

    def unregister(self, name: str) -> bool:
        """
        Unregister a provider.

        Returns:
            True if provider was unregistered
        """
        name = name.lower()
        if name in self._factories:
            del self._factories[name]
            self._instances.pop(name, None)
            return True
        return False

    def list_providers(self) -> list[str]:
        return list(self._factories)

    def _api_key_for(self, name: str) -> Optional[str]:
        env_key = PROVIDERS.get(name, {}).get("env_key")
        return self._config.get_api_key(env_key) if env_key else None

    def has_credentials(self, name: str) -> bool:
        """Check whether a provider can be used with the current configuration."""
        if name == "demo":
            return self._config.allow_demo
        return bool(self._api_key_for(name))

    def _build(self, name: str, **overrides: Any) -> LLMProvider:
        factory = self._factories[name]
        kwargs: Dict[str, Any] = {
            "http_client": self._http_client,
            "tool_executor": self._tool_executor,
        }
        if name != "demo":
            kwargs["api_key"] = self._api_key_for(name)
            if self._config.ui.hide_system_prompts:
                kwargs["sanitizer"] = SystemPromptSanitizer(SYSTEM_PROMPT)
            if name == self._config.llm.provider and self._config.llm.model:
                kwargs["model"] = self._config.llm.model
        kwargs.update(overrides)
        return factory(**kwargs)

    def get(self, name: str, **overrides: Any) -> Optional[LLMProvider]:
        """
        Get a provider instance.

        Args:
            name: Provider name
            **overrides: Constructor arguments overriding the defaults

        Returns:
            Provider instance, or None if the name is unknown
        """
        name = name.lower()
        if name not in self._factories:
            return None
        if overrides:
            return self._build(name, **overrides)
        if name not in self._instances:
            self._instances[name] = self._build(name)
        return self._instances[name]

    def get_or_raise(self, name: str) -> LLMProvider:
        provider = self.get(name)
        if provider is None:
            raise ConfigurationError(f"Unknown provider: {name}")
        return provider

    def preferred_name(self) -> str:
        """
        Name of the service to use: the configured provider if it has a key,
        then Groq, then Perplexity, then the demo provider when allowed.

        Raises:
            ConfigurationError: If no AI service is available
        """
        configured = self._config.llm.provider.lower()
        candidates = (configured,) + tuple(p for p in PREFERENCE_ORDER if p != configured)
        for name in candidates:
            if name in self._factories and self.has_credentials(name):
                return name
        if "demo" in self._factories and self._config.allow_demo:
            return "demo"
        raise ConfigurationError("No API keys available for AI services")

    def get_preferred(self) -> LLMProvider:
        """Get the provider instance selected by preferred_name()."""
        name = self.preferred_name()
        logger.debug(f"Using AI service: {name}")
        return self.get_or_raise(name)
