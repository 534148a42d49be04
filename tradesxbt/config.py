"""
Configuration management for tradesxbt.
Handles loading, saving, and accessing configuration from JSON files and environment variables.
"""
import json
import logging
import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Mapping, Optional

from .constants import (
    API_KEY_ENV_VARS,
    CONFIG_FILE,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MODEL,
    DEFAULT_PROVIDER,
    DEFAULT_TEMPERATURE,
    FALLBACK_MODEL,
    MARKET_MAX_RETRIES,
    MARKET_TIMEOUT,
)


logger = logging.getLogger(__name__)


@dataclass
class LLMConfig:
    """LLM-specific configuration."""
    provider: str = DEFAULT_PROVIDER
    model: str = DEFAULT_MODEL
    fallback_model: str = FALLBACK_MODEL
    max_tokens: int = DEFAULT_MAX_TOKENS
    temperature: float = DEFAULT_TEMPERATURE


@dataclass
class UIConfig:
    """UI-specific configuration."""
    streaming: bool = True
    markdown_rendering: bool = True
    hide_system_prompts: bool = False


@dataclass
class MarketConfig:
    """Market data configuration."""
    vs_currency: str = "usd"
    request_timeout: float = MARKET_TIMEOUT
    max_retries: int = MARKET_MAX_RETRIES


@dataclass
class AppConfig:
    """Main application configuration."""
    llm: LLMConfig = field(default_factory=LLMConfig)
    ui: UIConfig = field(default_factory=UIConfig)
    market: MarketConfig = field(default_factory=MarketConfig)
    allow_demo: bool = False
    api_keys: dict = field(default_factory=dict)


class ConfigManager:
    """
    Manages application configuration with support for JSON files and environment variables.

    Environment variables take precedence over config file values for API keys.
    Keys that came from the environment are never written back to the file.
    """

    def __init__(
        self,
        config_file: Optional[Path] = None,
        env: Optional[Mapping[str, str]] = None
    ) -> None:
        """
        Initialize the configuration manager.

        Args:
            config_file: Path of the JSON config file
            env: Environment mapping (defaults to os.environ)
        """
        self._config_file = config_file or CONFIG_FILE
        self._env = env if env is not None else os.environ
        self._env_keys: set[str] = set()
        self._config: AppConfig = AppConfig()
        self._load_config()
        self._load_env_vars()

    def _load_config(self) -> None:
        """Load configuration from JSON file."""
        if not self._config_file.exists():
            return

        try:
            with open(self._config_file, 'r', encoding='utf-8') as f:
                data = json.load(f)

            if 'llm' in data:
                self._config.llm = LLMConfig(**data['llm'])
            if 'ui' in data:
                self._config.ui = UIConfig(**data['ui'])
            if 'market' in data:
                self._config.market = MarketConfig(**data['market'])
            if 'allow_demo' in data:
                self._config.allow_demo = bool(data['allow_demo'])
            if 'api_keys' in data:
                self._config.api_keys = dict(data['api_keys'])
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"Failed to load config file {self._config_file}: {e}")
            self._config = AppConfig()

    def _load_env_vars(self) -> None:
        """Load API keys from environment variables."""
        for key in API_KEY_ENV_VARS:
            value = self._env.get(key)
            if value:
                self._config.api_keys[key] = value
                self._env_keys.add(key)

    def save(self) -> None:
        """Save current configuration to the JSON file."""
        data = {
            'llm': asdict(self._config.llm),
            'ui': asdict(self._config.ui),
            'market': asdict(self._config.market),
            'allow_demo': self._config.allow_demo,
            'api_keys': {k: v for k, v in self._config.api_keys.items()
                         if k not in self._env_keys},
        }

        self._config_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self._config_file, 'w', encoding='utf-8') as f:
            json.dump(data, f, indent=2)

    @property
    def config(self) -> AppConfig:
        """Get the current configuration."""
        return self._config

    @property
    def llm(self) -> LLMConfig:
        """Get LLM configuration."""
        return self._config.llm

    @property
    def ui(self) -> UIConfig:
        """Get UI configuration."""
        return self._config.ui

    @property
    def market(self) -> MarketConfig:
        """Get market data configuration."""
        return self._config.market

    @property
    def allow_demo(self) -> bool:
        return self._config.allow_demo

    @allow_demo.setter
    def allow_demo(self, value: bool) -> None:
        self._config.allow_demo = value

    def get_api_key(self, key_name: str) -> Optional[str]:
        """
        Get an API key by name.

        Args:
            key_name: The name of the API key (e.g., 'GROQ_API_KEY')

        Returns:
            The API key value or None if not found
        """
        return self._config.api_keys.get(key_name) or self._env.get(key_name) or None

    def set_api_key(self, key_name: str, value: str, persist: bool = False) -> None:
        """
        Set an API key.

        Args:
            key_name: The name of the API key
            value: The API key value
            persist: Whether to save to config file
        """
        self._config.api_keys[key_name] = value
        self._env_keys.discard(key_name)
        if persist:
            self.save()

    def update_llm(self, **kwargs) -> None:
        """Update LLM settings in memory."""
        for key, value in kwargs.items():
            if value is not None and hasattr(self._config.llm, key):
                setattr(self._config.llm, key, value)

    def reset(self) -> None:
        """Reset configuration to defaults, keeping environment keys."""
        self._config = AppConfig()
        self._env_keys.clear()
        self._load_env_vars()
