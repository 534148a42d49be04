"""
Constants and configuration defaults for tradesxbt.
"""
from pathlib import Path
from typing import Final

APP_NAME: Final[str] = "tradesxbt"
APP_VERSION: Final[str] = "1.0.0"
APP_DESCRIPTION: Final[str] = "Crypto market assistant with a streaming AI analyst"

CONFIG_DIR: Final[Path] = Path.home() / ".tradesxbt"
CONFIG_FILE: Final[Path] = CONFIG_DIR / "config.json"
STORAGE_DB: Final[Path] = CONFIG_DIR / "storage.db"

# Keys of the persisted JSON documents
THREADS_KEY: Final[str] = "chatThreads"
TOKEN_HISTORY_KEY: Final[str] = "tokenHistory"

DEFAULT_PROVIDER: Final[str] = "groq"
DEFAULT_MODEL: Final[str] = "llama-3.3-70b-versatile"
FALLBACK_MODEL: Final[str] = "llama3-70b-8192"
PERPLEXITY_MODEL: Final[str] = "llama-3.1-sonar-small-128k-online"
DEFAULT_MAX_TOKENS: Final[int] = 4096
DEFAULT_TEMPERATURE: Final[float] = 0.7
LLM_TIMEOUT: Final[float] = 60.0

MAX_CONTEXT_TOKENS: Final[int] = 12000
CONTEXT_LENGTH_LIMIT: Final[int] = 16000
CHARS_PER_TOKEN: Final[int] = 4

THREAD_TITLE_LENGTH: Final[int] = 30
ANALYZING_PLACEHOLDER: Final[str] = "I'm analyzing your request..."

COINGECKO_BASE_URL: Final[str] = "https://api.coingecko.com/api/v3"
COINGECKO_PRO_BASE_URL: Final[str] = "https://pro-api.coingecko.com/api/v3"
MARKET_TIMEOUT: Final[float] = 10.0
MARKET_MAX_RETRIES: Final[int] = 3
RETRYABLE_STATUSES: Final[frozenset] = frozenset({429, 500, 502, 503, 504})

CRYPTOCOMPARE_NEWS_URL: Final[str] = "https://min-api.cryptocompare.com/data/v2/news/"
NEWSAPI_URL: Final[str] = "https://newsapi.org/v2/everything"
TWITTER_API_HOST: Final[str] = "twitter154.p.rapidapi.com"
TWITTER_LIST_ID: Final[str] = "1591033111726391297"

SYSTEM_PROMPT: Final[str] = (
    "You are TradesXBT, an expert cryptocurrency market analyst. "
    "You provide concise, data-driven analysis of tokens, prices, market "
    "trends and on-chain activity. Use the available tools to fetch live "
    "market data whenever a question depends on current prices or volumes. "
    "Be direct, explain your reasoning briefly, and always remind users that "
    "nothing you say is financial advice."
)

TEXT_RESPONSE_REMINDER: Final[str] = (
    "IMPORTANT: Always provide a text response along with any tool calls. "
    "Explain what you are doing and summarize the results for the user."
)

# Providers in order of preference
PROVIDERS: Final[dict] = {
    "groq": {
        "name": "Groq",
        "base_url": "https://api.groq.com/openai/v1",
        "env_key": "GROQ_API_KEY",
        "models": [
            "llama-3.3-70b-versatile",
            "llama3-70b-8192",
            "llama-3.1-8b-instant",
            "mixtral-8x7b-32768",
        ],
    },
    "perplexity": {
        "name": "Perplexity",
        "base_url": "https://api.perplexity.ai",
        "env_key": "PERPLEXITY_API_KEY",
        "models": [
            "llama-3.1-sonar-small-128k-online",
            "llama-3.1-sonar-large-128k-online",
        ],
    },
    "demo": {
        "name": "Demo",
        "base_url": "",
        "env_key": None,
        "models": ["demo"],
    },
}

API_KEY_ENV_VARS: Final[tuple] = (
    "GROQ_API_KEY",
    "PERPLEXITY_API_KEY",
    "COINGECKO_API_KEY",
    "RAPIDAPI_KEY",
    "CRYPTOCOMPARE_API_KEY",
    "NEWSAPI_KEY",
)
