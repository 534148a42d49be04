"""
Offline demo provider for tradesxbt.

Produces keyword-driven canned analysis without any network access, streamed
in three-word chunks with a short delay. Only selected when demo mode is
enabled in configuration.
"""
import asyncio
import random
import re
from typing import Any, AsyncGenerator, Optional

from .base import (
    DeltaEvent,
    DoneEvent,
    GenerationResult,
    LLMProvider,
    ProviderConfig,
    StartEvent,
    StreamEvent,
)
from ..constants import PROVIDERS

CHUNK_WORDS = 3
CHUNK_DELAY = 0.1

GREETINGS = (
    "hi", "hello", "hey", "whats up", "what's up", "how are you",
    "good morning", "good afternoon", "good evening",
)
COMMON_TOKENS = ("btc", "eth", "sol", "link", "bnb", "ada", "dot", "xrp", "doge", "shib")
EXTRA_TOKENS = ("symx", "avax", "matic", "uni", "ltc")
CRYPTO_WORDS = ("coin", "crypto", "trade", "price", "analysis", "buy", "sell")

_DOLLAR_TOKEN = re.compile(r"\$([a-z0-9]+)")
_WORD_TOKEN = re.compile(r"\b(" + "|".join(COMMON_TOKENS + EXTRA_TOKENS) + r")\b")
_GREETING = re.compile(r"\b(" + "|".join(re.escape(g) for g in GREETINGS) + r")\b")


def _last_user_text(messages: list[dict]) -> str:
    for message in reversed(messages):
        if message.get("role") == "user":
            return message.get("content") or ""
    return ""


def _mentioned_tokens(query: str) -> list[str]:
    tokens = [m.upper() for m in _DOLLAR_TOKEN.findall(query)]
    for token in COMMON_TOKENS:
        if token in query and token.upper() not in tokens:
            tokens.append(token.upper())
    match = _WORD_TOKEN.search(query)
    if match and match.group(1).upper() not in tokens:
        tokens.append(match.group(1).upper())
    return tokens


class DemoProvider(LLMProvider):
    """
    Canned-response provider used when no AI service key is configured.

    Args:
        rng: Random source for the varied wording (seed it in tests)
        delay: Seconds to wait between streamed chunks
    """

    def __init__(
        self,
        rng: Optional[random.Random] = None,
        delay: float = CHUNK_DELAY,
        **kwargs: Any
    ) -> None:
        super().__init__(**kwargs)
        self._rng = rng or random.Random()
        self._delay = delay

    def _default_config(self) -> ProviderConfig:
        info = PROVIDERS["demo"]
        return ProviderConfig(
            name=info["name"],
            base_url=info["base_url"],
            default_model="demo",
            fallback_model="demo",
            available_models=list(info["models"]),
            requires_api_key=False,
        )

    def _pick(self, first: str, second: str) -> str:
        return first if self._rng.random() > 0.5 else second

    def compose_response(self, query: str) -> str:
        """
        Build a canned answer for a user query.

        Args:
            query: The user's message

        Returns:
            Response text
        """
        cleaned = query.lower()
        pick = self._pick

        if _GREETING.search(cleaned):
            return (
                "Hey there! I'm your cryptocurrency trading assistant. I can help you with "
                "market analysis, trading signals, and insights about specific coins. "
                "What would you like to know about today?"
            )

        if "help" in cleaned or "can you" in cleaned:
            return (
                "I can help you with cryptocurrency analysis and trading insights. You can ask "
                "me about specific coins like Bitcoin or Ethereum, get market trends, technical "
                "analysis, or trading signals."
            )

        tokens = _mentioned_tokens(cleaned)
        if "SYMX" in tokens:
            return (
                f"SYMX is showing {pick('promising', 'interesting')} market movements recently. "
                f"Volume has been {pick('increasing', 'fluctuating')} with price action suggesting "
                f"{pick('potential upside', 'consolidation around current levels')}. Key support is "
                f"estimated around ${0.1 + self._rng.random() * 0.2:.2f} with resistance at "
                f"${0.4 + self._rng.random() * 0.3:.2f}."
            )

        if tokens:
            return (
                f"Looking at {tokens[0]}, current market analysis shows "
                f"{pick('bullish', 'consolidating')} price action with {pick('strong', 'moderate')} "
                f"trading volume. Recent {pick('developments', 'market movements')} suggest watching "
                f"the {pick('support', 'resistance')} level at ${self._rng.random() * 100:.2f}. "
                + pick(
                    "Consider setting tight stop-losses for risk management.",
                    "Monitor volatility closely before making trading decisions.",
                )
            )

        if "bitcoin" in cleaned:
            return (
                f"Based on recent data for Bitcoin, volatility has been {pick('increasing', 'decreasing')} "
                f"while volume shows {pick('strong', 'moderate')} market activity. Key support levels are "
                f"at ${25000 + int(self._rng.random() * 5000):,} with resistance at "
                f"${30000 + int(self._rng.random() * 10000):,}."
            )

        if "ethereum" in cleaned:
            return (
                f"Ethereum analysis indicates {pick('positive', 'cautious')} sentiment in the market. "
                f"Development activity remains {pick('strong', 'steady')}. Price action suggests "
                f"watching the ${1500 + int(self._rng.random() * 1000):,} level carefully."
            )

        if "market" in cleaned or "trend" in cleaned:
            return (
                f"Current market trends show {pick('bullish', 'bearish')} momentum with "
                f"{pick('increasing', 'decreasing')} institutional interest. Retail sentiment appears "
                f"{pick('positive', 'mixed')} based on social indicators and trading volumes."
            )

        if any(word in cleaned for word in CRYPTO_WORDS):
            return (
                f'I\'ve analyzed your query about "{query}". The data suggests '
                f"{pick('positive', 'neutral')} developments in this area with "
                f"{pick('growing', 'steady')} interest from traders. Consider monitoring volume, "
                "social sentiment, and developer activity for more insights."
            )

        return (
            f'I\'m your cryptocurrency trading assistant. I don\'t have information about "{query}" '
            "as it appears unrelated to crypto markets. What would you like to know about the "
            "crypto markets today?"
        )

    async def generate(
        self,
        messages: list[dict],
        tools: Optional[list[dict]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> GenerationResult:
        return GenerationResult(text=self.compose_response(_last_user_text(messages)))

    async def stream_events(
        self,
        messages: list[dict],
        tools: Optional[list[dict]] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncGenerator[StreamEvent, None]:
        response = self.compose_response(_last_user_text(messages))
        words = response.split(" ")

        yield StartEvent()
        for i in range(0, len(words), CHUNK_WORDS):
            yield DeltaEvent(" ".join(words[i:i + CHUNK_WORDS]) + " ")
            await asyncio.sleep(self._delay)
        yield DoneEvent(GenerationResult(text=response))
