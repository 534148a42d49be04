"""LLM provider modules for tradesxbt."""
from .base import (
    DeltaEvent,
    DoneEvent,
    ErrorEvent,
    GenerationResult,
    LLMProvider,
    StartEvent,
    StreamEvent,
    ToolCall,
    ToolCallEvent,
    ToolResult,
)
from .stream_aggregator import MessageSnapshot, StreamAggregator, aggregate
from .provider_registry import ProviderRegistry
from .groq import GroqProvider
from .perplexity import PerplexityProvider
from .demo import DemoProvider

__all__ = [
    'DeltaEvent', 'DoneEvent', 'ErrorEvent', 'GenerationResult', 'LLMProvider',
    'StartEvent', 'StreamEvent', 'ToolCall', 'ToolCallEvent', 'ToolResult',
    'MessageSnapshot', 'StreamAggregator', 'aggregate',
    'ProviderRegistry', 'GroqProvider', 'PerplexityProvider', 'DemoProvider',
]
