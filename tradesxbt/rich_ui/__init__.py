"""Terminal UI components for tradesxbt."""
from .prompt_input import CommandCompleter, PromptInput
from .renderer import ChatRenderer, StreamPhase, StreamView

__all__ = [
    'ChatRenderer',
    'CommandCompleter',
    'PromptInput',
    'StreamPhase',
    'StreamView',
]
