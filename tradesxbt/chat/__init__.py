"""Chat turn orchestration for tradesxbt."""
from .orchestrator import ChatOrchestrator, build_api_messages

__all__ = ['ChatOrchestrator', 'build_api_messages']
