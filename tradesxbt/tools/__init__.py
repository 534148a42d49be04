"""Tools the AI analyst can call."""
from .formatting import format_tool_result, format_tool_section
from .catalog import ToolCatalog, ToolDefinition, get_builtin_tools
from .simulated import SimulatedConnectionManager
from .registry import ToolRegistry

__all__ = [
    'format_tool_result',
    'format_tool_section',
    'ToolCatalog',
    'ToolDefinition',
    'get_builtin_tools',
    'SimulatedConnectionManager',
    'ToolRegistry',
]
