"""
Text formatting of tool results for inclusion in AI responses.
"""
import json
from typing import Any


def format_tool_result(result: str) -> str:
    """
    Format a JSON tool result for display.

    Args:
        result: JSON-encoded result returned by a tool

    Returns:
        "Error: <error> - <message>" for error payloads, pretty JSON otherwise
    """
    try:
        data: Any = json.loads(result)
    except (json.JSONDecodeError, TypeError):
        return str(result)

    if isinstance(data, dict) and "error" in data:
        message = data.get("message")
        if message:
            return f"Error: {data['error']} - {message}"
        return f"Error: {data['error']}"
    return json.dumps(data, indent=2)


def format_tool_section(name: str, result: str) -> str:
    """Render one tool result as a markdown section appended to the response."""
    return f"\n\n**{name} result:**\n{format_tool_result(result)}"
