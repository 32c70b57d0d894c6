"""Tool system for AgentHub.

Tools are named capabilities the model may invoke during a turn:
- ``BaseTool`` subclasses declare parameters and execute asynchronously
- ``ToolManager`` is the registry the engine dispatches through
- ``create_default_tool_manager`` registers the builtin tools at startup
"""

from .base import BaseTool, ToolParameter, ToolParameterType, ToolResult
from .manager import ToolManager
from .registry import ToolServices, build_tool_services, create_default_tool_manager

__all__ = [
    "BaseTool",
    "ToolManager",
    "ToolParameter",
    "ToolParameterType",
    "ToolResult",
    "ToolServices",
    "build_tool_services",
    "create_default_tool_manager",
]
