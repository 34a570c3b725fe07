"""MCP Tools - tool contract and plugin registry for MCP."""

# Import interfaces
from mcp_tools.interfaces import ToolInterface

# Import plugin system
from mcp_tools.plugin import (
    register_tool,
    registry,
    PluginRegistry,
)

__version__ = "0.1.0"

__all__ = [
    # Interfaces
    "ToolInterface",
    # Plugin system
    "register_tool",
    "registry",
    "PluginRegistry",
]
