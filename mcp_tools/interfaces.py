"""Tool contract for MCP.

Every tool exposed over MCP implements ToolInterface. Registered tools are
also the capabilities a tool chain can call on the local server.
"""

from abc import ABC, abstractmethod
from typing import Dict, Any


class ToolInterface(ABC):
    """Base interface for all tools."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Name the tool is registered and invoked under."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Human readable summary shown to MCP clients."""

    @property
    @abstractmethod
    def input_schema(self) -> Dict[str, Any]:
        """JSON schema of the tool arguments."""

    @abstractmethod
    async def execute_tool(self, arguments: Dict[str, Any]) -> Any:
        """Run the tool.

        Args:
            arguments: Arguments matching input_schema

        Returns:
            The tool result. Dict results with ``success: False`` are treated
            as failures when the tool is called from a chain.
        """
