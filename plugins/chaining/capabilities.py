"""
Capabilities

Capability references, the capability catalog used for existence checks and
the invoker contract the execution engine calls into.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, Iterator, List, Optional, Union

from mcp_tools.plugin import PluginRegistry, registry as plugin_registry

from .errors import CapabilityInvocationError, CapabilityNotFoundError

logger = logging.getLogger(__name__)

LOCAL_SERVER = "local"


@dataclass(frozen=True)
class CapabilityRef:
    """Reference to a tool exposed by a named MCP server."""

    server_name: str
    tool_name: str

    @classmethod
    def parse(cls, value: Union[str, "CapabilityRef"]) -> "CapabilityRef":
        """
        Parse a "server/tool" string.

        A bare tool name is taken to live on the local server.
        """
        if isinstance(value, CapabilityRef):
            return value
        server_name, sep, tool_name = str(value).partition("/")
        if not sep:
            return cls(LOCAL_SERVER, server_name)
        return cls(server_name, tool_name)

    def __str__(self) -> str:
        return f"{self.server_name}/{self.tool_name}"


@dataclass
class ToolInfo:
    """Catalog entry for one capability."""

    name: str
    server_name: str = LOCAL_SERVER
    description: str = ""
    input_schema: Dict[str, Any] = field(default_factory=dict)
    category: Optional[str] = None
    estimated_duration_ms: Optional[float] = None
    estimated_complexity: Optional[float] = None

    @property
    def ref(self) -> CapabilityRef:
        return CapabilityRef(self.server_name, self.name)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ToolInfo":
        """Create from a camelCase or snake_case dictionary."""
        return cls(
            name=data.get("name", ""),
            server_name=data.get("serverName", data.get("server_name", LOCAL_SERVER)),
            description=data.get("description", ""),
            input_schema=data.get("inputSchema", data.get("input_schema", {})) or {},
            category=data.get("category"),
            estimated_duration_ms=data.get(
                "estimatedDuration", data.get("estimated_duration_ms")
            ),
            estimated_complexity=data.get(
                "estimatedComplexity", data.get("estimated_complexity")
            ),
        )


class CapabilityCatalog:
    """
    Queryable set of known capabilities.

    Lookups accept a CapabilityRef or a "server/tool" string. With
    ``match_tool_name_only`` a tool is found on any server carrying its name.
    """

    def __init__(
        self,
        tools: Iterable[Union[ToolInfo, CapabilityRef, str]] = (),
        match_tool_name_only: bool = False,
    ):
        self.match_tool_name_only = match_tool_name_only
        self._tools: Dict[CapabilityRef, ToolInfo] = {}
        for tool in tools:
            self.add(tool)

    def add(self, tool: Union[ToolInfo, CapabilityRef, str]) -> ToolInfo:
        """Add a capability to the catalog."""
        if not isinstance(tool, ToolInfo):
            ref = CapabilityRef.parse(tool)
            tool = ToolInfo(name=ref.tool_name, server_name=ref.server_name)
        self._tools[tool.ref] = tool
        return tool

    def get(self, ref: Union[CapabilityRef, str]) -> Optional[ToolInfo]:
        """Look up a catalog entry, or None when unknown."""
        ref = CapabilityRef.parse(ref)
        if ref in self._tools:
            return self._tools[ref]
        if self.match_tool_name_only:
            for known, tool in self._tools.items():
                if known.tool_name == ref.tool_name:
                    return tool
        return None

    def __contains__(self, ref: object) -> bool:
        if not isinstance(ref, (CapabilityRef, str)):
            return False
        return self.get(ref) is not None

    def __iter__(self) -> Iterator[ToolInfo]:
        return iter(list(self._tools.values()))

    def __len__(self) -> int:
        return len(self._tools)

    def refs(self) -> List[CapabilityRef]:
        return list(self._tools)

    @classmethod
    def from_dicts(
        cls, tools: Iterable[Dict[str, Any]], match_tool_name_only: bool = False
    ) -> "CapabilityCatalog":
        """Build a catalog from tool description dictionaries."""
        return cls(
            (ToolInfo.from_dict(tool) for tool in tools),
            match_tool_name_only=match_tool_name_only,
        )

    @classmethod
    def from_registry(
        cls,
        registry: Optional[PluginRegistry] = None,
        server_name: str = LOCAL_SERVER,
    ) -> "CapabilityCatalog":
        """Build a catalog from the tools registered in the plugin registry."""
        registry = registry or plugin_registry
        catalog = cls()
        for instance in registry.get_all_instances():
            catalog.add(
                ToolInfo(
                    name=instance.name,
                    server_name=server_name,
                    description=instance.description,
                    input_schema=instance.input_schema,
                )
            )
        return catalog


class CapabilityInvoker(ABC):
    """Contract for calling a capability with resolved parameters."""

    @abstractmethod
    async def invoke(self, ref: CapabilityRef, parameters: Dict[str, Any]) -> Any:
        """
        Invoke a capability.

        Args:
            ref: Capability to call
            parameters: Fully resolved parameters

        Returns:
            The capability's result

        Raises:
            Exception: Any failure; its message is recorded on the step
        """
        pass


Handler = Callable[[Dict[str, Any]], Union[Any, Awaitable[Any]]]


class CallableInvoker(CapabilityInvoker):
    """Invoker routing capability references to plain or async callables."""

    def __init__(self, handlers: Optional[Dict[Union[CapabilityRef, str], Handler]] = None):
        self._handlers: Dict[CapabilityRef, Handler] = {}
        for ref, handler in (handlers or {}).items():
            self.register(ref, handler)

    def register(self, ref: Union[CapabilityRef, str], handler: Handler) -> None:
        self._handlers[CapabilityRef.parse(ref)] = handler

    def catalog(self) -> CapabilityCatalog:
        """Catalog of every routed capability."""
        return CapabilityCatalog(self._handlers)

    async def invoke(self, ref: CapabilityRef, parameters: Dict[str, Any]) -> Any:
        handler = self._handlers.get(ref)
        if handler is None:
            raise CapabilityNotFoundError(f"Capability '{ref}' is not registered")
        result = handler(parameters)
        if inspect.isawaitable(result):
            result = await result
        return result


class RegistryInvoker(CapabilityInvoker):
    """
    Invoker that calls tools registered in the local plugin registry.

    Only references addressed to ``server_name`` are routed. A tool answering
    ``{"success": False, "error": ...}`` is treated as a failed invocation.
    """

    def __init__(
        self,
        registry: Optional[PluginRegistry] = None,
        server_name: str = LOCAL_SERVER,
    ):
        self.registry = registry or plugin_registry
        self.server_name = server_name

    async def invoke(self, ref: CapabilityRef, parameters: Dict[str, Any]) -> Any:
        if ref.server_name != self.server_name:
            raise CapabilityNotFoundError(
                f"Server '{ref.server_name}' is not reachable from this process"
            )

        tool = self.registry.get_tool_instance(ref.tool_name)
        if tool is None:
            raise CapabilityNotFoundError(f"Tool '{ref.tool_name}' is not registered")

        logger.debug(f"Invoking local tool '{ref.tool_name}'")
        result = await tool.execute_tool(parameters)

        if isinstance(result, dict) and result.get("success") is False:
            raise CapabilityInvocationError(
                str(result.get("error") or f"Tool '{ref.tool_name}' reported failure")
            )
        return result
