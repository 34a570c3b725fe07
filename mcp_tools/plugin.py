import inspect
import logging
from typing import Dict, List, Type, Optional

from mcp_tools.interfaces import ToolInterface

logger = logging.getLogger(__name__)


class PluginRegistry:
    """Registry for MCP tool plugins.

    This class handles the registration and lookup of tool plugins
    that implement the ToolInterface. Registered tools double as the
    locally invocable capabilities of a tool chain.
    """

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(PluginRegistry, cls).__new__(cls)
            cls._instance._initialize()
        return cls._instance

    def _initialize(self):
        """Initialize the plugin registry"""
        self.tools: Dict[str, Type[ToolInterface]] = {}
        self.instances: Dict[str, ToolInterface] = {}
        self.tool_sources: Dict[str, str] = {}  # Track tool source: "code" or "yaml"
        self.tool_ecosystems: Dict[str, Optional[str]] = {}
        self.tool_os: Dict[str, Optional[str]] = {}

    def register_tool(
        self,
        tool_class: Type[ToolInterface],
        source: str = "code",
        ecosystem: Optional[str] = None,
        os_type: Optional[str] = None,
    ) -> Optional[Type[ToolInterface]]:
        """Register a tool class.

        Args:
            tool_class: A class that implements ToolInterface
            source: Source of the tool ("code" or "yaml")
            ecosystem: Ecosystem the tool belongs to (e.g., "general")
            os_type: OS compatibility ("windows", "non-windows", "all")

        Returns:
            The registered tool class or None if it wasn't registered

        Raises:
            TypeError: If the provided class doesn't implement ToolInterface
        """
        if not inspect.isclass(tool_class):
            raise TypeError(f"Expected a class, got {type(tool_class)}")

        if not issubclass(tool_class, ToolInterface):
            raise TypeError(
                f"Class {tool_class.__name__} does not implement ToolInterface"
            )

        # Skip abstract classes
        if inspect.isabstract(tool_class):
            logger.debug(
                f"Skipping registration of abstract class {tool_class.__name__}"
            )
            return None

        # Create a temporary instance to get the name
        try:
            tool_name = tool_class().name
        except Exception as e:
            logger.error(f"Error creating instance of {tool_class.__name__}: {e}")
            return None

        logger.info(
            f"Registering tool: {tool_name} ({tool_class.__name__}) from {source}"
            f"{f' [ecosystem: {ecosystem}]' if ecosystem else ''}"
        )
        self.tools[tool_name] = tool_class
        self.tool_sources[tool_name] = source
        self.tool_ecosystems[tool_name] = ecosystem
        self.tool_os[tool_name] = os_type
        # A re-registered class must not keep serving a stale instance
        self.instances.pop(tool_name, None)
        return tool_class

    def register_instance(self, instance: ToolInterface, source: str = "code") -> None:
        """Register an already constructed tool instance.

        Args:
            instance: Tool instance to register
            source: Source of the tool ("code" or "yaml")
        """
        if not isinstance(instance, ToolInterface):
            raise TypeError(
                f"Object {instance!r} does not implement ToolInterface"
            )
        self.tools[instance.name] = type(instance)
        self.instances[instance.name] = instance
        self.tool_sources[instance.name] = source

    def get_tool_instance(self, tool_name: str) -> Optional[ToolInterface]:
        """Get or create an instance of a registered tool.

        Args:
            tool_name: Name of the tool to get

        Returns:
            Instance of the tool, or None if not found
        """
        registered_name = self._match_name(tool_name)
        if registered_name is None:
            logger.warning(f"Tool '{tool_name}' not found")
            return None

        if registered_name in self.instances:
            return self.instances[registered_name]

        logger.debug(f"Creating new instance for tool '{registered_name}'")
        try:
            instance = self.tools[registered_name]()
        except Exception as e:
            logger.error(f"Error creating instance of tool {registered_name}: {e}")
            return None
        self.instances[registered_name] = instance
        return instance

    def _match_name(self, tool_name: str) -> Optional[str]:
        """Resolve a tool name, falling back to a case-insensitive match."""
        if tool_name in self.tools:
            return tool_name
        for registered_name in self.tools:
            if registered_name.lower() == tool_name.lower():
                logger.debug(
                    f"Found tool '{tool_name}' with case-insensitive match: '{registered_name}'"
                )
                return registered_name
        return None

    def get_tool_names(self) -> List[str]:
        """Get the names of all registered tools."""
        return list(self.tools.keys())

    def get_tool_sources(self) -> Dict[str, str]:
        """Get the source of all registered tools.

        Returns:
            Dictionary mapping tool names to their sources ("code" or "yaml")
        """
        return self.tool_sources.copy()

    def get_all_instances(self) -> List[ToolInterface]:
        """Get instances of all registered tools.

        This will create instances of tools that haven't been instantiated yet.
        """
        instances = []
        for tool_name in list(self.tools):
            instance = self.get_tool_instance(tool_name)
            if instance is not None:
                instances.append(instance)
        return instances

    def clear(self) -> None:
        """Clear all registered tools and instances."""
        self.tools.clear()
        self.instances.clear()
        self.tool_sources.clear()
        self.tool_ecosystems.clear()
        self.tool_os.clear()


# Create the global registry instance
registry = PluginRegistry()


def register_tool(
    cls=None,
    *,
    source: str = "code",
    ecosystem: Optional[str] = None,
    os_type: Optional[str] = None,
):
    """Decorator to register a tool class with the plugin registry.

    Args:
        cls: The class to register
        source: Source of the tool ("code" or "yaml")
        ecosystem: Ecosystem the tool belongs to (e.g., "general")
        os_type: OS compatibility ("windows", "non-windows", "all")

    Example:
        @register_tool
        class MyTool(ToolInterface):
            ...

        # Or with metadata specified:
        @register_tool(ecosystem="general", os_type="all")
        class ChainTool(ToolInterface):
            ...
    """

    def _register(cls):
        # Store metadata on the class for discovery
        cls._mcp_ecosystem = ecosystem
        cls._mcp_source = source
        cls._mcp_os = os_type

        result = registry.register_tool(
            cls,
            source=source,
            ecosystem=ecosystem,
            os_type=os_type,
        )
        return cls if result is None else result

    if cls is None:
        return _register
    return _register(cls)
