"""Tool chain tools for MCP.

This module exposes the tool chain orchestrator, validator and analyzer as
MCP tools.
"""

import logging
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import ValidationError

from config.types import AnalysisOptions, ValidationOptions
from mcp_tools.interfaces import ToolInterface
from mcp_tools.plugin import register_tool

from ..analysis import ChainAnalyzer
from ..capabilities import (
    CapabilityCatalog,
    CapabilityInvoker,
    RegistryInvoker,
    ToolInfo,
)
from ..errors import ChainError
from ..runtime_data import WorkflowStatus
from ..workflows import ChainDefinition, GraphValidator, WorkflowEngine, WorkflowRegistry

STEP_SCHEMA = {
    "type": "object",
    "properties": {
        "id": {"type": "string", "description": "Unique identifier for this step"},
        "serverName": {
            "type": "string",
            "description": "Name of the MCP server to execute on",
        },
        "toolName": {"type": "string", "description": "Name of the tool to execute"},
        "parameters": {
            "type": "object",
            "description": "Parameters to pass to the tool; '$name' values read global variables",
        },
        "dependsOn": {
            "type": "array",
            "items": {"type": "string"},
            "description": "IDs of steps that must complete before this step",
        },
        "outputMapping": {
            "type": "object",
            "description": "Map a parameter to an earlier step output as '<stepId>.<outputKey>'",
        },
        "retryOnFailure": {
            "type": "boolean",
            "description": "Whether to retry this step on failure",
        },
        "maxRetries": {"type": "number", "description": "Maximum number of retries"},
        "estimatedDuration": {
            "type": "number",
            "description": "Estimated duration in milliseconds (analysis only)",
        },
        "estimatedComplexity": {
            "type": "number",
            "description": "Estimated complexity from 1 to 10 (analysis only)",
        },
    },
    "required": ["id", "serverName", "toolName"],
}


def _catalog_from_arguments(tools: Any, match_tool_name_only: bool = False) -> CapabilityCatalog:
    """
    Catalog from an ``availableTools`` argument of "server/tool" strings or dicts.

    An entry that names no server (a bare tool name, or a dict without
    ``serverName``) switches the catalog to matching on tool names alone.
    """
    if not isinstance(tools, list):
        raise ValueError("availableTools must be an array")
    entries = []
    for tool in tools:
        if isinstance(tool, dict):
            if "serverName" not in tool and "server_name" not in tool:
                match_tool_name_only = True
            entries.append(ToolInfo.from_dict(tool))
        elif isinstance(tool, str):
            if "/" not in tool:
                match_tool_name_only = True
            entries.append(tool)
        else:
            raise ValueError(f"Invalid availableTools entry: {tool!r}")
    return CapabilityCatalog(entries, match_tool_name_only=match_tool_name_only)


class ChainOperationType(str, Enum):
    """Operations of the workflow orchestrator tool."""

    EXECUTE = "execute"
    STATUS = "status"
    CANCEL = "cancel"
    LIST_ACTIVE = "list_active"


@register_tool(ecosystem="general", os_type="all")
class WorkflowOrchestratorTool(ToolInterface):
    """Runs tool chains and reports on running workflows."""

    def __init__(
        self,
        registry: Optional[WorkflowRegistry] = None,
        invoker: Optional[CapabilityInvoker] = None,
    ):
        """Initialize the orchestrator tool.

        Args:
            registry: Workflow registry; one is created around ``invoker`` if omitted
            invoker: Capability invoker, the local tool registry by default
        """
        super().__init__()
        self.logger = logging.getLogger(__name__)
        if registry is None:
            registry = WorkflowRegistry(WorkflowEngine(invoker or RegistryInvoker()))
        self.registry = registry

    @property
    def name(self) -> str:
        return "workflow_orchestrator"

    @property
    def description(self) -> str:
        return (
            "Execute multi-step tool chains across MCP servers with dependency "
            "management, parameter passing and error handling"
        )

    @property
    def input_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "operation": {
                    "type": "string",
                    "description": "Operation to perform (default: execute)",
                    "enum": [op.value for op in ChainOperationType],
                    "default": ChainOperationType.EXECUTE.value,
                },
                "workflowId": {
                    "type": "string",
                    "description": "Unique identifier for the workflow",
                },
                "name": {
                    "type": "string",
                    "description": "Human-readable name for the workflow",
                },
                "description": {
                    "type": "string",
                    "description": "Description of what this workflow does",
                },
                "steps": {
                    "type": "array",
                    "description": "Array of workflow steps to execute",
                    "items": STEP_SCHEMA,
                },
                "failFast": {
                    "type": "boolean",
                    "description": "Whether to stop execution on first failure",
                },
                "timeout": {
                    "type": "number",
                    "description": "Maximum execution time in seconds",
                },
                "variables": {
                    "type": "object",
                    "description": "Global variables available to all steps",
                },
            },
            "required": [],
        }

    async def execute_tool(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Execute the tool with the provided arguments."""
        operation = arguments.get("operation") or ChainOperationType.EXECUTE.value
        try:
            operation = ChainOperationType(operation)
        except ValueError:
            return {"success": False, "error": f"Unknown operation: {operation}"}

        if operation == ChainOperationType.LIST_ACTIVE:
            return {"success": True, "active_workflows": self.registry.list_active()}

        if operation == ChainOperationType.EXECUTE:
            return await self._execute(arguments)

        workflow_id = arguments.get("workflowId") or arguments.get("workflow_id")
        if not workflow_id:
            return {"success": False, "error": "Missing required parameter: workflowId"}

        if operation == ChainOperationType.STATUS:
            execution = self.registry.status(workflow_id)
            if execution is None:
                return {"success": False, "error": f"Workflow '{workflow_id}' not found"}
            return {"success": True, "workflow": execution.to_dict()}

        cancelled = self.registry.cancel(workflow_id)
        return {"success": True, "workflow_id": workflow_id, "cancelled": cancelled}

    async def _execute(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        try:
            chain = ChainDefinition.from_dict(arguments)
            execution = await self.registry.submit(chain)
        except ChainError as e:
            self.logger.warning(f"Workflow rejected: {e}")
            return {"success": False, "error": str(e)}
        except ValueError as e:
            return {"success": False, "error": f"Invalid workflow: {e}"}
        except Exception as e:
            self.logger.error(f"Error executing workflow: {e}", exc_info=True)
            return {"success": False, "error": f"Workflow execution failed: {str(e)}"}

        result = execution.to_dict()
        result["success"] = execution.status == WorkflowStatus.COMPLETED
        return result


@register_tool(ecosystem="general", os_type="all")
class ValidateToolChainTool(ToolInterface):
    """Validates a tool chain without running it."""

    def __init__(self, catalog: Optional[CapabilityCatalog] = None):
        super().__init__()
        self.logger = logging.getLogger(__name__)
        self._catalog = catalog

    @property
    def catalog(self) -> CapabilityCatalog:
        # Registered tools can change after construction
        return self._catalog if self._catalog is not None else CapabilityCatalog.from_registry()

    @property
    def name(self) -> str:
        return "validate_tool_chain"

    @property
    def description(self) -> str:
        return (
            "Validate a tool chain for circular dependencies, missing tools "
            "and parameter mapping problems"
        )

    @property
    def input_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "toolChain": {
                    "type": "array",
                    "description": "Tool chain steps to validate",
                    "items": STEP_SCHEMA,
                },
                "variables": {
                    "type": "object",
                    "description": "Global variables the steps may reference",
                },
                "availableTools": {
                    "type": "array",
                    "description": "Known tools as 'server/tool' strings or tool objects; "
                    "defaults to the locally registered tools",
                },
                "matchToolNameOnly": {
                    "type": "boolean",
                    "description": "Match availableTools on tool name regardless of server; "
                    "implied by any entry without a server",
                    "default": False,
                },
                "checkCircularDependencies": {"type": "boolean", "default": True},
                "checkToolAvailability": {"type": "boolean", "default": True},
                "checkParameterCompatibility": {"type": "boolean", "default": True},
                "strict": {
                    "type": "boolean",
                    "description": "Report unresolved references as errors",
                },
            },
            "required": ["toolChain"],
        }

    async def execute_tool(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Execute the tool with the provided arguments."""
        raw_chain = arguments.get("toolChain", [])
        variables = arguments.get("variables")
        try:
            options = ValidationOptions.from_settings(arguments)
            catalog = (
                _catalog_from_arguments(
                    arguments["availableTools"],
                    bool(arguments.get("matchToolNameOnly", False)),
                )
                if "availableTools" in arguments
                else self.catalog
            )
            chain = raw_chain
            if variables is not None and isinstance(raw_chain, list) and all(
                isinstance(step, dict) for step in raw_chain
            ):
                chain = ChainDefinition.from_dict({"steps": raw_chain, "variables": variables})
        except (ValidationError, ValueError) as e:
            return {"success": False, "error": f"Invalid arguments: {e}"}

        report = GraphValidator(catalog=catalog, options=options).validate(chain)

        self.logger.debug(
            f"Validated tool chain: {len(report.errors)} errors, {len(report.warnings)} warnings"
        )
        return report.to_dict()


@register_tool(ecosystem="general", os_type="all")
class AnalyzeToolChainPerformanceTool(ToolInterface):
    """Estimates the performance profile of a tool chain."""

    def __init__(self, catalog: Optional[CapabilityCatalog] = None):
        super().__init__()
        self.logger = logging.getLogger(__name__)
        self._catalog = catalog

    @property
    def name(self) -> str:
        return "analyze_tool_chain_performance"

    @property
    def description(self) -> str:
        return (
            "Analyze a tool chain's estimated duration, bottlenecks, "
            "parallelization potential and complexity"
        )

    @property
    def input_schema(self) -> Dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "toolChain": {
                    "type": "array",
                    "description": "Tool chain steps to analyze",
                    "items": STEP_SCHEMA,
                },
                "includeExecutionMetrics": {"type": "boolean", "default": True},
                "includeComplexityAnalysis": {"type": "boolean", "default": True},
                "includeOptimizationSuggestions": {"type": "boolean", "default": True},
            },
            "required": ["toolChain"],
        }

    async def execute_tool(self, arguments: Dict[str, Any]) -> Dict[str, Any]:
        """Execute the tool with the provided arguments."""
        try:
            options = AnalysisOptions.from_settings(arguments)
            analysis = ChainAnalyzer(catalog=self._catalog, options=options).analyze(
                arguments.get("toolChain", [])
            )
        except (ValidationError, ValueError) as e:
            return {"success": False, "error": f"Invalid tool chain: {e}"}

        return analysis.to_dict()
