"""
Chaining Plugin

Declarative tool chains across MCP servers.

This plugin provides:
- Chain definitions with dependencies, output mappings and retries
- Validation, batch planning and concurrent batch execution
- A workflow registry with status queries and cooperative cancellation
- Static performance and complexity analysis
- MCP tools and a command line interface for all of the above
"""

from .analysis import ChainAnalyzer
from .capabilities import (
    CallableInvoker,
    CapabilityCatalog,
    CapabilityInvoker,
    CapabilityRef,
    RegistryInvoker,
    ToolInfo,
)
from .errors import (
    ChainError,
    ChainValidationError,
    ParameterResolutionError,
    UnschedulableGraphError,
    WorkflowNotFoundError,
)
from .runtime_data import StepOutcome, StepStatus, WorkflowExecution, WorkflowStatus
from .tools import (
    AnalyzeToolChainPerformanceTool,
    ValidateToolChainTool,
    WorkflowOrchestratorTool,
)
from .workflows import (
    BatchScheduler,
    ChainDefinition,
    GraphValidator,
    ParameterResolver,
    ResolutionMode,
    StepDefinition,
    WorkflowEngine,
    WorkflowRegistry,
)

__all__ = [
    "ChainAnalyzer",
    "CallableInvoker",
    "CapabilityCatalog",
    "CapabilityInvoker",
    "CapabilityRef",
    "RegistryInvoker",
    "ToolInfo",
    "ChainError",
    "ChainValidationError",
    "ParameterResolutionError",
    "UnschedulableGraphError",
    "WorkflowNotFoundError",
    "StepOutcome",
    "StepStatus",
    "WorkflowExecution",
    "WorkflowStatus",
    "AnalyzeToolChainPerformanceTool",
    "ValidateToolChainTool",
    "WorkflowOrchestratorTool",
    "BatchScheduler",
    "ChainDefinition",
    "GraphValidator",
    "ParameterResolver",
    "ResolutionMode",
    "StepDefinition",
    "WorkflowEngine",
    "WorkflowRegistry",
]
