"""
Tool Chain Workflows

Declarative orchestration of tool calls across MCP servers.

This module provides:
- Chain definition parsing (dictionaries or YAML)
- Structural validation and batch planning
- Parameter resolution from variables and earlier step outputs
- Batch execution engine and result aggregation
- In-memory workflow registry with cooperative cancellation
"""

from ..runtime_data import StepOutcome, WorkflowExecution, WorkflowStatus
from .aggregator import aggregate_results
from .definition import ChainDefinition, StepDefinition
from .engine import WorkflowEngine
from .registry import WorkflowRegistry
from .resolver import ParameterResolver, ResolutionMode
from .scheduler import BatchScheduler
from .validator import GraphValidator, ValidationReport

__all__ = [
    "StepOutcome",
    "WorkflowExecution",
    "WorkflowStatus",
    "aggregate_results",
    "ChainDefinition",
    "StepDefinition",
    "WorkflowEngine",
    "WorkflowRegistry",
    "ParameterResolver",
    "ResolutionMode",
    "BatchScheduler",
    "GraphValidator",
    "ValidationReport",
]
