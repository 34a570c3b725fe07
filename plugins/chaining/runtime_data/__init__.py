"""
Runtime Data Module

Runtime state for tool chain workflows:
- Step outcomes and workflow execution records
- Cooperative cancellation tokens
"""

from .state import (
    CancellationToken,
    StepOutcome,
    StepStatus,
    WorkflowExecution,
    WorkflowStatus,
)

__all__ = [
    "CancellationToken",
    "StepOutcome",
    "StepStatus",
    "WorkflowExecution",
    "WorkflowStatus",
]
