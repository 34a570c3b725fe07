"""
Chaining Errors

Exception hierarchy shared by the validator, scheduler, resolver and registry.
"""

from typing import List, Optional


class ChainError(Exception):
    """Base class for tool chain orchestration errors."""


class ChainValidationError(ChainError, ValueError):
    """Raised when a chain fails structural validation before execution."""

    def __init__(self, errors: List[str], warnings: Optional[List[str]] = None):
        self.errors = list(errors)
        self.warnings = list(warnings or [])
        super().__init__(f"Invalid workflow: {'; '.join(self.errors)}")


class UnschedulableGraphError(ChainError):
    """Raised when no batch order exists for the remaining steps."""

    def __init__(self, step_ids: List[str], reason: str = "circular or unsatisfiable dependencies"):
        self.step_ids = list(step_ids)
        super().__init__(
            f"Unschedulable graph: {reason} among steps {', '.join(self.step_ids)}"
        )


class ParameterResolutionError(ChainError):
    """Raised in strict mode when a parameter reference cannot be resolved."""


class StepStateError(ChainError):
    """Raised on an illegal step status transition."""


class WorkflowNotFoundError(ChainError, KeyError):
    """Raised when a workflow id is unknown to the registry."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "Workflow not found"


class CapabilityNotFoundError(ChainError, LookupError):
    """Raised by an invoker that cannot route a capability reference."""


class CapabilityInvocationError(ChainError):
    """Raised by an invoker when the capability reports a failure."""
