"""
Workflow State

Per-step outcomes, the workflow execution record and the cancellation token.
"""

import copy
import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from ..errors import StepStateError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


class StepStatus(str, Enum):
    """Status of a workflow step."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    SKIPPED = "skipped"

    @property
    def is_terminal(self) -> bool:
        return self in (StepStatus.COMPLETED, StepStatus.FAILED, StepStatus.SKIPPED)


class WorkflowStatus(str, Enum):
    """Workflow execution status."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not WorkflowStatus.RUNNING


@dataclass
class StepOutcome:
    """Outcome of one step, created pending when the chain is accepted."""

    step_id: str
    status: StepStatus = StepStatus.PENDING
    server_name: str = ""
    tool_name: str = ""
    dependencies: List[str] = field(default_factory=list)
    parameters: Optional[Dict[str, Any]] = None
    result: Any = None
    error: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    execution_time: Optional[float] = None  # seconds
    retry_count: int = 0

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def _transition(self, *allowed_from: StepStatus) -> None:
        if self.status not in allowed_from:
            raise StepStateError(
                f"Step '{self.step_id}' cannot leave status '{self.status.value}'"
            )

    def mark_running(self) -> None:
        self._transition(StepStatus.PENDING)
        self.status = StepStatus.RUNNING
        self.started_at = utcnow()

    def mark_completed(self, result: Any, execution_time: float) -> None:
        self._transition(StepStatus.RUNNING)
        self.status = StepStatus.COMPLETED
        self.result = result
        self.completed_at = utcnow()
        self.execution_time = execution_time

    def mark_failed(self, error: str, execution_time: float) -> None:
        self._transition(StepStatus.RUNNING)
        self.status = StepStatus.FAILED
        self.error = error
        self.completed_at = utcnow()
        self.execution_time = execution_time

    def mark_skipped(self) -> None:
        self._transition(StepStatus.PENDING)
        self.status = StepStatus.SKIPPED

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "step_id": self.step_id,
            "status": self.status.value,
            "server_name": self.server_name,
            "tool_name": self.tool_name,
            "dependencies": list(self.dependencies),
            "parameters": self.parameters,
            "result": self.result,
            "error": self.error,
            "started_at": _isoformat(self.started_at),
            "completed_at": _isoformat(self.completed_at),
            "execution_time": self.execution_time,
            "retry_count": self.retry_count,
        }


class CancellationToken:
    """Thread-safe cooperative cancellation flag, checked at batch boundaries."""

    def __init__(self):
        self._event = threading.Event()
        self.reason: Optional[str] = None

    def cancel(self, reason: Optional[str] = None) -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass
class WorkflowExecution:
    """
    Execution record of one workflow run.

    The engine mutates the record while it runs, holding ``lock`` for every
    state change; readers take a consistent copy through ``snapshot``. Once
    the status is terminal it is never changed again. A workflow cancelled
    from outside still receives the outcomes of steps that were in flight,
    the skipped marks of the steps that never ran, the overall result and
    the execution time once the engine winds down.
    """

    workflow_id: str
    name: str = ""
    status: WorkflowStatus = WorkflowStatus.RUNNING
    steps: List[StepOutcome] = field(default_factory=list)
    overall_result: Dict[str, Any] = field(default_factory=dict)
    started_at: datetime = field(default_factory=utcnow)
    completed_at: Optional[datetime] = None
    execution_time: Optional[float] = None  # seconds, wall clock
    error: Optional[str] = None
    lock: threading.RLock = field(
        default_factory=threading.RLock, repr=False, compare=False
    )

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    def get_step(self, step_id: str) -> Optional[StepOutcome]:
        for outcome in self.steps:
            if outcome.step_id == step_id:
                return outcome
        return None

    def finish(self, status: WorkflowStatus, error: Optional[str] = None) -> bool:
        """
        Move a running workflow to a terminal status.

        Returns:
            False if the workflow had already reached a terminal status
        """
        with self.lock:
            if self.is_terminal:
                return False
            self.status = status
            self.error = error if status == WorkflowStatus.FAILED else None
            self.completed_at = utcnow()
            return True

    def snapshot(self) -> "WorkflowExecution":
        """Consistent copy of the record, safe to hand to other threads."""
        with self.lock:
            return WorkflowExecution(
                workflow_id=self.workflow_id,
                name=self.name,
                status=self.status,
                steps=[copy.copy(outcome) for outcome in self.steps],
                overall_result=copy.copy(self.overall_result),
                started_at=self.started_at,
                completed_at=self.completed_at,
                execution_time=self.execution_time,
                error=self.error,
            )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dictionary."""
        with self.lock:
            return {
                "workflow_id": self.workflow_id,
                "name": self.name,
                "status": self.status.value,
                "steps": [outcome.to_dict() for outcome in self.steps],
                "overall_result": self.overall_result,
                "started_at": _isoformat(self.started_at),
                "completed_at": _isoformat(self.completed_at),
                "execution_time": self.execution_time,
                "error": self.error,
            }
