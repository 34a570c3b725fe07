"""
Workflow Registry

In-memory store of workflow executions with status queries and cooperative
cancellation.
"""

import asyncio
import logging
import threading
from typing import Dict, List, Optional

from ..capabilities import CapabilityInvoker
from ..errors import ChainError, ChainValidationError, WorkflowNotFoundError
from ..runtime_data import CancellationToken, WorkflowExecution, WorkflowStatus
from .definition import ChainDefinition
from .engine import WorkflowEngine
from .scheduler import BatchScheduler
from .validator import GraphValidator

logger = logging.getLogger(__name__)


class WorkflowRegistry:
    """
    Registry of workflow executions keyed by workflow id.

    Every accessor holds one lock, so ``status`` and ``list_active`` may be
    polled from other threads while the engine runs. Executions are kept
    until purged.
    """

    def __init__(
        self,
        engine: WorkflowEngine,
        validator: Optional[GraphValidator] = None,
        scheduler: Optional[BatchScheduler] = None,
    ):
        self.engine = engine
        self.validator = validator or GraphValidator()
        self.scheduler = scheduler or engine.scheduler
        self._lock = threading.RLock()
        self._executions: Dict[str, WorkflowExecution] = {}
        self._tokens: Dict[str, CancellationToken] = {}
        self._tasks: Dict[str, "asyncio.Task[WorkflowExecution]"] = {}

    def _prepare(
        self,
        chain: ChainDefinition,
        invoker: Optional[CapabilityInvoker],
        workflow_id: Optional[str],
    ):
        """Validate, plan and register a chain; nothing is stored on failure."""
        report = self.validator.validate(chain)
        if not report.valid:
            raise ChainValidationError(report.errors, report.warnings)

        engine = self.engine if invoker is None else self.engine.with_invoker(invoker)
        plan = self.scheduler.plan(chain)
        execution = engine.create_execution(chain, workflow_id)
        token = CancellationToken()

        with self._lock:
            existing = self._executions.get(execution.workflow_id)
            if existing is not None and not existing.is_terminal:
                raise ChainError(
                    f"Workflow '{execution.workflow_id}' is already running"
                )
            self._executions[execution.workflow_id] = execution
            self._tokens[execution.workflow_id] = token

        if report.warnings:
            logger.info(
                f"Workflow '{execution.workflow_id}' accepted with warnings: "
                f"{'; '.join(report.warnings)}"
            )
        return engine, plan, execution, token

    async def submit(
        self,
        chain: ChainDefinition,
        invoker: Optional[CapabilityInvoker] = None,
        workflow_id: Optional[str] = None,
    ) -> WorkflowExecution:
        """
        Run a chain to completion.

        Args:
            chain: Chain definition
            invoker: Invoker for this run instead of the engine's own
            workflow_id: Id to register under; the chain's id or a generated one otherwise

        Returns:
            The finished WorkflowExecution

        Raises:
            ChainValidationError: If the chain is structurally invalid
            UnschedulableGraphError: If no batch order exists
            ChainError: If a workflow with the same id is still running
        """
        engine, plan, execution, token = self._prepare(chain, invoker, workflow_id)
        return await engine.execute(chain, plan=plan, execution=execution, token=token)

    def start(
        self,
        chain: ChainDefinition,
        invoker: Optional[CapabilityInvoker] = None,
        workflow_id: Optional[str] = None,
    ) -> str:
        """
        Start a chain as a task on the running event loop.

        Raises the same errors as ``submit`` before anything runs.

        Returns:
            The workflow id
        """
        engine, plan, execution, token = self._prepare(chain, invoker, workflow_id)
        task = asyncio.get_running_loop().create_task(
            engine.execute(chain, plan=plan, execution=execution, token=token)
        )
        with self._lock:
            self._tasks[execution.workflow_id] = task
        task.add_done_callback(lambda _: self._forget_task(execution.workflow_id, task))
        return execution.workflow_id

    def _forget_task(self, workflow_id: str, task: asyncio.Task) -> None:
        with self._lock:
            if self._tasks.get(workflow_id) is task:
                del self._tasks[workflow_id]

    async def wait(self, workflow_id: str) -> WorkflowExecution:
        """
        Wait for a started workflow to finish.

        Raises:
            WorkflowNotFoundError: If the id is unknown
        """
        with self._lock:
            task = self._tasks.get(workflow_id)
            execution = self._executions.get(workflow_id)
        if execution is None:
            raise WorkflowNotFoundError(f"Workflow '{workflow_id}' not found")
        if task is not None:
            # A cancelled waiter must not cancel the workflow itself
            await asyncio.shield(task)
        return execution.snapshot()

    def status(self, workflow_id: str) -> Optional[WorkflowExecution]:
        """Snapshot of a workflow, or None if the id is unknown."""
        with self._lock:
            execution = self._executions.get(workflow_id)
        return execution.snapshot() if execution is not None else None

    def cancel(self, workflow_id: str, reason: Optional[str] = None) -> bool:
        """
        Cancel a running workflow.

        Steps already in flight finish normally; no further batch starts.

        Returns:
            False if the workflow is unknown or not running
        """
        with self._lock:
            execution = self._executions.get(workflow_id)
            token = self._tokens.get(workflow_id)
            if execution is None or not execution.finish(WorkflowStatus.CANCELLED):
                return False
            if token is not None:
                token.cancel(reason)

        logger.warning(f"Workflow '{workflow_id}' cancelled")
        return True

    def list_active(self) -> List[str]:
        """Ids of every running workflow."""
        with self._lock:
            return [
                workflow_id
                for workflow_id, execution in self._executions.items()
                if execution.status == WorkflowStatus.RUNNING
            ]

    def list_all(self) -> List[str]:
        with self._lock:
            return list(self._executions)

    def purge(self, workflow_id: str) -> bool:
        """
        Remove a finished workflow.

        Returns:
            False if the workflow is still running

        Raises:
            WorkflowNotFoundError: If the id is unknown
        """
        with self._lock:
            execution = self._executions.get(workflow_id)
            if execution is None:
                raise WorkflowNotFoundError(f"Workflow '{workflow_id}' not found")
            if not execution.is_terminal:
                return False
            del self._executions[workflow_id]
            self._tokens.pop(workflow_id, None)
            self._tasks.pop(workflow_id, None)
        return True
