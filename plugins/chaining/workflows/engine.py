"""
Workflow Engine

Execute tool chains batch by batch against a capability invoker.
"""

import asyncio
import logging
import time
import uuid
from typing import Any, Dict, List, Optional

from config import env

from ..capabilities import CapabilityInvoker
from ..errors import ParameterResolutionError
from ..runtime_data import (
    CancellationToken,
    StepOutcome,
    StepStatus,
    WorkflowExecution,
    WorkflowStatus,
)
from ..runtime_data.state import utcnow
from .aggregator import aggregate_results
from .definition import ChainDefinition, StepDefinition
from .resolver import ParameterResolver
from .scheduler import BatchScheduler

STEPS_FAILED_ERROR = "One or more workflow steps failed"
TIMED_OUT_ERROR = "Workflow timed out"


def describe_error(error: BaseException) -> str:
    """Message recorded for a failed invocation."""
    return str(error) or type(error).__name__


class WorkflowEngine:
    """
    Tool chain execution engine.

    Steps of one batch run concurrently; the next batch starts only when
    every step of the current one has finished. Cancellation and the chain
    timeout are checked between batches.
    """

    def __init__(
        self,
        invoker: CapabilityInvoker,
        resolver: Optional[ParameterResolver] = None,
        scheduler: Optional[BatchScheduler] = None,
        retry_backoff_seconds: Optional[float] = None,
    ):
        """
        Initialize workflow engine.

        Args:
            invoker: Collaborator that calls capabilities
            resolver: Parameter resolver (mode taken from settings by default)
            scheduler: Batch scheduler
            retry_backoff_seconds: Delay between attempts of a retried step
        """
        self.logger = logging.getLogger(__name__)
        self.invoker = invoker
        self.resolver = resolver or ParameterResolver()
        self.scheduler = scheduler or BatchScheduler()
        if retry_backoff_seconds is None:
            retry_backoff_seconds = env.get_setting("chain_retry_backoff_seconds", 0.0)
        self.retry_backoff_seconds = float(retry_backoff_seconds or 0.0)

    def with_invoker(self, invoker: CapabilityInvoker) -> "WorkflowEngine":
        """Engine sharing this one's configuration but calling another invoker."""
        return WorkflowEngine(
            invoker,
            resolver=self.resolver,
            scheduler=self.scheduler,
            retry_backoff_seconds=self.retry_backoff_seconds,
        )

    def create_execution(
        self, chain: ChainDefinition, workflow_id: Optional[str] = None
    ) -> WorkflowExecution:
        """Running execution record with one pending outcome per step."""
        workflow_id = workflow_id or chain.workflow_id or f"workflow_{uuid.uuid4().hex[:12]}"
        return WorkflowExecution(
            workflow_id=workflow_id,
            name=chain.name,
            steps=[
                StepOutcome(
                    step_id=step.id,
                    server_name=step.server_name,
                    tool_name=step.tool_name,
                    dependencies=step.dependency_ids,
                )
                for step in chain.steps
            ],
        )

    async def execute(
        self,
        chain: ChainDefinition,
        plan: Optional[List[List[StepDefinition]]] = None,
        execution: Optional[WorkflowExecution] = None,
        token: Optional[CancellationToken] = None,
    ) -> WorkflowExecution:
        """
        Execute a chain.

        Args:
            chain: Chain definition, already validated
            plan: Batches from the scheduler, computed when not given
            execution: Record to update, created when not given
            token: Cancellation token checked before each batch

        Returns:
            The finished WorkflowExecution

        Raises:
            UnschedulableGraphError: If no plan exists for the chain
        """
        if plan is None:
            plan = self.scheduler.plan(chain)
        if execution is None:
            execution = self.create_execution(chain)
        if token is None:
            token = CancellationToken()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + chain.timeout if chain.timeout else None
        started = time.perf_counter()
        failure: Optional[str] = None

        self.logger.info(
            f"Starting workflow '{execution.workflow_id}' "
            f"({len(chain.steps)} steps in {len(plan)} batches)"
        )

        try:
            for index, batch in enumerate(plan):
                if token.cancelled or execution.is_terminal:
                    self.logger.warning(
                        f"Workflow '{execution.workflow_id}' cancelled before batch {index}"
                    )
                    break
                if deadline is not None and loop.time() >= deadline:
                    failure = TIMED_OUT_ERROR
                    break

                self.logger.info(
                    f"Workflow '{execution.workflow_id}': running batch {index} "
                    f"[{', '.join(step.id for step in batch)}]"
                )
                await asyncio.gather(
                    *(
                        self._execute_step(chain, step, execution, deadline)
                        for step in batch
                    )
                )

                if chain.fail_fast:
                    failed = self._first_failure(execution, batch)
                    if failed is not None:
                        failure = f"Step '{failed.step_id}' failed: {failed.error}"
                        break
                if (
                    deadline is not None
                    and loop.time() >= deadline
                    and self._has_failures(execution, batch)
                ):
                    failure = TIMED_OUT_ERROR
                    break
        except asyncio.CancelledError:
            self.logger.warning(f"Workflow '{execution.workflow_id}' task was cancelled")
            token.cancel("task cancelled")
            self._finalize(
                execution, token, None, time.perf_counter() - started, interrupted=True
            )
            raise
        except Exception as e:
            self.logger.error(
                f"Workflow '{execution.workflow_id}' execution failed: {e}", exc_info=True
            )
            failure = f"Workflow execution failed: {describe_error(e)}"

        self._finalize(execution, token, failure, time.perf_counter() - started)
        return execution

    async def _execute_step(
        self,
        chain: ChainDefinition,
        step: StepDefinition,
        execution: WorkflowExecution,
        deadline: Optional[float],
    ) -> None:
        outcome = execution.get_step(step.id)
        with execution.lock:
            outcome.mark_running()
            outcomes = list(execution.steps)

        started = time.perf_counter()
        try:
            parameters = self.resolver.resolve(step, chain.variables, outcomes)
        except ParameterResolutionError as e:
            self.logger.warning(f"Step '{step.id}' failed: {e}")
            with execution.lock:
                outcome.mark_failed(str(e), time.perf_counter() - started)
            return

        with execution.lock:
            outcome.parameters = parameters

        error = ""
        for attempt in range(step.max_attempts):
            if attempt:
                with execution.lock:
                    outcome.retry_count = attempt
                self.logger.info(
                    f"Retrying step '{step.id}' (attempt {attempt + 1}/{step.max_attempts})"
                )
                if self.retry_backoff_seconds:
                    await asyncio.sleep(self.retry_backoff_seconds)

            try:
                result = await self._invoke(step, parameters, deadline)
            except asyncio.TimeoutError as e:
                if deadline is None:
                    error = describe_error(e)
                    continue
                error = f"Step '{step.id}' timed out after {chain.timeout:g}s"
                break
            except Exception as e:
                error = describe_error(e)
                self.logger.warning(f"Step '{step.id}' attempt {attempt + 1} failed: {error}")
                continue

            with execution.lock:
                outcome.mark_completed(result, time.perf_counter() - started)
            self.logger.debug(f"Step '{step.id}' completed")
            return

        self.logger.warning(f"Step '{step.id}' failed: {error}")
        with execution.lock:
            outcome.mark_failed(error, time.perf_counter() - started)

    async def _invoke(
        self, step: StepDefinition, parameters: Dict[str, Any], deadline: Optional[float]
    ) -> Any:
        if deadline is None:
            return await self.invoker.invoke(step.capability, parameters)
        remaining = deadline - asyncio.get_running_loop().time()
        if remaining <= 0:
            raise asyncio.TimeoutError()
        return await asyncio.wait_for(
            self.invoker.invoke(step.capability, parameters), remaining
        )

    @staticmethod
    def _first_failure(
        execution: WorkflowExecution, batch: List[StepDefinition]
    ) -> Optional[StepOutcome]:
        # Declaration order inside the batch decides which failure is reported
        with execution.lock:
            for step in batch:
                outcome = execution.get_step(step.id)
                if outcome.status == StepStatus.FAILED:
                    return outcome
        return None

    @staticmethod
    def _has_failures(execution: WorkflowExecution, batch: List[StepDefinition]) -> bool:
        with execution.lock:
            return any(
                execution.get_step(step.id).status == StepStatus.FAILED for step in batch
            )

    def _finalize(
        self,
        execution: WorkflowExecution,
        token: CancellationToken,
        failure: Optional[str],
        elapsed: float,
        interrupted: bool = False,
    ) -> None:
        with execution.lock:
            for outcome in execution.steps:
                if outcome.status == StepStatus.PENDING:
                    outcome.mark_skipped()
                elif interrupted and outcome.status == StepStatus.RUNNING:
                    # Invocation was cancelled along with the workflow task
                    outcome.mark_failed(
                        f"Step '{outcome.step_id}' was cancelled",
                        (utcnow() - outcome.started_at).total_seconds(),
                    )
            execution.overall_result = aggregate_results(execution.steps)
            execution.execution_time = elapsed

            if token.cancelled:
                status, error = WorkflowStatus.CANCELLED, None
            elif failure is not None:
                status, error = WorkflowStatus.FAILED, failure
            elif any(outcome.status != StepStatus.COMPLETED for outcome in execution.steps):
                status, error = WorkflowStatus.FAILED, STEPS_FAILED_ERROR
            else:
                status, error = WorkflowStatus.COMPLETED, None

            if not execution.finish(status, error):
                status = execution.status

        summary = execution.overall_result["summary"]
        self.logger.info(
            f"Workflow '{execution.workflow_id}' finished with status: {status.value} "
            f"({summary['completed_steps']}/{summary['total_steps']} steps completed "
            f"in {elapsed:.3f}s)"
        )
