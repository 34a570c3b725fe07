"""
Batch Scheduler

Turn a validated chain into ordered batches of steps that may run together.
"""

import logging
from typing import Dict, List

from ..errors import UnschedulableGraphError
from .definition import ChainDefinition, StepDefinition

logger = logging.getLogger(__name__)


class BatchScheduler:
    """
    Levels the dependency graph into maximal batches.

    Batch k holds every step whose dependencies were all placed in batches
    before k. Steps keep their declaration order inside a batch.
    """

    def plan(self, chain: ChainDefinition) -> List[List[StepDefinition]]:
        """
        Compute the execution plan.

        Args:
            chain: Chain whose dependency graph is acyclic

        Returns:
            Ordered list of batches

        Raises:
            UnschedulableGraphError: If some steps can never become eligible
        """
        steps_by_id: Dict[str, StepDefinition] = {}
        for step in chain.steps:
            if step.id in steps_by_id:
                raise UnschedulableGraphError([step.id], reason="duplicate step id")
            steps_by_id[step.id] = step

        order = {step_id: index for index, step_id in enumerate(steps_by_id)}
        remaining: Dict[str, int] = {}
        dependents: Dict[str, List[str]] = {step_id: [] for step_id in steps_by_id}

        for step in chain.steps:
            deps = set(step.dependency_ids)
            remaining[step.id] = len(deps)
            for dep_id in deps:
                # Unknown dependencies are never satisfied
                if dep_id in dependents:
                    dependents[dep_id].append(step.id)

        current = [step_id for step_id in steps_by_id if remaining[step_id] == 0]
        batches: List[List[StepDefinition]] = []
        placed = 0

        while current:
            batches.append([steps_by_id[step_id] for step_id in current])
            placed += len(current)

            eligible = []
            for step_id in current:
                for child in dependents[step_id]:
                    remaining[child] -= 1
                    if remaining[child] == 0:
                        eligible.append(child)
            current = sorted(eligible, key=order.__getitem__)

        if placed < len(steps_by_id):
            unplaced = [step_id for step_id in steps_by_id if remaining[step_id] > 0]
            logger.error(
                f"Chain '{chain.workflow_id}' cannot be scheduled: {', '.join(unplaced)}"
            )
            raise UnschedulableGraphError(unplaced)

        logger.debug(
            f"Planned {len(steps_by_id)} steps into {len(batches)} batches for "
            f"chain '{chain.workflow_id}'"
        )
        return batches

    def plan_ids(self, chain: ChainDefinition) -> List[List[str]]:
        """Execution plan as lists of step ids."""
        return [[step.id for step in batch] for batch in self.plan(chain)]
