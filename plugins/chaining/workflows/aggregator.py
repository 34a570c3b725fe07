"""
Result Aggregator

Fold step outcomes into the overall result of a workflow.
"""

from typing import Any, Dict, Iterable

from ..runtime_data import StepOutcome, StepStatus


def aggregate_results(outcomes: Iterable[StepOutcome]) -> Dict[str, Any]:
    """
    Build the overall result of a workflow.

    ``results`` maps the id of every completed step to its result.
    ``summary.total_execution_time`` is the sum of the per-step execution
    times in seconds; with parallel batches it is usually larger than the
    workflow's own wall-clock ``execution_time``.

    Args:
        outcomes: Final step outcomes

    Returns:
        Dictionary with ``results`` and ``summary`` keys
    """
    results: Dict[str, Any] = {}
    counts = {status: 0 for status in StepStatus}
    total_time = 0.0
    total = 0

    for outcome in outcomes:
        total += 1
        counts[outcome.status] += 1
        if outcome.status == StepStatus.COMPLETED:
            results[outcome.step_id] = outcome.result
        if outcome.execution_time:
            total_time += outcome.execution_time

    return {
        "results": results,
        "summary": {
            "total_steps": total,
            "completed_steps": counts[StepStatus.COMPLETED],
            "failed_steps": counts[StepStatus.FAILED],
            "skipped_steps": counts[StepStatus.SKIPPED],
            "total_execution_time": total_time,
        },
    }
