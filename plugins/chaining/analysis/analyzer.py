"""
Chain Analyzer

Static performance and complexity analysis of a tool chain. Nothing is
executed; durations and complexities come from the step estimates, the
capability catalog, or the configured defaults.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from config.types import AnalysisOptions

from ..capabilities import CapabilityCatalog
from ..workflows.definition import ChainDefinition, StepDefinition

logger = logging.getLogger(__name__)

BOTTLENECK_SHARE = 0.2
LOW_COMPLEXITY_MAX = 2
MEDIUM_COMPLEXITY_MAX = 4


@dataclass
class ExecutionMetrics:
    """Duration based metrics."""

    total_estimated_duration: float = 0.0  # milliseconds
    average_complexity: float = 0.0
    bottleneck_steps: List[str] = field(default_factory=list)
    parallelization_potential: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_estimated_duration": self.total_estimated_duration,
            "average_complexity": self.average_complexity,
            "bottleneck_steps": list(self.bottleneck_steps),
            "parallelization_potential": self.parallelization_potential,
        }


@dataclass
class ComplexityAnalysis:
    """Complexity distribution and risk factors."""

    overall_complexity: float = 0.0
    complexity_distribution: Dict[str, int] = field(
        default_factory=lambda: {"low": 0, "medium": 0, "high": 0}
    )
    risk_factors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_complexity": self.overall_complexity,
            "complexity_distribution": dict(self.complexity_distribution),
            "risk_factors": list(self.risk_factors),
        }


@dataclass
class ChainAnalysis:
    """Result of analyzing a chain."""

    metrics: ExecutionMetrics
    complexity: ComplexityAnalysis
    suggestions: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "metrics": self.metrics.to_dict(),
            "complexity": self.complexity.to_dict(),
            "suggestions": list(self.suggestions),
        }


def complexity_level(complexity: float) -> str:
    if complexity <= LOW_COMPLEXITY_MAX:
        return "low"
    if complexity <= MEDIUM_COMPLEXITY_MAX:
        return "medium"
    return "high"


def _estimate(value: Any) -> Optional[float]:
    # Zero, negative and non-numeric estimates count as undeclared
    if isinstance(value, bool) or not isinstance(value, (int, float)) or value <= 0:
        return None
    return float(value)


def parallelization_potential(steps: Sequence[StepDefinition]) -> float:
    """
    Approximate share of steps that could run without waiting.

    Steps are visited in declaration order; a step counts when all of its
    dependencies were counted before it. This is a cheap greedy estimate,
    not a critical path computation.
    """
    if not steps:
        return 0.0

    counted = set()
    for step in steps:
        if all(dep_id in counted for dep_id in step.dependency_ids):
            counted.add(step.id)
    independent = sum(1 for step in steps if step.id in counted)
    return independent / len(steps)


class ChainAnalyzer:
    """
    Computes execution metrics, complexity analysis and optimization
    suggestions for a chain, which need not be valid.
    """

    def __init__(
        self,
        catalog: Optional[CapabilityCatalog] = None,
        options: Optional[AnalysisOptions] = None,
    ):
        self.catalog = catalog
        self.options = options or AnalysisOptions.from_settings()

    def analyze(
        self,
        chain: Union[ChainDefinition, Sequence[Dict[str, Any]]],
        options: Optional[AnalysisOptions] = None,
    ) -> ChainAnalysis:
        """
        Analyze a chain.

        Args:
            chain: ChainDefinition or a raw list of step dictionaries
            options: Per-call options overriding the analyzer's own

        Returns:
            ChainAnalysis; sections excluded by the options are left empty

        Raises:
            ValueError: If a raw chain is not a list of mappings
        """
        options = options or self.options
        steps = self._steps(chain)

        durations = [self.step_duration(step, options) for step in steps]
        complexities = [self.step_complexity(step, options) for step in steps]

        metrics = self._execution_metrics(steps, durations, complexities)
        complexity = self._complexity_analysis(steps, complexities, options)
        suggestions = self._suggestions(steps, metrics, complexity, options)

        logger.debug(
            f"Analyzed {len(steps)} steps: {metrics.total_estimated_duration:.0f}ms estimated, "
            f"parallelization {metrics.parallelization_potential:.2f}"
        )

        return ChainAnalysis(
            metrics=metrics if options.include_execution_metrics else ExecutionMetrics(),
            complexity=(
                complexity if options.include_complexity_analysis else ComplexityAnalysis()
            ),
            suggestions=suggestions if options.include_optimization_suggestions else [],
        )

    @staticmethod
    def _steps(chain: Union[ChainDefinition, Sequence[Any]]) -> List[StepDefinition]:
        if isinstance(chain, ChainDefinition):
            return list(chain.steps)
        if not isinstance(chain, (list, tuple)):
            raise ValueError("Tool chain must be an array")
        steps = []
        for index, item in enumerate(chain):
            if not isinstance(item, dict):
                raise ValueError(f"Step {index}: must be an object")
            steps.append(StepDefinition.from_dict(item))
        return steps

    def _catalog_entry(self, step: StepDefinition):
        if (
            self.catalog is None
            or not step.tool_name
            or not isinstance(step.tool_name, str)
            or not isinstance(step.server_name, str)
        ):
            return None
        return self.catalog.get(step.capability)

    def step_duration(self, step: StepDefinition, options: AnalysisOptions) -> float:
        """Declared duration, else the catalog estimate, else the default (ms)."""
        duration = _estimate(step.estimated_duration_ms)
        if duration is None:
            tool = self._catalog_entry(step)
            duration = _estimate(tool.estimated_duration_ms) if tool else None
        return duration if duration is not None else options.default_step_duration_ms

    def step_complexity(self, step: StepDefinition, options: AnalysisOptions) -> float:
        """Declared complexity, else the catalog estimate, else the default."""
        complexity = _estimate(step.estimated_complexity)
        if complexity is None:
            tool = self._catalog_entry(step)
            complexity = _estimate(tool.estimated_complexity) if tool else None
        return complexity if complexity is not None else options.default_step_complexity

    def _execution_metrics(
        self,
        steps: List[StepDefinition],
        durations: List[float],
        complexities: List[float],
    ) -> ExecutionMetrics:
        if not steps:
            return ExecutionMetrics()

        count = max(1, math.ceil(len(steps) * BOTTLENECK_SHARE))
        # sorted() is stable, so equal durations keep declaration order
        ranked = sorted(range(len(steps)), key=lambda index: -durations[index])

        return ExecutionMetrics(
            total_estimated_duration=sum(durations),
            average_complexity=sum(complexities) / len(complexities),
            bottleneck_steps=[steps[index].id for index in ranked[:count]],
            parallelization_potential=parallelization_potential(steps),
        )

    def _complexity_analysis(
        self,
        steps: List[StepDefinition],
        complexities: List[float],
        options: AnalysisOptions,
    ) -> ComplexityAnalysis:
        analysis = ComplexityAnalysis()
        if not steps:
            return analysis

        for complexity in complexities:
            analysis.complexity_distribution[complexity_level(complexity)] += 1
        analysis.overall_complexity = sum(complexities) / len(complexities)

        if analysis.overall_complexity > options.high_complexity_threshold:
            analysis.risk_factors.append(
                "High overall complexity may lead to execution failures"
            )

        high_steps = sum(
            1 for complexity in complexities
            if complexity > options.high_complexity_threshold
        )
        if high_steps:
            analysis.risk_factors.append(
                f"{high_steps} steps have high complexity and may be error-prone"
            )

        retried = sum(1 for step in steps if step.retry_on_failure)
        if retried > len(steps) * options.retry_heavy_ratio:
            analysis.risk_factors.append(
                "High number of steps with retry logic may impact performance"
            )

        return analysis

    def _suggestions(
        self,
        steps: List[StepDefinition],
        metrics: ExecutionMetrics,
        complexity: ComplexityAnalysis,
        options: AnalysisOptions,
    ) -> List[str]:
        suggestions: List[str] = []

        if metrics.bottleneck_steps:
            suggestions.append(
                f"Optimize bottleneck steps: {', '.join(metrics.bottleneck_steps)}"
            )
        if metrics.total_estimated_duration > options.long_duration_threshold_ms:
            suggestions.append(
                "Consider breaking down the tool chain into smaller, parallel workflows"
            )

        if complexity.overall_complexity > options.high_complexity_threshold:
            suggestions.append(
                "Consider replacing high-complexity steps with simpler alternatives"
            )
        if complexity.complexity_distribution["high"] > len(steps) * 0.5:
            suggestions.append(
                "High proportion of complex steps - consider simplifying the workflow"
            )

        if metrics.parallelization_potential > 0.5:
            suggestions.append(
                f"High parallelization potential "
                f"({round(metrics.parallelization_potential * 100)}%) - "
                f"consider running independent steps in parallel"
            )

        if any(len(step.dependency_ids) > options.fan_in_threshold for step in steps):
            suggestions.append(
                "Consider reducing dependency chains to improve execution flow"
            )

        suggestions.extend(
            [
                "Monitor execution times and adjust duration estimates based on real performance",
                "Consider implementing circuit breakers for frequently failing steps",
                "Add timeout configurations for long-running operations",
            ]
        )
        return suggestions
