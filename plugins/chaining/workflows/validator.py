"""
Chain Validator

Structural checks run on a tool chain before it is scheduled.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Union

from config.types import ValidationOptions

from ..capabilities import CapabilityCatalog
from .definition import ChainDefinition, StepDefinition
from .resolver import ParameterResolver

logger = logging.getLogger(__name__)

WHITE, GRAY, BLACK = 0, 1, 2


@dataclass
class ValidationReport:
    """Outcome of validating a chain."""

    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
        }


def _label(step: StepDefinition, index: int) -> str:
    return step.id if step.id else str(index)


def _has_string_target(step: StepDefinition) -> bool:
    return isinstance(step.server_name, str) and isinstance(step.tool_name, str)


class GraphValidator:
    """
    Validates tool chains.

    Never raises for malformed input: every problem found is reported, so a
    caller can fix the whole chain in one pass.
    """

    def __init__(
        self,
        catalog: Optional[CapabilityCatalog] = None,
        options: Optional[ValidationOptions] = None,
    ):
        """
        Initialize validator.

        Args:
            catalog: Known capabilities. Availability is not checked without one.
            options: Check toggles, defaulting to the configured settings
        """
        self.catalog = catalog
        self.options = options or ValidationOptions.from_settings()

    def validate(
        self,
        chain: Union[ChainDefinition, Sequence[Any]],
        options: Optional[ValidationOptions] = None,
    ) -> ValidationReport:
        """
        Validate a chain definition or a raw list of step dictionaries.

        Args:
            chain: ChainDefinition, or the raw ``toolChain`` argument
            options: Per-call toggles overriding the validator's own

        Returns:
            ValidationReport with errors and warnings
        """
        options = options or self.options
        report = ValidationReport()

        if not isinstance(chain, ChainDefinition):
            chain = self._coerce(chain, report)
            if chain is None:
                return report

        if not chain.steps:
            report.errors.append("Tool chain cannot be empty")
            return report

        if options.check_structure:
            self._check_structure(chain, report)
        if options.check_retry_configuration:
            self._check_retry_configuration(chain, report)
        if options.check_dependency_existence:
            self._check_dependency_existence(chain, report)
        if options.check_circular_dependencies:
            self._check_circular_dependencies(chain, report)
        if options.check_tool_availability and self.catalog is not None:
            self._check_tool_availability(chain, report)
        if options.check_parameter_compatibility:
            self._check_parameter_compatibility(chain, report, options.strict)

        if report.errors:
            logger.info(
                f"Chain '{chain.workflow_id or chain.name}' failed validation "
                f"with {len(report.errors)} error(s)"
            )
        return report

    def _coerce(self, raw: Any, report: ValidationReport) -> Optional[ChainDefinition]:
        """Turn a raw step list into a ChainDefinition, reporting shape errors."""
        if not isinstance(raw, (list, tuple)):
            report.errors.append("Tool chain must be an array")
            return None

        steps = []
        for index, item in enumerate(raw):
            if not isinstance(item, dict):
                report.errors.append(f"Step {index}: must be an object")
                continue
            steps.append(StepDefinition.from_dict(item))

        if len(steps) != len(raw):
            return None
        return ChainDefinition(steps=steps)

    def _check_structure(self, chain: ChainDefinition, report: ValidationReport):
        """Required fields and unique ids."""
        seen: Set[str] = set()
        for index, step in enumerate(chain.steps):
            if not step.id:
                report.errors.append(f"Step {index}: missing required field 'id'")
            elif step.id in seen:
                report.errors.append(f"Step {step.id}: duplicate step ID")
            else:
                seen.add(step.id)

            label = _label(step, index)
            for field_name, value in (
                ("serverName", step.server_name),
                ("toolName", step.tool_name),
            ):
                if not value:
                    report.errors.append(
                        f"Step {label}: missing required field '{field_name}'"
                    )
                elif not isinstance(value, str):
                    report.errors.append(
                        f"Step {label}: '{field_name}' must be a string, got {value!r}"
                    )

    def _check_retry_configuration(self, chain: ChainDefinition, report: ValidationReport):
        for index, step in enumerate(chain.steps):
            if not step.retry_on_failure:
                continue
            max_retries = step.max_retries
            if (
                not isinstance(max_retries, int)
                or isinstance(max_retries, bool)
                or max_retries < 0
            ):
                report.errors.append(
                    f"Step {_label(step, index)}: retryOnFailure is true but "
                    f"maxRetries is not set or invalid"
                )

    def _check_dependency_existence(self, chain: ChainDefinition, report: ValidationReport):
        step_ids = set(chain.step_ids)
        for index, step in enumerate(chain.steps):
            label = _label(step, index)
            if not isinstance(step.depends_on, (list, tuple)):
                report.errors.append(
                    f"Step {label}: dependsOn must be a list of step ids"
                )
                continue
            for dep_id in step.depends_on:
                if not isinstance(dep_id, str):
                    report.errors.append(
                        f"Step {label}: dependsOn entries must be step ids, got {dep_id!r}"
                    )
                elif dep_id not in step_ids:
                    report.errors.append(
                        f"Step {label}: depends on unknown step '{dep_id}'"
                    )

    def _check_circular_dependencies(self, chain: ChainDefinition, report: ValidationReport):
        """
        Report every back edge of the dependency graph.

        An edge A -> B means A depends on B; only ids present in the chain
        take part. Each node is expanded once (white/gray/black colouring).
        """
        graph: Dict[str, List[str]] = {}
        for step in chain.steps:
            if step.id and step.id not in graph:
                graph[step.id] = []
        for step in chain.steps:
            if step.id in graph:
                for dep_id in step.dependency_ids:
                    if dep_id in graph and dep_id not in graph[step.id]:
                        graph[step.id].append(dep_id)

        color = {node: WHITE for node in graph}
        for root in graph:
            if color[root] != WHITE:
                continue
            color[root] = GRAY
            stack = [(root, iter(graph[root]))]
            while stack:
                node, children = stack[-1]
                advanced = False
                for dep_id in children:
                    if color[dep_id] == GRAY:
                        report.errors.append(
                            f"Circular dependency detected: {node} -> {dep_id}"
                        )
                    elif color[dep_id] == WHITE:
                        color[dep_id] = GRAY
                        stack.append((dep_id, iter(graph[dep_id])))
                        advanced = True
                        break
                if not advanced:
                    color[node] = BLACK
                    stack.pop()

    def _check_tool_availability(self, chain: ChainDefinition, report: ValidationReport):
        for index, step in enumerate(chain.steps):
            if not step.tool_name or not _has_string_target(step):
                continue
            if step.capability not in self.catalog:
                report.errors.append(
                    f"Step {_label(step, index)}: tool '{step.tool_name}' is not "
                    f"available in server '{step.server_name}'"
                )

    def _check_parameter_compatibility(
        self, chain: ChainDefinition, report: ValidationReport, strict: bool
    ):
        """Advisory checks; ``strict`` promotes unresolved references to errors."""
        step_ids = set(chain.step_ids)
        steps_by_id = {step.id: step for step in chain.steps}
        unresolved = report.errors if strict else report.warnings

        for index, step in enumerate(chain.steps):
            label = _label(step, index)

            if not isinstance(step.parameters, dict):
                report.warnings.append(f"Step {label}: parameters should be an object")
            else:
                for param, value in step.parameters.items():
                    if (
                        isinstance(value, str)
                        and value.startswith("$")
                        and len(value) > 1
                        and value[1:] not in chain.variables
                    ):
                        unresolved.append(
                            f"Step {label}: parameter '{param}' references "
                            f"undefined variable '{value}'"
                        )

            if not isinstance(step.output_mapping, dict):
                report.warnings.append(f"Step {label}: outputMapping should be an object")
            elif step.output_mapping:
                ancestors = self._ancestors(steps_by_id, step)
                for param, mapping in step.output_mapping.items():
                    parsed = ParameterResolver.parse_reference(mapping)
                    if parsed is None:
                        unresolved.append(
                            f"Step {label}: output mapping for '{param}' should "
                            f"look like '<stepId>.<outputKey>'"
                        )
                        continue
                    source_id = parsed[0]
                    if source_id not in step_ids:
                        unresolved.append(
                            f"Step {label}: output mapping references "
                            f"non-existent step '{source_id}'"
                        )
                    elif source_id not in ancestors:
                        report.warnings.append(
                            f"Step {label}: output mapping source '{source_id}' "
                            f"is not a declared dependency"
                        )

            for dep_id in step.dependency_ids:
                if dep_id not in step_ids:
                    report.warnings.append(
                        f"Step {label}: depends on non-existent step '{dep_id}'"
                    )

    def _ancestors(
        self, steps_by_id: Dict[str, StepDefinition], step: StepDefinition
    ) -> Set[str]:
        """Ids of every step this step transitively depends on."""
        found: Set[str] = set()
        pending = list(step.dependency_ids)
        while pending:
            dep_id = pending.pop()
            if dep_id in found:
                continue
            found.add(dep_id)
            dep = steps_by_id.get(dep_id)
            if dep is not None:
                pending.extend(dep.dependency_ids)
        return found
