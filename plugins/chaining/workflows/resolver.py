"""
Parameter Resolver

Compute the concrete parameters of a step from global variables and the
results of steps that already completed.
"""

import logging
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple

from config import env

from ..errors import ParameterResolutionError
from ..runtime_data import StepOutcome, StepStatus
from .definition import StepDefinition

logger = logging.getLogger(__name__)

_MISSING = object()


class ResolutionMode(str, Enum):
    """How unresolved references are treated."""

    PERMISSIVE = "permissive"  # keep the literal value
    STRICT = "strict"  # raise ParameterResolutionError


def _lookup(result: Any, path: str) -> Any:
    """Find ``path`` in a result: as a direct key first, then as a dotted path."""
    if isinstance(result, dict) and path in result:
        return result[path]

    value = result
    for part in path.split("."):
        if isinstance(value, dict) and part in value:
            value = value[part]
        else:
            return _MISSING
    return value


class ParameterResolver:
    """
    Resolves step parameters.

    Global substitution replaces any parameter whose whole value is
    ``$name`` with the variable ``name``. Output mappings then overwrite
    parameters with values read from completed dependency results.
    """

    def __init__(self, mode: Optional[ResolutionMode] = None, sigil: str = "$"):
        if mode is None:
            mode = ResolutionMode(env.get_setting("chain_resolution_mode", "permissive"))
        self.mode = ResolutionMode(mode)
        self.sigil = sigil

    @property
    def strict(self) -> bool:
        return self.mode == ResolutionMode.STRICT

    def resolve(
        self,
        step: StepDefinition,
        variables: Optional[Dict[str, Any]] = None,
        outcomes: Iterable[StepOutcome] = (),
    ) -> Dict[str, Any]:
        """
        Resolve parameters for one step.

        Args:
            step: Step to resolve
            variables: Global chain variables
            outcomes: Outcomes recorded so far; only completed ones are read

        Returns:
            Resolved parameters (a new dictionary)

        Raises:
            ParameterResolutionError: In strict mode, for any unresolved reference
        """
        variables = variables or {}
        resolved = dict(step.parameters) if isinstance(step.parameters, dict) else {}

        for key, value in resolved.items():
            if not self._is_variable(value):
                continue
            name = value[len(self.sigil):]
            if name in variables:
                resolved[key] = variables[name]
            elif self.strict:
                raise ParameterResolutionError(
                    f"Step '{step.id}': undefined variable '{value}' for parameter '{key}'"
                )

        if isinstance(step.output_mapping, dict) and step.output_mapping:
            completed = {
                outcome.step_id: outcome
                for outcome in outcomes
                if outcome.status == StepStatus.COMPLETED
            }
            for param, reference in step.output_mapping.items():
                value = self._resolve_reference(step, param, reference, completed)
                if value is not _MISSING:
                    resolved[param] = value

        logger.debug(f"Resolved parameters for step '{step.id}': {sorted(resolved)}")
        return resolved

    def _is_variable(self, value: Any) -> bool:
        return (
            isinstance(value, str)
            and value.startswith(self.sigil)
            and len(value) > len(self.sigil)
        )

    def _resolve_reference(
        self,
        step: StepDefinition,
        param: str,
        reference: Any,
        completed: Dict[str, StepOutcome],
    ) -> Any:
        parsed = self.parse_reference(reference)
        if parsed is None:
            return self._unresolved(
                step, f"malformed output mapping '{reference}' for parameter '{param}'"
            )

        source_id, output_key = parsed
        source = completed.get(source_id)
        if source is None:
            return self._unresolved(
                step, f"output mapping source step '{source_id}' has not completed"
            )

        value = _lookup(source.result, output_key)
        if value is _MISSING:
            return self._unresolved(
                step, f"step '{source_id}' produced no output '{output_key}'"
            )
        return value

    def _unresolved(self, step: StepDefinition, message: str) -> Any:
        if self.strict:
            raise ParameterResolutionError(f"Step '{step.id}': {message}")
        logger.debug(f"Step '{step.id}': {message}; keeping declared value")
        return _MISSING

    @staticmethod
    def parse_reference(reference: Any) -> Optional[Tuple[str, str]]:
        """Split ``<stepId>.<outputKey>``; None when malformed."""
        if not isinstance(reference, str):
            return None
        source_id, sep, output_key = reference.partition(".")
        if not sep or not source_id or not output_key:
            return None
        return source_id, output_key
