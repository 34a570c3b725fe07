"""
Chain Definition

Parse and represent tool chain definitions from dictionaries or YAML files.
"""

import yaml
from pathlib import Path
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

from config import env

from ..capabilities import CapabilityRef


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """Return the first key present, accepting camelCase and snake_case spellings."""
    for key in keys:
        if key in data:
            return data[key]
    return default


def _as_bool(value: Any) -> bool:
    """Flag value; strings count as true only when they read "true"."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() == "true"


@dataclass(frozen=True)
class StepDefinition:
    """
    One step of a tool chain.

    Built leniently: malformed values are kept as given so the validator can
    report them instead of the parser raising.
    """

    id: str
    server_name: str = ""
    tool_name: str = ""
    parameters: Dict[str, Any] = field(default_factory=dict)
    depends_on: List[str] = field(default_factory=list)
    output_mapping: Dict[str, str] = field(default_factory=dict)
    retry_on_failure: bool = False
    max_retries: Optional[int] = None
    description: str = ""

    # Static analysis hints
    estimated_duration_ms: Optional[float] = None
    estimated_complexity: Optional[float] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StepDefinition":
        """
        Create from dictionary.

        Args:
            data: Step definition dictionary (camelCase or snake_case keys)

        Returns:
            StepDefinition instance
        """
        depends_on = _pick(data, "dependsOn", "depends_on", default=[])
        if depends_on is None:
            depends_on = []
        elif isinstance(depends_on, str):
            depends_on = [depends_on]

        parameters = _pick(data, "parameters", "params", default={})
        output_mapping = _pick(data, "outputMapping", "output_mapping", default={})

        raw_id = data.get("id")
        if raw_id is None:
            raw_id = ""
        elif not isinstance(raw_id, str):
            raw_id = str(raw_id)

        return cls(
            id=raw_id,
            server_name=_pick(data, "serverName", "server_name", default="") or "",
            tool_name=_pick(data, "toolName", "tool_name", default="") or "",
            parameters={} if parameters is None else parameters,
            depends_on=depends_on,
            output_mapping={} if output_mapping is None else output_mapping,
            retry_on_failure=_as_bool(
                _pick(data, "retryOnFailure", "retry_on_failure", default=False)
            ),
            max_retries=_pick(data, "maxRetries", "max_retries"),
            description=data.get("description", "") or "",
            estimated_duration_ms=_pick(
                data, "estimatedDuration", "estimated_duration_ms", "duration"
            ),
            estimated_complexity=_pick(
                data, "estimatedComplexity", "estimated_complexity", "complexity"
            ),
        )

    @property
    def capability(self) -> CapabilityRef:
        return CapabilityRef(self.server_name, self.tool_name)

    @property
    def dependency_ids(self) -> List[str]:
        """Declared dependencies, ignoring malformed entries."""
        if not isinstance(self.depends_on, (list, tuple)):
            return []
        return [dep for dep in self.depends_on if isinstance(dep, str)]

    @property
    def max_attempts(self) -> int:
        """Number of invocations allowed for this step, retries included."""
        if (
            self.retry_on_failure
            and isinstance(self.max_retries, int)
            and not isinstance(self.max_retries, bool)
            and self.max_retries > 0
        ):
            return self.max_retries + 1
        return 1

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result: Dict[str, Any] = {
            "id": self.id,
            "server_name": self.server_name,
            "tool_name": self.tool_name,
            "parameters": self.parameters,
        }

        if self.depends_on:
            result["depends_on"] = self.depends_on
        if self.output_mapping:
            result["output_mapping"] = self.output_mapping
        if self.retry_on_failure:
            result["retry_on_failure"] = True
            result["max_retries"] = self.max_retries
        if self.description:
            result["description"] = self.description
        if self.estimated_duration_ms is not None:
            result["estimated_duration_ms"] = self.estimated_duration_ms
        if self.estimated_complexity is not None:
            result["estimated_complexity"] = self.estimated_complexity

        return result


@dataclass
class ChainDefinition:
    """
    Tool chain definition.

    An ordered list of steps plus the global variables every step can
    reference with ``$name``.
    """

    workflow_id: str = ""
    name: str = ""
    description: str = ""
    steps: List[StepDefinition] = field(default_factory=list)
    variables: Dict[str, Any] = field(default_factory=dict)
    fail_fast: bool = False
    timeout: Optional[float] = None  # seconds
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_yaml(cls, yaml_str: str) -> "ChainDefinition":
        """
        Parse chain from YAML string.

        Args:
            yaml_str: YAML chain definition

        Returns:
            ChainDefinition instance

        Raises:
            ValueError: If YAML is invalid
        """
        try:
            data = yaml.safe_load(yaml_str)
        except yaml.YAMLError as e:
            raise ValueError(f"Invalid YAML: {e}")

        if not isinstance(data, dict) or "workflow" not in data:
            raise ValueError("YAML must contain 'workflow' key")

        return cls.from_dict(data["workflow"])

    @classmethod
    def from_file(cls, file_path: str) -> "ChainDefinition":
        """
        Load chain from YAML file.

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If YAML is invalid
        """
        path = Path(file_path)
        if not path.exists():
            raise FileNotFoundError(f"Workflow file not found: {file_path}")

        with open(path, "r") as f:
            yaml_str = f.read()

        return cls.from_yaml(yaml_str)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ChainDefinition":
        """
        Create from dictionary.

        Accepts the ``workflow_orchestrator`` argument layout (``workflowId``,
        ``steps``, ``variables``, ``failFast``) as well as snake_case keys and
        ``toolChain`` as an alias for ``steps``.

        Raises:
            ValueError: If steps is not a list of mappings
        """
        if not isinstance(data, dict):
            raise ValueError("Workflow definition must be a mapping")

        raw_steps = _pick(data, "steps", "toolChain", "tool_chain", default=[])
        if not isinstance(raw_steps, list):
            raise ValueError("'steps' must be a list")
        for index, step in enumerate(raw_steps):
            if not isinstance(step, dict):
                raise ValueError(f"Step {index}: must be a mapping")

        fail_fast = _pick(data, "failFast", "fail_fast")
        if fail_fast is None:
            fail_fast = env.get_setting("chain_fail_fast", False)

        variables = data.get("variables") or {}
        if not isinstance(variables, dict):
            raise ValueError("'variables' must be a mapping")
        metadata = data.get("metadata") or {}
        if not isinstance(metadata, dict):
            raise ValueError("'metadata' must be a mapping")

        timeout = data.get("timeout")
        if timeout is not None:
            try:
                timeout = float(timeout)
            except (TypeError, ValueError):
                raise ValueError(f"'timeout' must be a number of seconds, got {timeout!r}")

        return cls(
            workflow_id=_pick(data, "workflowId", "workflow_id", default="") or "",
            name=data.get("name", "") or "",
            description=data.get("description", "") or "",
            steps=[StepDefinition.from_dict(step) for step in raw_steps],
            variables=dict(variables),
            fail_fast=_as_bool(fail_fast),
            timeout=timeout,
            metadata=dict(metadata),
        )

    @property
    def step_ids(self) -> List[str]:
        return [step.id for step in self.steps]

    def get_step(self, step_id: str) -> Optional[StepDefinition]:
        """
        Get step by ID.

        Returns:
            StepDefinition or None if not found
        """
        for step in self.steps:
            if step.id == step_id:
                return step
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        result: Dict[str, Any] = {
            "workflow_id": self.workflow_id,
            "name": self.name,
            "description": self.description,
            "steps": [step.to_dict() for step in self.steps],
            "variables": self.variables,
            "fail_fast": self.fail_fast,
        }
        if self.timeout is not None:
            result["timeout"] = self.timeout
        if self.metadata:
            result["metadata"] = self.metadata
        return result

    def __repr__(self) -> str:
        """String representation."""
        return (
            f"ChainDefinition(workflow_id='{self.workflow_id}', "
            f"name='{self.name}', steps={len(self.steps)})"
        )
