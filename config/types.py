from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


def _setting(name: str) -> Any:
    # Imported lazily so the models can be built before the manager exists
    from config.manager import env_manager

    return env_manager.get_setting(name)


class _OptionsModel(BaseModel):
    """Options accepted either by field name or by camelCase tool argument name"""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    @classmethod
    def _provided(cls, overrides: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        """Normalise caller overrides to field names, keeping only given keys"""
        if not overrides:
            return {}
        return cls.model_validate(overrides).model_dump(exclude_unset=True)


class ValidationOptions(_OptionsModel):
    """Toggles for the tool chain validator"""

    check_structure: bool = Field(True, alias="checkStructure")
    check_dependency_existence: bool = Field(True, alias="checkDependencyExistence")
    check_retry_configuration: bool = Field(True, alias="checkRetryConfiguration")
    check_circular_dependencies: bool = Field(True, alias="checkCircularDependencies")
    check_tool_availability: bool = Field(True, alias="checkToolAvailability")
    check_parameter_compatibility: bool = Field(
        True, alias="checkParameterCompatibility"
    )
    strict: bool = False

    @classmethod
    def from_settings(cls, overrides: Optional[Dict[str, Any]] = None) -> "ValidationOptions":
        """Build options from configured defaults, then apply overrides"""
        values = {
            "check_circular_dependencies": _setting("chain_validate_circular_dependencies"),
            "check_tool_availability": _setting("chain_validate_tool_availability"),
            "check_parameter_compatibility": _setting(
                "chain_validate_parameter_compatibility"
            ),
            "strict": _setting("chain_resolution_mode") == "strict",
        }
        values.update(cls._provided(overrides))
        return cls(**values)


class AnalysisOptions(_OptionsModel):
    """Flags and thresholds for static chain analysis"""

    include_execution_metrics: bool = Field(True, alias="includeExecutionMetrics")
    include_complexity_analysis: bool = Field(True, alias="includeComplexityAnalysis")
    include_optimization_suggestions: bool = Field(
        True, alias="includeOptimizationSuggestions"
    )
    default_step_duration_ms: float = 1000.0
    default_step_complexity: float = 3.0
    long_duration_threshold_ms: float = 10000.0
    fan_in_threshold: int = 2
    retry_heavy_ratio: float = 0.3
    high_complexity_threshold: float = 4.0

    @classmethod
    def from_settings(cls, overrides: Optional[Dict[str, Any]] = None) -> "AnalysisOptions":
        """Build options from configured defaults, then apply overrides"""
        values = {
            "default_step_duration_ms": _setting("chain_default_step_duration_ms"),
            "default_step_complexity": _setting("chain_default_step_complexity"),
            "long_duration_threshold_ms": _setting("chain_long_duration_threshold_ms"),
            "fan_in_threshold": _setting("chain_fan_in_threshold"),
            "retry_heavy_ratio": _setting("chain_retry_heavy_ratio"),
            "high_complexity_threshold": _setting("chain_high_complexity_threshold"),
        }
        values.update(cls._provided(overrides))
        return cls(**values)
