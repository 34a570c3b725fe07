"""Static analysis of tool chains."""

from .analyzer import (
    ChainAnalysis,
    ChainAnalyzer,
    ComplexityAnalysis,
    ExecutionMetrics,
    complexity_level,
    parallelization_potential,
)

__all__ = [
    "ChainAnalysis",
    "ChainAnalyzer",
    "ComplexityAnalysis",
    "ExecutionMetrics",
    "complexity_level",
    "parallelization_potential",
]
