"""MCP tools for tool chain orchestration, validation and analysis."""

from .chain_tools import (
    AnalyzeToolChainPerformanceTool,
    ChainOperationType,
    ValidateToolChainTool,
    WorkflowOrchestratorTool,
)

__all__ = [
    "AnalyzeToolChainPerformanceTool",
    "ChainOperationType",
    "ValidateToolChainTool",
    "WorkflowOrchestratorTool",
]
