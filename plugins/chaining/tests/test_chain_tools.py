"""
Tests for the tool chain MCP tools
"""

import pytest
from unittest.mock import AsyncMock, MagicMock

from mcp_tools.interfaces import ToolInterface
from mcp_tools.plugin import registry as plugin_registry
from plugins.chaining.capabilities import CapabilityCatalog
from plugins.chaining.tools import (
    AnalyzeToolChainPerformanceTool,
    ValidateToolChainTool,
    WorkflowOrchestratorTool,
)
from plugins.chaining.workflows import WorkflowRegistry

from chain_helpers import RecordingInvoker, step


@pytest.fixture
def orchestrator(engine):
    return WorkflowOrchestratorTool(registry=WorkflowRegistry(engine))


class TestRegistration:
    """Tests for tool registration."""

    def test_tools_are_registered(self):
        """Test that importing the plugin registers the three tools."""
        names = plugin_registry.get_tool_names()

        for name in ("workflow_orchestrator", "validate_tool_chain", "analyze_tool_chain_performance"):
            assert name in names

    @pytest.mark.parametrize(
        "tool_class",
        [WorkflowOrchestratorTool, ValidateToolChainTool, AnalyzeToolChainPerformanceTool],
    )
    def test_tool_interface(self, tool_class):
        """Test that each tool builds with defaults and declares a schema."""
        tool = tool_class()

        assert isinstance(tool, ToolInterface)
        assert tool.input_schema["type"] == "object"
        assert tool.description


class TestWorkflowOrchestratorTool:
    """Tests for WorkflowOrchestratorTool."""

    @pytest.mark.asyncio
    async def test_execute(self, orchestrator):
        """Test executing a chain from tool arguments."""
        result = await orchestrator.execute_tool(
            {
                "workflowId": "wf",
                "name": "demo",
                "steps": [
                    step("A", tool="answer"),
                    step("B", dependsOn=["A"], outputMapping={"x": "A.value"}),
                ],
            }
        )

        assert result["success"] is True
        assert result["status"] == "completed"
        assert result["overall_result"]["results"]["B"] == {"x": 42}
        assert result["overall_result"]["summary"]["completed_steps"] == 2

    @pytest.mark.asyncio
    async def test_execute_with_failed_step(self, orchestrator):
        """Test that a failed workflow is reported unsuccessful."""
        result = await orchestrator.execute_tool({"workflowId": "wf", "steps": [step("a", tool="fail")]})

        assert result["success"] is False
        assert result["status"] == "failed"
        assert result["error"] == "One or more workflow steps failed"
        assert result["steps"][0]["error"] == "boom"

    @pytest.mark.asyncio
    async def test_execute_invalid_chain(self, orchestrator):
        """Test that validation errors come back as an error result."""
        result = await orchestrator.execute_tool(
            {"steps": [step("a", dependsOn=["b"]), step("b", dependsOn=["a"])]}
        )

        assert result["success"] is False
        assert "Circular dependency detected" in result["error"]

    @pytest.mark.asyncio
    async def test_execute_malformed_steps(self, orchestrator):
        """Test that a malformed payload comes back as an error result."""
        result = await orchestrator.execute_tool({"steps": "nope"})

        assert result == {"success": False, "error": "Invalid workflow: 'steps' must be a list"}

    @pytest.mark.asyncio
    async def test_execute_malformed_timeout(self, orchestrator):
        """Test that a non-numeric timeout comes back as an error result."""
        result = await orchestrator.execute_tool({"steps": [step("a")], "timeout": "soon"})

        assert result == {
            "success": False,
            "error": "Invalid workflow: 'timeout' must be a number of seconds, got 'soon'",
        }

    @pytest.mark.asyncio
    async def test_status_and_cancel(self, orchestrator):
        """Test status, cancel and list_active operations."""
        await orchestrator.execute_tool({"workflowId": "wf", "steps": [step("a")]})

        status = await orchestrator.execute_tool({"operation": "status", "workflowId": "wf"})
        assert status["success"] is True
        assert status["workflow"]["status"] == "completed"

        cancel = await orchestrator.execute_tool({"operation": "cancel", "workflowId": "wf"})
        assert cancel == {"success": True, "workflow_id": "wf", "cancelled": False}

        active = await orchestrator.execute_tool({"operation": "list_active"})
        assert active == {"success": True, "active_workflows": []}

    @pytest.mark.asyncio
    async def test_status_unknown_workflow(self, orchestrator):
        """Test status of an unknown workflow."""
        result = await orchestrator.execute_tool({"operation": "status", "workflowId": "nope"})

        assert result == {"success": False, "error": "Workflow 'nope' not found"}

    @pytest.mark.asyncio
    async def test_missing_workflow_id(self, orchestrator):
        """Test operations that need a workflow id."""
        result = await orchestrator.execute_tool({"operation": "cancel"})

        assert result["error"] == "Missing required parameter: workflowId"

    @pytest.mark.asyncio
    async def test_unknown_operation(self, orchestrator):
        """Test an unsupported operation."""
        result = await orchestrator.execute_tool({"operation": "pause"})

        assert result == {"success": False, "error": "Unknown operation: pause"}

    @pytest.mark.asyncio
    async def test_uses_injected_invoker(self):
        """Test building the registry around an injected invoker."""
        invoker = MagicMock()
        invoker.invoke = AsyncMock(return_value={"ok": True})
        tool = WorkflowOrchestratorTool(invoker=invoker)

        result = await tool.execute_tool({"workflowId": "wf-mock", "steps": [step("a")]})

        assert result["success"] is True
        invoker.invoke.assert_awaited_once()


class TestValidateToolChainTool:
    """Tests for ValidateToolChainTool."""

    @pytest.mark.asyncio
    async def test_valid_chain(self):
        """Test validating against an injected catalog."""
        tool = ValidateToolChainTool(catalog=CapabilityCatalog(["test/echo"]))

        result = await tool.execute_tool({"toolChain": [step("a"), step("b", dependsOn=["a"])]})

        assert result == {"valid": True, "errors": [], "warnings": []}

    @pytest.mark.asyncio
    async def test_missing_tool(self):
        """Test reporting an unavailable tool."""
        tool = ValidateToolChainTool(catalog=CapabilityCatalog(["test/echo"]))

        result = await tool.execute_tool({"toolChain": [step("a", tool="nope")]})

        assert result["valid"] is False
        assert result["errors"] == ["Step a: tool 'nope' is not available in server 'test'"]

    @pytest.mark.asyncio
    async def test_toggles(self):
        """Test turning off availability checks with a camelCase flag."""
        tool = ValidateToolChainTool(catalog=CapabilityCatalog())

        result = await tool.execute_tool(
            {"toolChain": [step("a")], "checkToolAvailability": False}
        )

        assert result["valid"] is True

    @pytest.mark.asyncio
    async def test_available_tools_argument(self):
        """Test passing the known tools with the request."""
        tool = ValidateToolChainTool(catalog=CapabilityCatalog())

        result = await tool.execute_tool(
            {
                "toolChain": [step("a"), step("b", tool="other")],
                "availableTools": ["test/echo", {"name": "other", "serverName": "test"}],
            }
        )

        assert result["valid"] is True

    @pytest.mark.asyncio
    async def test_available_tools_without_server(self):
        """Test that a tool listed without a server matches on any server."""
        tool = ValidateToolChainTool(catalog=CapabilityCatalog())

        result = await tool.execute_tool(
            {
                "toolChain": [step("a", tool="search", server="web")],
                "availableTools": [{"name": "search"}],
            }
        )

        assert result == {"valid": True, "errors": [], "warnings": []}

    @pytest.mark.asyncio
    async def test_match_tool_name_only_flag(self):
        """Test forcing name-only matching for server-qualified entries."""
        tool = ValidateToolChainTool(catalog=CapabilityCatalog())
        arguments = {
            "toolChain": [step("a", tool="search", server="web")],
            "availableTools": ["other/search"],
        }

        assert (await tool.execute_tool(arguments))["valid"] is False
        assert (await tool.execute_tool({**arguments, "matchToolNameOnly": True}))["valid"] is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "extra",
        [{"variables": ["x"]}, {"variables": "x"}],
    )
    async def test_malformed_variables(self, extra):
        """Test that a non-mapping variables argument is an error result."""
        tool = ValidateToolChainTool(catalog=CapabilityCatalog(["test/echo"]))

        result = await tool.execute_tool({"toolChain": [step("a")], **extra})

        assert result == {
            "success": False,
            "error": "Invalid arguments: 'variables' must be a mapping",
        }

    @pytest.mark.asyncio
    async def test_variables_and_strict(self):
        """Test strict validation of variable references."""
        tool = ValidateToolChainTool(catalog=CapabilityCatalog(["test/echo"]))
        chain = [step("a", parameters={"q": "$query", "r": "$other"})]

        result = await tool.execute_tool(
            {"toolChain": chain, "variables": {"query": "x"}, "strict": True}
        )

        assert result["valid"] is False
        assert result["errors"] == [
            "Step a: parameter 'r' references undefined variable '$other'"
        ]

    @pytest.mark.asyncio
    async def test_not_an_array(self):
        """Test validating a malformed tool chain argument."""
        tool = ValidateToolChainTool(catalog=CapabilityCatalog())

        result = await tool.execute_tool({"toolChain": "a"})

        assert result == {"valid": False, "errors": ["Tool chain must be an array"], "warnings": []}

    @pytest.mark.asyncio
    async def test_invalid_option_type(self):
        """Test rejecting a toggle that is not a boolean."""
        tool = ValidateToolChainTool(catalog=CapabilityCatalog())

        result = await tool.execute_tool({"toolChain": [], "checkToolAvailability": "maybe"})

        assert result["success"] is False

    @pytest.mark.asyncio
    async def test_default_catalog_uses_registry(self):
        """Test that the local tool registry is the default catalog."""
        tool = ValidateToolChainTool()

        result = await tool.execute_tool(
            {"toolChain": [step("a", tool="validate_tool_chain", server="local")]}
        )

        assert result["valid"] is True


class TestAnalyzeToolChainPerformanceTool:
    """Tests for AnalyzeToolChainPerformanceTool."""

    @pytest.mark.asyncio
    async def test_analyze(self):
        """Test the analysis result layout."""
        tool = AnalyzeToolChainPerformanceTool()

        result = await tool.execute_tool(
            {"toolChain": [step("a", estimatedDuration=4000), step("b", dependsOn=["a"])]}
        )

        assert result["metrics"]["total_estimated_duration"] == 5000
        assert result["metrics"]["bottleneck_steps"] == ["a"]
        assert set(result["complexity"]) == {
            "overall_complexity",
            "complexity_distribution",
            "risk_factors",
        }
        assert result["suggestions"]

    @pytest.mark.asyncio
    async def test_include_flags(self):
        """Test excluding sections with camelCase flags."""
        tool = AnalyzeToolChainPerformanceTool()

        result = await tool.execute_tool(
            {"toolChain": [step("a")], "includeOptimizationSuggestions": False}
        )

        assert result["suggestions"] == []
        assert result["metrics"]["bottleneck_steps"] == ["a"]

    @pytest.mark.asyncio
    async def test_invalid_chain(self):
        """Test an error result for a malformed chain."""
        tool = AnalyzeToolChainPerformanceTool()

        result = await tool.execute_tool({"toolChain": ["a"]})

        assert result == {"success": False, "error": "Invalid tool chain: Step 0: must be an object"}
