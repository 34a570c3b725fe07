"""
Tests for ChainDefinition and StepDefinition
"""

import pytest
import tempfile
from pathlib import Path

from plugins.chaining.capabilities import CapabilityRef
from plugins.chaining.workflows.definition import ChainDefinition, StepDefinition


class TestStepDefinition:
    """Tests for StepDefinition."""

    def test_from_camel_case_dict(self):
        """Test creating a step from the tool argument layout."""
        step = StepDefinition.from_dict(
            {
                "id": "fetch",
                "serverName": "web",
                "toolName": "get",
                "parameters": {"url": "$url"},
                "dependsOn": ["login"],
                "outputMapping": {"token": "login.token"},
                "retryOnFailure": True,
                "maxRetries": 2,
            }
        )

        assert step.id == "fetch"
        assert step.capability == CapabilityRef("web", "get")
        assert step.depends_on == ["login"]
        assert step.output_mapping == {"token": "login.token"}
        assert step.max_attempts == 3

    def test_from_snake_case_dict(self):
        """Test creating a step from snake_case keys."""
        step = StepDefinition.from_dict(
            {"id": "a", "server_name": "s", "tool_name": "t", "depends_on": "b"}
        )

        assert step.server_name == "s"
        assert step.tool_name == "t"
        assert step.depends_on == ["b"]

    def test_lenient_parsing_keeps_malformed_values(self):
        """Test that malformed fields are kept for the validator."""
        step = StepDefinition.from_dict({"id": 7, "parameters": "oops", "dependsOn": None})

        assert step.id == "7"
        assert step.parameters == "oops"
        assert step.depends_on == []
        assert step.server_name == ""

    def test_dependency_ids_skip_non_strings(self):
        """Test that only string dependency entries are used."""
        step = StepDefinition.from_dict({"id": "a", "dependsOn": ["b", 3, None]})

        assert step.dependency_ids == ["b"]

    @pytest.mark.parametrize(
        "retry_on_failure,max_retries,expected",
        [(False, 5, 1), (True, None, 1), (True, 0, 1), (True, 3, 4), (True, True, 1)],
    )
    def test_max_attempts(self, retry_on_failure, max_retries, expected):
        """Test the attempt budget derived from the retry settings."""
        step = StepDefinition(
            id="a", retry_on_failure=retry_on_failure, max_retries=max_retries
        )

        assert step.max_attempts == expected

    def test_estimates_accept_aliases(self):
        """Test analysis hints under their alternative names."""
        step = StepDefinition.from_dict({"id": "a", "duration": 250, "complexity": 5})

        assert step.estimated_duration_ms == 250
        assert step.estimated_complexity == 5

    def test_to_dict_omits_defaults(self):
        """Test converting a minimal step to dict."""
        step = StepDefinition(id="a", server_name="s", tool_name="t")

        assert step.to_dict() == {
            "id": "a",
            "server_name": "s",
            "tool_name": "t",
            "parameters": {},
        }


class TestChainDefinition:
    """Tests for ChainDefinition."""

    def test_from_dict(self):
        """Test creating a chain from the orchestrator arguments."""
        chain = ChainDefinition.from_dict(
            {
                "workflowId": "wf-1",
                "name": "Fetch",
                "steps": [{"id": "a"}, {"id": "b", "dependsOn": ["a"]}],
                "variables": {"url": "http://example.com"},
                "failFast": True,
                "timeout": 30,
            }
        )

        assert chain.workflow_id == "wf-1"
        assert chain.name == "Fetch"
        assert chain.step_ids == ["a", "b"]
        assert chain.variables == {"url": "http://example.com"}
        assert chain.fail_fast is True
        assert chain.timeout == 30.0

    def test_tool_chain_alias(self):
        """Test that toolChain is accepted in place of steps."""
        chain = ChainDefinition.from_dict({"toolChain": [{"id": "a"}]})

        assert chain.step_ids == ["a"]

    def test_steps_must_be_a_list_of_mappings(self):
        """Test rejecting a malformed step list."""
        with pytest.raises(ValueError, match="must be a list"):
            ChainDefinition.from_dict({"steps": "a"})

        with pytest.raises(ValueError, match="Step 1"):
            ChainDefinition.from_dict({"steps": [{"id": "a"}, "b"]})

    @pytest.mark.parametrize(
        "data,message",
        [
            ({"variables": ["x"]}, "'variables' must be a mapping"),
            ({"metadata": "owner"}, "'metadata' must be a mapping"),
            ({"timeout": "soon"}, "'timeout' must be a number"),
            ({"timeout": [5]}, "'timeout' must be a number"),
        ],
    )
    def test_malformed_chain_fields(self, data, message):
        """Test that malformed chain-level fields raise ValueError."""
        with pytest.raises(ValueError, match=message):
            ChainDefinition.from_dict({"steps": [{"id": "a"}], **data})

    @pytest.mark.parametrize(
        "value,expected",
        [("false", False), ("False", False), ("true", True), ("TRUE", True), (None, False), (True, True)],
    )
    def test_flag_strings(self, value, expected):
        """Test that string flags are read the way settings are."""
        chain = ChainDefinition.from_dict(
            {"failFast": value, "steps": [{"id": "a", "retryOnFailure": value}]}
        )

        assert chain.steps[0].retry_on_failure is expected
        if value is not None:
            assert chain.fail_fast is expected

    def test_from_yaml(self):
        """Test parsing a chain from YAML."""
        yaml_str = """
workflow:
  workflowId: greet
  name: greeting
  variables:
    who: world
  steps:
    - id: hello
      serverName: local
      toolName: echo
      parameters:
        text: $who
    - id: shout
      serverName: local
      toolName: upper
      dependsOn: [hello]
      outputMapping:
        text: hello.text
"""

        chain = ChainDefinition.from_yaml(yaml_str)

        assert chain.workflow_id == "greet"
        assert chain.get_step("hello").parameters == {"text": "$who"}
        assert chain.get_step("shout").output_mapping == {"text": "hello.text"}
        assert chain.get_step("missing") is None

    def test_from_yaml_requires_workflow_key(self):
        """Test that YAML without a workflow key is rejected."""
        with pytest.raises(ValueError, match="'workflow' key"):
            ChainDefinition.from_yaml("steps: []")

    def test_from_yaml_invalid(self):
        """Test that invalid YAML is rejected."""
        with pytest.raises(ValueError, match="Invalid YAML"):
            ChainDefinition.from_yaml("workflow: [unclosed")

    def test_from_file(self):
        """Test loading a chain from a file."""
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "chain.yaml"
            path.write_text("workflow:\n  name: file-chain\n  steps:\n    - id: a\n")

            chain = ChainDefinition.from_file(str(path))

        assert chain.name == "file-chain"
        assert chain.step_ids == ["a"]

    def test_from_file_missing(self):
        """Test loading a missing file."""
        with pytest.raises(FileNotFoundError):
            ChainDefinition.from_file("/nonexistent/chain.yaml")

    def test_to_dict_round_trip(self):
        """Test that to_dict output parses back to an equal chain."""
        chain = ChainDefinition.from_dict(
            {
                "workflowId": "wf",
                "steps": [{"id": "a", "serverName": "s", "toolName": "t"}],
                "timeout": 5,
                "failFast": False,
            }
        )

        assert ChainDefinition.from_dict(chain.to_dict()) == chain
