"""
Tests for the tool chain command line interface
"""

import json

import pytest
from click.testing import CliRunner

from plugins.chaining.cli import chain

CHAIN_YAML = """
workflow:
  workflowId: demo
  steps:
    - id: fetch
      serverName: web
      toolName: get
      estimatedDuration: 3000
    - id: parse
      serverName: local
      toolName: parse
      dependsOn: [fetch]
      outputMapping:
        body: fetch.body
    - id: store
      serverName: local
      toolName: save
      dependsOn: [parse]
"""

CYCLE_YAML = """
workflow:
  steps:
    - id: a
      serverName: s
      toolName: t
      dependsOn: [b]
    - id: b
      serverName: s
      toolName: t
      dependsOn: [a]
"""


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def chain_file(tmp_path):
    path = tmp_path / "chain.yaml"
    path.write_text(CHAIN_YAML)
    return str(path)


@pytest.fixture
def cycle_file(tmp_path):
    path = tmp_path / "cycle.yaml"
    path.write_text(CYCLE_YAML)
    return str(path)


def test_validate_valid(runner, chain_file):
    result = runner.invoke(chain, ["validate", chain_file])

    assert result.exit_code == 0
    assert "valid (0 warnings)" in result.output


def test_validate_cycle(runner, cycle_file):
    result = runner.invoke(chain, ["validate", cycle_file])

    assert result.exit_code == 1
    assert "ERROR: Circular dependency detected" in result.output


def test_validate_with_catalog(runner, chain_file, tmp_path):
    catalog = tmp_path / "catalog.yaml"
    catalog.write_text("tools:\n  - web/get\n  - local/parse\n")

    result = runner.invoke(chain, ["validate", chain_file, "--catalog", str(catalog)])

    assert result.exit_code == 1
    assert "ERROR: Step store: tool 'save' is not available in server 'local'" in result.output


def test_validate_strict(runner, tmp_path):
    path = tmp_path / "strict.yaml"
    path.write_text(
        "workflow:\n  steps:\n    - id: a\n      serverName: s\n      toolName: t\n"
        "      parameters:\n        q: $missing\n"
    )

    assert runner.invoke(chain, ["validate", str(path)]).exit_code == 0
    assert runner.invoke(chain, ["validate", str(path), "--strict"]).exit_code == 1


def test_analyze(runner, chain_file):
    result = runner.invoke(chain, ["analyze", chain_file])

    assert result.exit_code == 0
    analysis = json.loads(result.stdout)
    assert analysis["metrics"]["total_estimated_duration"] == 5000
    assert analysis["metrics"]["bottleneck_steps"] == ["fetch"]


def test_plan(runner, chain_file):
    result = runner.invoke(chain, ["plan", chain_file])

    assert result.exit_code == 0
    assert result.stdout.splitlines() == [
        "Batch 0: fetch",
        "Batch 1: parse",
        "Batch 2: store",
    ]


def test_plan_cycle(runner, cycle_file):
    result = runner.invoke(chain, ["plan", cycle_file])

    assert result.exit_code == 1
    assert "Unschedulable graph" in result.output


def test_invalid_yaml(runner, tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("steps: []\n")

    result = runner.invoke(chain, ["plan", str(path)])

    assert result.exit_code == 1
    assert "'workflow' key" in result.output
