"""
Shared fixtures for tool chain tests.
"""

import pytest

from config.types import AnalysisOptions, ValidationOptions
from plugins.chaining.workflows import ParameterResolver, ResolutionMode, WorkflowEngine

from chain_helpers import RecordingInvoker, boom, echo


@pytest.fixture
def invoker():
    """Invoker with echo, fail and constant tools on server 'test'."""
    return RecordingInvoker(
        {
            "test/echo": echo,
            "test/fail": boom,
            "test/answer": lambda parameters: {"value": 42},
        }
    )


@pytest.fixture
def engine(invoker):
    return WorkflowEngine(
        invoker,
        resolver=ParameterResolver(ResolutionMode.PERMISSIVE),
        retry_backoff_seconds=0,
    )


@pytest.fixture
def validation_options():
    return ValidationOptions()


@pytest.fixture
def analysis_options():
    return AnalysisOptions()
