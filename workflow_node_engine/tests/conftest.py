"""
Pytest configuration and shared fixtures for workflow_node_engine tests.
"""
from unittest.mock import AsyncMock, MagicMock

import pytest

from workflow_node_engine.config import reset_settings
from workflow_node_engine.core.context import ExecutionContext
from workflow_node_engine.models.execution import AIConfig, NodeOutput, TokenUsage
from workflow_node_engine.models.node_enums import NodeOutputStatus
from workflow_node_engine.services.ai_service import ChatResponse, InMemoryAIConfigStore
from workflow_node_engine.services.approval_service import InMemoryApprovalStore


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Keep engine settings isolated from the developer environment."""
    monkeypatch.setenv("NODE_ENGINE_DEFAULT_AI_PROVIDER", "echo")
    monkeypatch.setenv("NODE_ENGINE_DEBUG_TIMEOUT_SECONDS", "240")
    monkeypatch.delenv("NODE_ENGINE_MAX_LOOP_ITERATIONS", raising=False)
    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def context():
    """Empty execution context."""
    return ExecutionContext(
        execution_id="exec_test_123456",
        workflow_id="wf_test",
        organization_id="org_test",
        user_id="user_test",
    )


@pytest.fixture
def make_output():
    """Factory for successful upstream outputs."""

    def _make(name, data, node_id=None, status=NodeOutputStatus.SUCCESS, node_type="PROCESS"):
        return NodeOutput(
            node_id=node_id or f"{name}_id",
            node_name=name,
            node_type=node_type,
            status=status,
            data=data,
        )

    return _make


@pytest.fixture
def ai_config_store():
    store = InMemoryAIConfigStore()
    store.add(AIConfig(id="cfg_1", provider="mock", api_key="sk-test-123456789", default_model="mock-model"))
    return store


@pytest.fixture
def mock_ai_service():
    """AI service mock answering every chat with a fixed response."""
    service = MagicMock()
    service.chat = AsyncMock(
        return_value=ChatResponse(
            content="mock answer",
            model="mock-model",
            usage=TokenUsage(prompt_tokens=10, completion_tokens=5, total_tokens=15),
        )
    )
    service.transcribe = AsyncMock(return_value="hello from audio")
    return service


@pytest.fixture
def approval_store():
    return InMemoryApprovalStore()


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "asyncio: mark test to run with asyncio")
    config.addinivalue_line("markers", "unit: mark test as unit test")
