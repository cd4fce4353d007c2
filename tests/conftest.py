"""Pytest configuration and fixtures."""
import os

import pytest

# Set test environment variables
os.environ["AUTOGRAPH_ENV"] = "test"
os.environ["AUTOGRAPH_REDIS_URL"] = "redis://localhost:6379/1"  # Test DB
os.environ["AUTOGRAPH_MAX_WORKERS"] = "4"


@pytest.fixture(autouse=True)
def _fresh_settings():
    """Drop cached settings so monkeypatched env vars take effect."""
    from autograph.config import reset_settings

    reset_settings()
    yield
    reset_settings()


@pytest.fixture
def settings(tmp_path):
    """Settings rooted in a temporary workspace."""
    from autograph.config import Settings

    return Settings(workspace_dir=tmp_path, flows_dir=tmp_path / "flows")


@pytest.fixture
def registry():
    """The process node registry (core pack)."""
    from autograph.node_registry import get_default_registry

    return get_default_registry()


@pytest.fixture
def compiler(registry):
    from autograph.workflow_runtime import FlowCompiler

    return FlowCompiler(registry)


@pytest.fixture
def engine(settings):
    from autograph.workflow_runtime import ExecutionEngine

    return ExecutionEngine(settings=settings)


@pytest.fixture
def tensor_flow():
    """Identity x all-2.0 matrix multiplication, printed."""
    from autograph.workflow_runtime import Flow

    return Flow.from_dict({
        "nodes": [
            {"id": "matA", "type_name": "tensor_create",
             "config": {"rows": 2, "cols": 2, "values": [1.0, 0.0, 0.0, 1.0]}},
            {"id": "matB", "type_name": "tensor_create",
             "config": {"rows": 2, "cols": 2, "values": [2.0, 2.0, 2.0, 2.0]}},
            {"id": "matmul", "type_name": "tensor_op",
             "config": {"op": "dot", "inputs": ["matA", "matB"]}},
            {"id": "printer", "type_name": "print", "config": {}},
        ],
        "edges": [
            {"source": "matA", "target": "matmul"},
            {"source": "matB", "target": "matmul"},
            {"source": "matmul", "target": "printer"},
        ],
    })
