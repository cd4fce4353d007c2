"""
Execution backends for flow program text.

This package provides:
- BackendKind: auto / cpu / gpu selection
- ExecutionBackend: compile/execute protocol
- CPUBackend / GPUBackend: sandboxed backends sharing one runtime
- FlowRuntime: the functions program text may call
"""

from .base import (
    BackendKind,
    Executable,
    ExecutionBackend,
    resolve_backend,
    uses_tensor_ops,
)
from .http import HttpApiError, HttpClient, NodeTimeoutError
from .runtime import RUNTIME_FUNCTIONS, FlowRuntime
from .sandbox import CPUBackend, GPUBackend, SandboxBackend, check_program, create_backend

__all__ = [
    "BackendKind",
    "Executable",
    "ExecutionBackend",
    "resolve_backend",
    "uses_tensor_ops",
    "HttpApiError",
    "HttpClient",
    "NodeTimeoutError",
    "RUNTIME_FUNCTIONS",
    "FlowRuntime",
    "CPUBackend",
    "GPUBackend",
    "SandboxBackend",
    "check_program",
    "create_backend",
]
