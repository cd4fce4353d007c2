"""
Backend contract and selection.
"""

from __future__ import annotations

import ast
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, FrozenSet, Mapping, Optional, Protocol, Union

from autograph.config import Settings, get_settings


class BackendKind(str, Enum):
    """Requested execution backend."""
    AUTO = "auto"
    CPU = "cpu"
    GPU = "gpu"


@dataclass(frozen=True)
class Executable:
    """Program text accepted by a backend, ready to execute."""
    text: str
    code: Any
    defines: FrozenSet[str] = field(default_factory=frozenset)


class ExecutionBackend(Protocol):
    """
    Compiles and executes flow program text.

    ``execute`` returns the bindings the text defined. Identical text
    and input give identical bindings on every backend.
    """

    name: str
    device: str

    def compile(self, text: str) -> Executable:
        ...

    def execute(self, executable: Executable, input: Mapping[str, Any]) -> Dict[str, Any]:
        ...


TENSOR_FUNCTION_PREFIX = "tensor_"


def uses_tensor_ops(text: str) -> bool:
    """True if program text calls any tensor runtime function."""
    try:
        tree = ast.parse(text)
    except SyntaxError:
        return False
    return any(
        isinstance(node, ast.Call)
        and isinstance(node.func, ast.Name)
        and node.func.id.startswith(TENSOR_FUNCTION_PREFIX)
        for node in ast.walk(tree)
    )


def resolve_backend(
    kind: Union[BackendKind, str],
    text: str,
    settings: Optional[Settings] = None,
) -> BackendKind:
    """
    Resolve a requested backend to a concrete one.

    AUTO picks GPU only when the GPU is enabled in settings and the
    program uses tensor operations. Depends on nothing but the text and
    settings, so the choice is reproducible.
    """
    kind = BackendKind(kind)
    if kind is not BackendKind.AUTO:
        return kind
    settings = settings or get_settings()
    if settings.gpu_enabled and uses_tensor_ops(text):
        return BackendKind.GPU
    return BackendKind.CPU
