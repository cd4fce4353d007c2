"""
Sandboxed backends for flow program text.

Program text is parsed with ``ast`` and checked against a whitelist:
assignments to plain names, expression statements, literals, operators,
subscripts and calls to runtime functions. It executes with no Python
builtins, so the runtime table is the only way out.
"""

from __future__ import annotations

import ast
import logging
from typing import Any, Dict, FrozenSet, Mapping, Optional

from autograph.config import Settings
from autograph.errors import BackendCompileFailed, NodeExecutionFailed

from .base import BackendKind, Executable
from .runtime import RUNTIME_FUNCTIONS, FlowRuntime


logger = logging.getLogger(__name__)

_ALLOWED_NODES = (
    # Statements
    ast.Module, ast.Assign, ast.Expr, ast.Pass,
    # Expressions
    ast.Name, ast.Constant, ast.List, ast.Tuple, ast.Dict,
    ast.BinOp, ast.UnaryOp, ast.BoolOp, ast.Compare, ast.IfExp,
    ast.Subscript, ast.Slice, ast.Call, ast.keyword,
    # Contexts
    ast.Load, ast.Store,
    # Operators
    ast.Add, ast.Sub, ast.Mult, ast.Div, ast.FloorDiv, ast.Mod, ast.Pow,
    ast.UAdd, ast.USub, ast.Not, ast.And, ast.Or,
    ast.Eq, ast.NotEq, ast.Lt, ast.LtE, ast.Gt, ast.GtE,
    ast.In, ast.NotIn, ast.Is, ast.IsNot,
)

INPUT_NAME = "input"


def _reject(node: ast.AST, reason: str) -> BackendCompileFailed:
    return BackendCompileFailed(reason, lineno=getattr(node, "lineno", None))


def check_program(tree: ast.Module, functions: FrozenSet[str] = RUNTIME_FUNCTIONS) -> FrozenSet[str]:
    """
    Validate a parsed program against the whitelist.

    Returns:
        Names the program assigns

    Raises:
        BackendCompileFailed: On the first disallowed construct
    """
    defines = set()
    for node in ast.walk(tree):
        if not isinstance(node, _ALLOWED_NODES):
            raise _reject(node, f"disallowed construct: {type(node).__name__}")

        if isinstance(node, ast.Name) and node.id.startswith("_"):
            raise _reject(node, f"disallowed name: {node.id}")

        if isinstance(node, ast.Assign):
            for target in node.targets:
                if not isinstance(target, ast.Name):
                    raise _reject(node, "only plain names may be assigned")
                if target.id in functions or target.id == INPUT_NAME:
                    raise _reject(node, f"cannot rebind '{target.id}'")
                defines.add(target.id)

        if isinstance(node, ast.Call):
            if not isinstance(node.func, ast.Name) or node.func.id not in functions:
                name = node.func.id if isinstance(node.func, ast.Name) else type(node.func).__name__
                raise _reject(node, f"unknown function: {name}")
    return frozenset(defines)


class SandboxBackend:
    """
    Backend that runs program text in a restricted namespace.

    Usage:
        backend = CPUBackend(runtime)
        exe = backend.compile("x_out = length('abc')\\n")
        backend.execute(exe, {"input": None})  # {"x_out": 3}
    """

    name = "sandbox"
    device = "cpu"

    def __init__(self, runtime: Optional[FlowRuntime] = None):
        self.runtime = runtime or FlowRuntime.from_settings()
        self._functions = self.runtime.functions()

    def compile(self, text: str) -> Executable:
        """
        Parse and validate program text.

        Raises:
            BackendCompileFailed: On syntax errors or disallowed constructs
        """
        try:
            tree = ast.parse(text, filename="<flow>", mode="exec")
        except SyntaxError as e:
            raise BackendCompileFailed(e.msg or "invalid syntax", lineno=e.lineno) from e

        defines = check_program(tree, frozenset(self._functions))
        code = compile(tree, "<flow>", "exec")
        return Executable(text=text, code=code, defines=defines)

    def execute(self, executable: Executable, input: Mapping[str, Any]) -> Dict[str, Any]:
        """
        Run an executable with the given bindings in scope.

        Raises:
            NodeExecutionFailed: If the program raises
        """
        namespace: Dict[str, Any] = {"__builtins__": {}}
        namespace.update(self._functions)
        namespace.update(input)
        try:
            exec(executable.code, namespace)
        except Exception as e:
            raise NodeExecutionFailed(f"{type(e).__name__}: {e}") from e
        return {name: namespace[name] for name in executable.defines if name in namespace}

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(device={self.device!r})"


class CPUBackend(SandboxBackend):
    name = "cpu"
    device = "cpu"


class GPUBackend(SandboxBackend):
    """
    GPU-designated variant. Tensor kernels run the same float64 code
    path as the CPU variant so results never depend on the device.
    """
    name = "gpu"
    device = "gpu"


def create_backend(kind: BackendKind, settings: Optional[Settings] = None) -> SandboxBackend:
    """Instantiate a concrete (already resolved) backend."""
    kind = BackendKind(kind)
    if kind is BackendKind.AUTO:
        raise ValueError("resolve AUTO with resolve_backend() first")
    runtime = FlowRuntime.from_settings(settings)
    backend_cls = GPUBackend if kind is BackendKind.GPU else CPUBackend
    logger.debug(f"Created {backend_cls.__name__} (workspace={runtime.workspace_dir})")
    return backend_cls(runtime)
