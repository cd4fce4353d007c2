"""
Autograph errors.

Every error names the node id(s) it concerns and carries a readable
cause. ``to_dict()`` gives a transport-friendly representation.

Taxonomy:
- GraphError: structural problems, fatal to compilation
- ConfigError: a node rejected its config, fatal to compilation
- BackendError: the generated program cannot be compiled, fatal to a run
- NodeExecutionFailed: a single node failed at run time (recorded, never re-raised)
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional


class AutographError(Exception):
    """Base exception for all Autograph errors."""

    def __init__(
        self,
        message: str,
        node_ids: Optional[Iterable[str]] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        """
        Initialize error.

        Args:
            message: Human-readable cause
            node_ids: Offending node id(s), if determinable
            details: Additional context
        """
        self.message = message
        self.node_ids: List[str] = list(node_ids or [])
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to a dictionary for API responses."""
        result: Dict[str, Any] = {
            "error": self.__class__.__name__,
            "message": self.message,
        }
        if self.node_ids:
            result["node_ids"] = list(self.node_ids)
        if self.details:
            result["details"] = self.details
        return result


# ==============================================================================
# Registry
# ==============================================================================

class RegistryError(AutographError):
    """Node registry misuse."""


class DuplicateKind(RegistryError):
    """A node kind with the same name is already registered."""

    def __init__(self, name: str):
        super().__init__(f"Node kind already registered: {name}", details={"kind": name})
        self.kind = name


class RegistryFrozen(RegistryError):
    """The registry is read-only once the process has started."""

    def __init__(self, name: str):
        super().__init__(
            f"Cannot register '{name}': node registry is frozen",
            details={"kind": name},
        )


# ==============================================================================
# Compilation
# ==============================================================================

class GraphError(AutographError):
    """The flow graph is structurally invalid."""


class UnknownKind(GraphError):
    """A node references a kind that is not registered."""

    def __init__(self, kind: str, node_id: Optional[str] = None):
        where = f" (node '{node_id}')" if node_id else ""
        super().__init__(
            f"Unknown node kind: {kind}{where}",
            node_ids=[node_id] if node_id else None,
            details={"kind": kind},
        )
        self.kind = kind


class DanglingEdge(GraphError):
    """An edge endpoint references a node id that does not exist."""

    def __init__(self, missing_id: str, source: str, target: str):
        super().__init__(
            f"Edge {source} -> {target} references unknown node: {missing_id}",
            node_ids=[missing_id],
            details={"source": source, "target": target},
        )
        self.missing_id = missing_id


class CyclicGraph(GraphError):
    """The flow contains at least one cycle."""

    def __init__(self, node_ids: Iterable[str]):
        ids = sorted(node_ids)
        super().__init__(f"Flow has cycles involving: {', '.join(ids)}", node_ids=ids)


class DuplicateNodeId(GraphError):
    """Two nodes share the same id."""

    def __init__(self, node_id: str):
        super().__init__(f"Duplicate node id: {node_id}", node_ids=[node_id])


class BindingCollision(GraphError):
    """Two node ids map to the same output binding name."""

    def __init__(self, binding: str, node_ids: Iterable[str]):
        ids = sorted(node_ids)
        super().__init__(
            f"Nodes {', '.join(ids)} would share output binding '{binding}'",
            node_ids=ids,
            details={"binding": binding},
        )


class InvalidNodeId(GraphError):
    """A node id cannot be turned into a legal output binding name."""

    def __init__(self, node_id: str, binding: str):
        super().__init__(
            f"Node id '{node_id}' does not map to a valid binding name ('{binding}')",
            node_ids=[node_id],
            details={"binding": binding},
        )


class ConfigError(AutographError):
    """A node configuration was rejected."""


class ConfigValidationFailed(ConfigError):
    """A node's generation function rejected its resolved config."""

    def __init__(self, node_id: str, kind: str, cause: str):
        super().__init__(
            f"Invalid config for node '{node_id}' ({kind}): {cause}",
            node_ids=[node_id],
            details={"kind": kind},
        )


# ==============================================================================
# Backend
# ==============================================================================

class BackendError(AutographError):
    """The generated program could not be compiled by the backend."""


class CodeGenContractViolation(BackendError):
    """A fragment does not define the output binding its node owns."""

    def __init__(self, node_id: str, binding: str, cause: str = ""):
        message = f"Fragment for node '{node_id}' does not define '{binding}'"
        if cause:
            message = f"{message}: {cause}"
        super().__init__(message, node_ids=[node_id], details={"binding": binding})


class BackendCompileFailed(BackendError):
    """Backend rejected program text."""

    def __init__(
        self,
        cause: str,
        lineno: Optional[int] = None,
        node_id: Optional[str] = None,
    ):
        where = f" at line {lineno}" if lineno else ""
        owner = f" (node '{node_id}')" if node_id else ""
        super().__init__(
            f"Backend compile failed{where}{owner}: {cause}",
            node_ids=[node_id] if node_id else None,
            details={"lineno": lineno} if lineno else None,
        )
        self.cause = cause
        self.lineno = lineno

    def attributed_to(self, node_id: Optional[str]) -> "BackendCompileFailed":
        """Return a copy naming the node that owns the failing line."""
        return BackendCompileFailed(self.cause, lineno=self.lineno, node_id=node_id)


class NodeExecutionFailed(AutographError):
    """A node fragment raised while executing."""

    def __init__(self, cause: str, node_id: Optional[str] = None):
        super().__init__(cause, node_ids=[node_id] if node_id else None)


# ==============================================================================
# Engine / timeline
# ==============================================================================

class RunStateError(AutographError):
    """An operation is not valid in the run's current status."""


class TimelineOrderError(AutographError):
    """A timeline entry was appended out of sequence order."""


class ReplayError(AutographError):
    """A replay cannot be constructed from the given timeline."""


# ==============================================================================
# Service
# ==============================================================================

class FlowNotFound(AutographError):
    """No flow is deployed under the given name."""

    def __init__(self, flow_name: str):
        super().__init__(f"Flow not found: {flow_name}", details={"flow_name": flow_name})


class FlowValidationError(AutographError):
    """Deploy rejected a flow; wraps the compile error."""

    def __init__(self, flow_name: str, cause: AutographError):
        super().__init__(
            f"Flow '{flow_name}' failed validation: {cause.message}",
            node_ids=cause.node_ids,
            details={"flow_name": flow_name, "cause": cause.to_dict()},
        )
        self.cause = cause


__all__ = [
    "AutographError",
    "RegistryError",
    "DuplicateKind",
    "RegistryFrozen",
    "GraphError",
    "UnknownKind",
    "DanglingEdge",
    "CyclicGraph",
    "DuplicateNodeId",
    "BindingCollision",
    "InvalidNodeId",
    "ConfigError",
    "ConfigValidationFailed",
    "BackendError",
    "CodeGenContractViolation",
    "BackendCompileFailed",
    "NodeExecutionFailed",
    "RunStateError",
    "TimelineOrderError",
    "ReplayError",
    "FlowNotFound",
    "FlowValidationError",
]
