"""
Flow Compiler - Turns a Flow into ordered flow program text.

Steps:
1. Validate ids, kinds, edges and binding names
2. Order nodes topologically (ties broken by node id)
3. Resolve each node's input bindings
4. Generate one fragment per node and check it defines its binding

The same flow always compiles to byte-identical text.
"""

from __future__ import annotations

import ast
import hashlib
import logging
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

from autograph.errors import (
    BindingCollision,
    CodeGenContractViolation,
    ConfigValidationFailed,
    InvalidNodeId,
    UnknownKind,
)
from autograph.node_registry import InputBindings, NodeRegistry, binding_for, get_default_registry

from .graph import FlowGraph, check_unique_ids
from .models import Flow


logger = logging.getLogger(__name__)

PROGRAM_HEADER = "# autograph flow program: {name}\n"


@dataclass(frozen=True)
class Fragment:
    """Generated source owned by one node, with its line span in the program."""
    node_id: str
    kind: str
    binding: str
    source: str
    start_line: int
    end_line: int


@dataclass(frozen=True)
class CompiledProgram:
    """
    Immutable output of compilation.

    ``index`` maps node id to its position in ``order``; that position is
    the node's ``sequence_index`` in every run of this program.
    """
    name: str
    text: str
    order: Tuple[str, ...]
    fragments: Mapping[str, Fragment]
    upstream: Mapping[str, Tuple[str, ...]]
    downstream: Mapping[str, Tuple[str, ...]]
    breakpoints: frozenset = field(default_factory=frozenset)
    result_node: Optional[str] = None

    @property
    def digest(self) -> str:
        """sha256 of the program text."""
        return hashlib.sha256(self.text.encode("utf-8")).hexdigest()

    @property
    def index(self) -> Dict[str, int]:
        return {node_id: i for i, node_id in enumerate(self.order)}

    def node_at(self, sequence_index: int) -> str:
        return self.order[sequence_index]

    def node_for_line(self, lineno: Optional[int]) -> Optional[str]:
        """Node whose fragment spans program line ``lineno`` (1-based)."""
        if lineno is None:
            return None
        for fragment in self.fragments.values():
            if fragment.start_line <= lineno <= fragment.end_line:
                return fragment.node_id
        return None

    def descendants(self, node_id: str) -> set:
        """All nodes transitively downstream of ``node_id``."""
        seen: set = set()
        queue = list(self.downstream.get(node_id, ()))
        while queue:
            name = queue.pop(0)
            if name in seen:
                continue
            seen.add(name)
            queue.extend(self.downstream.get(name, ()))
        return seen


def _defines_binding(source: str, binding: str) -> Tuple[bool, str]:
    """Check a fragment parses and assigns ``binding`` at top level."""
    try:
        tree = ast.parse(source)
    except SyntaxError as e:
        return False, f"syntax error: {e.msg}"
    for stmt in tree.body:
        if isinstance(stmt, ast.Assign) and any(
            isinstance(t, ast.Name) and t.id == binding for t in stmt.targets
        ):
            return True, ""
    return False, "output binding is never assigned"


class FlowCompiler:
    """
    Compiles flows against a node registry.

    Usage:
        compiler = FlowCompiler()
        program = compiler.compile(flow, name="tensor_demo")
        print(program.text)
    """

    def __init__(self, registry: Optional[NodeRegistry] = None):
        self.registry = registry or get_default_registry()

    def compile(self, flow: Flow, name: str = "workflow") -> CompiledProgram:
        """
        Compile a flow.

        Raises:
            DuplicateNodeId, UnknownKind, DanglingEdge, InvalidNodeId,
            BindingCollision, CyclicGraph: Structural problems
            ConfigValidationFailed: A node kind rejected its config
            CodeGenContractViolation: A fragment does not define its binding
        """
        # Snapshot so later edits to the caller's flow cannot leak in
        flow = flow.model_copy(deep=True)

        check_unique_ids(flow)
        kinds = {node.id: self._lookup(node.type_name, node.id) for node in flow.nodes}
        graph = FlowGraph(flow)
        bindings = self._bindings(graph.node_ids)
        order = graph.topological_order()

        nodes = {node.id: node for node in flow.nodes}
        text = PROGRAM_HEADER.format(name=name)
        line = text.count("\n") + 1
        fragments: Dict[str, Fragment] = {}

        for node_id in order:
            node = nodes[node_id]
            kind = kinds[node_id]
            upstream = graph.upstream[node_id]
            inputs = InputBindings(
                output=bindings[node_id],
                primary=bindings[upstream[0]] if upstream else None,
                upstream=MappingProxyType({u: bindings[u] for u in upstream}),
            )

            try:
                source = kind.generate(node_id, node.config, inputs)
            except (ValueError, TypeError, KeyError) as e:
                cause = e.args[0] if isinstance(e, KeyError) and e.args else e
                raise ConfigValidationFailed(node_id, kind.name, str(cause)) from e

            if not isinstance(source, str):
                raise CodeGenContractViolation(node_id, inputs.output, "generator returned no text")
            if not source.endswith("\n"):
                source += "\n"
            ok, cause = _defines_binding(source, inputs.output)
            if not ok:
                raise CodeGenContractViolation(node_id, inputs.output, cause)

            comment = f"# node {node_id} ({kind.name})\n"
            text += comment
            line += 1
            span = source.count("\n")
            fragments[node_id] = Fragment(
                node_id=node_id,
                kind=kind.name,
                binding=inputs.output,
                source=source,
                start_line=line,
                end_line=line + span - 1,
            )
            text += source
            line += span

        leaves = [n for n in order if not graph.downstream[n]]
        program = CompiledProgram(
            name=name,
            text=text,
            order=tuple(order),
            fragments=MappingProxyType(fragments),
            upstream=MappingProxyType({k: tuple(v) for k, v in graph.upstream.items()}),
            downstream=MappingProxyType({k: tuple(v) for k, v in graph.downstream.items()}),
            breakpoints=frozenset(n.id for n in flow.nodes if n.breakpoint),
            result_node=leaves[-1] if leaves else None,
        )
        logger.info(
            f"Compiled flow '{name}': {len(order)} nodes, digest {program.digest[:12]}"
        )
        return program

    def _lookup(self, type_name: str, node_id: str):
        kind = self.registry.get(type_name)
        if kind is None:
            raise UnknownKind(type_name, node_id)
        return kind

    @staticmethod
    def _bindings(node_ids: List[str]) -> Dict[str, str]:
        """
        Raises:
            InvalidNodeId: If an id maps to a name that is not an identifier
            BindingCollision: If two ids map to the same binding name
        """
        owners: Dict[str, str] = {}
        bindings: Dict[str, str] = {}
        for node_id in node_ids:
            binding = binding_for(node_id)
            if not binding.isidentifier():
                raise InvalidNodeId(node_id, binding)
            if binding in owners:
                raise BindingCollision(binding, [owners[binding], node_id])
            owners[binding] = node_id
            bindings[node_id] = binding
        return bindings


def compile_flow(flow: Flow, name: str = "workflow", registry: Optional[NodeRegistry] = None) -> CompiledProgram:
    """Compile with the default registry unless one is given."""
    return FlowCompiler(registry).compile(flow, name=name)


__all__ = ["Fragment", "CompiledProgram", "FlowCompiler", "compile_flow", "PROGRAM_HEADER"]
