"""
Workflow Templates - Pre-built flows for common automation tasks.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from .models import Edge, Flow, Node, Position


@dataclass(frozen=True)
class WorkflowTemplate:
    """A named flow factory. ``create()`` returns a fresh Flow each call."""
    name: str
    description: str
    category: str
    create: Callable[[], Flow]


def _chain(
    nodes: Sequence[Tuple[str, str, Dict[str, Any]]],
    edges: Optional[Sequence[Tuple[str, str]]] = None,
    y: float = 200.0,
) -> Flow:
    """Lay nodes out left to right; without explicit edges, link them in sequence."""
    flow_nodes = [
        Node(id=node_id, type_name=kind, config=config, position=Position(x=100.0 + 200.0 * i, y=y))
        for i, (node_id, kind, config) in enumerate(nodes)
    ]
    if edges is None:
        edges = [(a[0], b[0]) for a, b in zip(nodes, nodes[1:])]
    return Flow(nodes=flow_nodes, edges=[Edge(source=s, target=t) for s, t in edges])


HTTP_TO_JSON_TO_PRINT = WorkflowTemplate(
    name="HTTP → JSON → Print",
    description="Fetch JSON from API and print result",
    category="API",
    create=lambda: _chain([
        ("http1", "http_get", {"url": "https://api.github.com/users/octocat"}),
        ("json1", "json_parse", {}),
        ("print1", "print", {}),
    ]),
)

FILE_READ_TRANSFORM_WRITE = WorkflowTemplate(
    name="File Processing",
    description="Read file, transform, write back",
    category="Files",
    create=lambda: _chain([
        ("read1", "file_read", {"path": "input.txt"}),
        ("upper1", "string_upper", {}),
        ("write1", "file_write", {"path": "output.txt"}),
    ]),
)

JSON_API_PIPELINE = WorkflowTemplate(
    name="JSON API Pipeline",
    description="Fetch, parse, extract, save to file",
    category="API",
    create=lambda: _chain(
        [
            ("http1", "http_get", {"url": "https://api.example.com/data"}),
            ("json1", "json_parse", {}),
            ("get1", "json_get", {"key": "results"}),
            ("write1", "json_write", {"path": "results.json"}),
        ],
        y=150.0,
    ),
)

DATA_PROCESSING = WorkflowTemplate(
    name="Data Processing",
    description="Load JSON, extract items, count them",
    category="Data",
    create=lambda: _chain([
        ("read1", "json_read", {"path": "data.json"}),
        ("get1", "object_get", {"key": "items"}),
        ("len1", "array_length", {}),
        ("print1", "print", {}),
    ]),
)

MATH_CALCULATOR = WorkflowTemplate(
    name="Math Calculator",
    description="Chain math operations: ((x + 10) * 2) then square root",
    category="Math",
    create=lambda: _chain([
        ("add1", "math_add", {"value": 10}),
        ("mult1", "math_multiply", {"value": 2}),
        ("sqrt1", "math_sqrt", {}),
        ("print1", "print", {}),
    ]),
)

TENSOR_MATMUL = WorkflowTemplate(
    name="Tensor MatMul",
    description="Multiply an identity matrix by a matrix of 2.0s and print it",
    category="ML/GPU",
    create=lambda: _chain(
        [
            ("matA", "tensor_create", {"rows": 2, "cols": 2, "values": [1.0, 0.0, 0.0, 1.0]}),
            ("matB", "tensor_create", {"rows": 2, "cols": 2, "values": [2.0, 2.0, 2.0, 2.0]}),
            ("matmul", "tensor_op", {"op": "dot", "inputs": ["matA", "matB"]}),
            ("printer", "print", {}),
        ],
        edges=[("matA", "matmul"), ("matB", "matmul"), ("matmul", "printer")],
    ),
)


_TEMPLATES = [
    HTTP_TO_JSON_TO_PRINT,
    FILE_READ_TRANSFORM_WRITE,
    JSON_API_PIPELINE,
    DATA_PROCESSING,
    MATH_CALCULATOR,
    TENSOR_MATMUL,
]


def all_templates() -> List[WorkflowTemplate]:
    return list(_TEMPLATES)


def get_template(name: str) -> WorkflowTemplate:
    """
    Raises:
        KeyError: If no template has that name
    """
    for template in _TEMPLATES:
        if template.name == name:
            return template
    raise KeyError(name)


__all__ = ["WorkflowTemplate", "all_templates", "get_template"]
