"""
Tensor kinds (2-D). Multi-input kinds name their operands in
``config["inputs"]``; without it, inbound sources are taken in node id
order.
"""

from __future__ import annotations

from typing import Any

from autograph.node_registry.codegen import assign, call, literal
from autograph.node_registry.models import InputBindings, NodeKind

from .params import as_config, get_choice, get_int

TENSOR_OPS = ("dot", "add", "subtract", "multiply", "transpose")


def _tensor_create(node_id: str, config: Any, inputs: InputBindings) -> str:
    rows = get_int(config, "rows", 2)
    cols = get_int(config, "cols", 2)
    if rows <= 0 or cols <= 0:
        raise ValueError("'rows' and 'cols' must be positive")
    values = as_config(config).get("values")
    if values is None:
        values = [0.0] * (rows * cols)
    if not isinstance(values, list) or any(
        isinstance(v, bool) or not isinstance(v, (int, float)) for v in values
    ):
        raise ValueError("'values' must be a list of numbers")
    if len(values) != rows * cols:
        raise ValueError(f"expected {rows * cols} values for a {rows}x{cols} tensor, got {len(values)}")
    values = [float(v) for v in values]
    return assign(
        inputs.output,
        call("tensor_create", literal(rows), literal(cols), literal(values)),
    )


def _tensor_op(node_id: str, config: Any, inputs: InputBindings) -> str:
    op = get_choice(config, "op", "dot", TENSOR_OPS)
    return _emit_op(op, config, inputs)


def _fixed_op(op: str):
    def generate(node_id: str, config: Any, inputs: InputBindings) -> str:
        as_config(config)
        return _emit_op(op, config, inputs)
    return generate


def _emit_op(op: str, config: Any, inputs: InputBindings) -> str:
    if op == "transpose":
        operands = inputs.sources(config, minimum=1)
        return assign(inputs.output, call("tensor_transpose", operands[0]))
    operands = inputs.sources(config, minimum=2)
    if len(operands) != 2:
        raise ValueError(f"'{op}' takes exactly 2 inputs, got {len(operands)}")
    return assign(inputs.output, call(f"tensor_{op}", *operands))


TENSOR_CREATE = NodeKind(
    name="tensor_create",
    category="ML/GPU",
    description="Create 2D tensor",
    default_config=lambda: {"rows": 2, "cols": 2, "values": [1.0, 0.0, 0.0, 1.0]},
    generate=_tensor_create,
)

TENSOR_OP = NodeKind(
    name="tensor_op",
    category="ML/GPU",
    description="Tensor operation (dot, add, subtract, multiply, transpose)",
    default_config=lambda: {"op": "dot"},
    generate=_tensor_op,
)

TENSOR_MATMUL = NodeKind(
    name="tensor_matmul",
    category="ML/GPU",
    description="Matrix multiplication",
    default_config=dict,
    generate=_fixed_op("dot"),
)

TENSOR_ADD = NodeKind(
    name="tensor_add",
    category="ML/GPU",
    description="Element-wise tensor addition",
    default_config=dict,
    generate=_fixed_op("add"),
)

KINDS = [TENSOR_CREATE, TENSOR_OP, TENSOR_MATMUL, TENSOR_ADD]
