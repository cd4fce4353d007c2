"""
Math kinds.
"""

from __future__ import annotations

import zlib
from typing import Any

from autograph.node_registry.codegen import assign, call, literal
from autograph.node_registry.models import InputBindings, NodeKind

from .params import as_config, get_int, get_number


def _binary(operator: str, identity: int):
    def generate(node_id: str, config: Any, inputs: InputBindings) -> str:
        value = get_number(config, "value", identity)
        if operator == "/" and value == 0:
            raise ValueError("division by zero")
        left = inputs.primary_or(literal(identity))
        return assign(inputs.output, f"{left} {operator} {literal(value)}")
    return generate


def _unary(fn: str):
    def generate(node_id: str, config: Any, inputs: InputBindings) -> str:
        as_config(config)
        return assign(inputs.output, call(fn, inputs.primary_or("0")))
    return generate


def _round(node_id: str, config: Any, inputs: InputBindings) -> str:
    digits = get_int(config, "digits", 0)
    return assign(inputs.output, call("round_number", inputs.primary_or("0"), literal(digits)))


def _random(node_id: str, config: Any, inputs: InputBindings) -> str:
    # Seeded per node so repeated runs agree
    seed = as_config(config).get("seed")
    if seed is None:
        seed = zlib.crc32(node_id.encode("utf-8"))
    elif isinstance(seed, bool) or not isinstance(seed, int):
        raise ValueError("'seed' must be an integer")
    return assign(inputs.output, call("random", literal(seed)))


def _kind(name: str, description: str, generate, defaults=None) -> NodeKind:
    defaults = defaults or {}
    return NodeKind(
        name=name,
        category="Math",
        description=description,
        default_config=lambda: dict(defaults),
        generate=generate,
    )


MATH_ADD = _kind("math_add", "Add two numbers", _binary("+", 0), {"value": 0})
MATH_SUBTRACT = _kind("math_subtract", "Subtract two numbers", _binary("-", 0), {"value": 0})
MATH_MULTIPLY = _kind("math_multiply", "Multiply two numbers", _binary("*", 1), {"value": 1})
MATH_DIVIDE = _kind("math_divide", "Divide two numbers", _binary("/", 1), {"value": 1})
MATH_FLOOR = _kind("math_floor", "Floor of number", _unary("floor"))
MATH_CEIL = _kind("math_ceil", "Ceiling of number", _unary("ceil"))
MATH_ROUND = _kind("math_round", "Round number", _round)
MATH_SQRT = _kind("math_sqrt", "Square root", _unary("sqrt"))
MATH_RANDOM = _kind("math_random", "Random number (0-1), seeded", _random)

KINDS = [
    MATH_ADD, MATH_SUBTRACT, MATH_MULTIPLY, MATH_DIVIDE,
    MATH_FLOOR, MATH_CEIL, MATH_ROUND, MATH_SQRT, MATH_RANDOM,
]
