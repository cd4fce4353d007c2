"""
Control and system kinds: flow entry, printing and delays.
"""

from __future__ import annotations

from typing import Any

from autograph.node_registry.codegen import assign, call, literal
from autograph.node_registry.models import InputBindings, NodeKind

from .params import as_config, get_int


def _start(node_id: str, config: Any, inputs: InputBindings) -> str:
    # Entry point: exposes the run input
    as_config(config)
    return assign(inputs.output, "input")


def _print(node_id: str, config: Any, inputs: InputBindings) -> str:
    value = inputs.primary_or("None")
    return assign(inputs.output, call("emit", value, literal(node_id)))


def _sleep(node_id: str, config: Any, inputs: InputBindings) -> str:
    ms = get_int(config, "ms", 1000)
    if ms < 0:
        raise ValueError("'ms' must not be negative")
    return assign(inputs.output, call("sleep_ms", literal(ms), inputs.primary_or("None")))


START = NodeKind(
    name="start",
    category="Control",
    description="Entry point for workflow",
    default_config=dict,
    generate=_start,
)

PRINT = NodeKind(
    name="print",
    category="Debug",
    description="Print value to console",
    default_config=dict,
    generate=_print,
)

SLEEP = NodeKind(
    name="sleep",
    category="System",
    description="Sleep for milliseconds",
    default_config=lambda: {"ms": 1000},
    generate=_sleep,
)

KINDS = [START, PRINT, SLEEP]
