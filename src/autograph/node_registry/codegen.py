"""
Code generation helpers shared by node kinds and the compiler.

Generated fragments are flow program text: plain statements in a
restricted Python subset, one output binding per node.
"""

from __future__ import annotations

import math
import re
from typing import Any

_NON_IDENT = re.compile(r"\W")

OUTPUT_SUFFIX = "_out"


def binding_for(node_id: str) -> str:
    """
    Output binding name owned by a node.

    Non identifier characters become ``_``; ids starting with a digit
    or ``_`` are prefixed with ``n_`` (the sandbox rejects names that
    start with ``_``).
    """
    if not node_id:
        raise ValueError("node id must be non-empty")
    stem = _NON_IDENT.sub("_", node_id)
    if stem[0].isdigit() or stem[0] == "_":
        stem = f"n_{stem}"
    return f"{stem}{OUTPUT_SUFFIX}"


def literal(value: Any) -> str:
    """
    Render a JSON-like value as a deterministic program literal.

    Raises:
        ValueError: For values with no literal form (NaN, objects, ...)
    """
    if value is None or isinstance(value, bool):
        return repr(value)
    if isinstance(value, int):
        return repr(value)
    if isinstance(value, float):
        if not math.isfinite(value):
            raise ValueError(f"non-finite number: {value}")
        return repr(value)
    if isinstance(value, str):
        return repr(value)
    if isinstance(value, (list, tuple)):
        return "[" + ", ".join(literal(v) for v in value) + "]"
    if isinstance(value, dict):
        parts = []
        for k, v in value.items():
            if not isinstance(k, str):
                raise ValueError(f"object keys must be strings, got {type(k).__name__}")
            parts.append(f"{literal(k)}: {literal(v)}")
        return "{" + ", ".join(parts) + "}"
    raise ValueError(f"unsupported config value: {type(value).__name__}")


def call(fn: str, *args: str) -> str:
    """Render a runtime function call from already-rendered arguments."""
    return f"{fn}({', '.join(args)})"


def assign(binding: str, expr: str) -> str:
    """Single-statement fragment assigning ``expr`` to ``binding``."""
    return f"{binding} = {expr}\n"


__all__ = ["OUTPUT_SUFFIX", "binding_for", "literal", "call", "assign"]
