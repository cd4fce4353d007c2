"""
Core Node Pack - Built-in node kinds.

This pack provides the kinds available in every flow:
- Control: start, print, sleep
- HTTP: GET/POST/PUT/DELETE and custom requests
- Data: JSON, strings, arrays, objects, type conversion
- Files: read/write/list rooted at the workspace directory
- Math: arithmetic, rounding, seeded random
- Tensors: 2-D create, dot, add, subtract, multiply, transpose

Every generator is pure: the same node id, config and inputs always
produce the same fragment.
"""

from .manifest import KINDS, MANIFEST, register_kinds

__all__ = [
    "KINDS",
    "MANIFEST",
    "register_kinds",
]
