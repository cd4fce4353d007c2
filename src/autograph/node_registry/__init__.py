"""
Node Registry - Catalog of node kinds and their code generators.

This package provides:
- NodeKind: A node type with default config and code generator
- InputBindings: Resolved inputs handed to a generator
- NodePackManifest: Package metadata for a node pack
- NodeRegistry: Central registry, frozen after start-up

Supports entry-points based discovery for plugin node packs.
"""

from .codegen import binding_for, literal
from .models import InputBindings, NodeKind, NodePackManifest
from .registry import NodeRegistry, get_default_registry, NODE_PACK_ENTRY_POINT

__all__ = [
    "InputBindings",
    "NodeKind",
    "NodePackManifest",
    "NodeRegistry",
    "get_default_registry",
    "binding_for",
    "literal",
    "NODE_PACK_ENTRY_POINT",
]
