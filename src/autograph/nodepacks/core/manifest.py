"""
Core Node Pack Manifest - Registration function for entry-points.
"""

from autograph.node_registry.models import NodePackManifest

from . import control_nodes, data_nodes, file_nodes, http_nodes, math_nodes, tensor_nodes


# Kinds in palette order
KINDS = [
    *control_nodes.KINDS,
    *http_nodes.KINDS,
    *data_nodes.KINDS,
    *file_nodes.KINDS,
    *math_nodes.KINDS,
    *tensor_nodes.KINDS,
]


MANIFEST = NodePackManifest(
    name="core",
    version="1.0.0",
    description="Built-in control, HTTP, data, file, math and tensor kinds",
    author="autograph",
    license="MIT",
    kinds=[k.name for k in KINDS],
    entry_point="autograph.nodepacks.core",
)


def register_kinds():
    """
    Entry point function for node pack discovery.

    Returns tuple of (manifest, kinds).
    """
    return MANIFEST, KINDS
