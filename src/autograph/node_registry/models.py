"""
Node Registry Models - Node kinds, input bindings and pack manifests.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class InputBindings:
    """
    Resolved inputs handed to a node kind's generator.

    ``output`` is the binding the generated fragment must assign.
    ``primary`` is the binding of the primary inbound source (None for
    source nodes). ``upstream`` maps every inbound source node id to its
    binding; multi-input kinds name the sources they consume in config.
    """
    output: str
    primary: Optional[str] = None
    upstream: Mapping[str, str] = field(default_factory=dict)

    def primary_or(self, default: str) -> str:
        """Primary input expression, or ``default`` for source nodes."""
        return self.primary if self.primary is not None else default

    def resolve(self, ref: str) -> str:
        """
        Binding of an upstream node referenced by id.

        Raises:
            KeyError: If ``ref`` is not an inbound source of this node
        """
        if ref not in self.upstream:
            raise KeyError(f"'{ref}' is not connected to this node")
        return self.upstream[ref]

    def sources(self, config: Any, minimum: int = 1) -> List[str]:
        """
        Bindings for a multi-input node.

        Uses ``config["inputs"]`` (a list of upstream node ids) when
        present, otherwise every inbound source ordered by node id.

        Raises:
            ValueError: If fewer than ``minimum`` sources are available
        """
        refs = config.get("inputs") if isinstance(config, dict) else None
        if refs is None:
            bindings = [self.upstream[k] for k in sorted(self.upstream)]
        else:
            if not isinstance(refs, list) or not all(isinstance(r, str) for r in refs):
                raise ValueError("'inputs' must be a list of node ids")
            bindings = [self.resolve(r) for r in refs]
        if len(bindings) < minimum:
            raise ValueError(f"needs at least {minimum} input(s), got {len(bindings)}")
        return bindings


GenerateFn = Callable[[str, Any, InputBindings], str]


@dataclass(frozen=True)
class NodeKind:
    """
    A registered node type.

    ``generate(node_id, config, inputs)`` must be pure: same arguments,
    same fragment, no side effects. It raises ValueError, TypeError or
    KeyError to reject a config.
    """
    name: str
    category: str
    description: str
    default_config: Callable[[], Any]
    generate: GenerateFn

    def describe(self) -> Dict[str, Any]:
        """Metadata for palettes and listings."""
        return {
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "default_config": self.default_config(),
        }


class NodePackManifest(BaseModel):
    """
    Manifest for a node pack (collection of node kinds).

    Used for discovery and registration of bundled kinds.
    """
    model_config = ConfigDict(extra="allow")

    # Identity
    name: str = Field(..., description="Pack name (e.g., 'core')")
    version: str = Field("1.0.0", description="Pack version")
    description: str = Field("", description="Pack description")

    # Author
    author: str = Field("", description="Author name")
    license: str = Field("MIT", description="License type")

    # Contents
    kinds: List[str] = Field(
        default_factory=list,
        description="List of node kind names in this pack"
    )

    # Technical
    entry_point: str = Field(
        "",
        description="Module path for kind discovery (e.g., 'mypack.kinds')"
    )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NodePackManifest":
        """Create from dictionary."""
        return cls.model_validate(data)


__all__ = [
    "InputBindings",
    "GenerateFn",
    "NodeKind",
    "NodePackManifest",
]
