"""
Node Registry - Central catalog of node kinds.

Supports two population methods:
1. Manual registration (register / register_pack)
2. Entry-points (for plugin node packs)

The process registry is populated once at start-up and then frozen;
lookups on a frozen registry are safe from any thread.
"""

from __future__ import annotations

import logging
import threading
from importlib.metadata import entry_points
from typing import Dict, Iterable, Iterator, List, Optional

from autograph.errors import DuplicateKind, RegistryFrozen, UnknownKind

from .models import NodeKind, NodePackManifest


logger = logging.getLogger(__name__)

# Entry point group for node packs
NODE_PACK_ENTRY_POINT = "autograph.nodepacks"


class NodeRegistry:
    """
    Catalog of node kinds keyed by name.

    Usage:
        registry = NodeRegistry()
        registry.register_pack(MANIFEST, KINDS)
        registry.freeze()

        kind = registry.lookup("tensor_create")
        source = kind.generate("A", kind.default_config(), inputs)
    """

    def __init__(self):
        """Initialize empty registry."""
        self._kinds: Dict[str, NodeKind] = {}
        self._packs: Dict[str, NodePackManifest] = {}
        self._kind_packs: Dict[str, str] = {}
        self._frozen = False

    def register(self, kind: NodeKind) -> NodeKind:
        """
        Register a node kind.

        Raises:
            DuplicateKind: If a kind with the same name exists
            RegistryFrozen: If the registry has been frozen
        """
        if self._frozen:
            raise RegistryFrozen(kind.name)
        if kind.name in self._kinds:
            raise DuplicateKind(kind.name)

        self._kinds[kind.name] = kind
        logger.debug(f"Registered node kind: {kind.name}")
        return kind

    def register_pack(
        self,
        manifest: NodePackManifest,
        kinds: Iterable[NodeKind],
    ) -> None:
        """
        Register a node pack with its kinds.

        Nothing is registered unless every kind in the pack can be.

        Args:
            manifest: Pack manifest
            kinds: Kinds provided by the pack

        Raises:
            DuplicateKind: If any kind name is already registered or repeated
            RegistryFrozen: If the registry has been frozen
        """
        kinds = list(kinds)
        seen = set()
        for kind in kinds:
            if self._frozen:
                raise RegistryFrozen(kind.name)
            if kind.name in self._kinds or kind.name in seen:
                raise DuplicateKind(kind.name)
            seen.add(kind.name)

        for kind in kinds:
            self.register(kind)
            self._kind_packs[kind.name] = manifest.name
        self._packs[manifest.name] = manifest

        logger.info(f"Registered pack '{manifest.name}' with {len(kinds)} kinds")

    def discover_entry_points(self) -> int:
        """
        Discover node packs via entry points.

        Entry points are declared in pyproject.toml:

            [project.entry-points."autograph.nodepacks"]
            mypack = "mypack:register_kinds"

        The entry point is a function returning ``(manifest, kinds)`` or
        just a list of kinds.

        Returns:
            Number of packs discovered
        """
        count = 0
        for ep in entry_points(group=NODE_PACK_ENTRY_POINT):
            # The built-in pack is registered explicitly
            if ep.name == "core":
                continue
            try:
                result = ep.load()()
            except Exception as e:
                logger.error(f"Failed to load node pack '{ep.name}': {e}")
                continue

            if isinstance(result, tuple):
                manifest, kinds = result
            else:
                kinds = list(result)
                manifest = NodePackManifest(name=ep.name, kinds=[k.name for k in kinds])
            self.register_pack(manifest, kinds)
            count += 1
            logger.info(f"Discovered node pack: {ep.name}")

        return count

    def freeze(self) -> None:
        """Make the registry read-only."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def lookup(self, name: str) -> NodeKind:
        """
        Get a node kind by name.

        Raises:
            UnknownKind: If no kind is registered under ``name``
        """
        kind = self._kinds.get(name)
        if kind is None:
            raise UnknownKind(name)
        return kind

    def get(self, name: str) -> Optional[NodeKind]:
        """Get a node kind by name, or None."""
        return self._kinds.get(name)

    def pack_of(self, name: str) -> Optional[str]:
        """Name of the pack that provided a kind."""
        return self._kind_packs.get(name)

    def list_kinds(self) -> List[NodeKind]:
        """List all registered kinds, ordered by name."""
        return [self._kinds[n] for n in sorted(self._kinds)]

    def list_packs(self) -> List[NodePackManifest]:
        """List all registered packs."""
        return list(self._packs.values())

    def categories(self) -> Dict[str, List[str]]:
        """Kind names grouped by display category."""
        grouped: Dict[str, List[str]] = {}
        for kind in self.list_kinds():
            grouped.setdefault(kind.category, []).append(kind.name)
        return grouped

    def has_kind(self, name: str) -> bool:
        """Check if kind is registered."""
        return name in self._kinds

    def __len__(self) -> int:
        """Number of registered kinds."""
        return len(self._kinds)

    def __iter__(self) -> Iterator[NodeKind]:
        """Iterate over kinds ordered by name."""
        return iter(self.list_kinds())

    def __contains__(self, name: object) -> bool:
        """Check if kind is registered."""
        return isinstance(name, str) and self.has_kind(name)


# Process registry
_default_registry: Optional[NodeRegistry] = None
_default_lock = threading.Lock()


def get_default_registry() -> NodeRegistry:
    """
    Get the process node registry.

    Built on first use with the core pack plus any entry-point packs,
    then frozen.
    """
    global _default_registry
    if _default_registry is None:
        with _default_lock:
            if _default_registry is None:
                from autograph.nodepacks.core import MANIFEST, KINDS

                registry = NodeRegistry()
                registry.register_pack(MANIFEST, KINDS)
                registry.discover_entry_points()
                registry.freeze()
                _default_registry = registry
    return _default_registry


__all__ = [
    "NodeRegistry",
    "get_default_registry",
    "NODE_PACK_ENTRY_POINT",
]
