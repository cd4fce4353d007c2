"""Tests for the node registry."""
from unittest.mock import Mock

import pytest

from autograph.errors import DuplicateKind, RegistryFrozen, UnknownKind
from autograph.node_registry import NodeKind, NodePackManifest, NodeRegistry
from autograph.node_registry import registry as registry_module
from autograph.node_registry.codegen import assign


def _kind(name: str, category: str = "Test") -> NodeKind:
    return NodeKind(
        name=name,
        category=category,
        description=f"{name} kind",
        default_config=dict,
        generate=lambda node_id, config, inputs: assign(inputs.output, "1"),
    )


CORE_KINDS = {
    "start", "print", "sleep",
    "http_get", "http_post", "http_put", "http_delete", "http_request",
    "json_parse", "json_stringify", "json_get", "json_set",
    "string_concat", "string_upper", "string_lower", "string_trim",
    "string_split", "string_replace", "string_length",
    "array_slice", "array_concat", "array_sort", "array_length",
    "array_reverse", "array_unique",
    "object_get", "object_set", "object_keys", "object_values", "object_has_key",
    "file_read", "file_write", "file_exists", "file_delete", "file_list",
    "dir_create", "json_read", "json_write",
    "math_add", "math_subtract", "math_multiply", "math_divide",
    "math_floor", "math_ceil", "math_round", "math_sqrt", "math_random",
    "to_string", "to_int", "to_float",
    "tensor_create", "tensor_op", "tensor_matmul", "tensor_add",
}


class TestNodeRegistry:
    """Test registration and lookup."""

    def test_register_and_lookup(self):
        registry = NodeRegistry()
        kind = registry.register(_kind("alpha"))

        assert registry.lookup("alpha") is kind
        assert "alpha" in registry
        assert len(registry) == 1

    def test_duplicate_kind_rejected(self):
        registry = NodeRegistry()
        registry.register(_kind("alpha"))

        with pytest.raises(DuplicateKind) as exc_info:
            registry.register(_kind("alpha"))
        assert exc_info.value.kind == "alpha"

    def test_unknown_kind(self):
        registry = NodeRegistry()

        with pytest.raises(UnknownKind) as exc_info:
            registry.lookup("missing")
        assert exc_info.value.kind == "missing"
        assert registry.get("missing") is None

    def test_frozen_registry_rejects_registration(self):
        registry = NodeRegistry()
        registry.freeze()

        assert registry.frozen
        with pytest.raises(RegistryFrozen):
            registry.register(_kind("late"))

    def test_list_kinds_sorted(self):
        registry = NodeRegistry()
        for name in ("zeta", "alpha", "mid"):
            registry.register(_kind(name))

        assert [k.name for k in registry.list_kinds()] == ["alpha", "mid", "zeta"]
        assert [k.name for k in registry] == ["alpha", "mid", "zeta"]

    def test_register_pack(self):
        registry = NodeRegistry()
        manifest = NodePackManifest(name="extra", kinds=["one", "two"])

        registry.register_pack(manifest, [_kind("one"), _kind("two", "Other")])

        assert registry.pack_of("one") == "extra"
        assert registry.list_packs() == [manifest]
        assert registry.categories() == {"Test": ["one"], "Other": ["two"]}

    def test_register_pack_is_all_or_nothing(self):
        registry = NodeRegistry()
        registry.register(_kind("taken"))
        manifest = NodePackManifest(name="clash", kinds=["fresh", "taken"])

        with pytest.raises(DuplicateKind):
            registry.register_pack(manifest, [_kind("fresh"), _kind("taken")])

        assert "fresh" not in registry
        assert registry.list_packs() == []

    def test_register_pack_rejects_repeated_names(self):
        registry = NodeRegistry()

        with pytest.raises(DuplicateKind):
            registry.register_pack(NodePackManifest(name="twice"), [_kind("x"), _kind("x")])
        assert len(registry) == 0


class TestEntryPointDiscovery:
    """Test plugin pack discovery."""

    def test_discovers_tuple_and_list_packs(self, monkeypatch):
        tuple_ep = Mock()
        tuple_ep.name = "tuple_pack"
        tuple_ep.load.return_value = lambda: (
            NodePackManifest(name="tuple_pack", kinds=["t1"]),
            [_kind("t1")],
        )
        list_ep = Mock()
        list_ep.name = "list_pack"
        list_ep.load.return_value = lambda: [_kind("l1")]
        core_ep = Mock()
        core_ep.name = "core"

        monkeypatch.setattr(
            registry_module, "entry_points", lambda group: [core_ep, tuple_ep, list_ep]
        )
        registry = NodeRegistry()

        assert registry.discover_entry_points() == 2
        assert registry.pack_of("t1") == "tuple_pack"
        assert registry.pack_of("l1") == "list_pack"
        core_ep.load.assert_not_called()

    def test_broken_pack_is_skipped(self, monkeypatch):
        broken = Mock()
        broken.name = "broken"
        broken.load.side_effect = ImportError("no module")

        monkeypatch.setattr(registry_module, "entry_points", lambda group: [broken])
        registry = NodeRegistry()

        assert registry.discover_entry_points() == 0
        assert len(registry) == 0


class TestDefaultRegistry:
    """Test the process registry."""

    def test_contains_core_kinds(self, registry):
        names = {k.name for k in registry.list_kinds()}
        assert CORE_KINDS <= names

    def test_is_frozen_and_shared(self, registry):
        from autograph.node_registry import get_default_registry

        assert registry.frozen
        assert get_default_registry() is registry

    def test_default_configs_are_fresh(self, registry):
        kind = registry.lookup("tensor_create")
        first = kind.default_config()
        first["rows"] = 99

        assert kind.default_config()["rows"] == 2

    def test_describe(self, registry):
        info = registry.lookup("http_get").describe()
        assert info["category"] == "HTTP"
        assert info["default_config"] == {"url": "https://example.com"}
