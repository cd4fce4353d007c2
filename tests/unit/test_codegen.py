"""Tests for code generation helpers and core kind generators."""
import pytest

from autograph.node_registry import InputBindings, binding_for, literal


def _gen(registry, kind_name, config, node_id="n", primary=None, upstream=None):
    kind = registry.lookup(kind_name)
    inputs = InputBindings(
        output=binding_for(node_id),
        primary=primary,
        upstream=upstream or {},
    )
    return kind.generate(node_id, config, inputs)


class TestBindingFor:

    def test_plain_id(self):
        assert binding_for("matA") == "matA_out"

    def test_non_identifier_characters(self):
        assert binding_for("http-get.1") == "http_get_1_out"

    def test_leading_digit(self):
        assert binding_for("1st") == "n_1st_out"

    def test_leading_underscore(self):
        assert binding_for("_a") == "n__a_out"
        assert binding_for("-a") == "n__a_out"

    def test_empty_id_rejected(self):
        with pytest.raises(ValueError):
            binding_for("")


class TestLiteral:

    def test_scalars(self):
        assert literal(None) == "None"
        assert literal(True) == "True"
        assert literal(3) == "3"
        assert literal(2.5) == "2.5"
        assert literal("it's") == '"it\'s"'

    def test_nested(self):
        assert literal({"a": [1, None, "x"]}) == "{'a': [1, None, 'x']}"

    def test_non_finite_rejected(self):
        with pytest.raises(ValueError):
            literal(float("nan"))

    def test_non_string_keys_rejected(self):
        with pytest.raises(ValueError):
            literal({1: "a"})

    def test_unsupported_type_rejected(self):
        with pytest.raises(ValueError):
            literal(object())


class TestInputBindings:

    def test_sources_default_to_sorted_upstream(self):
        inputs = InputBindings(output="c_out", primary="a_out", upstream={"b": "b_out", "a": "a_out"})
        assert inputs.sources({}) == ["a_out", "b_out"]

    def test_sources_from_config(self):
        inputs = InputBindings(output="c_out", primary="a_out", upstream={"a": "a_out", "b": "b_out"})
        assert inputs.sources({"inputs": ["b", "a"]}) == ["b_out", "a_out"]

    def test_unknown_reference(self):
        inputs = InputBindings(output="c_out", upstream={"a": "a_out"})
        with pytest.raises(KeyError):
            inputs.sources({"inputs": ["zzz"]})

    def test_too_few_sources(self):
        inputs = InputBindings(output="c_out")
        with pytest.raises(ValueError):
            inputs.sources({}, minimum=2)


class TestCoreKinds:
    """Generators are pure and validate their config."""

    def test_generators_are_deterministic(self, registry):
        config = {"rows": 2, "cols": 2, "values": [1, 2, 3, 4]}
        assert _gen(registry, "tensor_create", config) == _gen(registry, "tensor_create", config)

    def test_tensor_create(self, registry):
        source = _gen(registry, "tensor_create", {"rows": 1, "cols": 2, "values": [1, 2]}, node_id="m")
        assert source == "m_out = tensor_create(1, 2, [1.0, 2.0])\n"

    def test_tensor_create_rejects_wrong_length(self, registry):
        with pytest.raises(ValueError):
            _gen(registry, "tensor_create", {"rows": 2, "cols": 2, "values": [1.0]})

    def test_tensor_op_uses_config_inputs(self, registry):
        source = _gen(
            registry, "tensor_op", {"op": "dot", "inputs": ["b", "a"]}, node_id="c",
            primary="a_out", upstream={"a": "a_out", "b": "b_out"},
        )
        assert source == "c_out = tensor_dot(b_out, a_out)\n"

    def test_tensor_op_rejects_unknown_op(self, registry):
        with pytest.raises(ValueError):
            _gen(registry, "tensor_op", {"op": "inverse"}, upstream={"a": "a_out"})

    def test_print_uses_primary(self, registry):
        source = _gen(registry, "print", {}, node_id="p", primary="c_out", upstream={"c": "c_out"})
        assert source == "p_out = emit(c_out, 'p')\n"

    def test_source_node_defaults(self, registry):
        assert _gen(registry, "math_add", {"value": 10}, node_id="a") == "a_out = 0 + 10\n"

    def test_divide_by_zero_rejected(self, registry):
        with pytest.raises(ValueError):
            _gen(registry, "math_divide", {"value": 0})

    def test_wrong_config_type_rejected(self, registry):
        with pytest.raises(ValueError):
            _gen(registry, "http_get", {"url": 42})

    def test_http_url_must_be_http(self, registry):
        with pytest.raises(ValueError):
            _gen(registry, "http_get", {"url": "file:///etc/passwd"})

    def test_http_post_sends_primary(self, registry):
        source = _gen(
            registry, "http_post", {"url": "https://api.test/x"}, node_id="h",
            primary="d_out", upstream={"d": "d_out"},
        )
        assert source == "h_out = http_request('POST', 'https://api.test/x', d_out, {})\n"

    def test_random_seed_defaults_to_node_id(self, registry):
        first = _gen(registry, "math_random", {}, node_id="r1")
        assert first == _gen(registry, "math_random", {}, node_id="r1")
        assert first != _gen(registry, "math_random", {}, node_id="r2")

    def test_config_may_be_null(self, registry):
        assert _gen(registry, "string_upper", None, node_id="u") == "u_out = upper('')\n"

    def test_non_object_config_rejected(self, registry):
        with pytest.raises(ValueError):
            _gen(registry, "string_upper", [1, 2])
