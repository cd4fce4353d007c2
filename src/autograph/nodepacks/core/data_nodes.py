"""
Data kinds: JSON, strings, arrays, objects and type conversion.
"""

from __future__ import annotations

from typing import Any

from autograph.node_registry.codegen import assign, call, literal
from autograph.node_registry.models import InputBindings, NodeKind

from .params import as_config, get_choice, get_int, get_str


def _unary(fn: str, default_input: str):
    """Kind whose fragment applies one runtime function to its input."""
    def generate(node_id: str, config: Any, inputs: InputBindings) -> str:
        as_config(config)
        return assign(inputs.output, call(fn, inputs.primary_or(default_input)))
    return generate


def _keyed(fn: str, default_input: str):
    def generate(node_id: str, config: Any, inputs: InputBindings) -> str:
        key = get_str(config, "key", "field")
        return assign(inputs.output, call(fn, inputs.primary_or(default_input), literal(key)))
    return generate


def _keyed_set(node_id: str, config: Any, inputs: InputBindings) -> str:
    key = get_str(config, "key", "field")
    value = as_config(config).get("value", "")
    return assign(
        inputs.output,
        call("set_key", inputs.primary_or("{}"), literal(key), literal(value)),
    )


def _json_stringify(node_id: str, config: Any, inputs: InputBindings) -> str:
    indent = as_config(config).get("indent")
    if indent is not None and (isinstance(indent, bool) or not isinstance(indent, int)):
        raise ValueError("'indent' must be an integer")
    return assign(
        inputs.output,
        call("json_stringify", inputs.primary_or("None"), literal(indent)),
    )


def _string_concat(node_id: str, config: Any, inputs: InputBindings) -> str:
    separator = get_str(config, "separator", "")
    parts = inputs.sources(config, minimum=0)
    return assign(
        inputs.output,
        call("concat", "[" + ", ".join(parts) + "]", literal(separator)),
    )


def _string_split(node_id: str, config: Any, inputs: InputBindings) -> str:
    delimiter = get_str(config, "delimiter", ",")
    if not delimiter:
        raise ValueError("'delimiter' must not be empty")
    return assign(inputs.output, call("split", inputs.primary_or("''"), literal(delimiter)))


def _string_replace(node_id: str, config: Any, inputs: InputBindings) -> str:
    find = get_str(config, "find", "")
    replacement = get_str(config, "replace", "")
    return assign(
        inputs.output,
        call("replace", inputs.primary_or("''"), literal(find), literal(replacement)),
    )


def _array_slice(node_id: str, config: Any, inputs: InputBindings) -> str:
    start = get_int(config, "start", 0)
    end = get_int(config, "end", 10)
    return assign(
        inputs.output,
        call("arr_slice", inputs.primary_or("[]"), literal(start), literal(end)),
    )


def _array_concat(node_id: str, config: Any, inputs: InputBindings) -> str:
    parts = inputs.sources(config, minimum=0)
    return assign(inputs.output, call("arr_concat", "[" + ", ".join(parts) + "]"))


def _array_sort(node_id: str, config: Any, inputs: InputBindings) -> str:
    order = get_choice(config, "order", "asc", ("asc", "desc"))
    return assign(
        inputs.output,
        call("arr_sort", inputs.primary_or("[]"), literal(order == "desc")),
    )


def _kind(name: str, category: str, description: str, generate, defaults=None) -> NodeKind:
    defaults = defaults or {}
    return NodeKind(
        name=name,
        category=category,
        description=description,
        default_config=lambda: dict(defaults),
        generate=generate,
    )


# JSON
JSON_PARSE = _kind("json_parse", "Data", "Parse JSON string", _unary("json_parse", "None"))
JSON_STRINGIFY = _kind("json_stringify", "Data", "Convert value to JSON string", _json_stringify)
JSON_GET = _kind("json_get", "Data", "Get value from JSON object", _keyed("get", "None"), {"key": "field"})
JSON_SET = _kind(
    "json_set", "Data", "Set value in JSON object", _keyed_set, {"key": "field", "value": ""}
)

# Strings
STRING_CONCAT = _kind(
    "string_concat", "Data", "Concatenate strings", _string_concat, {"separator": ""}
)
STRING_UPPER = _kind("string_upper", "Data", "Convert to uppercase", _unary("upper", "''"))
STRING_LOWER = _kind("string_lower", "Data", "Convert to lowercase", _unary("lower", "''"))
STRING_TRIM = _kind("string_trim", "Data", "Trim whitespace", _unary("trim", "''"))
STRING_SPLIT = _kind(
    "string_split", "Data", "Split string into array", _string_split, {"delimiter": ","}
)
STRING_REPLACE = _kind(
    "string_replace", "Data", "Replace substring", _string_replace, {"find": "", "replace": ""}
)
STRING_LENGTH = _kind("string_length", "Data", "Get string length", _unary("length", "''"))

# Arrays
ARRAY_SLICE = _kind("array_slice", "Data", "Slice array", _array_slice, {"start": 0, "end": 10})
ARRAY_CONCAT = _kind("array_concat", "Data", "Concatenate arrays", _array_concat)
ARRAY_SORT = _kind("array_sort", "Data", "Sort array", _array_sort, {"order": "asc"})
ARRAY_LENGTH = _kind("array_length", "Data", "Get array length", _unary("length", "[]"))
ARRAY_REVERSE = _kind("array_reverse", "Data", "Reverse array", _unary("arr_reverse", "[]"))
ARRAY_UNIQUE = _kind(
    "array_unique", "Data", "Drop repeated elements, keeping first occurrence",
    _unary("arr_unique", "[]"),
)

# Objects
OBJECT_GET = _kind("object_get", "Data", "Get object property", _keyed("get", "{}"), {"key": "field"})
OBJECT_SET = _kind(
    "object_set", "Data", "Set object property", _keyed_set, {"key": "field", "value": ""}
)
OBJECT_KEYS = _kind("object_keys", "Data", "Get object keys", _unary("keys", "{}"))
OBJECT_VALUES = _kind("object_values", "Data", "Get object values", _unary("values", "{}"))
OBJECT_HAS_KEY = _kind(
    "object_has_key", "Data", "Check if object has key", _keyed("has_key", "{}"), {"key": "field"}
)

# Type conversion
TO_STRING = _kind("to_string", "Convert", "Convert to string", _unary("to_string", "None"))
TO_INT = _kind("to_int", "Convert", "Convert to integer", _unary("to_int", "0"))
TO_FLOAT = _kind("to_float", "Convert", "Convert to float", _unary("to_float", "0"))

KINDS = [
    JSON_PARSE, JSON_STRINGIFY, JSON_GET, JSON_SET,
    STRING_CONCAT, STRING_UPPER, STRING_LOWER, STRING_TRIM,
    STRING_SPLIT, STRING_REPLACE, STRING_LENGTH,
    ARRAY_SLICE, ARRAY_CONCAT, ARRAY_SORT, ARRAY_LENGTH, ARRAY_REVERSE, ARRAY_UNIQUE,
    OBJECT_GET, OBJECT_SET, OBJECT_KEYS, OBJECT_VALUES, OBJECT_HAS_KEY,
    TO_STRING, TO_INT, TO_FLOAT,
]
