"""
Runtime functions available to flow program text.

Fragments only reach the outside world through these functions. File
paths are resolved under the workspace directory and may not escape it.
"""

from __future__ import annotations

import json
import logging
import math
import random as _random
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from autograph.config import Settings, get_settings

from . import tensors
from .http import HttpClient


logger = logging.getLogger(__name__)


def _require(value: Any, kind: type, fn: str) -> Any:
    if not isinstance(value, kind):
        raise TypeError(f"{fn}: expected {kind.__name__}, got {type(value).__name__}")
    return value


def _json_default(value: Any) -> Any:
    if hasattr(value, "tolist"):
        return value.tolist()
    raise TypeError(f"not JSON serializable: {type(value).__name__}")


def to_string(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, default=_json_default)


def to_int(value: Any) -> int:
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            return int(float(text))
    return int(value)


def to_float(value: Any) -> float:
    return float(value)


def length(value: Any) -> int:
    if not isinstance(value, (str, list, dict)):
        raise TypeError(f"length: unsupported type {type(value).__name__}")
    return len(value)


# ---------------------------------------------------------------------------
# JSON and objects
# ---------------------------------------------------------------------------

def json_parse(text: Any) -> Any:
    return json.loads(_require(text, str, "json_parse"))


def json_stringify(value: Any, indent: Optional[int] = None) -> str:
    return json.dumps(value, indent=indent, default=_json_default)


def get(obj: Any, key: str) -> Any:
    """Object property or list element; missing keys give None."""
    if isinstance(obj, dict):
        return obj.get(key)
    if isinstance(obj, list):
        if key.isdigit() and int(key) < len(obj):
            return obj[int(key)]
        return None
    raise TypeError(f"get: expected object or array, got {type(obj).__name__}")


def set_key(obj: Any, key: str, value: Any) -> Dict[str, Any]:
    # Copy: the same upstream value may feed several nodes
    result = dict(_require(obj, dict, "set_key"))
    result[key] = value
    return result


def keys(obj: Any) -> List[str]:
    return list(_require(obj, dict, "keys").keys())


def values(obj: Any) -> List[Any]:
    return list(_require(obj, dict, "values").values())


def has_key(obj: Any, key: str) -> bool:
    return key in _require(obj, dict, "has_key")


# ---------------------------------------------------------------------------
# Strings
# ---------------------------------------------------------------------------

def concat(parts: List[Any], separator: str = "") -> str:
    return separator.join(to_string(p) for p in parts)


def upper(text: Any) -> str:
    return _require(text, str, "upper").upper()


def lower(text: Any) -> str:
    return _require(text, str, "lower").lower()


def trim(text: Any) -> str:
    return _require(text, str, "trim").strip()


def split(text: Any, delimiter: str) -> List[str]:
    return _require(text, str, "split").split(delimiter)


def replace(text: Any, find: str, replacement: str) -> str:
    if not find:
        return _require(text, str, "replace")
    return _require(text, str, "replace").replace(find, replacement)


# ---------------------------------------------------------------------------
# Arrays
# ---------------------------------------------------------------------------

def arr_slice(items: Any, start: int, end: int) -> List[Any]:
    return list(_require(items, list, "arr_slice")[start:end])


def arr_concat(arrays: List[Any]) -> List[Any]:
    result: List[Any] = []
    for item in arrays:
        if isinstance(item, list):
            result.extend(item)
        else:
            result.append(item)
    return result


def arr_sort(items: Any, descending: bool = False) -> List[Any]:
    return sorted(_require(items, list, "arr_sort"), reverse=descending)


def arr_reverse(items: Any) -> List[Any]:
    return list(reversed(_require(items, list, "arr_reverse")))


def arr_unique(items: Any) -> List[Any]:
    result: List[Any] = []
    for item in _require(items, list, "arr_unique"):
        if item not in result:
            result.append(item)
    return result


# ---------------------------------------------------------------------------
# Math
# ---------------------------------------------------------------------------

def floor(x: float) -> float:
    return float(math.floor(x))


def ceil(x: float) -> float:
    return float(math.ceil(x))


def round_number(x: float, digits: int = 0) -> float:
    """Round half away from zero."""
    scale = 10 ** digits
    return math.copysign(math.floor(abs(x) * scale + 0.5) / scale, x)


def sqrt(x: float) -> float:
    if x < 0:
        raise ValueError(f"sqrt of negative number: {x}")
    return math.sqrt(x)


def random(seed: int) -> float:
    return _random.Random(seed).random()


class FlowRuntime:
    """
    Side-effecting runtime bound to one workspace and HTTP client.

    Usage:
        runtime = FlowRuntime.from_settings(get_settings())
        namespace = runtime.functions()
    """

    def __init__(
        self,
        workspace_dir: Path,
        http_client: Optional[HttpClient] = None,
    ):
        self.workspace_dir = Path(workspace_dir).resolve()
        self.http_client = http_client or HttpClient()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None) -> "FlowRuntime":
        settings = settings or get_settings()
        return cls(
            workspace_dir=settings.workspace_dir,
            http_client=HttpClient(timeout=settings.http_timeout_s),
        )

    def resolve_path(self, path: str) -> Path:
        """
        Resolve a workspace-relative path.

        Raises:
            PermissionError: If the path escapes the workspace directory
        """
        resolved = (self.workspace_dir / _require(path, str, "path")).resolve()
        if resolved != self.workspace_dir and self.workspace_dir not in resolved.parents:
            raise PermissionError(f"path escapes workspace: {path}")
        return resolved

    # Control / system

    def emit(self, value: Any, node_id: str) -> Any:
        logger.info(f"[{node_id}] {to_string(value)}", extra={"node_id": node_id})
        return value

    def sleep_ms(self, ms: int, value: Any = None) -> Any:
        time.sleep(ms / 1000.0)
        return value

    # HTTP

    def http_request(
        self,
        method: str,
        url: str,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> str:
        return self.http_client.request(method, url, body=body, headers=headers)

    # Files

    def read_file(self, path: str) -> str:
        return self.resolve_path(path).read_text(encoding="utf-8")

    def write_file(self, path: str, content: Any) -> str:
        target = self.resolve_path(path)
        target.write_text(to_string(content), encoding="utf-8")
        return path

    def file_exists(self, path: str) -> bool:
        return self.resolve_path(path).exists()

    def delete_file(self, path: str) -> bool:
        target = self.resolve_path(path)
        if not target.exists():
            return False
        target.unlink()
        return True

    def list_files(self, path: str) -> List[str]:
        return sorted(p.name for p in self.resolve_path(path).iterdir())

    def create_dir(self, path: str) -> str:
        self.resolve_path(path).mkdir(parents=True, exist_ok=True)
        return path

    def read_json(self, path: str) -> Any:
        return json.loads(self.read_file(path))

    def write_json(self, path: str, value: Any) -> str:
        target = self.resolve_path(path)
        target.write_text(json.dumps(value, indent=2), encoding="utf-8")
        return path

    def functions(self) -> Dict[str, Callable[..., Any]]:
        """Name -> callable table exposed to program text."""
        table = {name: getattr(self, name) for name in _RUNTIME_METHODS}
        table.update(_PURE_FUNCTIONS)
        return table


# Side-effecting functions, bound to a FlowRuntime instance
_RUNTIME_METHODS = (
    # Control / system
    "emit",
    "sleep_ms",
    # HTTP
    "http_request",
    # Files
    "read_file",
    "write_file",
    "file_exists",
    "delete_file",
    "list_files",
    "create_dir",
    "read_json",
    "write_json",
)

_PURE_FUNCTIONS: Dict[str, Callable[..., Any]] = {
    # JSON / objects
    "json_parse": json_parse,
    "json_stringify": json_stringify,
    "get": get,
    "set_key": set_key,
    "keys": keys,
    "values": values,
    "has_key": has_key,
    # Strings
    "concat": concat,
    "upper": upper,
    "lower": lower,
    "trim": trim,
    "split": split,
    "replace": replace,
    "length": length,
    # Arrays
    "arr_slice": arr_slice,
    "arr_concat": arr_concat,
    "arr_sort": arr_sort,
    "arr_reverse": arr_reverse,
    "arr_unique": arr_unique,
    # Conversion
    "to_string": to_string,
    "to_int": to_int,
    "to_float": to_float,
    # Math
    "floor": floor,
    "ceil": ceil,
    "round_number": round_number,
    "sqrt": sqrt,
    "random": random,
    # Tensors
    "tensor_create": tensors.create,
    "tensor_dot": tensors.dot,
    "tensor_add": tensors.add,
    "tensor_subtract": tensors.subtract,
    "tensor_multiply": tensors.multiply,
    "tensor_transpose": tensors.transpose,
}

# Names program text may call, independent of any runtime instance
RUNTIME_FUNCTIONS = frozenset(_RUNTIME_METHODS) | frozenset(_PURE_FUNCTIONS)
