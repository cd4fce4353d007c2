"""
File kinds. Paths are resolved by the backend under its workspace root.
"""

from __future__ import annotations

from typing import Any

from autograph.node_registry.codegen import assign, call, literal
from autograph.node_registry.models import InputBindings, NodeKind

from .params import get_str


def _path(config: Any, default: str) -> str:
    path = get_str(config, "path", default)
    if not path:
        raise ValueError("'path' must not be empty")
    return literal(path)


def _reader(fn: str, default_path: str):
    def generate(node_id: str, config: Any, inputs: InputBindings) -> str:
        return assign(inputs.output, call(fn, _path(config, default_path)))
    return generate


def _writer(fn: str, default_path: str, default_content: str):
    def generate(node_id: str, config: Any, inputs: InputBindings) -> str:
        return assign(
            inputs.output,
            call(fn, _path(config, default_path), inputs.primary_or(default_content)),
        )
    return generate


def _kind(name: str, description: str, default_path: str, generate) -> NodeKind:
    return NodeKind(
        name=name,
        category="Files",
        description=description,
        default_config=lambda: {"path": default_path},
        generate=generate,
    )


FILE_READ = _kind("file_read", "Read file contents", "file.txt", _reader("read_file", "file.txt"))
FILE_WRITE = _kind(
    "file_write", "Write file contents", "file.txt", _writer("write_file", "file.txt", "''")
)
FILE_EXISTS = _kind(
    "file_exists", "Check if file exists", "file.txt", _reader("file_exists", "file.txt")
)
FILE_DELETE = _kind("file_delete", "Delete file", "file.txt", _reader("delete_file", "file.txt"))
FILE_LIST = _kind("file_list", "List files in directory", ".", _reader("list_files", "."))
DIR_CREATE = _kind("dir_create", "Create directory", "new_dir", _reader("create_dir", "new_dir"))
JSON_READ = _kind("json_read", "Read JSON file", "data.json", _reader("read_json", "data.json"))
JSON_WRITE = _kind(
    "json_write", "Write JSON file", "data.json", _writer("write_json", "data.json", "None")
)

KINDS = [
    FILE_READ, FILE_WRITE, FILE_EXISTS, FILE_DELETE,
    FILE_LIST, DIR_CREATE, JSON_READ, JSON_WRITE,
]
