"""Tests for execution backends, runtime functions and the HTTP client."""
from unittest.mock import Mock

import numpy as np
import pytest
from requests.exceptions import ConnectionError as RequestsConnectionError
from requests.exceptions import Timeout

from autograph.backends import (
    RUNTIME_FUNCTIONS,
    BackendKind,
    CPUBackend,
    FlowRuntime,
    GPUBackend,
    HttpApiError,
    HttpClient,
    NodeTimeoutError,
    create_backend,
    resolve_backend,
    uses_tensor_ops,
)
from autograph.backends import runtime, tensors
from autograph.config import Settings
from autograph.errors import BackendCompileFailed, NodeExecutionFailed


@pytest.fixture
def backend(tmp_path):
    return CPUBackend(FlowRuntime(tmp_path))


class TestSandboxCompile:

    def test_accepts_generated_subset(self, backend):
        exe = backend.compile("a_out = length(input)\nb_out = a_out * 2 + 1\n")
        assert exe.defines == frozenset({"a_out", "b_out"})

    @pytest.mark.parametrize("text", [
        "import os\n",
        "a_out = open('x')\n",
        "a_out = input.__class__\n",
        "x.y = 1\n",
        "def f():\n    pass\n",
        "a_out = [i for i in input]\n",
        "a_out = __import__('os')\n",
        "a_out = (lambda: 1)()\n",
    ])
    def test_rejects_constructs_outside_subset(self, backend, text):
        with pytest.raises(BackendCompileFailed):
            backend.compile(text)

    def test_cannot_rebind_runtime_names(self, backend):
        with pytest.raises(BackendCompileFailed):
            backend.compile("emit = 1\n")
        with pytest.raises(BackendCompileFailed):
            backend.compile("input = 1\n")

    def test_syntax_error_reports_line(self, backend):
        with pytest.raises(BackendCompileFailed) as exc_info:
            backend.compile("a_out = 1\nb_out = (\n")
        assert exc_info.value.lineno is not None

    def test_disallowed_construct_reports_line(self, backend):
        with pytest.raises(BackendCompileFailed) as exc_info:
            backend.compile("a_out = 1\n\nb_out = open('x')\n")
        assert exc_info.value.lineno == 3


class TestSandboxExecute:

    def test_returns_defined_bindings(self, backend):
        exe = backend.compile("a_out = length(input)\n")
        assert backend.execute(exe, {"input": "abc"}) == {"a_out": 3}

    def test_upstream_bindings_in_scope(self, backend):
        exe = backend.compile("b_out = upper(a_out)\n")
        assert backend.execute(exe, {"input": None, "a_out": "hi"}) == {"b_out": "HI"}

    def test_runtime_error_wrapped(self, backend):
        exe = backend.compile("a_out = sqrt(-1)\n")

        with pytest.raises(NodeExecutionFailed) as exc_info:
            backend.execute(exe, {"input": None})
        assert "ValueError" in exc_info.value.message

    def test_no_builtins(self, backend):
        with pytest.raises(BackendCompileFailed):
            backend.compile("a_out = len('x')\n")

    def test_cpu_and_gpu_agree(self, tmp_path):
        text = (
            "a_out = tensor_create(2, 2, [1.0, 2.0, 3.0, 4.0])\n"
            "b_out = tensor_dot(a_out, tensor_transpose(a_out))\n"
        )
        results = []
        for backend_cls in (CPUBackend, GPUBackend):
            backend = backend_cls(FlowRuntime(tmp_path))
            results.append(backend.execute(backend.compile(text), {"input": None})["b_out"])

        np.testing.assert_array_equal(results[0], results[1])


class TestBackendSelection:

    def test_uses_tensor_ops(self):
        assert uses_tensor_ops("a_out = tensor_create(1, 1, [1.0])\n")
        assert not uses_tensor_ops("a_out = upper('x')\n")
        assert not uses_tensor_ops("a_out = (\n")

    def test_explicit_kind_is_kept(self):
        settings = Settings(gpu_enabled=False)
        assert resolve_backend("gpu", "a_out = 1\n", settings) == BackendKind.GPU
        assert resolve_backend(BackendKind.CPU, "a_out = tensor_add(x, y)\n", settings) == BackendKind.CPU

    def test_auto_picks_gpu_for_tensor_programs(self):
        settings = Settings(gpu_enabled=True)
        assert resolve_backend("auto", "a_out = tensor_add(x, y)\n", settings) == BackendKind.GPU
        assert resolve_backend("auto", "a_out = 1\n", settings) == BackendKind.CPU

    def test_auto_without_gpu(self):
        settings = Settings(gpu_enabled=False)
        assert resolve_backend("auto", "a_out = tensor_add(x, y)\n", settings) == BackendKind.CPU

    def test_unknown_kind(self):
        with pytest.raises(ValueError):
            resolve_backend("tpu", "a_out = 1\n")

    def test_create_backend(self, settings):
        assert isinstance(create_backend(BackendKind.GPU, settings), GPUBackend)
        assert create_backend("cpu", settings).runtime.workspace_dir == settings.workspace_dir.resolve()
        with pytest.raises(ValueError):
            create_backend(BackendKind.AUTO, settings)


class TestTensorKernels:

    def test_dot(self):
        a = tensors.create(2, 2, [1.0, 0.0, 0.0, 1.0])
        b = [[2.0, 2.0], [2.0, 2.0]]
        assert tensors.dot(a, b).tolist() == [[2.0, 2.0], [2.0, 2.0]]

    def test_dot_shape_mismatch(self):
        with pytest.raises(ValueError):
            tensors.dot(tensors.create(2, 3, [0.0] * 6), tensors.create(2, 3, [0.0] * 6))

    def test_elementwise(self):
        a = [[1.0, 2.0]]
        b = [[3.0, 5.0]]
        assert tensors.add(a, b).tolist() == [[4.0, 7.0]]
        assert tensors.subtract(a, b).tolist() == [[-2.0, -3.0]]
        assert tensors.multiply(a, b).tolist() == [[3.0, 10.0]]

    def test_transpose(self):
        assert tensors.transpose([[1.0, 2.0, 3.0]]).tolist() == [[1.0], [2.0], [3.0]]

    def test_rejects_non_matrix(self):
        with pytest.raises(ValueError):
            tensors.as_matrix([1.0, 2.0])

    def test_create_checks_count(self):
        with pytest.raises(ValueError):
            tensors.create(2, 2, [1.0])


class TestRuntimeFunctions:

    def test_round_half_away_from_zero(self):
        assert runtime.round_number(2.5) == 3.0
        assert runtime.round_number(-2.5) == -3.0
        assert runtime.round_number(1.234, 2) == 1.23

    def test_arr_unique_keeps_first(self):
        assert runtime.arr_unique([3, 1, 3, {"a": 1}, {"a": 1}]) == [3, 1, {"a": 1}]

    def test_get(self):
        assert runtime.get({"a": 1}, "a") == 1
        assert runtime.get({"a": 1}, "b") is None
        assert runtime.get([10, 20], "1") == 20
        with pytest.raises(TypeError):
            runtime.get("text", "a")

    def test_set_key_copies(self):
        original = {"a": 1}
        assert runtime.set_key(original, "b", 2) == {"a": 1, "b": 2}
        assert original == {"a": 1}

    def test_to_string(self):
        assert runtime.to_string("x") == "x"
        assert runtime.to_string({"a": [1]}) == '{"a": [1]}'
        assert runtime.to_string(np.array([1.0])) == "[1.0]"

    def test_to_int(self):
        assert runtime.to_int(" 42 ") == 42
        assert runtime.to_int("3.9") == 3

    def test_random_is_seeded(self):
        assert runtime.random(7) == runtime.random(7)
        assert 0.0 <= runtime.random(7) < 1.0


class TestFlowRuntimeFiles:

    def test_function_table_matches_static_names(self, tmp_path):
        assert set(FlowRuntime(tmp_path).functions()) == RUNTIME_FUNCTIONS
        assert "emit" in RUNTIME_FUNCTIONS
        assert "tensor_dot" in RUNTIME_FUNCTIONS

    def test_write_then_read(self, tmp_path):
        rt = FlowRuntime(tmp_path)

        assert rt.write_file("out.txt", "hello") == "out.txt"
        assert rt.read_file("out.txt") == "hello"
        assert rt.file_exists("out.txt")
        assert rt.list_files(".") == ["out.txt"]
        assert rt.delete_file("out.txt") is True
        assert rt.delete_file("out.txt") is False

    def test_json_files(self, tmp_path):
        rt = FlowRuntime(tmp_path)
        rt.write_json("data.json", {"items": [1, 2]})
        assert rt.read_json("data.json") == {"items": [1, 2]}

    def test_path_escape_rejected(self, tmp_path):
        rt = FlowRuntime(tmp_path / "ws")

        with pytest.raises(PermissionError):
            rt.read_file("../secret.txt")
        with pytest.raises(PermissionError):
            rt.resolve_path("/etc/passwd")

    def test_emit_returns_value(self, tmp_path):
        assert FlowRuntime(tmp_path).emit([1, 2], "p") == [1, 2]


class TestHttpClient:

    def _session(self, ok=True, status_code=200, text="{}"):
        session = Mock()
        session.request.return_value = Mock(ok=ok, status_code=status_code, reason="Reason", text=text)
        return session

    def test_timeout_always_sent(self):
        session = self._session(text="body")
        client = HttpClient(timeout=5, session=session)

        assert client.request("GET", "https://api.test/") == "body"
        session.request.assert_called_once_with(
            method="GET", url="https://api.test/", data=None, headers={}, timeout=5,
        )

    def test_json_body(self):
        session = self._session()
        HttpClient(session=session).request("POST", "https://api.test/", body={"a": 1})

        kwargs = session.request.call_args.kwargs
        assert kwargs["data"] == '{"a": 1}'
        assert kwargs["headers"]["Content-Type"] == "application/json"

    def test_string_body_sent_raw(self):
        session = self._session()
        HttpClient(session=session).request("POST", "https://api.test/", body="raw")

        kwargs = session.request.call_args.kwargs
        assert kwargs["data"] == "raw"
        assert "Content-Type" not in kwargs["headers"]

    def test_timeout_raises(self):
        session = Mock()
        session.request.side_effect = Timeout()

        with pytest.raises(NodeTimeoutError) as exc_info:
            HttpClient(timeout=2, session=session).request("GET", "https://api.test/")
        assert exc_info.value.timeout == 2

    def test_transport_failure_raises(self):
        session = Mock()
        session.request.side_effect = RequestsConnectionError("refused")

        with pytest.raises(HttpApiError):
            HttpClient(session=session).request("GET", "https://api.test/")

    def test_non_2xx_raises(self):
        session = self._session(ok=False, status_code=500, text="boom")

        with pytest.raises(HttpApiError) as exc_info:
            HttpClient(session=session).request("GET", "https://api.test/")
        assert exc_info.value.status_code == 500
        assert exc_info.value.response_body == "boom"

    def test_timeout_must_be_positive(self):
        with pytest.raises(ValueError):
            HttpClient(timeout=0)
