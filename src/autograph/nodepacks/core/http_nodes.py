"""
HTTP kinds. Requests run through the backend's timeout-bounded client.
"""

from __future__ import annotations

from typing import Any

from autograph.node_registry.codegen import assign, call, literal
from autograph.node_registry.models import InputBindings, NodeKind

from .params import as_config, get_choice, get_str

HTTP_METHODS = ("GET", "POST", "PUT", "PATCH", "DELETE", "HEAD", "OPTIONS")

DEFAULT_URL = "https://example.com"


def _headers(config: Any) -> str:
    headers = as_config(config).get("headers", {})
    if not isinstance(headers, dict) or not all(
        isinstance(k, str) and isinstance(v, str) for k, v in headers.items()
    ):
        raise ValueError("'headers' must be an object of strings")
    return literal(headers)


def _url(config: Any) -> str:
    url = get_str(config, "url", DEFAULT_URL)
    if not url.startswith(("http://", "https://")):
        raise ValueError(f"'url' must be an http(s) URL, got '{url}'")
    return url


def _method_kind(method: str, sends_body: bool):
    def generate(node_id: str, config: Any, inputs: InputBindings) -> str:
        body = inputs.primary_or("None") if sends_body else "None"
        return assign(
            inputs.output,
            call("http_request", literal(method), literal(_url(config)), body, _headers(config)),
        )
    return generate


def _http_request(node_id: str, config: Any, inputs: InputBindings) -> str:
    method = get_choice(config, "method", "GET", HTTP_METHODS)
    return assign(
        inputs.output,
        call(
            "http_request",
            literal(method),
            literal(_url(config)),
            inputs.primary_or("None"),
            _headers(config),
        ),
    )


def _kind(name: str, description: str, generate) -> NodeKind:
    return NodeKind(
        name=name,
        category="HTTP",
        description=description,
        default_config=lambda: {"url": DEFAULT_URL},
        generate=generate,
    )


HTTP_GET = _kind("http_get", "HTTP GET request", _method_kind("GET", sends_body=False))
HTTP_POST = _kind("http_post", "HTTP POST request", _method_kind("POST", sends_body=True))
HTTP_PUT = _kind("http_put", "HTTP PUT request", _method_kind("PUT", sends_body=True))
HTTP_DELETE = _kind("http_delete", "HTTP DELETE request", _method_kind("DELETE", sends_body=False))

HTTP_REQUEST = NodeKind(
    name="http_request",
    category="HTTP",
    description="Custom HTTP request",
    default_config=lambda: {"method": "GET", "url": DEFAULT_URL},
    generate=_http_request,
)

KINDS = [HTTP_GET, HTTP_POST, HTTP_PUT, HTTP_DELETE, HTTP_REQUEST]
