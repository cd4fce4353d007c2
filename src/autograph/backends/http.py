"""
HTTP Client - Timeout-bounded HTTP requests for HTTP kinds.

Every request carries an explicit timeout. Non-2xx responses and
transport failures raise, which the engine records against the node
that issued the request.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

import requests
from requests.exceptions import RequestException, Timeout


logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class NodeTimeoutError(Exception):
    """Raised when an HTTP request times out."""

    def __init__(self, message: str, timeout: float, url: str):
        self.timeout = timeout
        self.url = url
        super().__init__(message)


class HttpApiError(Exception):
    """Error from HTTP request."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_body: Optional[str] = None,
        url: Optional[str] = None,
        method: Optional[str] = None,
    ):
        self.status_code = status_code
        self.response_body = response_body
        self.url = url
        self.method = method
        super().__init__(message)


class HttpClient:
    """
    HTTP client with timeout enforcement.

    Usage:
        client = HttpClient(timeout=10)
        text = client.request("GET", "https://api.example.com/users")
    """

    def __init__(
        self,
        timeout: float = DEFAULT_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize HTTP client.

        Args:
            timeout: Timeout in seconds for every request (REQUIRED)
            session: Optional session to send requests through
        """
        if timeout <= 0:
            raise ValueError("timeout must be positive")
        self.timeout = timeout
        self._session = session

    def request(
        self,
        method: str,
        url: str,
        body: Any = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Make HTTP request and return the response body as text.

        Strings are sent as the raw body; any other non-null value is
        sent as JSON.

        Raises:
            NodeTimeoutError: If request times out
            HttpApiError: If the request fails or the status is not 2xx
        """
        request_headers = dict(headers or {})
        data = None
        if isinstance(body, (str, bytes)):
            data = body
        elif body is not None:
            data = json.dumps(body)
            request_headers.setdefault("Content-Type", "application/json")

        sender = self._session if self._session is not None else requests
        logger.debug(f"{method} {url}")

        try:
            response = sender.request(
                method=method,
                url=url,
                data=data,
                headers=request_headers,
                timeout=self.timeout,
            )
        except Timeout as e:
            raise NodeTimeoutError(
                message=f"Request timed out after {self.timeout}s",
                timeout=self.timeout,
                url=url,
            ) from e
        except RequestException as e:
            raise HttpApiError(
                message=f"Request failed: {e}",
                url=url,
                method=method,
            ) from e

        if not response.ok:
            raise HttpApiError(
                message=f"HTTP {response.status_code}: {response.reason}",
                status_code=response.status_code,
                response_body=response.text[:1000] if response.text else None,
                url=url,
                method=method,
            )
        return response.text
