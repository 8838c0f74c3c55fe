# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================

"""JSON API client with bearer auth and a per-request deadline."""

import json
import logging
import time
from typing import Any, Dict, Optional

import requests

from shared.config import get_settings
from shared.constants import DEFAULT_API_BASE_URL, DEFAULT_API_TIMEOUT_MS

logger = logging.getLogger(__name__)

TIMEOUT_MESSAGE = "Request timeout"
CHUNK_SIZE = 64 * 1024


class ApiError(Exception):
    """Raised when the server answers with a non-success status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class ApiTimeoutError(ApiError):
    """Raised when a request exceeds its deadline."""

    def __init__(self):
        super().__init__(TIMEOUT_MESSAGE)


class ApiClient:
    """
    Thin wrapper around `requests` for calling JSON web APIs.

    Every request is sent with a JSON content type and an optional bearer
    token. JSON responses are decoded; anything else is returned as text.

    The timeout (milliseconds) is a deadline for the whole call. `requests`
    only bounds each connect or read wait, so the body is streamed and the
    deadline is checked between chunks; a server trickling bytes still
    raises `ApiTimeoutError`.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_API_BASE_URL,
        timeout_ms: int = DEFAULT_API_TIMEOUT_MS,
        session: requests.Session | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self._session = session or requests.Session()

    def request(
        self,
        path: str,
        method: str = "GET",
        body: Any = None,
        token: str | None = None,
        headers: Optional[Dict[str, str]] = None,
        timeout_ms: int | None = None,
    ) -> Any:
        url = self.base_url + path
        request_headers = {"Content-Type": "application/json"}
        request_headers.update(headers or {})
        if token:
            request_headers["Authorization"] = "Bearer " + token

        data = json.dumps(body) if body is not None else None
        timeout = (timeout_ms or self.timeout_ms) / 1000
        deadline = time.monotonic() + timeout

        logger.info("[API] %s %s", method, url)
        try:
            response = self._session.request(
                method,
                url,
                headers=request_headers,
                data=data,
                timeout=timeout,
                stream=True,
            )
            text = _read_text(response, deadline)
        except requests.exceptions.Timeout as e:
            raise ApiTimeoutError() from e

        if not response.ok:
            message = f"HTTP {response.status_code}: {response.reason}"
            if text:
                message += f" - {text}"
            logger.error("[API] Error: %s", message)
            raise ApiError(message, status_code=response.status_code)

        content_type = response.headers.get("content-type", "")
        if "application/json" in content_type:
            return json.loads(text)
        return text

    def get(self, path: str, token: str | None = None, **kwargs) -> Any:
        return self.request(path, method="GET", token=token, **kwargs)

    def post(self, path: str, data: Any = None, token: str | None = None, **kwargs) -> Any:
        return self.request(path, method="POST", body=data, token=token, **kwargs)

    def put(self, path: str, data: Any = None, token: str | None = None, **kwargs) -> Any:
        return self.request(path, method="PUT", body=data, token=token, **kwargs)

    def delete(self, path: str, token: str | None = None, **kwargs) -> Any:
        return self.request(path, method="DELETE", token=token, **kwargs)


def _read_text(response: requests.Response, deadline: float) -> str:
    chunks = []
    try:
        for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
            if time.monotonic() > deadline:
                raise ApiTimeoutError()
            chunks.append(chunk)
    finally:
        response.close()
    return b"".join(chunks).decode(response.encoding or "utf-8", errors="replace")


def get_api_client(base_url: str = DEFAULT_API_BASE_URL) -> ApiClient:
    """Returns a client for `base_url` using the configured request timeout."""
    return ApiClient(base_url, timeout_ms=get_settings().api_timeout_ms)
