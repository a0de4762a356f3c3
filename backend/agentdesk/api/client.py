"""
Console API Client.

Async HTTP client for the support-console backend. Owns one
``httpx.AsyncClient`` and exposes resource objects for the endpoints
the workflow core consumes::

    async with ConsoleClient() as client:
        workflow = await client.workflows.get("wf_123")
        session = await client.workflow_tests.create_session("wf_123")

Responses are wrapped by the backend in ``{code, message, data}``;
``request`` unwraps the envelope and maps failures onto the
``ConsoleAPIError`` hierarchy.
"""

from __future__ import annotations

from logging import getLogger
from typing import Any, Dict, Optional

import httpx

from agentdesk import __version__
from agentdesk.api.exceptions import (
    AuthenticationError,
    ConsoleAPIError,
    EnvelopeError,
    NotFoundError,
    ServerError,
    TransportError,
    ValidationError,
)
from agentdesk.api.resources import WorkflowsResource, WorkflowTestsResource
from agentdesk.config import ConsoleAPIConfig, get_config

logger = getLogger(__name__)

_ENVELOPE_KEYS = {"code", "data"}


class ConsoleClient:
    """Entry point for all console backend calls.

    Args:
        config: Connection settings. Defaults to the registered
            ``console_api`` config section.
        transport: Optional custom transport (used by tests).
    """

    def __init__(
        self,
        config: Optional[ConsoleAPIConfig] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config or get_config("console_api")
        self._http = self._create_http_client(transport)

        self.workflows = WorkflowsResource(self)
        self.workflow_tests = WorkflowTestsResource(self)

        logger.debug(f"ConsoleClient initialized with base URL: {self.base_url}")

    @property
    def base_url(self) -> str:
        return self._config.base_url.rstrip("/") + self._config.api_prefix

    def _create_http_client(
        self, transport: Optional[httpx.AsyncBaseTransport],
    ) -> httpx.AsyncClient:
        headers = {
            "Content-Type": "application/json",
            "Accept": "application/json",
            "User-Agent": f"agentdesk-python/{__version__}",
        }
        if self._config.api_token:
            headers["Authorization"] = f"Bearer {self._config.api_token}"

        if transport is None:
            transport = httpx.AsyncHTTPTransport(retries=self._config.max_retries)

        return httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=httpx.Timeout(self._config.timeout_seconds),
            transport=transport,
            follow_redirects=True,
        )

    # ── Lifecycle ──

    async def close(self) -> None:
        await self._http.aclose()

    async def __aenter__(self) -> "ConsoleClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ── Requests ──

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> Any:
        """Send a request and return the unwrapped response data.

        Raises:
            AuthenticationError: 401/403 responses
            NotFoundError: 404 responses
            ValidationError: 400/422 responses
            ServerError: 5xx responses
            EnvelopeError: 200 responses whose envelope reports failure
            TransportError: No response (connect error, timeout)
        """
        try:
            response = await self._http.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            raise TransportError(f"{method} {path} timed out: {e}") from e
        except httpx.TransportError as e:
            raise TransportError(f"{method} {path} failed: {e}") from e

        logger.debug(f"{method} {path} → {response.status_code}")

        if response.status_code == 204 or not response.content:
            if response.is_success:
                return None

        if not response.is_success:
            self._raise_for_status(response)

        try:
            body = response.json()
        except ValueError as e:
            raise ConsoleAPIError(
                f"{method} {path} returned a non-JSON body",
                code="DECODE_ERROR",
                status_code=response.status_code,
            ) from e

        return self._unwrap(body)

    async def get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Optional[Any] = None) -> Any:
        return await self.request("POST", path, json=json if json is not None else {})

    async def put(self, path: str, json: Optional[Any] = None) -> Any:
        return await self.request("PUT", path, json=json if json is not None else {})

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)

    # ── Internals ──

    @staticmethod
    def _unwrap(body: Any) -> Any:
        if not isinstance(body, dict) or not _ENVELOPE_KEYS.issubset(body):
            return body
        code = body.get("code")
        if code != 200:
            raise EnvelopeError(body.get("message") or f"Request failed (code {code})", code)
        return body.get("data")

    @staticmethod
    def _raise_for_status(response: httpx.Response) -> None:
        status = response.status_code
        message = f"HTTP {status}: {response.reason_phrase}"
        details: Dict[str, Any] = {}
        try:
            body = response.json()
            if isinstance(body, dict):
                message = body.get("message") or message
                details = body
        except ValueError:
            pass

        if status in (401, 403):
            raise AuthenticationError(message)
        if status == 404:
            raise NotFoundError(message)
        if status in (400, 422):
            raise ValidationError(message, status_code=status, details=details)
        if status >= 500:
            raise ServerError(message, status_code=status)
        raise ConsoleAPIError(message, code="HTTP_ERROR", status_code=status, details=details)
