"""Shared async HTTP plumbing for the platform clients.

Every platform call goes through ``PlatformHttpClient._request``: it asks
the token provider for a bearer token (raising NotConnected when there is
none), issues the request on a pooled ``httpx.AsyncClient`` and translates
failures into RemoteRejected / RemoteNotFound.  No httpx exception escapes.

There is no retry loop: a failed call surfaces as a step
error and the caller re-invokes provisioning to retry.
"""

from __future__ import annotations

import logging
from typing import Any, Sequence

import httpx

from ..errors import RemoteNotFound, RemoteRejected
from ..models import Platform
from ..tokens import TokenProvider, require_token

logger = logging.getLogger(__name__)

QueryParams = dict[str, str] | Sequence[tuple[str, str]]

# ── Module-level shared client ───────────────────────────────────

_shared_async_client: httpx.AsyncClient | None = None


def _get_shared_async_client() -> httpx.AsyncClient:
    global _shared_async_client
    if _shared_async_client is None:
        _shared_async_client = httpx.AsyncClient()
    return _shared_async_client


def _reset_shared_async_client_for_tests() -> None:
    """Test helper: clear shared client cache (does not close the instance)."""
    global _shared_async_client
    _shared_async_client = None


# ── Base client ──────────────────────────────────────────────────


class PlatformHttpClient:
    """Base for the registry, task-tracker and document clients."""

    platform: Platform

    def __init__(
        self,
        *,
        token_provider: TokenProvider,
        base_url: str,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")
        self._tokens = token_provider
        self._base_url = base_url.rstrip("/")
        self._client = http_client or _get_shared_async_client()
        self._timeout = float(timeout_seconds)

    def _url(self, path: str) -> str:
        if path.startswith(("http://", "https://")):
            return path
        return f"{self._base_url}{path}"

    def _error_message(self, payload: Any) -> str | None:
        """Extract a human-readable message from an error body."""
        return None

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code < 400:
            return

        body = resp.text
        message = body[:200] if body else f"HTTP {resp.status_code}"
        try:
            extracted = self._error_message(resp.json())
            if extracted:
                message = extracted
        except ValueError:
            pass

        if resp.status_code == 404:
            raise RemoteNotFound(self.platform.value, message, response_body=body)
        raise RemoteRejected(
            self.platform.value,
            resp.status_code,
            message,
            response_body=body,
        )

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any | None = None,
        params: QueryParams | None = None,
    ) -> Any:
        """Issue an authenticated request and return the decoded JSON body."""
        token = await require_token(self._tokens, self.platform)
        url = self._url(path)
        headers = {"Authorization": f"Bearer {token}"}

        try:
            resp = await self._client.request(
                method,
                url,
                headers=headers,
                json=json,
                params=params,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as exc:
            logger.warning("%s %s %s timed out", self.platform.value, method, path)
            raise RemoteRejected(self.platform.value, 0, "request timed out") from exc
        except httpx.HTTPError as exc:
            logger.warning(
                "%s %s %s failed: %s", self.platform.value, method, path, exc,
            )
            raise RemoteRejected(self.platform.value, 0, str(exc)) from exc

        if resp.status_code >= 400:
            logger.info(
                "%s %s %s returned %d",
                self.platform.value,
                method,
                path,
                resp.status_code,
                extra={"platform": self.platform.value, "status_code": resp.status_code},
            )
        self._raise_for_status(resp)

        if resp.status_code == 204 or not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as exc:
            raise RemoteRejected(
                self.platform.value,
                resp.status_code,
                "response body is not JSON",
                response_body=resp.text[:200],
            ) from exc
