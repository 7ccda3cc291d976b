"""Async OCS client.

This is the single point of HTTP interaction for the share client. It sends
one request, unwraps the OCS envelope and either returns ``ocs.data`` or
raises an ``OcsError`` subclass. No retries: the caller decides.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

import httpx

from ..account import Account
from .errors import (
    NO_STATUS_CODE,
    OcsError,
    OcsMalformedResponseError,
    OcsTransportError,
)

logger = logging.getLogger(__name__)

# OCS v1 reports 100 on success, v2 reports 200.
_OCS_SUCCESS_CODES = frozenset({100, 200})

_BODY_EXCERPT_CHARS = 200

# Module-level shared client for connection pooling in app runtimes/tests.
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


def _encode_param(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class OcsClient:
    """Minimal async OCS client authenticated as ``account``."""

    def __init__(
        self,
        account: Account,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout_seconds: float = 30.0,
    ) -> None:
        self._account = account
        self._client = http_client or _get_shared_async_client()
        self._timeout_seconds = float(timeout_seconds)

    @property
    def account(self) -> Account:
        return self._account

    @property
    def base_ocs_url(self) -> str:
        return f"{self._account.url}/ocs/v1.php"

    def _headers(self) -> dict[str, str]:
        return {
            "OCS-APIRequest": "true",
            "Accept": "application/json",
        }

    def _unwrap(self, resp: httpx.Response) -> Any:
        """Return ``ocs.data`` or raise the matching OcsError."""
        try:
            payload = resp.json()
        except ValueError:
            payload = None

        meta: Mapping[str, Any] | None = None
        if isinstance(payload, dict) and isinstance(payload.get("ocs"), dict):
            ocs = payload["ocs"]
            if isinstance(ocs.get("meta"), dict):
                meta = ocs["meta"]

        if meta is None:
            if resp.status_code >= 400:
                body = resp.text
                message = body[:_BODY_EXCERPT_CHARS] if body else f"HTTP {resp.status_code}"
                raise OcsError(status_code=resp.status_code, message=message)
            raise OcsMalformedResponseError(
                status_code=NO_STATUS_CODE,
                message="Response is not an OCS envelope",
            )

        try:
            code = int(meta.get("statuscode", resp.status_code))
        except (TypeError, ValueError):
            raise OcsMalformedResponseError(
                status_code=NO_STATUS_CODE,
                message=f"Invalid OCS statuscode {meta.get('statuscode')!r}",
            ) from None
        message = str(meta.get("message") or "")

        if code not in _OCS_SUCCESS_CODES:
            raise OcsError(status_code=code, message=message)
        if resp.status_code >= 400:
            raise OcsError(
                status_code=resp.status_code,
                message=message or f"HTTP {resp.status_code}",
            )
        return payload["ocs"].get("data")

    async def request(
        self,
        method: str,
        path: str,
        params: Mapping[str, Any] | None = None,
    ) -> Any:
        """Send one OCS request and return the decoded ``ocs.data``.

        ``params`` travel in the query string for GET/DELETE and as a form
        body otherwise.

        Raises:
            OcsTransportError: No HTTP response was received.
            OcsMalformedResponseError: The body is not an OCS envelope.
            OcsError: The server rejected the request.
        """
        method = method.upper()
        url = f"{self.base_ocs_url}/{path.lstrip('/')}"
        encoded = {k: _encode_param(v) for k, v in (params or {}).items()}
        query: dict[str, str] = {"format": "json"}
        form: dict[str, str] | None = None
        if method in ("GET", "DELETE"):
            query.update(encoded)
        else:
            form = encoded

        logger.debug(
            "OCS %s %s",
            method,
            path,
            extra={"ocs_method": method, "ocs_path": path},
        )
        try:
            resp = await self._client.request(
                method,
                url,
                params=query,
                data=form,
                headers=self._headers(),
                auth=httpx.BasicAuth(self._account.user, self._account.password),
                timeout=self._timeout_seconds,
            )
        except httpx.DecodingError as e:
            logger.warning(
                "OCS %s %s returned an undecodable body",
                method,
                path,
                extra={"ocs_method": method, "ocs_path": path},
            )
            raise OcsMalformedResponseError(
                status_code=NO_STATUS_CODE,
                message=str(e) or type(e).__name__,
            ) from e
        except httpx.HTTPError as e:
            logger.warning(
                "OCS %s %s failed: %s",
                method,
                path,
                type(e).__name__,
                extra={"ocs_method": method, "ocs_path": path},
            )
            raise OcsTransportError(
                status_code=NO_STATUS_CODE,
                message=str(e) or type(e).__name__,
            ) from e

        return self._unwrap(resp)
