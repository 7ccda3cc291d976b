"""OCS Share API endpoints.

One coroutine per remote share operation. Each returns the decoded
``ocs.data`` payload or raises ``OcsError``; interpreting the payload is the
caller's job.
"""

from __future__ import annotations

from datetime import date
from typing import Any

from ..settings import DEFAULT_SHARE_API_PATH
from .client import OcsClient


class ShareApi:
    """Thin wrapper over ``OcsClient`` for the files_sharing app."""

    def __init__(
        self,
        client: OcsClient,
        *,
        api_path: str = DEFAULT_SHARE_API_PATH,
    ) -> None:
        self._client = client
        self._api_path = api_path.strip("/")

    @property
    def client(self) -> OcsClient:
        return self._client

    def _shares_path(self, share_id: str | None = None) -> str:
        if share_id is None:
            return f"{self._api_path}/shares"
        return f"{self._api_path}/shares/{share_id}"

    # ── Listing ──────────────────────────────────────────────────

    async def get_shares(self, path: str) -> Any:
        """All shares on ``path``, including reshares by other users."""
        return await self._client.request(
            "GET",
            self._shares_path(),
            {"path": path, "reshares": True},
        )

    async def get_shared_with_me(self) -> Any:
        """Shares other users granted to the current account."""
        return await self._client.request(
            "GET",
            self._shares_path(),
            {"shared_with_me": True},
        )

    # ── Creation ─────────────────────────────────────────────────

    async def create_link_share(self, path: str, password: str = "") -> Any:
        params: dict[str, Any] = {"path": path, "shareType": 3}
        if password:
            params["password"] = password
        return await self._client.request("POST", self._shares_path(), params)

    async def create_share(
        self,
        path: str,
        share_type: int,
        share_with: str,
        permissions: int | None = None,
    ) -> Any:
        """Create a user/group/remote share.

        ``permissions`` is omitted from the request when None so the server
        applies its default.
        """
        params: dict[str, Any] = {
            "path": path,
            "shareType": int(share_type),
            "shareWith": share_with,
        }
        if permissions is not None:
            params["permissions"] = int(permissions)
        return await self._client.request("POST", self._shares_path(), params)

    # ── Mutation ─────────────────────────────────────────────────

    async def set_permissions(self, share_id: str, permissions: int) -> Any:
        return await self._client.request(
            "PUT",
            self._shares_path(share_id),
            {"permissions": int(permissions)},
        )

    async def set_password(self, share_id: str, password: str) -> Any:
        return await self._client.request(
            "PUT",
            self._shares_path(share_id),
            {"password": password},
        )

    async def set_public_upload(self, share_id: str, public_upload: bool) -> Any:
        return await self._client.request(
            "PUT",
            self._shares_path(share_id),
            {"publicUpload": bool(public_upload)},
        )

    async def set_expire_date(self, share_id: str, expire_date: date | None) -> Any:
        """Set the expiration; ``None`` clears it."""
        value = expire_date.isoformat() if expire_date is not None else ""
        return await self._client.request(
            "PUT",
            self._shares_path(share_id),
            {"expireDate": value},
        )

    async def delete_share(self, share_id: str) -> Any:
        return await self._client.request("DELETE", self._shares_path(share_id))
