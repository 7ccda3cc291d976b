"""Share manager: creation, listing and parsing of shares.

The manager is the only place that builds ``Share``/``LinkShare`` instances
and the single point of contact with the remote Share API for creating and
listing shares. Mutations of an existing share go through the entity itself.

Every operation returns immediately with the pending ``asyncio.Task``.
Exactly one event is then emitted on ``ShareManager.events``:

  - ``link_share.created`` / ``share.created`` / ``shares.fetched`` on success,
  - ``link_share.requires_password`` when an older server refuses a
    passwordless link share,
  - ``share.error`` otherwise.

Responses to independently dispatched requests may arrive in any order.
Each request carries its own call parameters in the closure that handles
its response; nothing is shared between requests.
"""

from __future__ import annotations

import asyncio
import logging
import re
from datetime import date, datetime
from typing import Any, Mapping

from . import events
from .account import Account
from .dispatch import dispatch, error_event
from .events import EventBus, ShareEvent, redact_secret
from .ocs.client import OcsClient
from .ocs.errors import MalformedShareError, OcsError
from .ocs.share_api import ShareApi
from .model import (
    LinkShare,
    Permission,
    Share,
    ShareType,
    validate_permissions,
)
from .settings import DEFAULT_SHARE_API_PATH
from .sharee import Sharee

logger = logging.getLogger(__name__)

# Older servers report "a password is mandatory for link shares" as a generic
# 403 whose only distinguishing feature is the message text.
PASSWORD_REQUIRED_STATUS = 403
_PASSWORD_REQUIRED_PATTERN = re.compile(r"password", re.IGNORECASE)

# From server version 8 on, public links use the index.php/s/<token> scheme.
_TOKEN_LINK_MIN_VERSION = 8 << 16

_EXPIRATION_FORMATS = ("%Y-%m-%d %H:%M:%S", "%Y-%m-%d")


def is_password_required_error(error: OcsError, password: str) -> bool:
    """True when ``error`` is the legacy "link share needs a password" reply.

    Narrower than a bare 403 check: the message must also mention a password,
    so a 403 for e.g. disabled link sharing stays a plain ``share.error``.
    Old servers that answer with a 403 carrying some other text are reported
    as generic errors rather than as a password prompt.
    """
    return (
        not password
        and error.status_code == PASSWORD_REQUIRED_STATUS
        and bool(_PASSWORD_REQUIRED_PATTERN.search(error.message or ""))
    )


# ── Record field helpers ────────────────────────────────────────────


def _require(record: Mapping[str, Any], key: str) -> Any:
    value = record.get(key)
    if value is None or value == "":
        raise MalformedShareError(f"Share record is missing {key!r}")
    return value


def _require_int(record: Mapping[str, Any], key: str) -> int:
    value = _require(record, key)
    if isinstance(value, bool):
        raise MalformedShareError(f"Share record field {key!r} is not an integer: {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise MalformedShareError(
            f"Share record field {key!r} is not an integer: {value!r}"
        ) from None


def _parse_share_type(record: Mapping[str, Any]) -> ShareType:
    raw = _require_int(record, "share_type")
    try:
        return ShareType(raw)
    except ValueError:
        raise MalformedShareError(f"Unknown share_type {raw!r}") from None


def _parse_permissions(record: Mapping[str, Any]) -> Permission:
    raw = _require_int(record, "permissions")
    try:
        return validate_permissions(raw)
    except ValueError:
        raise MalformedShareError(f"Invalid permissions {raw!r}") from None


def _parse_expiration(value: Any) -> date | None:
    if not value:
        return None
    text = str(value).strip()
    for fmt in _EXPIRATION_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue
    raise MalformedShareError(f"Invalid expiration {text!r}")


class ShareManager:
    """Creates, retrieves and parses shares for one account.

    Args:
        api: Share API bound to the account every share will belong to.
    """

    def __init__(self, api: ShareApi) -> None:
        self._api = api
        self.events = EventBus()

    @classmethod
    def for_account(
        cls,
        account: Account,
        *,
        api_path: str = DEFAULT_SHARE_API_PATH,
        **client_kwargs: Any,
    ) -> ShareManager:
        """Build a manager with its own OcsClient for ``account``."""
        client = OcsClient(account, **client_kwargs)
        return cls(ShareApi(client, api_path=api_path))

    @property
    def account(self) -> Account:
        return self._api.client.account

    # ── Parsing ─────────────────────────────────────────────────

    def parse_share(self, record: Mapping[str, Any]) -> Share:
        """Build a Share (or LinkShare, for link records) from a server record.

        Raises:
            MalformedShareError: A mandatory field is missing or malformed.
        """
        if not isinstance(record, Mapping):
            raise MalformedShareError(f"Share record is not an object: {type(record).__name__}")
        share_type = _parse_share_type(record)
        if share_type is ShareType.LINK:
            return self.parse_link_share(record)

        share_id = str(_require(record, "id"))
        path = str(_require(record, "path"))
        permissions = _parse_permissions(record)

        share_with: Sharee | None = None
        if record.get("share_with"):
            identifier = str(record["share_with"])
            share_with = Sharee(
                share_with=identifier,
                display_name=str(record.get("share_with_displayname") or identifier),
                type=Sharee.Type(int(share_type)),
            )

        return Share(
            self._api,
            share_id,
            path,
            share_type,
            permissions,
            share_with,
        )

    def parse_link_share(
        self,
        record: Mapping[str, Any],
        *,
        password_set: bool | None = None,
    ) -> LinkShare:
        """Build a LinkShare from a server record.

        Missing link fields default to "no password" and "no expiration".
        ``password_set`` overrides what the record says about the password,
        for replies to requests that just set one.

        Raises:
            MalformedShareError: A mandatory field is missing or malformed.
        """
        if not isinstance(record, Mapping):
            raise MalformedShareError(f"Share record is not an object: {type(record).__name__}")
        share_id = str(_require(record, "id"))
        path = str(_require(record, "path"))
        if _parse_share_type(record) is not ShareType.LINK:
            raise MalformedShareError(f"Share {share_id} is not a link share")
        permissions = _parse_permissions(record)

        return LinkShare(
            self._api,
            share_id,
            path,
            permissions,
            # For link shares share_with holds the password hash, if any.
            password_set=(
                bool(record.get("share_with")) if password_set is None else password_set
            ),
            url=self._link_url(record),
            expire_date=_parse_expiration(record.get("expiration")),
        )

    def _link_url(self, record: Mapping[str, Any]) -> str:
        if record.get("url"):
            return str(record["url"])
        token = str(record.get("token") or "")
        if self.account.server_version_int >= _TOKEN_LINK_MIN_VERSION:
            return self.account.concat_url_path(f"index.php/s/{token}")
        return self.account.concat_url_path(
            "public.php",
            [("service", "files"), ("t", token)],
        )

    # ── Operations ──────────────────────────────────────────────

    def create_link_share(
        self,
        path: str,
        password: str = "",
    ) -> asyncio.Task[ShareEvent]:
        """Create a public link share for ``path``.

        Emits ``link_share.created`` on success. If an older server refuses
        a passwordless link, emits ``link_share.requires_password`` (payload:
        the path) so the caller can prompt and retry with a password.
        """
        if not path:
            raise ValueError("path is required")
        logger.debug(
            "Creating link share for %s (password=%s)",
            path,
            redact_secret(password),
            extra={"share_path": path},
        )

        def on_success(data: Any) -> ShareEvent:
            share = self.parse_link_share(data, password_set=bool(password) or None)
            logger.info(
                "Link share %s created for %s",
                share.id,
                path,
                extra={"share_id": share.id, "share_path": path},
            )
            return ShareEvent(
                event_type=events.LINK_SHARE_CREATED,
                source=self,
                payload=share,
            )

        def on_error(error: OcsError) -> ShareEvent:
            if is_password_required_error(error, password):
                logger.warning(
                    "Server requires a password for link share on %s",
                    path,
                    extra={"share_path": path, "status_code": error.status_code},
                )
                return ShareEvent(
                    event_type=events.LINK_SHARE_REQUIRES_PASSWORD,
                    source=self,
                    payload=path,
                    code=error.status_code,
                    message=error.message,
                )
            return error_event(self, error)

        return dispatch(
            lambda: self._api.create_link_share(path, password),
            bus=self.events,
            source=self,
            on_success=on_success,
            on_error=on_error,
            name=f"{events.LINK_SHARE_CREATED}:{path}",
        )

    def create_share(
        self,
        path: str,
        share_type: ShareType,
        share_with: str,
        permissions: int = Permission.DEFAULT,
    ) -> asyncio.Task[ShareEvent]:
        """Create a user, group or remote share.

        The requested permissions are limited to what the current user was
        granted on ``path`` when it was itself shared with them; DEFAULT
        takes those permissions as they are.

        Emits ``share.created`` on success.

        Raises:
            ValueError: ``share_type`` is LINK (use create_link_share),
                ``path`` or ``share_with`` is empty, or ``permissions`` is
                invalid.
        """
        share_type = ShareType(share_type)
        if share_type is ShareType.LINK:
            raise ValueError("Use create_link_share() for link shares")
        if not path:
            raise ValueError("path is required")
        if not share_with:
            raise ValueError("share_with is required")
        requested = validate_permissions(permissions)

        async def request() -> Any:
            granted = self._granted_permissions(
                path, await self._api.get_shared_with_me()
            )
            effective = requested
            if effective == Permission.DEFAULT:
                effective = granted
            elif granted != Permission.DEFAULT:
                effective = Permission(effective & granted)
            logger.debug(
                "Creating %s share of %s for %s",
                share_type.name.lower(),
                path,
                share_with,
                extra={"share_path": path, "permissions": int(effective)},
            )
            return await self._api.create_share(
                path,
                int(share_type),
                share_with,
                None if effective == Permission.DEFAULT else int(effective),
            )

        def on_success(data: Any) -> ShareEvent:
            share = self.parse_share(data)
            logger.info(
                "Share %s created for %s",
                share.id,
                path,
                extra={"share_id": share.id, "share_path": path},
            )
            return ShareEvent(event_type=events.SHARE_CREATED, source=self, payload=share)

        return dispatch(
            request,
            bus=self.events,
            source=self,
            on_success=on_success,
            name=f"{events.SHARE_CREATED}:{path}",
        )

    @staticmethod
    def _granted_permissions(path: str, data: Any) -> Permission:
        """Permissions of the grant that shared ``path`` with us, if any."""
        granted = Permission.DEFAULT
        for element in data or []:
            if not isinstance(element, Mapping):
                continue
            if element.get("file_target") != path:
                continue
            try:
                granted = validate_permissions(int(element.get("permissions")))
            except (TypeError, ValueError):
                raise MalformedShareError(
                    f"Invalid permissions on shared-with-me entry for {path!r}"
                ) from None
        return granted

    def fetch_shares(self, path: str) -> asyncio.Task[ShareEvent]:
        """Fetch every share on ``path``.

        Emits ``shares.fetched`` with the shares in server order; an empty
        list is a success.
        """
        if not path:
            raise ValueError("path is required")

        def on_success(data: Any) -> ShareEvent:
            if data is None or data == {}:
                data = []
            if not isinstance(data, list):
                raise MalformedShareError(
                    f"Expected a list of shares, got {type(data).__name__}"
                )
            shares = [self.parse_share(record) for record in data]
            logger.info(
                "Fetched %d shares for %s",
                len(shares),
                path,
                extra={"share_path": path},
            )
            return ShareEvent(event_type=events.SHARES_FETCHED, source=self, payload=shares)

        return dispatch(
            lambda: self._api.get_shares(path),
            bus=self.events,
            source=self,
            on_success=on_success,
            name=f"{events.SHARES_FETCHED}:{path}",
        )

