"""Share and LinkShare entities.

Entities are built by ``ShareManager`` from server records and shared by
reference between every holder (list views, caches, the manager's pending
requests). Each field reflects the last server-confirmed state: mutation
methods dispatch a request and only touch the field once the server has
accepted it. No holder may assume exclusive mutation rights.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from datetime import date
from typing import TYPE_CHECKING, Any, Awaitable, Callable

from . import events
from .dispatch import dispatch
from .events import EventBus, ShareEvent

if TYPE_CHECKING:
    from .account import Account
    from .ocs.share_api import ShareApi
    from .sharee import Sharee

logger = logging.getLogger(__name__)


class ShareType(enum.IntEnum):
    """Share types, in sync with ``Sharee.Type``."""

    USER = 0
    GROUP = 1
    LINK = 3
    REMOTE = 6


class Permission(enum.IntFlag):
    READ = 1
    UPDATE = 2
    CREATE = 4
    DELETE = 8
    SHARE = 16
    # "Unspecified": let the server pick. Never combined with real bits.
    DEFAULT = 1 << 30


ALL_PERMISSIONS = (
    Permission.READ
    | Permission.UPDATE
    | Permission.CREATE
    | Permission.DELETE
    | Permission.SHARE
)


def validate_permissions(permissions: int) -> Permission:
    """Return ``permissions`` as a Permission or raise ValueError.

    Accepts any subset of the five real flags. DEFAULT is accepted only on
    its own.
    """
    value = int(permissions)
    if value == Permission.DEFAULT:
        return Permission.DEFAULT
    if value < 0 or value & ~int(ALL_PERMISSIONS):
        raise ValueError(f"Invalid share permissions: {value!r}")
    return Permission(value)


class Share:
    """One access grant on a remote path.

    Built by ShareManager only. Mutations return the pending task; it resolves
    to the single event emitted on ``events``.
    """

    def __init__(
        self,
        api: ShareApi,
        share_id: str,
        path: str,
        share_type: ShareType,
        permissions: Permission = Permission.DEFAULT,
        share_with: Sharee | None = None,
    ) -> None:
        self._api = api
        self._id = share_id
        self._path = path
        self._share_type = ShareType(share_type)
        self._permissions = Permission(permissions)
        self._share_with = share_with
        self.events = EventBus()

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(id={self._id!r}, path={self._path!r}, "
            f"share_type={self._share_type.name}, permissions={int(self._permissions)})"
        )

    # ── Accessors ───────────────────────────────────────────────

    @property
    def account(self) -> Account:
        """The account the share is defined on."""
        return self._api.client.account

    @property
    def id(self) -> str:
        return self._id

    @property
    def path(self) -> str:
        return self._path

    @property
    def share_type(self) -> ShareType:
        return self._share_type

    @property
    def share_with(self) -> Sharee | None:
        return self._share_with

    @property
    def permissions(self) -> Permission:
        return self._permissions

    # ── Mutations ───────────────────────────────────────────────

    def _dispatch(
        self,
        request: Callable[[], Awaitable[Any]],
        event_type: str,
        apply: Callable[[], None],
    ) -> asyncio.Task[ShareEvent]:
        def on_success(_: Any) -> ShareEvent:
            apply()
            logger.info(
                "Share %s: %s",
                self._id,
                event_type,
                extra={"share_id": self._id, "event_type": event_type},
            )
            return ShareEvent(event_type=event_type, source=self, payload=self)

        return dispatch(
            request,
            bus=self.events,
            source=self,
            on_success=on_success,
            name=f"{event_type}:{self._id}",
        )

    def set_permissions(self, permissions: int) -> asyncio.Task[ShareEvent]:
        """Set the permissions of the share.

        On success ``permissions`` is updated and ``share.permissions_set`` is
        emitted. On a server error ``share.error`` is emitted and
        ``permissions`` keeps its previous value.

        Raises:
            ValueError: ``permissions`` holds bits outside the five flags,
                or is DEFAULT (only meaningful when creating a share).
        """
        requested = validate_permissions(permissions)
        if requested == Permission.DEFAULT:
            raise ValueError("DEFAULT permissions cannot be set on an existing share")

        def apply() -> None:
            self._permissions = requested

        return self._dispatch(
            lambda: self._api.set_permissions(self._id, int(requested)),
            events.PERMISSIONS_SET,
            apply,
        )

    def delete_share(self) -> asyncio.Task[ShareEvent]:
        """Delete the share on the server.

        On success ``share.deleted`` is emitted; holders should drop their
        reference. The local instance is left as is.
        """
        return self._dispatch(
            lambda: self._api.delete_share(self._id),
            events.SHARE_DELETED,
            lambda: None,
        )


class LinkShare(Share):
    """A share granted to anyone holding its public URL.

    Some API calls only exist for link shares: password, public upload and
    expiration.
    """

    def __init__(
        self,
        api: ShareApi,
        share_id: str,
        path: str,
        permissions: Permission,
        password_set: bool,
        url: str,
        expire_date: date | None = None,
    ) -> None:
        super().__init__(api, share_id, path, ShareType.LINK, permissions)
        self._password_set = password_set
        self._url = url
        self._expire_date = expire_date

    @property
    def share_with(self) -> None:
        return None

    @property
    def link(self) -> str:
        return self._url

    @property
    def password_set(self) -> bool:
        return self._password_set

    @property
    def expire_date(self) -> date | None:
        return self._expire_date

    @property
    def public_upload(self) -> bool:
        return bool(
            self._permissions & Permission.UPDATE
            and self._permissions & Permission.CREATE
        )

    def get_link(self) -> str:
        return self._url

    def is_password_set(self) -> bool:
        return self._password_set

    def get_expire_date(self) -> date | None:
        return self._expire_date

    def get_public_upload(self) -> bool:
        return self.public_upload

    def set_public_upload(self, public_upload: bool) -> asyncio.Task[ShareEvent]:
        """Allow or forbid uploads through the link (folders only).

        On success permissions become READ|UPDATE|CREATE or READ, and
        ``link_share.public_upload_set`` is emitted.
        """
        enabled = bool(public_upload)

        def apply() -> None:
            if enabled:
                self._permissions = Permission.READ | Permission.UPDATE | Permission.CREATE
            else:
                self._permissions = Permission.READ

        return self._dispatch(
            lambda: self._api.set_public_upload(self._id, enabled),
            events.PUBLIC_UPLOAD_SET,
            apply,
        )

    def set_password(self, password: str) -> asyncio.Task[ShareEvent]:
        """Set the password; an empty string removes it.

        On success ``link_share.password_set`` is emitted.
        """
        password = password or ""

        def apply() -> None:
            self._password_set = bool(password)

        return self._dispatch(
            lambda: self._api.set_password(self._id, password),
            events.PASSWORD_SET,
            apply,
        )

    def set_expire_date(self, expire_date: date | None) -> asyncio.Task[ShareEvent]:
        """Set the expiration date; None removes it.

        On success ``link_share.expire_date_set`` is emitted.
        """

        def apply() -> None:
            self._expire_date = expire_date

        return self._dispatch(
            lambda: self._api.set_expire_date(self._id, expire_date),
            events.EXPIRE_DATE_SET,
            apply,
        )
