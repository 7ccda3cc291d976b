"""Share completion/error events and listener delivery.

Every asynchronous share operation ends in exactly one ``ShareEvent``:
either its named success event or ``share.error``. Events are delivered
synchronously, in subscription order, to the listeners of the emitting
object's ``EventBus``.

This module provides:
  1. ``ShareEvent``: structured completion record.
  2. ``EventBus``: per-object listener registry.
  3. ``InMemoryShareEventSink``: listener that records events (tests).
  4. ``redact_secret``: safely mask passwords/tokens for logging.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

logger = logging.getLogger(__name__)

# ── Event types ─────────────────────────────────────────────────────

PERMISSIONS_SET = 'share.permissions_set'
SHARE_DELETED = 'share.deleted'
PASSWORD_SET = 'link_share.password_set'
PUBLIC_UPLOAD_SET = 'link_share.public_upload_set'
EXPIRE_DATE_SET = 'link_share.expire_date_set'
SHARE_CREATED = 'share.created'
LINK_SHARE_CREATED = 'link_share.created'
LINK_SHARE_REQUIRES_PASSWORD = 'link_share.requires_password'
SHARES_FETCHED = 'shares.fetched'
SERVER_ERROR = 'share.error'

SECRET_PREFIX_LENGTH = 2


def redact_secret(secret: str | None) -> str:
    """Mask a password or token for logging.

    Returns ``<empty>`` for a missing secret, ``<redacted>`` otherwise.
    Short prefixes are kept only for secrets long enough not to leak them.
    """
    if not secret:
        return '<empty>'
    if len(secret) < 16:
        return '<redacted>'
    return f'{secret[:SECRET_PREFIX_LENGTH]}...'


# ── Event model ─────────────────────────────────────────────────────


@dataclass(frozen=True, slots=True)
class ShareEvent:
    """Outcome of one share operation.

    Attributes:
        event_type: One of the module-level event type constants.
        source: The Share, LinkShare or ShareManager that emitted it.
        payload: The entity, list of entities or path the event is about.
        code: Server/transport error code (errors only).
        message: Server/transport message (errors and password prompts).
        timestamp: When the event was emitted.
    """

    event_type: str
    source: Any = None
    payload: Any = None
    code: int | None = None
    message: str = ''
    timestamp: datetime = field(
        default_factory=lambda: datetime.now(timezone.utc),
    )

    @property
    def is_error(self) -> bool:
        return self.event_type == SERVER_ERROR


Listener = Callable[[ShareEvent], Any]


# ── Bus ─────────────────────────────────────────────────────────────


class EventBus:
    """Listener registry owned by one share entity or manager."""

    def __init__(self) -> None:
        self._listeners: list[tuple[str | None, Listener]] = []

    def subscribe(
        self,
        listener: Listener,
        event_type: str | None = None,
    ) -> Callable[[], None]:
        """Register ``listener`` for ``event_type`` (all events when None).

        Returns a callable that removes the subscription.
        """
        entry = (event_type, listener)
        self._listeners.append(entry)

        def unsubscribe() -> None:
            if entry in self._listeners:
                self._listeners.remove(entry)

        return unsubscribe

    def emit(self, event: ShareEvent) -> ShareEvent:
        """Deliver ``event`` to every matching listener.

        A listener that raises is logged and skipped; the others still run.
        """
        for event_type, listener in list(self._listeners):
            if event_type is not None and event_type != event.event_type:
                continue
            try:
                listener(event)
            except Exception:
                logger.exception(
                    'Share event listener failed',
                    extra={'event_type': event.event_type},
                )
        return event

    def __len__(self) -> int:
        return len(self._listeners)


# ── In-memory sink ──────────────────────────────────────────────────


class InMemoryShareEventSink:
    """Listener that stores events in memory."""

    def __init__(self) -> None:
        self.events: list[ShareEvent] = []

    def __call__(self, event: ShareEvent) -> None:
        self.events.append(event)

    def find(self, event_type: str | None = None) -> list[ShareEvent]:
        """Filter recorded events by type."""
        if event_type is None:
            return list(self.events)
        return [e for e in self.events if e.event_type == event_type]
