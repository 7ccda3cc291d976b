"""OCS client error hierarchy.

Every failure the share client can observe (network, server, payload) is
reported as an ``OcsError`` carrying a numeric ``status_code`` and a
human-readable ``message``. Kept dependency-free so entities and the manager
can handle errors without touching httpx objects (or credentials).
"""

from __future__ import annotations

from dataclasses import dataclass

# Code used when no server-assigned code exists (network or payload failure).
NO_STATUS_CODE = 0


@dataclass(frozen=True, slots=True)
class OcsError(Exception):
    """Base error for OCS requests.

    ``status_code`` is the OCS ``meta.statuscode`` when the server sent an
    envelope, otherwise the HTTP status, otherwise ``NO_STATUS_CODE``.
    """

    status_code: int
    message: str

    def __str__(self) -> str:
        return f"{type(self).__name__}(status={self.status_code}) {self.message}"


class OcsTransportError(OcsError):
    """The request never produced an HTTP response (connect, read, timeout)."""


class OcsMalformedResponseError(OcsError):
    """The server answered, but the body is not a usable OCS envelope."""


class MalformedShareError(OcsMalformedResponseError):
    """A share record lacks a mandatory field or holds an unparseable value."""

    def __init__(self, message: str) -> None:
        super().__init__(NO_STATUS_CODE, message)
