"""Account context shared by the manager and every share entity."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from urllib.parse import urlencode

if TYPE_CHECKING:
    from .settings import ShareClientSettings

_VERSION_PART = re.compile(r"\d+")


def _pack_version(version: str) -> int:
    parts = [int(p) for p in _VERSION_PART.findall(version)[:3]]
    parts += [0] * (3 - len(parts))
    major, minor, patch = parts
    return (major << 16) | (minor << 8) | patch


@dataclass(frozen=True, slots=True)
class Account:
    """Server URL plus credentials. Read-only once built.

    Attributes:
        url: Base server URL, without trailing slash.
        user: Login name.
        password: App password or token. Excluded from repr.
        server_version: Version string reported by the server.
    """

    url: str
    user: str
    password: str = field(default="", repr=False)
    server_version: str = "10.0.0"

    def __post_init__(self) -> None:
        if not self.url:
            raise ValueError("url is required")
        object.__setattr__(self, "url", self.url.rstrip("/"))

    @property
    def server_version_int(self) -> int:
        """Version packed as ``(major << 16) | (minor << 8) | patch``."""
        return _pack_version(self.server_version)

    def concat_url_path(
        self,
        path: str,
        query: list[tuple[str, str]] | None = None,
    ) -> str:
        """Join ``path`` onto the base URL, with an optional query string."""
        joined = f"{self.url}/{path.lstrip('/')}"
        if query:
            joined = f"{joined}?{urlencode(query)}"
        return joined

    @classmethod
    def from_settings(cls, settings: ShareClientSettings) -> Account:
        errors = settings.validate()
        if errors:
            raise ValueError("; ".join(errors))
        return cls(
            url=settings.server_url,
            user=settings.user,
            password=settings.app_password,
            server_version=settings.server_version,
        )
