"""Share client configuration settings.

ShareClientSettings is the single configuration object accepted by
``Account.from_settings()`` and ``OcsClient``. It is intentionally a plain
dataclass (not env-coupled) so tests can inject config without touching
os.environ.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_SERVER_VERSION = "10.0.0"
DEFAULT_SHARE_API_PATH = "apps/files_sharing/api/v1"
DEFAULT_TIMEOUT_SECONDS = 30.0


@dataclass(frozen=True, slots=True)
class ShareClientSettings:
    """Configuration for talking to a remote OCS Share API."""

    # ── Server ─────────────────────────────────────────────────────
    server_url: str = ""
    """Base URL of the server (e.g. https://cloud.example.com)."""

    server_version: str = DEFAULT_SERVER_VERSION
    """Server version string; decides the fallback public link scheme."""

    share_api_path: str = DEFAULT_SHARE_API_PATH
    """OCS path of the sharing app, relative to ``ocs/v1.php``."""

    # ── Credentials ────────────────────────────────────────────────
    user: str = ""
    """Login name used for basic auth."""

    app_password: str = ""
    """App password or token used for basic auth. Never log this."""

    # ── Transport ──────────────────────────────────────────────────
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS

    def validate(self) -> list[str]:
        """Return a list of configuration errors. Empty means valid."""
        errors: list[str] = []
        if not self.server_url:
            errors.append("server_url is required")
        elif not self.server_url.startswith(("http://", "https://")):
            errors.append(f"server_url must be http(s): {self.server_url!r}")
        if not self.user:
            errors.append("user is required")
        if not self.app_password:
            errors.append("app_password is required")
        if self.timeout_seconds <= 0:
            errors.append("timeout_seconds must be positive")
        return errors

    @classmethod
    def from_env(cls, env: dict[str, str] | None = None) -> ShareClientSettings:
        """Build settings from environment variables.

        This is a convenience factory for production use. Tests should
        construct ShareClientSettings directly.
        """
        if env is None:
            env = dict(os.environ)

        timeout_raw = env.get("OCS_TIMEOUT_SECONDS", "").strip()
        try:
            timeout = float(timeout_raw) if timeout_raw else DEFAULT_TIMEOUT_SECONDS
        except ValueError:
            raise ValueError(
                f"OCS_TIMEOUT_SECONDS must be a number, got {timeout_raw!r}"
            ) from None

        return cls(
            server_url=env.get("OCS_SERVER_URL", "").strip().rstrip("/"),
            server_version=env.get("OCS_SERVER_VERSION", DEFAULT_SERVER_VERSION),
            share_api_path=env.get("OCS_SHARE_API_PATH", DEFAULT_SHARE_API_PATH).strip("/"),
            user=env.get("OCS_USER", ""),
            app_password=env.get("OCS_APP_PASSWORD", ""),
            timeout_seconds=timeout,
        )
