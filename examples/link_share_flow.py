"""Create a public link for a folder, prompting for a password when required.

Usage::

    export OCS_SERVER_URL=https://cloud.example.com
    export OCS_USER=alice
    export OCS_APP_PASSWORD=...
    python examples/link_share_flow.py /Photos
"""

from __future__ import annotations

import asyncio
import getpass
import logging
import sys

from share_client import (
    LINK_SHARE_CREATED,
    LINK_SHARE_REQUIRES_PASSWORD,
    SERVER_ERROR,
    Account,
    ShareClientSettings,
    ShareManager,
)


async def main(path: str) -> int:
    settings = ShareClientSettings.from_env()
    manager = ShareManager.for_account(
        Account.from_settings(settings),
        api_path=settings.share_api_path,
        timeout_seconds=settings.timeout_seconds,
    )
    manager.events.subscribe(
        lambda e: print(f"error {e.code}: {e.message}"),
        SERVER_ERROR,
    )

    event = await manager.create_link_share(path)
    if event.event_type == LINK_SHARE_REQUIRES_PASSWORD:
        password = getpass.getpass("This server requires a password for links: ")
        event = await manager.create_link_share(path, password)

    if event.event_type != LINK_SHARE_CREATED:
        return 1

    print(event.payload.get_link())
    fetched = await manager.fetch_shares(path)
    if fetched.is_error:
        return 1
    for share in fetched.payload:
        print(f"  {share.share_type.name.lower():6} {share.id:>6} permissions={int(share.permissions)}")
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    sys.exit(asyncio.run(main(sys.argv[1] if len(sys.argv) > 1 else "/")))
