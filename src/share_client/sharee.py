"""Identity a non-link share is granted to."""

from __future__ import annotations

import enum
from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class Sharee:
    """A user, group or federated user.

    Sharee lookup lives elsewhere; this only carries what a share record
    says about its target.
    """

    class Type(enum.IntEnum):
        USER = 0
        GROUP = 1
        FEDERATED = 6

    share_with: str
    display_name: str
    type: Sharee.Type

    def format(self) -> str:
        """Display string, e.g. ``Alice (group)``."""
        if self.type is Sharee.Type.USER:
            return self.display_name
        label = "group" if self.type is Sharee.Type.GROUP else "remote"
        return f"{self.display_name} ({label})"
