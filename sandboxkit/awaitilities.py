"""A holder for the host and member cluster handles used by a test run."""

from __future__ import annotations

from typing import Any


class Awaitilities:
    """The host handle plus the ordered member cluster handles."""

    def __init__(self, host: Any, *members: Any) -> None:
        self.host = host
        self._members = list(members)

    def member1(self) -> Any:
        """Return the first member cluster."""
        return self._members[0]

    def member2(self) -> Any:
        """Return the second member cluster."""
        return self._members[1]

    def all_members(self) -> list[Any]:
        """Return all member clusters in order."""
        return list(self._members)