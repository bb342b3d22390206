"""Checks on the per-member counts reported in the toolchain status."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class MemberStatus:
    """The user account count reported for one member cluster."""

    cluster_name: str
    user_account_count: int = 0


def verify_increase_of_user_account_count(
    previous: Iterable[MemberStatus],
    current: Iterable[MemberStatus],
    member_cluster_name: str,
    increase: int,
) -> MemberStatus:
    """Check that the member's count grew by ``increase``; return its current status.

    A member absent from ``previous`` is compared against zero.
    Raises AssertionError on a mismatch or when the member is missing.
    """
    previous_by_name = {status.cluster_name: status for status in previous}
    matched: MemberStatus | None = None
    for status in current:
        if status.cluster_name != member_cluster_name:
            continue
        before = previous_by_name.get(status.cluster_name)
        expected = increase if before is None else before.user_account_count + increase
        if status.user_account_count != expected:
            raise AssertionError(
                f"expected {expected} user accounts on member cluster "
                f"'{member_cluster_name}', got {status.user_account_count}"
            )
        matched = status
    if matched is None:
        raise AssertionError(
            f"There is a missing UserAccount count for member cluster '{member_cluster_name}'"
        )
    return matched