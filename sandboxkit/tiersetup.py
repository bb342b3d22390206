"""Helpers for deriving tier resources and tier change requests."""

from __future__ import annotations

from dataclasses import dataclass

CHANGE_TIER_REQUEST_PREFIX = "changetierrequest-"


@dataclass
class ChangeTierRequest:
    """A request to move a MasterUserRecord to another tier."""

    namespace: str
    mur_name: str
    tier_name: str
    generate_name: str = CHANGE_TIER_REQUEST_PREFIX
    name: str = ""


def duplicate_template_name(tier_name: str, template_name: str) -> str:
    """Name of a TierTemplate copied from ``template_name`` into ``tier_name``."""
    return f"{tier_name}from{template_name}"


def new_change_tier_request(namespace: str, mur_name: str, tier: str) -> ChangeTierRequest:
    """Build a ChangeTierRequest with a generated name."""
    return ChangeTierRequest(namespace=namespace, mur_name=mur_name, tier_name=tier)