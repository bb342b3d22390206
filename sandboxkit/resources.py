"""Space and SpaceBinding objects as created by the test helpers."""

from __future__ import annotations

import re
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from typing import Any

TOOLCHAIN_LABEL_DOMAIN = "toolchain.dev.openshift.com/"
TIER_HASH_SUFFIX = "-tier-hash"
SPACE_BINDING_MUR_LABEL_KEY = TOOLCHAIN_LABEL_DOMAIN + "masteruserrecord"
SPACE_BINDING_SPACE_LABEL_KEY = TOOLCHAIN_LABEL_DOMAIN + "space"
MAX_NAME_PREFIX_LENGTH = 50

_NOT_ALLOWED_CHARS = re.compile(r"[^-a-z0-9]")


@dataclass
class Space:
    """A Space resource, with a name or a prefix for a generated one."""

    namespace: str
    name: str = ""
    generate_name: str = ""
    labels: dict[str, str] = field(default_factory=dict)
    tier_name: str = ""
    target_cluster: str = ""


@dataclass
class SpaceBinding:
    """Binds a MasterUserRecord to a Space with a role."""

    namespace: str
    master_user_record: str
    space: str
    space_role: str
    generate_name: str = ""
    name: str = ""
    labels: dict[str, str] = field(default_factory=dict)


SpaceOption = Callable[[Space], None]


def tier_hash_label_key(tier_name: str) -> str:
    """Key of the label holding the template refs hash of ``tier_name``."""
    return f"{TOOLCHAIN_LABEL_DOMAIN}{tier_name}{TIER_HASH_SUFFIX}"


def space_name_prefix(test_name: str) -> str:
    """Lower-case ``test_name``, drop invalid characters, cap at 50 characters."""
    prefix = _NOT_ALLOWED_CHARS.sub("", test_name.lower())
    return prefix[:MAX_NAME_PREFIX_LENGTH]


def new_space(namespace: str, test_name: str, *options: SpaceOption) -> Space:
    """Build a Space named after the test, then apply the options in order."""
    space = Space(namespace=namespace, generate_name=space_name_prefix(test_name) + "-")
    for apply in options:
        apply(space)
    return space


def with_target_cluster(member: Any) -> SpaceOption:
    """Target the cluster of the given member handle."""

    def apply(space: Space) -> None:
        space.target_cluster = member.cluster_name

    return apply


def with_tier_name(tier_name: str) -> SpaceOption:
    """Set the tier of the Space."""

    def apply(space: Space) -> None:
        space.tier_name = tier_name

    return apply


def with_name(name: str) -> SpaceOption:
    """Use a fixed name instead of a generated one."""

    def apply(space: Space) -> None:
        space.name = name
        space.generate_name = ""

    return apply


def with_tier_name_and_hash_label(tier_name: str, hash_value: str) -> SpaceOption:
    """Set the tier and the matching tier hash label."""

    def apply(space: Space) -> None:
        space.tier_name = tier_name
        space.labels[tier_hash_label_key(tier_name)] = hash_value

    return apply


def has_single_tier_hash_label(labels: Iterable[str]) -> bool:
    """True when at most one tier hash label is among the label keys."""
    hash_keys = [
        key
        for key in labels
        if key.startswith(TOOLCHAIN_LABEL_DOMAIN) and key.endswith(TIER_HASH_SUFFIX)
    ]
    return len(hash_keys) <= 1


def new_space_binding(mur_name: str, space: Space, space_role: str) -> SpaceBinding:
    """Build a SpaceBinding of ``mur_name`` to ``space`` with ``space_role``."""
    prefix = f"{mur_name}-{space.name}"[:MAX_NAME_PREFIX_LENGTH]
    return SpaceBinding(
        namespace=space.namespace,
        master_user_record=mur_name,
        space=space.name,
        space_role=space_role,
        generate_name=prefix + "-",
        labels={
            SPACE_BINDING_MUR_LABEL_KEY: mur_name,
            SPACE_BINDING_SPACE_LABEL_KEY: space.name,
        },
    )


def generate_name(prefix: str) -> str:
    """Append a random UUID to ``prefix``."""
    return f"{prefix}-{uuid.uuid4()}"