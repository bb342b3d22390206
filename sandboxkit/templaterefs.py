"""Template references of a tier and matching them against a template set."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass
class TemplateRefs:
    """Namespace template refs and the optional cluster resources template ref."""

    namespaces: list[str] = field(default_factory=list)
    cluster_resources: str | None = None

    def matches(self, cluster_resources: str | None, namespaces: Iterable[str]) -> bool:
        """True when a template set carries exactly these refs, in any order."""
        if self.cluster_resources is None or cluster_resources is None:
            return False
        if self.cluster_resources != cluster_resources:
            return False
        return sorted(namespaces) == sorted(self.namespaces)


def template_refs_for_tier(tier: Mapping[str, Any]) -> TemplateRefs:
    """Collect the template refs of an NSTemplateTier given as a resource mapping."""
    spec = tier.get("spec", tier)
    namespaces = [ns["templateRef"] for ns in spec.get("namespaces") or []]
    cluster = spec.get("clusterResources")
    return TemplateRefs(
        namespaces=namespaces,
        cluster_resources=cluster["templateRef"] if cluster is not None else None,
    )