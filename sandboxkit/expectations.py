"""Expected contents of the resources a tier provisions for a user."""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from fractions import Fraction
from typing import Any

PROVIDER_LABEL_KEY = "toolchain.dev.openshift.com/provider"
PROVIDER_LABEL_VALUE = "codeready-toolchain"
OWNER_LABEL_KEY = "toolchain.dev.openshift.com/owner"
TIER_LABEL_KEY = "toolchain.dev.openshift.com/tier"
REQUESTER_ANNOTATION_KEY = "openshift.io/requester"
RBAC_API_GROUP = "rbac.authorization.k8s.io"
POLICY_GROUP_LABEL_KEY = "network.openshift.io/policy-group"

# Network policies that admit traffic from namespaces carrying one label.
NETWORK_POLICY_INGRESS_LABELS: dict[str, tuple[str, str]] = {
    "allow-from-openshift-ingress": (POLICY_GROUP_LABEL_KEY, "ingress"),
    "allow-from-openshift-monitoring": (POLICY_GROUP_LABEL_KEY, "monitoring"),
    "allow-from-olm-namespaces": ("openshift.io/scc", "anyuid"),
    "allow-from-console-namespaces": (POLICY_GROUP_LABEL_KEY, "console"),
    "allow-from-codeready-workspaces-operator": (POLICY_GROUP_LABEL_KEY, "codeready-workspaces"),
}

Quantity = Fraction

_QUANTITY_RE = re.compile(
    r"^(?P<number>[+-]?(?:\d+\.?\d*|\.\d+))"
    r"(?P<suffix>[eE][+-]?\d+|[KMGTPE]i|[numkMGTPE])?$"
)
_BINARY_SUFFIXES = {
    "Ki": 2**10,
    "Mi": 2**20,
    "Gi": 2**30,
    "Ti": 2**40,
    "Pi": 2**50,
    "Ei": 2**60,
}
_DECIMAL_SUFFIXES = {
    "n": Fraction(1, 10**9),
    "u": Fraction(1, 10**6),
    "m": Fraction(1, 10**3),
    "k": Fraction(10**3),
    "M": Fraction(10**6),
    "G": Fraction(10**9),
    "T": Fraction(10**12),
    "P": Fraction(10**15),
    "E": Fraction(10**18),
}


def _parse_quantity(text: str) -> Quantity:
    """Parse a resource quantity such as ``750Mi`` or ``1750m`` into an exact number."""
    match = _QUANTITY_RE.match(text.strip())
    if match is None:
        raise ValueError(f"quantities must match the regular expression: {text!r}")
    number = Fraction(match.group("number"))
    suffix = match.group("suffix") or ""
    if not suffix:
        return number
    if suffix in _BINARY_SUFFIXES:
        return number * _BINARY_SUFFIXES[suffix]
    if suffix in _DECIMAL_SUFFIXES:
        return number * _DECIMAL_SUFFIXES[suffix]
    return number * Fraction(10) ** int(suffix[1:])


def _as_quantity(value: Any) -> Quantity:
    if isinstance(value, str):
        return _parse_quantity(value)
    if isinstance(value, float):
        return Fraction(str(value))
    return Fraction(value)


@dataclass(frozen=True)
class PolicyRule:
    """One RBAC rule: API groups, resources and verbs."""

    api_groups: tuple[str, ...]
    resources: tuple[str, ...]
    verbs: tuple[str, ...]


@dataclass(frozen=True)
class RoleBindingExpectation:
    """What a provisioned RoleBinding must hold.

    ``name`` and ``subject_name`` may contain ``{user}`` and
    ``{member_namespace}`` placeholders.
    """

    name: str
    subject_kind: str
    subject_name: str
    role_name: str
    role_kind: str
    subject_api_group: str | None = None
    check_owner: bool = True

    def binding_name(self, user_name: str, member_namespace: str = "") -> str:
        """The RoleBinding name for the given user."""
        return self.name.format(user=user_name, member_namespace=member_namespace)

    def mismatches(
        self, role_binding: Mapping[str, Any], user_name: str, member_namespace: str = ""
    ) -> list[str]:
        """Describe every way ``role_binding`` differs from this expectation."""
        problems: list[str] = []
        labels = (role_binding.get("metadata") or {}).get("labels") or {}
        subjects = role_binding.get("subjects") or []
        role_ref = role_binding.get("roleRef") or {}

        def expect(what: str, expected: Any, actual: Any) -> None:
            if expected != actual:
                problems.append(f"{what}: expected {expected!r}, got {actual!r}")

        expect("number of subjects", 1, len(subjects))
        if subjects:
            subject = subjects[0]
            expect("subject kind", self.subject_kind, subject.get("kind"))
            expected_subject = self.subject_name.format(
                user=user_name, member_namespace=member_namespace
            )
            expect("subject name", expected_subject, subject.get("name"))
            if self.subject_api_group is not None:
                expect("subject apiGroup", self.subject_api_group, subject.get("apiGroup", ""))
        expect("roleRef name", self.role_name, role_ref.get("name"))
        expect("roleRef kind", self.role_kind, role_ref.get("kind"))
        expect("roleRef apiGroup", RBAC_API_GROUP, role_ref.get("apiGroup"))
        expect("provider label", PROVIDER_LABEL_VALUE, labels.get(PROVIDER_LABEL_KEY))
        if self.check_owner:
            expect("owner label", user_name, labels.get(OWNER_LABEL_KEY))
        return problems


USER_EDIT_ROLE_BINDING = RoleBindingExpectation(
    name="user-edit", subject_kind="User", subject_name="{user}",
    role_name="edit", role_kind="ClusterRole",
)
RBAC_EDIT_ROLE_BINDING = RoleBindingExpectation(
    name="user-rbac-edit", subject_kind="User", subject_name="{user}",
    role_name="rbac-edit", role_kind="Role",
)
CRTADMIN_VIEW_ROLE_BINDING = RoleBindingExpectation(
    name="crtadmin-view", subject_kind="Group", subject_name="crtadmin-users-view",
    role_name="view", role_kind="ClusterRole",
)
CRTADMIN_PODS_ROLE_BINDING = RoleBindingExpectation(
    name="crtadmin-pods", subject_kind="Group", subject_name="crtadmin-users-view",
    role_name="exec-pods", role_kind="Role",
)
APPSTUDIO_USER_ACTIONS_ROLE_BINDING = RoleBindingExpectation(
    name="appstudio-{user}-user-actions", subject_kind="ServiceAccount",
    subject_name="appstudio-{user}", subject_api_group="",
    role_name="appstudio-user-actions", role_kind="Role", check_owner=False,
)
APPSTUDIO_VIEW_ROLE_BINDING = RoleBindingExpectation(
    name="appstudio-{user}-view", subject_kind="ServiceAccount",
    subject_name="appstudio-{user}", subject_api_group="",
    role_name="view", role_kind="ClusterRole", check_owner=False,
)
USER_SA_READ_ROLE_BINDING = RoleBindingExpectation(
    name="member-operator-sa-read", subject_kind="Group",
    subject_name="system:serviceaccounts:{member_namespace}",
    subject_api_group=RBAC_API_GROUP,
    role_name="toolchain-sa-read", role_kind="Role", check_owner=False,
)


def count(resource: str) -> str:
    """The object-count quota key for ``resource``."""
    return f"count/{resource}"


def exec_pods_rules() -> list[PolicyRule]:
    """Rules of the ``exec-pods`` Role."""
    return [
        PolicyRule(
            api_groups=("",),
            resources=("pods/exec",),
            verbs=("get", "list", "watch", "create", "delete", "update"),
        )
    ]


def rbac_edit_rules() -> list[PolicyRule]:
    """Rules of the ``rbac-edit`` Role."""
    return [
        PolicyRule(
            api_groups=("authorization.openshift.io", "rbac.authorization.k8s.io"),
            resources=("roles", "rolebindings"),
            verbs=("get", "list", "watch", "create", "update", "patch", "delete"),
        )
    ]


def toolchain_sa_read_rules() -> list[PolicyRule]:
    """Rules of the ``toolchain-sa-read`` Role."""
    return [
        PolicyRule(
            api_groups=("",),
            resources=("secrets", "serviceaccounts"),
            verbs=("get", "list"),
        )
    ]


def appstudio_user_actions_rules() -> list[PolicyRule]:
    """Rules of the ``appstudio-user-actions`` Role."""
    everything = ("*",)
    return [
        PolicyRule(("managed-gitops.redhat.com",), ("gitopsdeployments",), everything),
        PolicyRule(
            ("appstudio.redhat.com",),
            ("applications", "components", "componentdetectionqueries"),
            everything,
        ),
        PolicyRule(
            ("appstudio.redhat.com",),
            ("spiaccesstokenbindings",),
            ("create", "get", "list", "watch", "delete"),
        ),
        PolicyRule(("appstudio.redhat.com",), ("spiaccesstokens",), ("get", "list", "watch")),
        PolicyRule(("appstudio.redhat.com",), ("spiaccesstokendataupdates",), ("create",)),
        PolicyRule(("tekton.dev",), ("pipelineruns",), everything),
        PolicyRule(("",), ("secrets",), ("create", "delete")),
        PolicyRule(("results.tekton.dev",), ("results", "records"), ("get", "list")),
        PolicyRule(
            ("singapore.open-cluster-management.io",),
            ("registeredclusters",),
            ("create", "get", "list", "watch", "delete"),
        ),
    ]


def limit_range_spec(
    cpu_limit: str, memory_limit: str, cpu_request: str, memory_request: str
) -> dict[str, Any]:
    """Spec of the ``resource-limits`` LimitRange, with parsed quantities."""
    return {
        "limits": [
            {
                "type": "Container",
                "default": {
                    "cpu": _parse_quantity(cpu_limit),
                    "memory": _parse_quantity(memory_limit),
                },
                "defaultRequest": {
                    "cpu": _parse_quantity(cpu_request),
                    "memory": _parse_quantity(memory_request),
                },
            }
        ]
    }


def _ingress_policy(peers: list[dict[str, Any]]) -> dict[str, Any]:
    rule: dict[str, Any] = {"from": peers} if peers else {}
    return {"podSelector": {}, "ingress": [rule], "policyTypes": ["Ingress"]}


def network_policy_ingress_spec(label_name: str, label_value: str) -> dict[str, Any]:
    """Spec admitting traffic from namespaces labelled ``label_name=label_value``."""
    return _ingress_policy([{"namespaceSelector": {"matchLabels": {label_name: label_value}}}])


def network_policy_same_namespace_spec() -> dict[str, Any]:
    """Spec of the ``allow-same-namespace`` NetworkPolicy."""
    return _ingress_policy([{"podSelector": {}}])


def network_policy_other_namespaces_spec(user_name: str, *other_kinds: str) -> dict[str, Any]:
    """Spec admitting traffic from the user's namespaces of the other kinds."""
    peers = [
        {"namespaceSelector": {"matchLabels": {"name": f"{user_name}-{other}"}}}
        for other in other_kinds
    ]
    return _ingress_policy(peers)


def _hard(entries: Mapping[str, str]) -> dict[str, Quantity]:
    return {key: _parse_quantity(value) for key, value in entries.items()}


def compute_quota_hard(
    cpu_limit: str, cpu_request: str, memory_limit: str, storage_limit: str
) -> dict[str, Quantity]:
    """Hard limits of the ``for-<user>-compute`` ClusterResourceQuota."""
    return _hard({
        "limits.cpu": cpu_limit,
        "limits.memory": memory_limit,
        "limits.ephemeral-storage": "7Gi",
        "requests.cpu": cpu_request,
        "requests.memory": memory_limit,
        "requests.storage": storage_limit,
        "requests.ephemeral-storage": "7Gi",
        count("persistentvolumeclaims"): "5",
    })


def deployments_quota_hard() -> dict[str, Quantity]:
    """Hard limits of the ``for-<user>-deployments`` ClusterResourceQuota."""
    return _hard({
        count("deployments.apps"): "30",
        count("deploymentconfigs.apps"): "30",
        count("pods"): "50",
    })


def replicas_quota_hard() -> dict[str, Quantity]:
    """Hard limits of the ``for-<user>-replicas`` ClusterResourceQuota."""
    return _hard({
        count("replicasets.apps"): "30",
        count("replicationcontrollers"): "30",
    })


def routes_quota_hard() -> dict[str, Quantity]:
    """Hard limits of the ``for-<user>-routes`` ClusterResourceQuota."""
    return _hard({
        count("routes.route.openshift.io"): "10",
        count("ingresses.extensions"): "10",
    })


def jobs_quota_hard() -> dict[str, Quantity]:
    """Hard limits of the ``for-<user>-jobs`` ClusterResourceQuota."""
    return _hard({
        count("daemonsets.apps"): "30",
        count("statefulsets.apps"): "30",
        count("jobs.batch"): "30",
        count("cronjobs.batch"): "30",
    })


def services_quota_hard() -> dict[str, Quantity]:
    """Hard limits of the ``for-<user>-services`` ClusterResourceQuota."""
    return _hard({count("services"): "30"})


def build_config_quota_hard() -> dict[str, Quantity]:
    """Hard limits of the ``for-<user>-bc`` ClusterResourceQuota."""
    return _hard({count("buildconfigs.build.openshift.io"): "30"})


def secrets_quota_hard() -> dict[str, Quantity]:
    """Hard limits of the ``for-<user>-secrets`` ClusterResourceQuota."""
    return _hard({count("secrets"): "100"})


def config_map_quota_hard() -> dict[str, Quantity]:
    """Hard limits of the ``for-<user>-cm`` ClusterResourceQuota."""
    return _hard({count("configmaps"): "100"})


def cluster_resource_quota_matches(
    user_name: str,
    tier_name: str,
    hard: Mapping[str, Any],
    actual: Mapping[str, Any],
) -> bool:
    """True when a ClusterResourceQuota resource carries the tier label and exactly this spec."""
    labels = (actual.get("metadata") or {}).get("labels")
    if labels is None or labels.get(TIER_LABEL_KEY) != tier_name:
        return False
    spec = actual.get("spec") or {}
    selector = spec.get("selector") or {}
    if selector.get("labels"):
        return False
    if (selector.get("annotations") or {}) != {REQUESTER_ANNOTATION_KEY: user_name}:
        return False
    quota = spec.get("quota") or {}
    if quota.get("scopes") or quota.get("scopeSelector"):
        return False
    actual_hard = quota.get("hard") or {}
    if set(actual_hard) != set(hard):
        return False
    try:
        return all(
            _as_quantity(actual_hard[key]) == _as_quantity(value) for key, value in hard.items()
        )
    except (ValueError, TypeError):
        return False


def idler_names(user_name: str, namespace_types: Iterable[str]) -> list[str]:
    """Names of the Idlers expected for the user's namespace types."""
    return [user_name if nt == "" else f"{user_name}-{nt}" for nt in namespace_types]