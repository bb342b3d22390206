"""Per-tier expectations on the namespace and cluster resources provisioned for a user."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Mapping, Sized
from dataclasses import dataclass
from typing import Any

from sandboxkit.expectations import (
    APPSTUDIO_USER_ACTIONS_ROLE_BINDING,
    APPSTUDIO_VIEW_ROLE_BINDING,
    CRTADMIN_PODS_ROLE_BINDING,
    CRTADMIN_VIEW_ROLE_BINDING,
    NETWORK_POLICY_INGRESS_LABELS,
    OWNER_LABEL_KEY,
    PROVIDER_LABEL_KEY,
    PROVIDER_LABEL_VALUE,
    RBAC_EDIT_ROLE_BINDING,
    TIER_LABEL_KEY,
    USER_EDIT_ROLE_BINDING,
    USER_SA_READ_ROLE_BINDING,
    PolicyRule,
    RoleBindingExpectation,
    _as_quantity,
    appstudio_user_actions_rules,
    build_config_quota_hard,
    cluster_resource_quota_matches,
    compute_quota_hard,
    config_map_quota_hard,
    deployments_quota_hard,
    exec_pods_rules,
    idler_names,
    jobs_quota_hard,
    limit_range_spec,
    network_policy_ingress_spec,
    network_policy_other_namespaces_spec,
    network_policy_same_namespace_spec,
    rbac_edit_rules,
    replicas_quota_hard,
    routes_quota_hard,
    secrets_quota_hard,
    services_quota_hard,
    toolchain_sa_read_rules,
)

# tier names
ADVANCED = "advanced"
APPSTUDIO = "appstudio"
BASE = "base"
BASE1NS = "base1ns"
BASEDEACTIVATIONDISABLED = "basedeactivationdisabled"
BASEEXTENDED = "baseextended"
BASEEXTENDEDIDLING = "baseextendedidling"
BASELARGE = "baselarge"
HACKATHON = "hackathon"
TEST_TIER = "test"

DEFAULT_CPU_LIMIT = "1"
CPU_LIMIT = "20000m"
EXPECTED_CLUSTER_RESOURCE_QUOTAS = 9

# check kinds
ROLE_BINDING = "role_binding"
ROLE = "role"
LIMIT_RANGE = "limit_range"
NETWORK_POLICY = "network_policy"
NETWORK_POLICY_OTHER_NAMESPACES = "network_policy_other_namespaces"
RESOURCE_COUNT = "count"
SERVICE_ACCOUNT = "service_account"
NAMESPACE_LABELS = "namespace_labels"
CLUSTER_RESOURCE_QUOTA = "cluster_resource_quota"
IDLERS = "idlers"

GITOPS_MANAGED_BY_LABELS = {"argocd.argoproj.io/managed-by": "gitops-service-argocd"}


def _labels(resource: Mapping[str, Any]) -> Mapping[str, str]:
    return (resource.get("metadata") or {}).get("labels") or {}


def _count_of(actual: Any) -> int:
    return actual if isinstance(actual, int) else len(actual) if isinstance(actual, Sized) else 0


def _count_mismatch(what: str, expected: int, actual: Any) -> list[str]:
    found = _count_of(actual)
    if found != expected:
        return [f"expected {expected} {what}, found {found}"]
    return []


def _provider_mismatch(resource: Mapping[str, Any]) -> list[str]:
    actual = _labels(resource).get(PROVIDER_LABEL_KEY)
    if actual != PROVIDER_LABEL_VALUE:
        return [f"provider label: expected {PROVIDER_LABEL_VALUE!r}, got {actual!r}"]
    return []


def _normalized_limit_spec(spec: Mapping[str, Any]) -> dict[str, Any]:
    limits = []
    for item in spec.get("limits") or []:
        limits.append({
            key: {name: _as_quantity(q) for name, q in value.items()}
            if isinstance(value, Mapping) else value
            for key, value in item.items()
        })
    return {**spec, "limits": limits}


def _normalized_policy_spec(spec: Mapping[str, Any]) -> dict[str, Any]:
    normalized = dict(spec)
    normalized.setdefault("podSelector", {})
    return normalized


@dataclass(frozen=True)
class NamespaceObjectCheck:
    """An expectation on one kind of object inside a user namespace.

    ``name`` may hold a ``{user}`` placeholder. Calling the check with the
    actual object (or the listed objects, for counts) returns the mismatches.
    """

    kind: str
    name: str
    expected: Any = None
    check_owner: bool = True
    other_kinds: tuple[str, ...] = ()

    def __call__(
        self,
        actual: Any,
        user_name: str,
        namespace_name: str = "",
        member_namespace: str = "",
    ) -> list[str]:
        if self.kind == RESOURCE_COUNT:
            return _count_mismatch(self.name, self.expected, actual)
        if self.kind == NAMESPACE_LABELS:
            if namespace_name.startswith("migration-"):
                return []
            labels = _labels(actual or {})
            return [
                f"namespace label {key}: expected {value!r}, got {labels.get(key)!r}"
                for key, value in self.expected.items()
                if labels.get(key) != value
            ]
        resource_name = self.name.format(user=user_name)
        if actual is None:
            return [f"{self.kind} '{resource_name}' not found"]
        if self.kind == SERVICE_ACCOUNT:
            return []
        if self.kind == ROLE_BINDING:
            expectation: RoleBindingExpectation = self.expected
            return expectation.mismatches(actual, user_name, member_namespace)
        if self.kind == ROLE:
            return self._role_mismatches(actual, user_name)
        if self.kind == LIMIT_RANGE:
            problems = _provider_mismatch(actual)
            if _normalized_limit_spec(actual.get("spec") or {}) != self.expected:
                problems.append(f"limit range '{resource_name}' spec differs")
            return problems
        if self.kind == NETWORK_POLICY:
            problems = _provider_mismatch(actual)
            if _normalized_policy_spec(actual.get("spec") or {}) != self.expected:
                problems.append(f"network policy '{resource_name}' spec differs")
            return problems
        if self.kind == NETWORK_POLICY_OTHER_NAMESPACES:
            expected = network_policy_other_namespaces_spec(user_name, *self.other_kinds)
            if _normalized_policy_spec(actual.get("spec") or {}) != expected:
                return [f"network policy '{resource_name}' spec differs"]
            return []
        raise ValueError(f"unknown namespace check kind: {self.kind}")

    def _role_mismatches(self, actual: Mapping[str, Any], user_name: str) -> list[str]:
        problems = []
        rules = tuple(
            PolicyRule(
                tuple(rule.get("apiGroups") or ()),
                tuple(rule.get("resources") or ()),
                tuple(rule.get("verbs") or ()),
            )
            for rule in actual.get("rules") or ()
        )
        if rules != self.expected:
            problems.append(f"role '{self.name}': rules differ")
        problems.extend(_provider_mismatch(actual))
        owner = _labels(actual).get(OWNER_LABEL_KEY)
        if self.check_owner and owner != user_name:
            problems.append(f"owner label: expected {user_name!r}, got {owner!r}")
        return problems


@dataclass(frozen=True)
class ClusterObjectCheck:
    """An expectation on cluster-scoped objects provisioned for a user.

    Called with the actual quota, the listed quotas (for counts) or the
    listed idlers, it returns the mismatches.
    """

    kind: str
    name: str
    expected: Any = None
    namespace_types: tuple[str, ...] = ()
    timeout_seconds: int = 0

    def __call__(self, actual: Any, user_name: str, tier_name: str) -> list[str]:
        if self.kind == RESOURCE_COUNT:
            return _count_mismatch(self.name, self.expected, actual)
        if self.kind == CLUSTER_RESOURCE_QUOTA:
            if actual is None or not cluster_resource_quota_matches(
                user_name, tier_name, self.expected, actual
            ):
                return [
                    f"expected ClusterResourceQuota "
                    f"'{self.name.format(user=user_name)}' to match for {user_name}/{tier_name}"
                ]
            return []
        if self.kind == IDLERS:
            return self._idler_mismatches(list(actual or ()), user_name, tier_name)
        raise ValueError(f"unknown cluster check kind: {self.kind}")

    def _idler_mismatches(
        self, idlers: list[Mapping[str, Any]], user_name: str, tier_name: str
    ) -> list[str]:
        by_name = {(idler.get("metadata") or {}).get("name"): idler for idler in idlers}
        problems = []
        for name in idler_names(user_name, self.namespace_types):
            idler = by_name.get(name)
            if idler is None:
                problems.append(f"idler '{name}' not found")
                continue
            labels = _labels(idler)
            if labels.get(TIER_LABEL_KEY) != tier_name:
                problems.append(f"idler '{name}': expected tier {tier_name!r}")
            timeout = (idler.get("spec") or {}).get("timeoutSeconds", 0)
            if timeout != self.timeout_seconds:
                problems.append(
                    f"idler '{name}': expected timeout {self.timeout_seconds}, got {timeout}"
                )
            if labels.get(OWNER_LABEL_KEY) != user_name:
                problems.append(f"idler '{name}': expected owner {user_name!r}")
        problems.extend(_count_mismatch("Idlers", len(self.namespace_types), idlers))
        return problems


def _role_binding(expectation: RoleBindingExpectation) -> NamespaceObjectCheck:
    return NamespaceObjectCheck(ROLE_BINDING, expectation.name, expectation)


def _role(name: str, rules: list[PolicyRule], check_owner: bool = True) -> NamespaceObjectCheck:
    return NamespaceObjectCheck(ROLE, name, tuple(rules), check_owner=check_owner)


def _count(what: str, number: int) -> NamespaceObjectCheck:
    return NamespaceObjectCheck(RESOURCE_COUNT, what, number)


def _limit_range() -> NamespaceObjectCheck:
    spec = limit_range_spec(DEFAULT_CPU_LIMIT, "750Mi", "10m", "64Mi")
    return NamespaceObjectCheck(LIMIT_RANGE, "resource-limits", spec, check_owner=False)


def _network_policy(name: str) -> NamespaceObjectCheck:
    spec = network_policy_ingress_spec(*NETWORK_POLICY_INGRESS_LABELS[name])
    return NamespaceObjectCheck(NETWORK_POLICY, name, spec, check_owner=False)


def _other_namespaces_policy(*other_kinds: str) -> NamespaceObjectCheck:
    return NamespaceObjectCheck(
        NETWORK_POLICY_OTHER_NAMESPACES,
        "allow-from-other-user-namespaces",
        check_owner=False,
        other_kinds=other_kinds,
    )


def _common_network_policy_checks() -> list[NamespaceObjectCheck]:
    return [
        NamespaceObjectCheck(
            NETWORK_POLICY, "allow-same-namespace",
            network_policy_same_namespace_spec(), check_owner=False,
        ),
        _network_policy("allow-from-openshift-monitoring"),
        _network_policy("allow-from-openshift-ingress"),
        _network_policy("allow-from-olm-namespaces"),
        _network_policy("allow-from-console-namespaces"),
    ]


def _crw_policy() -> NamespaceObjectCheck:
    return _network_policy("allow-from-codeready-workspaces-operator")


def _base_namespace_checks() -> list[NamespaceObjectCheck]:
    return [
        _role_binding(USER_EDIT_ROLE_BINDING),
        _count("LimitRanges", 1),
        _limit_range(),
        _role_binding(RBAC_EDIT_ROLE_BINDING),
        _role("rbac-edit", rbac_edit_rules()),
        _role_binding(CRTADMIN_PODS_ROLE_BINDING),
        _role_binding(CRTADMIN_VIEW_ROLE_BINDING),
        _role("exec-pods", exec_pods_rules()),
        _count("Roles", 2),
        _count("RoleBindings", 4),
        *_common_network_policy_checks(),
    ]


def _quota(suffix: str, hard: dict[str, Any]) -> ClusterObjectCheck:
    return ClusterObjectCheck(CLUSTER_RESOURCE_QUOTA, f"for-{{user}}-{suffix}", hard)


def _cluster_checks(
    memory_limit: str, idle_timeout: int, namespace_types: tuple[str, ...]
) -> list[ClusterObjectCheck]:
    return [
        _quota("compute", compute_quota_hard(CPU_LIMIT, "1750m", memory_limit, "15Gi")),
        _quota("deployments", deployments_quota_hard()),
        _quota("replicas", replicas_quota_hard()),
        _quota("routes", routes_quota_hard()),
        _quota("jobs", jobs_quota_hard()),
        _quota("services", services_quota_hard()),
        _quota("bc", build_config_quota_hard()),
        _quota("secrets", secrets_quota_hard()),
        _quota("cm", config_map_quota_hard()),
        ClusterObjectCheck(
            RESOURCE_COUNT, "ClusterResourceQuotas", EXPECTED_CLUSTER_RESOURCE_QUOTAS
        ),
        ClusterObjectCheck(
            IDLERS, "idlers", namespace_types=namespace_types, timeout_seconds=idle_timeout
        ),
    ]


class TierChecks(ABC):
    """What a tier is expected to provision."""

    def __init__(self, tier_name: str) -> None:
        self.tier_name = tier_name

    @abstractmethod
    def namespace_object_checks(self, ns_type: str) -> list[NamespaceObjectCheck]:
        """Checks on the objects of a namespace of the given type."""

    @abstractmethod
    def cluster_object_checks(self) -> list[ClusterObjectCheck]:
        """Checks on the cluster-scoped objects."""

    @abstractmethod
    def deactivation_timeout_days(self) -> int | None:
        """Expected deactivation timeout of the tier, or None when not checked."""

    @abstractmethod
    def expected_namespace_types(self) -> tuple[str, ...]:
        """The namespace types the tier's template refs must cover."""


class BaseTierChecks(TierChecks):
    """Checks for the ``base`` tier, and the defaults of the tiers derived from it."""

    _deactivation_days: int = 30
    _memory_limit: str = "7Gi"
    _idle_timeout: int = 43200

    def deactivation_timeout_days(self) -> int | None:
        return self._deactivation_days

    def expected_namespace_types(self) -> tuple[str, ...]:
        return ("dev", "stage")

    def namespace_object_checks(self, ns_type: str) -> list[NamespaceObjectCheck]:
        other = {"dev": "stage", "stage": "dev"}.get(ns_type, "")
        return [
            *_base_namespace_checks(),
            _crw_policy(),
            _other_namespaces_policy(other),
            _count("NetworkPolicies", 7),
        ]

    def cluster_object_checks(self) -> list[ClusterObjectCheck]:
        return _cluster_checks(
            self._memory_limit, self._idle_timeout, self.expected_namespace_types()
        )


class Base1nsTierChecks(BaseTierChecks):
    """Checks for the single-namespace ``base1ns`` tier."""

    def expected_namespace_types(self) -> tuple[str, ...]:
        return ("dev",)

    def namespace_object_checks(self, ns_type: str) -> list[NamespaceObjectCheck]:
        return [*_base_namespace_checks(), _crw_policy(), _count("NetworkPolicies", 6)]


class BaselargeTierChecks(BaseTierChecks):
    """Checks for the ``baselarge`` tier."""

    _deactivation_days = 90
    _memory_limit = "16Gi"


class BaseextendedTierChecks(BaseTierChecks):
    """Checks for the ``baseextended`` tier."""

    _deactivation_days = 180


class BaseextendedidlingTierChecks(BaseTierChecks):
    """Checks for the ``baseextendedidling`` tier."""

    _idle_timeout = 518400


class BasedeactivationdisabledTierChecks(BaseTierChecks):
    """Checks for the ``basedeactivationdisabled`` tier."""

    _deactivation_days = 0


class HackathonTierChecks(BaseTierChecks):
    """Checks for the ``hackathon`` tier."""

    _deactivation_days = 80


class AdvancedTierChecks(BaseTierChecks):
    """Checks for the ``advanced`` tier."""

    _deactivation_days = 0
    _memory_limit = "16Gi"
    _idle_timeout = 0


class AppstudioTierChecks(TierChecks):
    """Checks for the ``appstudio`` tier."""

    def deactivation_timeout_days(self) -> int | None:
        return 30

    def expected_namespace_types(self) -> tuple[str, ...]:
        return ("appstudio",)

    def namespace_object_checks(self, ns_type: str) -> list[NamespaceObjectCheck]:
        return [
            _limit_range(),
            NamespaceObjectCheck(SERVICE_ACCOUNT, "appstudio-{user}"),
            _role("appstudio-user-actions", appstudio_user_actions_rules(), check_owner=False),
            _role_binding(APPSTUDIO_USER_ACTIONS_ROLE_BINDING),
            _role_binding(APPSTUDIO_VIEW_ROLE_BINDING),
            _role("toolchain-sa-read", toolchain_sa_read_rules(), check_owner=False),
            _role_binding(USER_SA_READ_ROLE_BINDING),
            _count("LimitRanges", 1),
            _count("Roles", 2),
            _count("RoleBindings", 3),
            _count("ServiceAccounts", 1),
            NamespaceObjectCheck(NAMESPACE_LABELS, "", dict(GITOPS_MANAGED_BY_LABELS)),
            *_common_network_policy_checks(),
            _crw_policy(),
            _count("NetworkPolicies", 6),
        ]

    def cluster_object_checks(self) -> list[ClusterObjectCheck]:
        return _cluster_checks("7Gi", 43200, ("",))


class TestTierChecks(TierChecks):
    """The ``test`` tier: only its template refs are checked, not its resources."""

    __test__ = False

    def deactivation_timeout_days(self) -> int | None:
        return None

    def expected_namespace_types(self) -> tuple[str, ...]:
        return ("dev", "stage")

    def namespace_object_checks(self, ns_type: str) -> list[NamespaceObjectCheck]:
        return []

    def cluster_object_checks(self) -> list[ClusterObjectCheck]:
        return []


_TIER_CHECKS: dict[str, type[TierChecks]] = {
    BASE: BaseTierChecks,
    BASE1NS: Base1nsTierChecks,
    BASELARGE: BaselargeTierChecks,
    BASEEXTENDED: BaseextendedTierChecks,
    BASEEXTENDEDIDLING: BaseextendedidlingTierChecks,
    BASEDEACTIVATIONDISABLED: BasedeactivationdisabledTierChecks,
    HACKATHON: HackathonTierChecks,
    ADVANCED: AdvancedTierChecks,
    APPSTUDIO: AppstudioTierChecks,
    TEST_TIER: TestTierChecks,
}


def checks_for_tier(tier_name: str) -> TierChecks:
    """Return the checks of a known tier; raise ValueError for any other."""
    try:
        checks_class = _TIER_CHECKS[tier_name]
    except KeyError:
        raise ValueError(f"no assertion implementation found for {tier_name}") from None
    return checks_class(tier_name)


class CustomTierChecks(TierChecks):
    """Checks for a tier assembled from the resources of other tiers."""

    def __init__(
        self,
        name: str,
        deactivation_timeout_days: int,
        namespace_resources_tier: str,
        cluster_resources_tier: str,
    ) -> None:
        super().__init__(name)
        self._deactivation_days = deactivation_timeout_days
        self._namespace_checks = checks_for_tier(namespace_resources_tier)
        self._cluster_checks = checks_for_tier(cluster_resources_tier)

    def namespace_object_checks(self, ns_type: str) -> list[NamespaceObjectCheck]:
        return self._namespace_checks.namespace_object_checks(ns_type)

    def cluster_object_checks(self) -> list[ClusterObjectCheck]:
        return self._cluster_checks.cluster_object_checks()

    def deactivation_timeout_days(self) -> int | None:
        return self._deactivation_days

    def expected_namespace_types(self) -> tuple[str, ...]:
        return self._namespace_checks.expected_namespace_types()