import pytest

from sandboxkit.expectations import (
    OWNER_LABEL_KEY,
    PROVIDER_LABEL_KEY,
    PROVIDER_LABEL_VALUE,
    REQUESTER_ANNOTATION_KEY,
    TIER_LABEL_KEY,
    compute_quota_hard,
    exec_pods_rules,
)
from sandboxkit.tierchecks import (
    AdvancedTierChecks,
    AppstudioTierChecks,
    Base1nsTierChecks,
    BaseTierChecks,
    ClusterObjectCheck,
    CustomTierChecks,
    NamespaceObjectCheck,
    TestTierChecks,
    checks_for_tier,
)

USER = "johnsmith"


def _by_name(checks):
    return {check.name: check for check in checks}


def _provider(extra=None):
    labels = {PROVIDER_LABEL_KEY: PROVIDER_LABEL_VALUE}
    labels.update(extra or {})
    return {"labels": labels}


@pytest.mark.parametrize(
    "tier,days",
    [
        ("base", 30),
        ("baselarge", 90),
        ("baseextended", 180),
        ("basedeactivationdisabled", 0),
        ("hackathon", 80),
        ("advanced", 0),
        ("appstudio", 30),
        ("baseextendedidling", 30),
        ("base1ns", 30),
    ],
)
def test_deactivation_timeout_days(tier, days):
    checks = checks_for_tier(tier)
    assert checks.tier_name == tier
    assert checks.deactivation_timeout_days() == days


@pytest.mark.parametrize(
    "tier,cls",
    [
        ("base", BaseTierChecks),
        ("base1ns", Base1nsTierChecks),
        ("advanced", AdvancedTierChecks),
        ("appstudio", AppstudioTierChecks),
        ("test", TestTierChecks),
    ],
)
def test_known_tier_classes(tier, cls):
    checks = checks_for_tier(tier)
    assert type(checks) is cls
    assert checks.tier_name == tier


def test_unknown_tier_raises():
    with pytest.raises(ValueError, match="no assertion implementation found for cheesecake"):
        checks_for_tier("cheesecake")


def test_test_tier_checks_nothing():
    checks = checks_for_tier("test")
    assert checks.namespace_object_checks("dev") == []
    assert checks.cluster_object_checks() == []
    assert checks.deactivation_timeout_days() is None
    assert checks.expected_namespace_types() == ("dev", "stage")


def test_expected_namespace_types():
    assert checks_for_tier("base").expected_namespace_types() == ("dev", "stage")
    assert checks_for_tier("base1ns").expected_namespace_types() == ("dev",)
    assert checks_for_tier("appstudio").expected_namespace_types() == ("appstudio",)


@pytest.mark.parametrize("tier", ["base", "base1ns", "advanced", "appstudio", "hackathon"])
@pytest.mark.parametrize("ns_type", ["dev", "stage", "appstudio"])
def test_counts_agree_with_listed_checks(tier, ns_type):
    checks = checks_for_tier(tier).namespace_object_checks(ns_type)
    counts = {c.name: c.expected for c in checks if c.kind == "count"}
    policies = [c for c in checks if c.kind.startswith("network_policy")]
    roles = [c for c in checks if c.kind == "role"]
    bindings = [c for c in checks if c.kind == "role_binding"]
    assert counts["NetworkPolicies"] == len(policies)
    assert counts["Roles"] == len(roles)
    assert counts["RoleBindings"] == len(bindings)


def test_base_other_namespace_kind():
    dev = _by_name(checks_for_tier("base").namespace_object_checks("dev"))
    stage = _by_name(checks_for_tier("base").namespace_object_checks("stage"))
    assert dev["allow-from-other-user-namespaces"].other_kinds == ("stage",)
    assert stage["allow-from-other-user-namespaces"].other_kinds == ("dev",)
    one_ns = _by_name(checks_for_tier("base1ns").namespace_object_checks("dev"))
    assert "allow-from-other-user-namespaces" not in one_ns


@pytest.mark.parametrize("tier", ["base", "advanced", "appstudio", "baselarge"])
def test_cluster_quota_count_agrees(tier):
    checks = checks_for_tier(tier).cluster_object_checks()
    quotas = [c for c in checks if c.kind == "cluster_resource_quota"]
    counts = [c for c in checks if c.kind == "count"]
    assert counts[0].name == "ClusterResourceQuotas"
    assert counts[0].expected == len(quotas)


def test_idler_settings_per_tier():
    def idler(tier):
        return next(c for c in checks_for_tier(tier).cluster_object_checks() if c.kind == "idlers")

    assert idler("base").timeout_seconds == 43200
    assert idler("base").namespace_types == ("dev", "stage")
    assert idler("base1ns").namespace_types == ("dev",)
    assert idler("baseextendedidling").timeout_seconds == 518400
    assert idler("advanced").timeout_seconds == 0
    assert idler("appstudio").namespace_types == ("",)


def test_compute_quota_memory_per_tier():
    def compute(tier):
        return _by_name(checks_for_tier(tier).cluster_object_checks())["for-{user}-compute"]

    assert compute("baselarge").expected == compute_quota_hard("20000m", "1750m", "16Gi", "15Gi")
    assert compute("base").expected == compute_quota_hard("20000m", "1750m", "7Gi", "15Gi")
    assert compute("advanced").expected == compute("baselarge").expected


def test_role_binding_check():
    check = _by_name(checks_for_tier("base").namespace_object_checks("dev"))["user-edit"]
    binding = {
        "metadata": _provider({OWNER_LABEL_KEY: USER}),
        "subjects": [{"kind": "User", "name": USER}],
        "roleRef": {"name": "edit", "kind": "ClusterRole", "apiGroup": "rbac.authorization.k8s.io"},
    }
    assert check(binding, USER) == []
    binding["roleRef"]["name"] = "view"
    assert len(check(binding, USER)) == 1
    assert check(None, USER) == ["role_binding 'user-edit' not found"]


def test_role_check():
    check = _by_name(checks_for_tier("base").namespace_object_checks("dev"))["exec-pods"]
    role = {
        "metadata": _provider({OWNER_LABEL_KEY: USER}),
        "rules": [
            {"apiGroups": list(r.api_groups), "resources": list(r.resources), "verbs": list(r.verbs)}
            for r in exec_pods_rules()
        ],
    }
    assert check(role, USER) == []
    assert check(role, "someoneelse")
    role["rules"][0]["verbs"] = ["get"]
    assert check(role, USER)


def test_limit_range_check_compares_quantities():
    check = _by_name(checks_for_tier("base").namespace_object_checks("dev"))["resource-limits"]
    limit_range = {
        "metadata": _provider(),
        "spec": {"limits": [{
            "type": "Container",
            "default": {"cpu": "1000m", "memory": "750Mi"},
            "defaultRequest": {"cpu": "10m", "memory": "64Mi"},
        }]},
    }
    assert check(limit_range, USER) == []
    limit_range["spec"]["limits"][0]["default"]["memory"] = "1Gi"
    assert check(limit_range, USER)


def test_network_policy_checks():
    checks = _by_name(checks_for_tier("base").namespace_object_checks("dev"))
    ingress = checks["allow-from-openshift-ingress"]
    policy = {
        "metadata": _provider(),
        "spec": {
            "ingress": [{"from": [{"namespaceSelector": {"matchLabels": {
                "network.openshift.io/policy-group": "ingress"}}}]}],
            "policyTypes": ["Ingress"],
        },
    }
    assert ingress(policy, USER) == []
    assert checks["allow-from-openshift-monitoring"](policy, USER)

    other = checks["allow-from-other-user-namespaces"]
    other_policy = {"spec": {
        "podSelector": {},
        "ingress": [{"from": [{"namespaceSelector": {"matchLabels": {"name": f"{USER}-stage"}}}]}],
        "policyTypes": ["Ingress"],
    }}
    assert other(other_policy, USER) == []
    assert other(other_policy, "anotheruser")


def test_count_check():
    check = NamespaceObjectCheck("count", "Roles", 2)
    assert check([{}, {}], USER) == []
    assert check(3, USER) == ["expected 2 Roles, found 3"]


def test_gitops_label_skipped_for_migration_namespaces():
    checks = checks_for_tier("appstudio").namespace_object_checks("appstudio")
    label_check = next(c for c in checks if c.kind == "namespace_labels")
    bare = {"metadata": {"labels": {}}}
    assert label_check(bare, USER, namespace_name=USER)
    assert label_check(bare, USER, namespace_name="migration-abc") == []
    labelled = {"metadata": {"labels": {"argocd.argoproj.io/managed-by": "gitops-service-argocd"}}}
    assert label_check(labelled, USER, namespace_name=USER) == []


def test_sa_read_binding_uses_member_namespace():
    checks = _by_name(checks_for_tier("appstudio").namespace_object_checks("appstudio"))
    check = checks["member-operator-sa-read"]
    binding = {
        "metadata": _provider(),
        "subjects": [{"kind": "Group", "name": "system:serviceaccounts:member-ns",
                      "apiGroup": "rbac.authorization.k8s.io"}],
        "roleRef": {"name": "toolchain-sa-read", "kind": "Role",
                    "apiGroup": "rbac.authorization.k8s.io"},
    }
    assert check(binding, USER, member_namespace="member-ns") == []
    assert check(binding, USER, member_namespace="other-ns")


def test_cluster_quota_check():
    check = _by_name(checks_for_tier("base").cluster_object_checks())["for-{user}-secrets"]
    quota = {
        "metadata": {"labels": {TIER_LABEL_KEY: "base"}},
        "spec": {
            "selector": {"annotations": {REQUESTER_ANNOTATION_KEY: USER}},
            "quota": {"hard": {"count/secrets": "100"}},
        },
    }
    assert check(quota, USER, "base") == []
    assert check(quota, USER, "advanced")
    assert check(None, USER, "base")


def test_idlers_check():
    check = ClusterObjectCheck("idlers", "idlers", namespace_types=("dev", "stage"),
                               timeout_seconds=43200)

    def idler(name):
        return {
            "metadata": {"name": name, "labels": {OWNER_LABEL_KEY: USER, TIER_LABEL_KEY: "base"}},
            "spec": {"timeoutSeconds": 43200},
        }

    idlers = [idler(f"{USER}-dev"), idler(f"{USER}-stage")]
    assert check(idlers, USER, "base") == []
    assert check(idlers[:1], USER, "base")
    assert check(idlers + [idler("extra")], USER, "base")


def test_custom_tier_combines_other_tiers():
    custom = CustomTierChecks("cookie", 42, "advanced", "baseextendedidling")
    assert custom.tier_name == "cookie"
    assert custom.deactivation_timeout_days() == 42
    assert custom.namespace_object_checks("dev") == checks_for_tier(
        "advanced").namespace_object_checks("dev")
    assert custom.cluster_object_checks() == checks_for_tier(
        "baseextendedidling").cluster_object_checks()
    assert custom.expected_namespace_types() == ("dev", "stage")


def test_custom_tier_with_unknown_source_tier():
    with pytest.raises(ValueError, match="no assertion implementation found for nosuchtier"):
        CustomTierChecks("cookie", 30, "nosuchtier", "base")