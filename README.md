# sandboxkit

Building blocks for end-to-end verification of a multi-cluster developer
sandbox: reading values out of Prometheus metrics, describing spaces and
space bindings, comparing NSTemplateTier template references, and knowing
which objects each tier is expected to provision.

The package has no dependencies beyond the standard library.

## Install

```
pip install sandboxkit
pip install "sandboxkit[test]"   # adds pytest, to run the test suite
```

## Metrics (`sandboxkit.metrics`)

```python
from sandboxkit.metrics import parse_metric_families, metric_value

families = parse_metric_families(text)   # Prometheus text exposition format
metric_value(families, "sandbox_user_signups_total", [])
metric_value(families, "workqueue_depth", ["name", "usersignup-controller"])
metric_value(families, "controller_runtime_reconcile_total",
             ["controller", "usersignup-controller", "result", "success"])
```

`parse_metric_families` returns a dict of `MetricFamily` objects (name,
type, help, list of `Metric` with labels and value). Summary and histogram
samples are grouped into one metric per label set, without a value.

`metric_value` takes the expected labels as a flat key/value list. A metric
matches when it has exactly those labels; a family with a single metric
matches an empty label list.

- an odd number of label arguments raises `ValueError`;
- no matching metric raises `MetricNotFoundError`, e.g.
  `metric 'workqueue_depth{[name other]}' not found`;
- a summary or histogram raises `UnsupportedMetricTypeError`.

`get_metric_value(bearer_token, url, family, expected_labels)` fetches
`https://<url>/metrics` with an `Authorization: Bearer <token>` header
(certificate verification off, 10 second timeout) and performs the same
lookup.

## Cluster handles (`sandboxkit.awaitilities`)

```python
from sandboxkit.awaitilities import Awaitilities

clusters = Awaitilities(host, member_a, member_b)
clusters.host
clusters.member1(), clusters.member2(), clusters.all_members()
```

The handles are stored as given; any object will do.

## Spaces and bindings (`sandboxkit.resources`)

```python
from sandboxkit.resources import (
    new_space, with_name, with_tier_name, with_tier_name_and_hash_label,
    with_target_cluster, new_space_binding,
)

space = new_space("toolchain-host", "TestCreateSpace", with_tier_name("base"))
space.generate_name            # "testcreatespace-"
binding = new_space_binding("johnsmith", space, "admin")
```

- `space_name_prefix` lower-cases a test name, drops every character other
  than `a-z`, `0-9` and `-`, and keeps at most 50 characters.
- `with_target_cluster(member)` reads `member.cluster_name`.
- `with_name` sets a fixed name and clears the generated-name prefix.
- `tier_hash_label_key("base")` gives
  `toolchain.dev.openshift.com/base-tier-hash`;
  `has_single_tier_hash_label(labels)` is true when at most one such key is
  present.
- `new_space_binding` builds a `SpaceBinding` with a generated-name prefix
  of `<mur>-<space>` (capped at 50 characters) and the MUR and space labels.
- `generate_name(prefix)` appends a random UUID.

## Template references (`sandboxkit.templaterefs`)

`template_refs_for_tier(tier)` collects the namespace and cluster-resources
template refs from an NSTemplateTier given as a resource mapping.
`TemplateRefs.matches(cluster_resources, namespaces)` is true when both sides
have a cluster-resources ref, the refs are equal and the namespace refs are
the same in any order.

## Tier setup and status (`sandboxkit.tiersetup`, `sandboxkit.status`)

- `new_change_tier_request(namespace, mur_name, tier)` returns a
  `ChangeTierRequest` with the `changetierrequest-` name prefix.
- `duplicate_template_name(tier_name, template_name)` gives
  `<tier>from<template>`.
- `verify_increase_of_user_account_count(previous, current, member, increase)`
  compares `MemberStatus` lists and raises `AssertionError` when the count
  did not grow by `increase` (a member absent before counts from zero) or
  when the member is missing; otherwise it returns the current status.

## Tier expectations (`sandboxkit.tierchecks`, `sandboxkit.expectations`)

```python
from sandboxkit.tierchecks import checks_for_tier, CustomTierChecks

checks = checks_for_tier("base")
checks.deactivation_timeout_days()      # 30
checks.expected_namespace_types()       # ("dev", "stage")
checks.namespace_object_checks("dev")   # list of NamespaceObjectCheck
checks.cluster_object_checks()          # list of ClusterObjectCheck
```

Known tiers: `base`, `base1ns`, `baselarge`, `baseextended`,
`baseextendedidling`, `basedeactivationdisabled`, `hackathon`, `advanced`,
`appstudio` and `test`; any other name raises `ValueError`.
`CustomTierChecks(name, deactivation_days, namespace_tier, cluster_tier)`
combines the namespace checks of one tier with the cluster checks of another.

Each check is a callable. Give it the actual object as a resource mapping
(or the listed objects, for count checks) plus the user name, and it returns
a list of mismatch descriptions, empty when everything matches.

`sandboxkit.expectations` holds the expected data on its own: role rules
(`exec_pods_rules`, `rbac_edit_rules`, `toolchain_sa_read_rules`,
`appstudio_user_actions_rules`), `RoleBindingExpectation`,
`limit_range_spec`, the network policy specs, the `*_quota_hard` limits of
each ClusterResourceQuota (quantities such as `750Mi` parsed to exact
numbers), `cluster_resource_quota_matches`, `count` and `idler_names`.

## What it does not do

There is no cluster client here. The package does not create, update,
delete or wait for resources, and has no command-line tool: the caller
fetches objects from the cluster and passes them in as mappings. The only
network access is the single HTTPS request in `get_metric_value`.