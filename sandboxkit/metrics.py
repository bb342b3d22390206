"""Reading single values out of a Prometheus text exposition."""

from __future__ import annotations

import re
import ssl
import urllib.request
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

_SUPPORTED_TYPES = ("counter", "gauge", "untyped")
_GROUPED_TYPES = ("summary", "histogram")
_GROUPING_LABELS = ("quantile", "le")
_GROUPED_SUFFIXES = ("_sum", "_count", "_bucket")

_SAMPLE_RE = re.compile(
    r"^(?P<name>[a-zA-Z_:][a-zA-Z0-9_:]*)\s*(?P<labels>\{.*\})?\s*"
    r"(?P<value>\S+)(?:\s+(?P<timestamp>-?\d+))?\s*$"
)
_LABEL_RE = re.compile(
    r'\s*(?P<key>[a-zA-Z_][a-zA-Z0-9_]*)\s*=\s*"(?P<value>(?:[^"\\]|\\.)*)"\s*(?:,|$)'
)
_ESCAPES = {"\\": "\\", '"': '"', "n": "\n"}


class MetricNotFoundError(LookupError):
    """No metric of the family carries the expected labels."""


class UnsupportedMetricTypeError(ValueError):
    """The metric family has a type whose value cannot be read as one number."""


@dataclass
class Metric:
    """One sample (or one grouped summary/histogram) with its labels."""

    labels: dict[str, str] = field(default_factory=dict)
    value: float | None = None


@dataclass
class MetricFamily:
    """All metrics that share a name, with their declared type."""

    name: str
    type: str = "untyped"
    help: str = ""
    metrics: list[Metric] = field(default_factory=list)


def _unescape(text: str) -> str:
    return re.sub(r"\\(.)", lambda m: _ESCAPES.get(m.group(1), "\\" + m.group(1)), text)


def _parse_labels(text: str) -> dict[str, str]:
    inner = text[1:-1].strip()
    labels: dict[str, str] = {}
    pos = 0
    while pos < len(inner):
        match = _LABEL_RE.match(inner, pos)
        if match is None:
            raise ValueError(f"invalid label set: {text}")
        labels[match.group("key")] = _unescape(match.group("value"))
        pos = match.end()
    return labels


def _family_for(name: str, families: dict[str, MetricFamily]) -> MetricFamily:
    if name in families:
        return families[name]
    for suffix in _GROUPED_SUFFIXES:
        if name.endswith(suffix):
            base = families.get(name[: -len(suffix)])
            if base is not None and base.type in _GROUPED_TYPES:
                return base
    family = MetricFamily(name=name)
    families[name] = family
    return family


def _parse_comment(line: str, families: dict[str, MetricFamily]) -> None:
    parts = line[1:].strip().split(None, 2)
    if len(parts) < 2 or parts[0] not in ("HELP", "TYPE"):
        return
    keyword, name = parts[0], parts[1]
    rest = parts[2] if len(parts) > 2 else ""
    family = families.setdefault(name, MetricFamily(name=name))
    if keyword == "HELP":
        family.help = _unescape(rest)
        return
    metric_type = rest.strip().lower()
    if metric_type not in _SUPPORTED_TYPES + _GROUPED_TYPES:
        raise ValueError(f"unknown metric type {rest!r} for {name}")
    family.type = metric_type


def parse_metric_families(text: str) -> dict[str, MetricFamily]:
    """Parse the Prometheus text format into families keyed by name."""
    families: dict[str, MetricFamily] = {}
    for number, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line:
            continue
        if line.startswith("#"):
            _parse_comment(line, families)
            continue
        match = _SAMPLE_RE.match(line)
        if match is None:
            raise ValueError(f"line {number}: invalid sample: {raw!r}")
        try:
            value = float(match.group("value"))
        except ValueError:
            raise ValueError(f"line {number}: invalid value {match.group('value')!r}") from None
        labels = _parse_labels(match.group("labels")) if match.group("labels") else {}
        family = _family_for(match.group("name"), families)
        if family.type in _GROUPED_TYPES:
            group = {k: v for k, v in labels.items() if k not in _GROUPING_LABELS}
            if not any(m.labels == group for m in family.metrics):
                family.metrics.append(Metric(labels=group))
        else:
            family.metrics.append(Metric(labels=labels, value=value))
    return families


def _check_label_pairs(expected_labels: Sequence[str]) -> None:
    if len(expected_labels) % 2 != 0:
        raise ValueError(
            "received odd number of label arguments, labels must be key-value pairs"
        )


def _value_of(family: MetricFamily, metric: Metric) -> float:
    if family.type not in _SUPPORTED_TYPES or metric.value is None:
        raise UnsupportedMetricTypeError(
            f"unknown or unsupported metric type {family.type.upper()}"
        )
    return metric.value


def metric_value(
    families: Mapping[str, MetricFamily], family: str, expected_labels: Sequence[str]
) -> float:
    """Return the value of the metric in ``family`` carrying the given key/value labels."""
    _check_label_pairs(expected_labels)
    expected = list(expected_labels)
    found = families.get(family)
    if found is not None:
        if len(found.metrics) == 1 and not expected:
            return _value_of(found, found.metrics[0])
        pairs = list(zip(expected[::2], expected[1::2]))
        for metric in found.metrics:
            if len(metric.labels) != len(pairs):
                continue
            if all(metric.labels.get(key) == value for key, value in pairs):
                return _value_of(found, metric)
    shown = "[" + " ".join(expected) + "]"
    raise MetricNotFoundError(f"metric '{family}{{{shown}}}' not found")


def get_metric_value(
    bearer_token: str, url: str, family: str, expected_labels: Sequence[str]
) -> float:
    """Fetch ``https://<url>/metrics`` and return the value of one metric."""
    _check_label_pairs(expected_labels)
    request = urllib.request.Request(f"https://{url}/metrics", method="GET")
    request.add_header("Authorization", f"Bearer {bearer_token}")
    context = ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    with urllib.request.urlopen(request, timeout=10, context=context) as response:
        body = response.read()
    families = parse_metric_families(body.decode("utf-8"))
    return metric_value(families, family, expected_labels)