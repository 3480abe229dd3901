"""
Constraint model: turns a raw solve request into a validated ``Problem``.

Nothing in here allocates. Candidates that fail a global filter are moved to
``Problem.excluded`` together with the facets they failed, so they can be
reported without ever counting as unseated.
"""

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple

from onboarding_allocator.solver.errors import NoCapacityError, ValidationError

FOCUSES = ("acting", "tech", "both")
GROUP_DOMAINS = ("acting", "tech")
EXPERIENCE_LEVELS = ("experienced", "newcomer")

# Wire (camelCase) key -> attribute name
_CANDIDATE_KEYS = {
    "ageBucket": "age_bucket",
    "documentStatus": "document_status",
}
_FILTER_KEYS = {
    "focuses": "focuses",
    "ageBuckets": "age_buckets",
    "age_buckets": "age_buckets",
    "backgrounds": "backgrounds",
    "documentStatuses": "document_statuses",
    "document_statuses": "document_statuses",
}


def _normalize_background(value):
    if value is None:
        return None
    return str(value).strip().lower()


@dataclass(frozen=True)
class Candidate:
    id: str
    focus: str
    age_bucket: Optional[str] = None
    background: Optional[str] = None
    document_status: str = "missing"
    gender: str = "unknown"
    experience: str = "newcomer"

    def __post_init__(self):
        if not self.id:
            raise ValidationError("Candidate id must not be empty.")
        if self.focus not in FOCUSES:
            raise ValidationError(f"Candidate {self.id}: unknown focus '{self.focus}'.")
        if self.experience not in EXPERIENCE_LEVELS:
            raise ValidationError(f"Candidate {self.id}: unknown experience '{self.experience}'.")

    @classmethod
    def from_dict(cls, data):
        kwargs = {}
        for key, value in data.items():
            name = _CANDIDATE_KEYS.get(key, key)
            if name in cls.__dataclass_fields__:
                kwargs[name] = value
        if "id" not in kwargs or "focus" not in kwargs:
            raise ValidationError(f"Candidate record needs 'id' and 'focus': {data!r}")
        kwargs["id"] = str(kwargs["id"])
        if kwargs.get("gender") is None:
            kwargs.pop("gender", None)
        if kwargs.get("document_status") is None:
            kwargs.pop("document_status", None)
        if kwargs.get("experience") is None:
            kwargs.pop("experience", None)
        return cls(**kwargs)

    def to_dict(self):
        return {
            "id": self.id,
            "focus": self.focus,
            "ageBucket": self.age_bucket,
            "background": self.background,
            "documentStatus": self.document_status,
            "gender": self.gender,
            "experience": self.experience,
        }


@dataclass(frozen=True)
class Filters:
    """
    Hard eligibility predicates. ``None`` on a facet means the facet is not
    filtered; an empty frozenset means nobody passes it.
    """
    focuses: Optional[FrozenSet[str]] = None
    age_buckets: Optional[FrozenSet[str]] = None
    backgrounds: Optional[FrozenSet[str]] = None
    document_statuses: Optional[FrozenSet[str]] = None

    @classmethod
    def from_payload(cls, payload):
        if payload is None:
            return cls()
        if isinstance(payload, Filters):
            return payload
        if not isinstance(payload, Mapping):
            raise ValidationError("Filters must be an object of facet lists.")

        values = {}
        for key, raw in payload.items():
            name = _FILTER_KEYS.get(key)
            if name is None:
                raise ValidationError(f"Unknown filter facet '{key}'.")
            if raw is None:
                continue
            if isinstance(raw, str):
                raise ValidationError(f"Filter '{key}' must be a list, not a string.")
            if not isinstance(raw, (list, tuple, set, frozenset)):
                raise ValidationError(f"Filter '{key}' must be a list, got {type(raw).__name__}.")
            values[name] = frozenset(str(v) for v in raw)

        if "backgrounds" in values:
            values["backgrounds"] = frozenset(_normalize_background(v) for v in values["backgrounds"])
        if "focuses" in values:
            unknown = sorted(values["focuses"] - set(FOCUSES))
            if unknown:
                raise ValidationError(f"Unknown focus value(s) in filter: {', '.join(unknown)}")
        return cls(**values)

    @property
    def is_active(self):
        return any(v is not None for v in (self.focuses, self.age_buckets, self.backgrounds, self.document_statuses))

    def failed_facets(self, candidate):
        failed = []
        if self.focuses is not None and candidate.focus not in self.focuses:
            failed.append("focuses")
        if self.age_buckets is not None and (candidate.age_bucket is None or candidate.age_bucket not in self.age_buckets):
            failed.append("ageBuckets")
        if self.backgrounds is not None:
            background = _normalize_background(candidate.background)
            if not background or background not in self.backgrounds:
                failed.append("backgrounds")
        if self.document_statuses is not None and candidate.document_status not in self.document_statuses:
            failed.append("documentStatuses")
        return failed

    def accepts(self, candidate):
        return not self.failed_facets(candidate)

    def to_dict(self):
        out = {}
        for key, value in (
            ("focuses", self.focuses),
            ("ageBuckets", self.age_buckets),
            ("backgrounds", self.backgrounds),
            ("documentStatuses", self.document_statuses),
        ):
            if value is not None:
                out[key] = sorted(value)
        return out


def _normalize_weights(raw, label):
    if not isinstance(raw, Mapping):
        raise ValidationError(f"Fairness target '{label}' must map categories to weights.")
    weights = {}
    for key, value in raw.items():
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValidationError(f"Fairness weight {label}.{key} must be a number.")
        if not math.isfinite(value) or value < 0:
            raise ValidationError(f"Fairness weight {label}.{key} must be a non-negative number.")
        weights[str(key)] = float(value)

    total = sum(weights.values())
    if total <= 0:
        return None
    return {key: value / total for key, value in weights.items()}


@dataclass(frozen=True)
class FairnessTargets:
    """Soft target shares. Stored normalized so each facet sums to 1."""
    gender: Optional[Dict[str, float]] = None
    experience: Optional[Dict[str, float]] = None

    @classmethod
    def from_payload(cls, payload):
        if payload is None:
            return cls()
        if isinstance(payload, FairnessTargets):
            return payload
        if not isinstance(payload, Mapping):
            raise ValidationError("Fairness targets must be an object.")

        gender = None
        if payload.get("gender") is not None:
            gender = _normalize_weights(payload["gender"], "gender")

        experience = None
        if payload.get("experience") is not None:
            if not isinstance(payload["experience"], Mapping):
                raise ValidationError("Fairness target 'experience' must map categories to weights.")
            raw = dict(payload["experience"])
            unknown = sorted(set(raw) - set(EXPERIENCE_LEVELS))
            if unknown:
                raise ValidationError(f"Unknown experience target key(s): {', '.join(unknown)}")
            for level in EXPERIENCE_LEVELS:
                raw.setdefault(level, 0)
            experience = _normalize_weights(raw, "experience")

        return cls(gender=gender, experience=experience)

    @property
    def has_targets(self):
        return self.gender is not None or self.experience is not None

    def to_dict(self):
        out = {}
        if self.gender is not None:
            out["gender"] = dict(self.gender)
        if self.experience is not None:
            out["experience"] = dict(self.experience)
        return out


@dataclass(frozen=True)
class Problem:
    candidates: Tuple[Candidate, ...]
    capacities: Dict[str, int]
    group_order: Tuple[str, ...]
    filters: Filters = field(default_factory=Filters)
    group_filters: Dict[str, Filters] = field(default_factory=dict)
    fairness: FairnessTargets = field(default_factory=FairnessTargets)
    excluded: Dict[str, Tuple[str, ...]] = field(default_factory=dict)
    group_domains: Dict[str, str] = field(default_factory=dict)

    def eligible_for(self, candidate, group_id):
        group_filter = self.group_filters.get(group_id)
        return group_filter is None or group_filter.accepts(candidate)

    def domain_of(self, group_id) -> Optional[str]:
        return self.group_domains.get(group_id)

    @property
    def total_capacity(self):
        return sum(self.capacities.values())


def normalize_capacities(capacities, require_positive=True):
    """Validate a group id -> capacity mapping and return a plain dict copy."""
    if capacities is None:
        capacities = {}
    if not isinstance(capacities, Mapping):
        raise ValidationError("Capacities must map group ids to integers.")
    normalized = {}
    for group_id, value in capacities.items():
        if not isinstance(group_id, str) or not group_id.strip():
            raise ValidationError(f"Group id must be a non-empty string, got {group_id!r}.")
        if isinstance(value, bool):
            raise ValidationError(f"Capacity for '{group_id}' must be an integer.")
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        if not isinstance(value, int):
            raise ValidationError(f"Capacity for '{group_id}' must be an integer, got {value!r}.")
        if value < 0:
            raise ValidationError(f"Capacity for '{group_id}' must be >= 0, got {value}.")
        normalized[group_id] = value

    if require_positive and not any(v > 0 for v in normalized.values()):
        raise NoCapacityError()
    return normalized


def normalize_group_filters(group_filters, capacities):
    if not group_filters:
        return {}
    if not isinstance(group_filters, Mapping):
        raise ValidationError("Group filters must map group ids to filters.")
    normalized = {}
    for group_id, payload in group_filters.items():
        if group_id not in capacities:
            raise ValidationError(f"Filter references unknown group '{group_id}'.")
        normalized[group_id] = Filters.from_payload(payload)
    return normalized


def normalize_group_domains(group_domains, capacities):
    """Optional group id -> "acting"/"tech" mapping used as a soft focus preference."""
    if not group_domains:
        return {}
    if not isinstance(group_domains, Mapping):
        raise ValidationError("Group domains must map group ids to a domain.")
    normalized = {}
    for group_id, domain in group_domains.items():
        if group_id not in capacities:
            raise ValidationError(f"Domain references unknown group '{group_id}'.")
        if domain is None:
            continue
        if domain not in GROUP_DOMAINS:
            raise ValidationError(
                f"Unknown domain '{domain}' for group '{group_id}'. Expected one of: {', '.join(GROUP_DOMAINS)}"
            )
        normalized[group_id] = domain
    return normalized


def resolve_group_order(capacities, group_order=None, restricted=()):
    """
    Fill order for the allocator.

    Without an explicit order, groups with their own filters go first so
    unrestricted groups cannot take the only candidates they accept. Ids
    ascend within each tier. Groups missing from an explicit order follow
    it in the same tiered order.
    """
    remaining = sorted(capacities, key=lambda g: (g not in restricted, g))
    if not group_order:
        return tuple(remaining)

    order = []
    for group_id in group_order:
        if group_id not in capacities:
            raise ValidationError(f"Group order references unknown group '{group_id}'.")
        if group_id in order:
            raise ValidationError(f"Group '{group_id}' appears twice in group order.")
        order.append(group_id)
    order.extend(g for g in remaining if g not in order)
    return tuple(order)


def coerce_candidates(candidates: Iterable) -> List[Candidate]:
    pool = []
    seen = set()
    for item in candidates:
        candidate = item if isinstance(item, Candidate) else Candidate.from_dict(item)
        if candidate.id in seen:
            raise ValidationError(f"Duplicate candidate id '{candidate.id}'.")
        seen.add(candidate.id)
        pool.append(candidate)
    return pool


def build_problem(candidates, capacities, filters=None, fairness=None, group_filters=None, group_order=None,
                  group_domains=None):
    """
    Validate the request and split the pool into eligible and excluded candidates.

    Raises ValidationError for malformed input and NoCapacityError when no
    group can take anybody.
    """
    capacity_table = normalize_capacities(capacities)
    filters = Filters.from_payload(filters)
    targets = FairnessTargets.from_payload(fairness)
    per_group = normalize_group_filters(group_filters, capacity_table)
    domains = normalize_group_domains(group_domains, capacity_table)
    order = resolve_group_order(capacity_table, group_order, restricted=per_group)

    eligible = []
    excluded = {}
    for candidate in coerce_candidates(candidates):
        failed = filters.failed_facets(candidate)
        if failed:
            excluded[candidate.id] = tuple(failed)
        else:
            eligible.append(candidate)

    eligible.sort(key=lambda c: c.id)

    return Problem(
        candidates=tuple(eligible),
        capacities=capacity_table,
        group_order=order,
        filters=filters,
        group_filters=per_group,
        fairness=targets,
        excluded=dict(sorted(excluded.items())),
        group_domains=domains,
    )
