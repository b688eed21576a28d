"""
dedupe/clustering.py

Cluster builder: groups contacts that share at least one identity key,
directly or through a chain of intermediate records.

  find_duplicate_groups(records) → list[DuplicateGroup]

Keys per record: phone digits, normalised company name, non-public e-mail
domain. Records sharing a key value are unioned in an index-based disjoint
set, so A~B (phone) and B~C (name) land in one cluster without any direct
A–C key and without comparing every pair of records.

The result is fully deterministic: records are ordered by (created_at, id)
before indexing, and primaries / duplicates / clusters are sorted with total
orderings. Preview and apply therefore always agree on the same data.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timezone

from agencycrm.constants import UNNAMED_CONTACT
from dedupe.identity import (
    CLUSTER_REASON_PRIORITY,
    EMAIL_DOMAIN,
    NAME,
    PHONE,
    matchable_domain,
    normalized_name,
    phone_digits,
)

# Scalar fields counted when choosing the surviving record of a cluster.
COMPLETENESS_FIELDS = (
    "contact_name",
    "phone",
    "email",
    "street",
    "city",
    "canton",
    "postal_code",
)

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass
class DuplicateGroup:
    primary_id: object
    primary_name: str
    duplicate_ids: list = field(default_factory=list)
    duplicate_names: list[str] = field(default_factory=list)
    match_reason: str = NAME

    def to_example(self) -> dict:
        return {
            "primary_id": str(self.primary_id),
            "primary_name": self.primary_name,
            "duplicate_names": list(self.duplicate_names),
            "match_reason": self.match_reason,
        }


class DisjointSet:
    """Union-find over 0..size-1 with path compression and union by rank."""

    def __init__(self, size: int):
        self.parent = list(range(size))
        self.rank = [0] * size

    def find(self, index: int) -> int:
        root = index
        while self.parent[root] != root:
            root = self.parent[root]
        while self.parent[index] != root:
            next_index = self.parent[index]
            self.parent[index] = root
            index = next_index
        return root

    def union(self, a: int, b: int) -> int:
        root_a, root_b = self.find(a), self.find(b)
        if root_a == root_b:
            return root_a
        if self.rank[root_a] < self.rank[root_b]:
            root_a, root_b = root_b, root_a
        self.parent[root_b] = root_a
        if self.rank[root_a] == self.rank[root_b]:
            self.rank[root_a] += 1
        return root_a


def identity_keys(record) -> dict[str, str | None]:
    """The three matchable keys of a record; public e-mail domains are omitted."""
    return {
        PHONE: phone_digits(record.phone),
        EMAIL_DOMAIN: matchable_domain(record.email),
        NAME: normalized_name(record.company_name),
    }


def count_filled_fields(record) -> int:
    return sum(1 for name in COMPLETENESS_FIELDS if _has_value(getattr(record, name, None)))


def find_duplicate_groups(records) -> list[DuplicateGroup]:
    ordered = sorted(records, key=_age_key)

    buckets: dict[tuple[str, str], list[int]] = defaultdict(list)
    for index, record in enumerate(ordered):
        for kind, value in identity_keys(record).items():
            if value:
                buckets[(kind, value)].append(index)

    links = DisjointSet(len(ordered))
    for indices in buckets.values():
        for other in indices[1:]:
            links.union(indices[0], other)

    # Roots are discovered in index order, so clusters come out oldest-first.
    members: dict[int, list[int]] = defaultdict(list)
    for index in range(len(ordered)):
        members[links.find(index)].append(index)

    reasons: dict[int, set[str]] = defaultdict(set)
    for (kind, _value), indices in buckets.items():
        if len(indices) > 1:
            reasons[links.find(indices[0])].add(kind)

    groups = []
    for root, indices in members.items():
        if len(indices) < 2:
            continue
        cluster = sorted((ordered[i] for i in indices), key=_primary_key)
        primary, duplicates = cluster[0], cluster[1:]
        groups.append(DuplicateGroup(
            primary_id=primary.id,
            primary_name=primary.company_name or UNNAMED_CONTACT,
            duplicate_ids=[d.id for d in duplicates],
            duplicate_names=[d.company_name or UNNAMED_CONTACT for d in duplicates],
            match_reason=_strongest_reason(reasons[root]),
        ))
    return groups


# ── Internal helpers ───────────────────────────────────────────────────────────

def _has_value(value) -> bool:
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    return True


def _age_key(record) -> tuple:
    # Missing created_at sorts after every dated record.
    created_at = getattr(record, "created_at", None)
    return (created_at is None, created_at or _EPOCH, str(record.id))


def _primary_key(record) -> tuple:
    return (-count_filled_fields(record),) + _age_key(record)


def _strongest_reason(kinds: set[str]) -> str:
    for kind in CLUSTER_REASON_PRIORITY:
        if kind in kinds:
            return kind
    return NAME
