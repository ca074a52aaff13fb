from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field

from domain.errors import ClassificationMismatch
from domain.models import (
    ENV_NON_PROD,
    ENV_PROD,
    TIER_APP,
    TIER_DATA,
    TIER_MANAGEMENT,
    TIER_WEB,
    TIERS,
    WorkloadRecord,
)

logger = logging.getLogger(__name__)

_NON_PROD_TAGS = {
    "nonprod",
    "non-prod",
    "non_prod",
    "nonproduction",
    "non-production",
    "dev",
    "development",
    "test",
    "testing",
    "qa",
    "uat",
    "staging",
    "stage",
    "sandbox",
}

# Checked in order; the first tier whose keywords appear in the name wins.
_NAME_HINTS: tuple[tuple[str, tuple[str, ...]], ...] = (
    (TIER_WEB, ("web", "frontend", "ui")),
    (TIER_DATA, ("db", "sql", "database", "data")),
    (TIER_APP, ("app", "api", "svc")),
)


@dataclass(frozen=True)
class TierRule:
    tier: str
    min_cores: float | None = None
    min_memory_gib: float | None = None

    def matches(self, record: WorkloadRecord) -> bool:
        if self.min_cores is None and self.min_memory_gib is None:
            return True
        if self.min_cores is not None and record.cores >= self.min_cores:
            return True
        return self.min_memory_gib is not None and record.memory_gib >= self.min_memory_gib


@dataclass(frozen=True)
class TierRuleSet:
    rules: tuple[TierRule, ...]
    first_match: bool = True

    def tiers_for(self, record: WorkloadRecord) -> list[str]:
        if not has_numeric_sizing(record):
            return [tier_from_name(record.name)]
        matched: list[str] = []
        for rule in self.rules:
            if not rule.matches(record):
                continue
            matched.append(rule.tier)
            if self.first_match:
                break
        return matched


DEFAULT_TIER_RULES = TierRuleSet(
    rules=(
        TierRule(TIER_DATA, min_cores=8, min_memory_gib=16),
        TierRule(TIER_APP, min_cores=4, min_memory_gib=8),
        TierRule(TIER_WEB, min_cores=2, min_memory_gib=4),
        TierRule(TIER_MANAGEMENT),
    )
)


@dataclass(frozen=True)
class TierGroup:
    tier: str
    records: tuple[WorkloadRecord, ...]

    @property
    def vm_count(self) -> int:
        return len(self.records)

    @property
    def dominant_sku(self) -> str | None:
        labels = {record.recommended_size_label for record in self.records}
        if len(labels) != 1:
            return None
        return next(iter(labels))


@dataclass(frozen=True)
class TierAggregation:
    groups: dict[str, TierGroup] = field(default_factory=dict)
    mismatch: ClassificationMismatch | None = None

    def group(self, tier: str) -> TierGroup | None:
        return self.groups.get(tier)

    def vm_count(self, tier: str) -> int:
        group = self.groups.get(tier)
        return group.vm_count if group else 0

    @property
    def total(self) -> int:
        return sum(group.vm_count for group in self.groups.values())


def has_numeric_sizing(record: WorkloadRecord) -> bool:
    return record.cores > 0 or record.memory_mib > 0


def tier_from_name(name: str) -> str:
    lowered = name.lower()
    for tier, keywords in _NAME_HINTS:
        if any(keyword in lowered for keyword in keywords):
            return tier
    return TIER_MANAGEMENT


def classify(record: WorkloadRecord, rules: TierRuleSet = DEFAULT_TIER_RULES) -> str | None:
    matched = rules.tiers_for(record)
    return matched[0] if matched else None


def normalize_environment(tag: str | None) -> str:
    normalized = str(tag or "").strip().lower()
    if normalized in _NON_PROD_TAGS:
        return ENV_NON_PROD
    return ENV_PROD


def aggregate(
    records: Sequence[WorkloadRecord],
    rules: TierRuleSet = DEFAULT_TIER_RULES,
) -> TierAggregation:
    members: dict[str, list[WorkloadRecord]] = {tier: [] for tier in _tier_order(rules)}
    assignments: list[int] = []
    for record in records:
        tiers = rules.tiers_for(record)
        assignments.append(len(tiers))
        for tier in tiers:
            members.setdefault(tier, []).append(record)

    groups = {
        tier: TierGroup(tier=tier, records=tuple(tier_records))
        for tier, tier_records in members.items()
        if tier_records
    }
    mismatch = _check_coverage(records, groups, assignments)
    if mismatch is not None:
        logger.warning("Workload classification mismatch: %s", mismatch.describe())
    return TierAggregation(groups=groups, mismatch=mismatch)


def partition_by_environment(
    records: Iterable[WorkloadRecord],
) -> dict[str, list[WorkloadRecord]]:
    partitions: dict[str, list[WorkloadRecord]] = {ENV_PROD: [], ENV_NON_PROD: []}
    for record in records:
        partitions[normalize_environment(record.environment_tag)].append(record)
    return partitions


def tier_label(tier: str, vm_count: int, dominant_sku: str | None) -> str:
    label = f"{tier.capitalize()} Tier ({vm_count})"
    if dominant_sku:
        label = f"{label} • {dominant_sku}"
    return label


def _tier_order(rules: TierRuleSet) -> list[str]:
    ordered = list(TIERS)
    for rule in rules.rules:
        if rule.tier not in ordered:
            ordered.append(rule.tier)
    return ordered


def _check_coverage(
    records: Sequence[WorkloadRecord],
    groups: dict[str, TierGroup],
    assignments: list[int],
) -> ClassificationMismatch | None:
    counted = sum(group.vm_count for group in groups.values())
    if counted == len(records) and all(count == 1 for count in assignments):
        return None
    duplicated = tuple(
        record.name for record, count in zip(records, assignments, strict=True) if count > 1
    )
    missing = tuple(
        record.name for record, count in zip(records, assignments, strict=True) if count == 0
    )
    return ClassificationMismatch(
        expected=len(records),
        counted=counted,
        tier_counts={tier: group.vm_count for tier, group in groups.items()},
        duplicated=duplicated,
        missing=missing,
    )
