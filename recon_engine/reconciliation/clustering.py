"""
Exception Cluster Builder - explains what the matching passes left over.

Unmatched records are grouped into labeled clusters by an ordered set of
rules. Failed payouts, fees and reversals are artifacts of activity that was
matched (or never happened) and carry no cash impact; partial and unmatched
clusters are genuine discrepancies to investigate.
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Set

import structlog

from ..models import (
    AuditAction,
    AuditEntry,
    ClusterData,
    ClusterStatus,
    EntryType,
    PayoutStatus,
    TransactionRecord,
    TransactionSource,
)

logger = structlog.get_logger()


REFERENCE_GROUP_PREFIX = "TXN-"
NOISE_PREFIX = "NOISE-"

# Fee members relative to the amount they were charged on
FEE_RATIO_MIN = 0.001
FEE_RATIO_MAX = 0.05

STATUS_PRIORITY: Dict[ClusterStatus, int] = {
    ClusterStatus.FAILED: 0,
    ClusterStatus.REVERSED: 1,
    ClusterStatus.FEE: 2,
    ClusterStatus.PARTIAL: 3,
    ClusterStatus.UNMATCHED: 4,
    ClusterStatus.RESOLVED: 5,
}

STATUS_LABELS: Dict[ClusterStatus, str] = {
    ClusterStatus.FAILED: "Failed Payouts",
    ClusterStatus.REVERSED: "Reversal",
    ClusterStatus.FEE: "Fee",
    ClusterStatus.PARTIAL: "Partial Match",
    ClusterStatus.UNMATCHED: "Unmatched",
    ClusterStatus.RESOLVED: "Resolved",
}


@dataclass
class MatchedContext:
    """What the matching passes already paired, looked up by reference."""
    by_reference: Dict[str, TransactionRecord] = field(default_factory=dict)
    reversed_payout_references: Set[str] = field(default_factory=set)

    @classmethod
    def build(cls, matched: Sequence[TransactionRecord]) -> "MatchedContext":
        context = cls()
        # Payouts are consulted before ledger entries
        ordered = sorted(matched, key=lambda record: 0 if record.is_payout else 1)
        for record in ordered:
            if not record.reference:
                continue
            context.by_reference.setdefault(record.reference, record)
            if record.is_payout and record.status == PayoutStatus.REVERSED:
                context.reversed_payout_references.add(record.reference)
        return context

    def matched_amount(self, reference: Optional[str]) -> Optional[int]:
        """Absolute amount of the matched transaction carrying this reference."""
        if not reference or reference not in self.by_reference:
            return None
        return abs(self.by_reference[reference].amount_cents)


@dataclass
class RecordGroup:
    """Records sharing a reference, largest absolute amount first."""
    reference: Optional[str]
    records: List[TransactionRecord]

    def __post_init__(self):
        self.records = sorted(self.records, key=lambda record: -abs(record.amount_cents))

    @property
    def main(self) -> TransactionRecord:
        return self.records[0]

    @property
    def others(self) -> List[TransactionRecord]:
        return self.records[1:]

    @property
    def size(self) -> int:
        return len(self.records)


@dataclass(frozen=True)
class ClassificationRule:
    """A tagged predicate deciding the status of a record group."""
    name: str
    status: ClusterStatus
    applies: Callable[[RecordGroup, MatchedContext], bool]
    note: str


def is_fee_group(group: RecordGroup, context: MatchedContext) -> bool:
    """Every secondary member is a small percentage of the main amount."""
    if group.size < 2:
        return False

    base = context.matched_amount(group.reference)
    if base is None:
        base = abs(group.main.amount_cents)
    if base <= 0:
        return False

    return all(
        FEE_RATIO_MIN <= abs(record.amount_cents) / base <= FEE_RATIO_MAX
        for record in group.others
    )


def is_residual_fee(group: RecordGroup, context: MatchedContext) -> bool:
    """A lone record that is a sliver of an already matched transaction."""
    if group.size != 1:
        return False

    matched_amount = context.matched_amount(group.reference)
    if matched_amount is None:
        return False

    return abs(group.main.amount_cents) < FEE_RATIO_MAX * matched_amount


def is_reversal(group: RecordGroup, context: MatchedContext) -> bool:
    """A lone ledger debit booked against a payout that was reversed."""
    if group.size != 1:
        return False

    record = group.main
    return (
        record.source == TransactionSource.LEDGER
        and record.entry_type == EntryType.DEBIT
        and record.amount_cents < 0
        and record.reference in context.reversed_payout_references
    )


def is_split(group: RecordGroup, context: MatchedContext) -> bool:
    return group.size > 1


def always(group: RecordGroup, context: MatchedContext) -> bool:
    return True


FEE_GROUP = ClassificationRule(
    name="fee-group",
    status=ClusterStatus.FEE,
    applies=is_fee_group,
    note="Charges on {reference} between 0.1% and 5% of the main amount",
)
FEE_RESIDUAL = ClassificationRule(
    name="fee-residual",
    status=ClusterStatus.FEE,
    applies=is_residual_fee,
    note="Residual fee on matched transaction {reference}",
)
REVERSAL = ClassificationRule(
    name="reversal",
    status=ClusterStatus.REVERSED,
    applies=is_reversal,
    note="Ledger debit for reversed payout {reference}",
)
PARTIAL = ClassificationRule(
    name="partial",
    status=ClusterStatus.PARTIAL,
    applies=is_split,
    note="{size} records share {reference} without resolving to a fee",
)
UNMATCHED = ClassificationRule(
    name="unmatched",
    status=ClusterStatus.UNMATCHED,
    applies=always,
    note="No counterpart found for {reference}",
)

REFERENCE_GROUP_RULES = (FEE_GROUP, FEE_RESIDUAL, REVERSAL, PARTIAL, UNMATCHED)
REMAINDER_RULES = (FEE_RESIDUAL, UNMATCHED)


def classify(
    group: RecordGroup,
    context: MatchedContext,
    rules: Sequence[ClassificationRule],
) -> ClassificationRule:
    """First rule that applies, in priority order."""
    for rule in rules:
        if rule.applies(group, context):
            return rule
    raise ValueError(f"No classification rule applies to group {group.reference!r}")


@dataclass
class ClusterBuildResult:
    """Result of the clustering phase."""
    clusters: List[ClusterData]
    audit_entries: List[AuditEntry]
    stats: Dict[str, int]


class ClusterBuilder:
    """
    Categorizes unmatched records into exception clusters.

    Order of evaluation (first applicable wins for a record):
    1. Failed payouts, all in one cluster
    2. Internal noise (NOISE- references), all in one cluster
    3. TXN- reference groups, classified by REFERENCE_GROUP_RULES
    4. Everything else, one cluster per record, classified by REMAINDER_RULES

    Clusters are then ordered by status priority and absolute amount and
    given sequential labels per status.
    """

    def process(
        self,
        unmatched: List[TransactionRecord],
        matched: List[TransactionRecord],
    ) -> ClusterBuildResult:
        """
        Build clusters for the unmatched records.

        Args:
            unmatched: Unmatched payouts and ledger entries
            matched: Records paired by the matching passes, for fee/reversal context

        Returns:
            ClusterBuildResult with ordered, labeled clusters
        """
        logger.info(
            "Starting cluster build",
            unmatched=len(unmatched),
            matched=len(matched),
        )

        context = MatchedContext.build(matched)
        clusters: List[ClusterData] = []
        remaining = list(unmatched)

        failed = [r for r in remaining if r.is_payout and r.is_failed]
        if failed:
            clusters.append(self._make_cluster(
                failed,
                ClusterStatus.FAILED,
                rule="failed",
                notes=f"{len(failed)} failed payout(s), no money moved",
            ))
            remaining = [r for r in remaining if not (r.is_payout and r.is_failed)]

        noise = [r for r in remaining if r.reference_startswith(NOISE_PREFIX)]
        if noise:
            clusters.append(self._make_cluster(
                noise,
                ClusterStatus.UNMATCHED,
                rule="noise",
                notes=f"{len(noise)} internal record(s) with no provider counterpart",
            ))
            remaining = [r for r in remaining if not r.reference_startswith(NOISE_PREFIX)]

        groups: Dict[str, List[TransactionRecord]] = {}
        leftovers: List[TransactionRecord] = []
        for record in remaining:
            if record.reference_startswith(REFERENCE_GROUP_PREFIX):
                groups.setdefault(record.reference, []).append(record)
            else:
                leftovers.append(record)

        for reference, records in groups.items():
            group = RecordGroup(reference=reference, records=records)
            clusters.append(self._cluster_group(group, context, REFERENCE_GROUP_RULES))

        for record in leftovers:
            group = RecordGroup(reference=record.reference, records=[record])
            clusters.append(self._cluster_group(group, context, REMAINDER_RULES))

        clusters = self._order_and_label(clusters)

        audit_entries = [
            AuditEntry(
                action=AuditAction.CLUSTER_CREATED,
                transaction_ids=cluster.record_ids,
                message=f"{cluster.label}: {cluster.notes}",
                details={
                    "status": cluster.status.value,
                    "rule": cluster.rule,
                    "amount": cluster.amount,
                    "size": cluster.size,
                },
            )
            for cluster in clusters
        ]

        stats = dict(Counter(cluster.status.value for cluster in clusters))
        stats["total_clusters"] = len(clusters)
        logger.info("Cluster build complete", **stats)

        return ClusterBuildResult(
            clusters=clusters,
            audit_entries=audit_entries,
            stats=stats,
        )

    def _cluster_group(
        self,
        group: RecordGroup,
        context: MatchedContext,
        rules: Sequence[ClassificationRule],
    ) -> ClusterData:
        rule = classify(group, context, rules)
        return self._make_cluster(
            group.records,
            rule.status,
            rule=rule.name,
            notes=rule.note.format(
                reference=group.reference or "record without reference",
                size=group.size,
            ),
        )

    def _make_cluster(
        self,
        records: List[TransactionRecord],
        status: ClusterStatus,
        rule: str,
        notes: str,
    ) -> ClusterData:
        pivot = max(records, key=lambda record: abs(record.amount_cents))
        return ClusterData(
            pivot_id=pivot.id,
            pivot_type=pivot.source,
            records=list(records),
            amount=sum(record.amount_cents for record in records),
            status=status,
            notes=notes,
            rule=rule,
        )

    def _order_and_label(self, clusters: List[ClusterData]) -> List[ClusterData]:
        ordered = sorted(
            clusters,
            key=lambda cluster: (STATUS_PRIORITY[cluster.status], -abs(cluster.amount)),
        )

        counters: Counter = Counter()
        for cluster in ordered:
            counters[cluster.status] += 1
            cluster.label = f"{STATUS_LABELS[cluster.status]} #{counters[cluster.status]}"

        return ordered
