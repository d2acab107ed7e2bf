"""
Reconciliation Orchestrator - Main pipeline coordinator.

Orchestrates one reconciliation run:
1. Row cap
2. Matching (four passes)
3. Matched / unmatched partition
4. Exception clustering
5. Unmatched amount and summary statistics
"""

from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional, Sequence, Union
from uuid import uuid4

import structlog

from ..config import JobSettings
from ..models import (
    AuditAction,
    AuditEntry,
    ReconciliationResult,
    TransactionRecord,
)
from ..utils.audit_logger import AuditLogger
from .clustering import ClusterBuilder
from .matching import MatchingEngine
from .unmatched import UnmatchedAmountCalculator

logger = structlog.get_logger()


RecordInput = Union[TransactionRecord, Mapping[str, Any]]


class ReconciliationOrchestrator:
    """
    Main entry point of the engine.

    Pure with respect to its inputs: records are never mutated and every run
    builds fresh results, so independent jobs can share an orchestrator.
    """

    def __init__(self, settings: Optional[JobSettings] = None):
        self.settings = settings or JobSettings.defaults()
        self.matching_engine = MatchingEngine(self.settings)
        self.cluster_builder = ClusterBuilder()
        self.amount_calculator = UnmatchedAmountCalculator()

    def reconcile(
        self,
        payouts: Sequence[RecordInput],
        ledger: Sequence[RecordInput],
        job_id: Optional[str] = None,
    ) -> ReconciliationResult:
        """
        Reconcile a payout list against a ledger list.

        Args:
            payouts: Payout records (or plain mappings) in input order
            ledger: Ledger records (or plain mappings) in input order
            job_id: Identifier used in logs and the audit trail

        Returns:
            ReconciliationResult with matches, clusters and summary stats
        """
        job_id = job_id or str(uuid4())
        log = logger.bind(job_id=job_id)
        audit = AuditLogger(job_id)
        result = ReconciliationResult()

        try:
            payout_records = self._cap(self._coerce(payouts), "payouts", audit)
            ledger_records = self._cap(self._coerce(ledger), "ledger", audit)

            audit.log(AuditEntry(
                action=AuditAction.RECONCILIATION_STARTED,
                message=f"Reconciling {len(payout_records)} payouts against {len(ledger_records)} ledger entries",
                details=self.settings.model_dump(),
            ))

            matching = self.matching_engine.process(payout_records, ledger_records)
            audit.log_many(matching.audit_entries)

            matched_payout_ids = matching.state.matched_payout_ids
            matched_ledger_ids = matching.state.matched_ledger_ids

            unmatched_payouts = [r for r in payout_records if r.id not in matched_payout_ids]
            unmatched_ledger = [r for r in ledger_records if r.id not in matched_ledger_ids]
            matched = (
                [r for r in payout_records if r.id in matched_payout_ids]
                + [r for r in ledger_records if r.id in matched_ledger_ids]
            )
            unmatched = unmatched_payouts + unmatched_ledger

            clustering = self.cluster_builder.process(unmatched, matched)
            audit.log_many(clustering.audit_entries)

            total_unmatched = self.amount_calculator.calculate(clustering.clusters, unmatched)

            matched_count = len(matching.matches)
            match_rate = matched_count / len(payout_records) if payout_records else 0.0

            result.matches = matching.matches
            result.clusters = clustering.clusters
            result.unmatched_payouts = unmatched_payouts
            result.unmatched_ledger = unmatched_ledger
            result.total_unmatched_amount_cents = total_unmatched
            result.matched_count = matched_count
            result.unmatched_count = len(unmatched)
            result.match_rate = match_rate
            result.stats = {
                "total_payouts": len(payout_records),
                "total_ledger": len(ledger_records),
                "passes": matching.stats,
                "clusters": clustering.stats,
                # Plain signed sum, before fee/failed/reversal exclusions
                "naive_unmatched_amount_cents": sum(r.amount_cents for r in unmatched),
            }

            audit.log(AuditEntry(
                action=AuditAction.RECONCILIATION_COMPLETED,
                message=f"Matched {matched_count} of {len(payout_records)} payouts",
                details={
                    "match_rate": match_rate,
                    "total_unmatched_amount_cents": total_unmatched,
                },
            ))
            result.audit_log = audit.entries
            result.completed_at = datetime.now(timezone.utc)

        except Exception as e:
            log.exception("Reconciliation failed", error=str(e))
            raise

        log.info(
            "Reconciliation complete",
            matched=result.matched_count,
            unmatched=result.unmatched_count,
            match_rate=round(result.match_rate, 4),
            clusters=len(result.clusters),
            total_unmatched_amount_cents=result.total_unmatched_amount_cents,
        )

        return result

    def _coerce(self, records: Sequence[RecordInput]) -> List[TransactionRecord]:
        return [
            record if isinstance(record, TransactionRecord) else TransactionRecord.from_dict(record)
            for record in records
        ]

    def _cap(
        self,
        records: List[TransactionRecord],
        label: str,
        audit: AuditLogger,
    ) -> List[TransactionRecord]:
        """Drop rows beyond max_rows, keeping input order."""
        limit = self.settings.max_rows
        if len(records) <= limit:
            return records

        logger.warning(
            "Row limit exceeded, extra rows ignored",
            side=label,
            rows=len(records),
            max_rows=limit,
        )
        audit.log(AuditEntry(
            action=AuditAction.ROWS_TRUNCATED,
            transaction_ids=[r.id for r in records[limit:]],
            message=f"Ignored {len(records) - limit} {label} rows beyond max_rows={limit}",
        ))
        return records[:limit]


def reconcile(
    payouts: Sequence[RecordInput],
    ledger: Sequence[RecordInput],
    settings: Optional[JobSettings] = None,
) -> ReconciliationResult:
    """Run one reconciliation with a throwaway orchestrator."""
    return ReconciliationOrchestrator(settings).reconcile(payouts, ledger)
