"""
Unmatched amount calculation - the cash actually left unexplained.
"""

from typing import Sequence, Set

import structlog

from ..models import ClusterData, TransactionRecord, TransactionSource
from .clustering import REFERENCE_GROUP_PREFIX

logger = structlog.get_logger()


# Unclustered TXN- ledger lines below this are leftover fee noise
RESIDUAL_FEE_CEILING_CENTS = 10000


class UnmatchedAmountCalculator:
    """
    Sums the cash impact of a reconciliation.

    Clusters flagged as failed, fee or reversed are excluded. Records that no
    cluster captured are added individually, except failed payouts and small
    TXN- ledger residues.
    """

    def calculate(
        self,
        clusters: Sequence[ClusterData],
        unmatched: Sequence[TransactionRecord],
    ) -> int:
        """
        Args:
            clusters: Clusters built from the unmatched records
            unmatched: All unmatched payouts and ledger entries

        Returns:
            Signed total in cents
        """
        clustered_ids: Set[str] = set()
        total = 0

        for cluster in clusters:
            clustered_ids.update(cluster.record_ids)
            if cluster.has_cash_impact:
                total += cluster.amount

        stragglers = [
            record for record in unmatched
            if record.id not in clustered_ids and self._counts(record)
        ]
        total += sum(record.amount_cents for record in stragglers)

        if stragglers:
            logger.warning(
                "Unclustered records added to unmatched total",
                count=len(stragglers),
                ids=[record.id for record in stragglers],
            )

        return total

    def _counts(self, record: TransactionRecord) -> bool:
        if record.source == TransactionSource.PAYOUT and record.is_failed:
            return False
        if (
            record.source == TransactionSource.LEDGER
            and abs(record.amount_cents) < RESIDUAL_FEE_CEILING_CENTS
            and record.reference_startswith(REFERENCE_GROUP_PREFIX)
        ):
            return False
        return True
