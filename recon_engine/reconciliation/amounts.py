"""
Sign and status aware amount comparison between a payout and a ledger entry.
"""

from typing import Optional

from ..models import EntryType, PayoutStatus, TransactionRecord


class AmountComparator:
    """
    Decides whether a ledger entry's amount can correspond to a payout.

    The ledger records a successful payout as a negative DEBIT mirroring the
    payout amount, and a reversed payout as a positive CREDIT of the same
    amount. A failed payout moved no money and never matches. Any other
    status falls back to the plain difference of the two amounts.
    """

    def __init__(self, tolerance_cents: int):
        self.tolerance_cents = tolerance_cents

    def difference(
        self,
        payout: TransactionRecord,
        ledger: TransactionRecord,
    ) -> Optional[int]:
        """
        Amount gap in cents under the payout's status semantics.

        Returns None when the pair is ruled out by sign, type or status
        regardless of tolerance.
        """
        status = payout.status

        if status == PayoutStatus.FAILED:
            return None

        if status == PayoutStatus.SUCCESS:
            if ledger.entry_type != EntryType.DEBIT or ledger.amount_cents >= 0:
                return None
            return abs(payout.amount_cents + ledger.amount_cents)

        if status == PayoutStatus.REVERSED:
            if ledger.entry_type != EntryType.CREDIT or ledger.amount_cents <= 0:
                return None
            return abs(payout.amount_cents - ledger.amount_cents)

        return abs(payout.amount_cents - ledger.amount_cents)

    def is_eligible(
        self,
        payout: TransactionRecord,
        ledger: TransactionRecord,
    ) -> bool:
        diff = self.difference(payout, ledger)
        return diff is not None and diff <= self.tolerance_cents

    def score(
        self,
        payout: TransactionRecord,
        ledger: TransactionRecord,
    ) -> float:
        """Graded score in [0, 1]; 0 when the pair is not eligible."""
        diff = self.difference(payout, ledger)
        if diff is None or diff > self.tolerance_cents:
            return 0.0

        # Zero tolerance means exact amounts only
        if self.tolerance_cents == 0:
            return 1.0 if diff == 0 else 0.0

        return max(0.0, 1.0 - diff / self.tolerance_cents)
