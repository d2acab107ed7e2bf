"""Enumerations for the payout reconciliation engine."""

from enum import Enum
from typing import Optional


class TransactionSource(str, Enum):
    """Which side of the reconciliation a record comes from."""
    PAYOUT = "payout"      # Payment provider export
    LEDGER = "ledger"      # Internal bookkeeping


class PayoutStatus(str, Enum):
    """
    Provider status of a payout (raw["status"]).

    SUCCESS: Money left the account, ledger mirrors it as a negative DEBIT
    FAILED: No money moved, never matchable
    REVERSED: Money came back, ledger records a positive CREDIT
    PENDING: Not settled yet, compared by plain amount difference
    """
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"
    REVERSED = "REVERSED"
    PENDING = "PENDING"

    @classmethod
    def parse(cls, value) -> Optional["PayoutStatus"]:
        """Parse a raw status value. Empty values mean "no status"."""
        return _parse_enum(cls, value)


class EntryType(str, Enum):
    """Direction of a ledger entry (raw["type"])."""
    DEBIT = "DEBIT"        # Money out
    CREDIT = "CREDIT"      # Money in

    @classmethod
    def parse(cls, value) -> Optional["EntryType"]:
        """Parse a raw entry type value. Empty values mean "no type"."""
        return _parse_enum(cls, value)


class MatchType(str, Enum):
    """How a match was found."""
    EXACT = "exact"                  # Identical tx_id or reference
    DETERMINISTIC = "deterministic"  # Weighted amount/time/reference score
    FUZZY = "fuzzy"                  # Reference similarity decided it


class MatchConfidence(str, Enum):
    """Confidence level of a match."""
    HIGH = "high"          # score >= 0.85
    MEDIUM = "medium"      # score >= 0.6
    LOW = "low"

    @classmethod
    def from_score(cls, score: float) -> "MatchConfidence":
        if score >= 0.85:
            return cls.HIGH
        if score >= 0.6:
            return cls.MEDIUM
        return cls.LOW


class ClusterStatus(str, Enum):
    """
    Exception category of a cluster of unmatched records.

    FAILED, REVERSED and FEE clusters are artifacts of matched activity and
    carry no cash impact. PARTIAL and UNMATCHED are genuine discrepancies.
    RESOLVED is set downstream once a reviewer closes the cluster.
    """
    UNMATCHED = "unmatched"
    PARTIAL = "partial"
    RESOLVED = "resolved"
    REVERSED = "reversed"
    FEE = "fee"
    FAILED = "failed"

    @property
    def has_cash_impact(self) -> bool:
        return self not in (
            ClusterStatus.FAILED,
            ClusterStatus.FEE,
            ClusterStatus.REVERSED,
        )


class AuditAction(str, Enum):
    """Type of audit action."""
    RECONCILIATION_STARTED = "reconciliation_started"
    ROWS_TRUNCATED = "rows_truncated"
    MATCH_COMMITTED = "match_committed"
    CLUSTER_CREATED = "cluster_created"
    RECONCILIATION_COMPLETED = "reconciliation_completed"


def _parse_enum(enum_cls, value):
    if value is None:
        return None
    if isinstance(value, enum_cls):
        return value
    text = str(value).strip().upper()
    if not text:
        return None
    # Raises ValueError for anything outside the closed set
    return enum_cls(text)
