"""Data models for the payout reconciliation engine."""

from .enums import (
    AuditAction,
    ClusterStatus,
    EntryType,
    MatchConfidence,
    MatchType,
    PayoutStatus,
    TransactionSource,
)
from .transaction import (
    InvalidRecordError,
    TransactionRecord,
)
from .reconciliation import (
    WEIGHTS,
    AuditEntry,
    ClusterData,
    MatchResult,
    ReconciliationResult,
    ScoreBreakdown,
)

__all__ = [
    # Enums
    "AuditAction",
    "ClusterStatus",
    "EntryType",
    "MatchConfidence",
    "MatchType",
    "PayoutStatus",
    "TransactionSource",
    # Transactions
    "InvalidRecordError",
    "TransactionRecord",
    # Reconciliation
    "WEIGHTS",
    "AuditEntry",
    "ClusterData",
    "MatchResult",
    "ReconciliationResult",
    "ScoreBreakdown",
]
