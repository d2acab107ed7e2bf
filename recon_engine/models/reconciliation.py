"""Reconciliation result models."""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from uuid import uuid4

from .enums import (
    AuditAction,
    ClusterStatus,
    MatchConfidence,
    MatchType,
    TransactionSource,
)
from .transaction import TransactionRecord


WEIGHTS: Dict[str, int] = {
    "exact": 40,
    "amount": 25,
    "time": 20,
    "fuzzy": 15,
}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ScoreBreakdown:
    """Component scores of a match, each in [0, 1]."""
    exact_match: float = 0.0
    amount_score: float = 0.0
    time_score: float = 0.0
    fuzzy_score: float = 0.0
    weights: Dict[str, int] = field(default_factory=lambda: dict(WEIGHTS))

    def weighted_score(self) -> float:
        """Weighted mean of the components."""
        total = (
            self.exact_match * self.weights["exact"] +
            self.amount_score * self.weights["amount"] +
            self.time_score * self.weights["time"] +
            self.fuzzy_score * self.weights["fuzzy"]
        )
        return total / sum(self.weights.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exact_match": self.exact_match,
            "amount_score": self.amount_score,
            "time_score": self.time_score,
            "fuzzy_score": self.fuzzy_score,
            "weights": dict(self.weights),
        }


@dataclass
class MatchResult:
    """A payout paired with exactly one ledger entry."""
    payout_id: str
    ledger_id: str
    score: float
    score_breakdown: ScoreBreakdown
    match_type: MatchType
    confidence_level: MatchConfidence

    @classmethod
    def build(
        cls,
        payout_id: str,
        ledger_id: str,
        breakdown: ScoreBreakdown,
        match_type: MatchType,
    ) -> "MatchResult":
        score = breakdown.weighted_score()
        return cls(
            payout_id=payout_id,
            ledger_id=ledger_id,
            score=score,
            score_breakdown=breakdown,
            match_type=match_type,
            confidence_level=MatchConfidence.from_score(score),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "payout_id": self.payout_id,
            "ledger_id": self.ledger_id,
            "score": self.score,
            "score_breakdown": self.score_breakdown.to_dict(),
            "match_type": self.match_type.value,
            "confidence_level": self.confidence_level.value,
        }


@dataclass
class ClusterData:
    """A group of unmatched records sharing one exception pattern."""
    pivot_id: str
    pivot_type: TransactionSource
    records: List[TransactionRecord] = field(default_factory=list)
    amount: int = 0  # Signed sum of member amount_cents
    status: ClusterStatus = ClusterStatus.UNMATCHED
    label: str = ""
    notes: str = ""
    rule: str = ""  # Classification rule that produced the cluster

    @property
    def size(self) -> int:
        return len(self.records)

    @property
    def has_cash_impact(self) -> bool:
        return self.status.has_cash_impact

    @property
    def record_ids(self) -> List[str]:
        return [record.id for record in self.records]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pivot_id": self.pivot_id,
            "pivot_type": self.pivot_type.value,
            "records": [record.to_dict() for record in self.records],
            "amount": self.amount,
            "status": self.status.value,
            "label": self.label,
            "notes": self.notes,
            "size": self.size,
        }


@dataclass
class AuditEntry:
    """An entry in the audit log."""
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=_utcnow)

    # Action
    action: AuditAction = AuditAction.MATCH_COMMITTED

    # Context
    transaction_ids: List[str] = field(default_factory=list)

    # Details
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ReconciliationResult:
    """Complete result of one reconciliation run."""
    matches: List[MatchResult] = field(default_factory=list)
    clusters: List[ClusterData] = field(default_factory=list)
    unmatched_payouts: List[TransactionRecord] = field(default_factory=list)
    unmatched_ledger: List[TransactionRecord] = field(default_factory=list)

    # Summary
    total_unmatched_amount_cents: int = 0
    matched_count: int = 0
    unmatched_count: int = 0
    match_rate: float = 0.0

    # Diagnostics
    stats: Dict[str, Any] = field(default_factory=dict)
    audit_log: List[AuditEntry] = field(default_factory=list)

    # Timing
    started_at: datetime = field(default_factory=_utcnow)
    completed_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        """Shape consumed by the persistence and export layers."""
        return {
            "matches": [match.to_dict() for match in self.matches],
            "clusters": [cluster.to_dict() for cluster in self.clusters],
            "unmatched_payouts": [r.to_dict() for r in self.unmatched_payouts],
            "unmatched_ledger": [r.to_dict() for r in self.unmatched_ledger],
            "total_unmatched_amount_cents": self.total_unmatched_amount_cents,
            "matched_count": self.matched_count,
            "unmatched_count": self.unmatched_count,
            "match_rate": self.match_rate,
        }
