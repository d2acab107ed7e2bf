"""Reconciliation engine components."""

from .amounts import AmountComparator
from .matching import MatchingEngine, MatchState
from .clustering import ClusterBuilder
from .unmatched import UnmatchedAmountCalculator
from .orchestrator import ReconciliationOrchestrator, reconcile

__all__ = [
    "AmountComparator",
    "MatchingEngine",
    "MatchState",
    "ClusterBuilder",
    "UnmatchedAmountCalculator",
    "ReconciliationOrchestrator",
    "reconcile",
]
