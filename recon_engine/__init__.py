"""Payout-to-ledger reconciliation engine."""

from .config import JobSettings, Settings, get_settings
from .models import ReconciliationResult, TransactionRecord
from .reconciliation import ReconciliationOrchestrator, reconcile

__all__ = [
    "JobSettings",
    "Settings",
    "get_settings",
    "ReconciliationResult",
    "TransactionRecord",
    "ReconciliationOrchestrator",
    "reconcile",
]

__version__ = "1.0.0"
