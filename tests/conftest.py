"""
Shared fixtures for the reconciliation engine tests.
"""

import itertools

import pytest

from recon_engine.config import JobSettings
from recon_engine.models import TransactionRecord, TransactionSource


@pytest.fixture
def job_settings():
    """Default job parameters, independent of the environment."""
    return JobSettings(
        amount_tolerance_cents=100,
        time_window_hours=48,
        fuzzy_threshold=85,
        max_rows=10000,
    )


@pytest.fixture
def make_payout():
    """Factory for payout records with sequential ids (p1, p2, ...)."""
    counter = itertools.count(1)

    def _make(amount_cents, status=None, record_id=None, **kwargs):
        raw = dict(kwargs.pop("raw", {}))
        if status:
            raw["status"] = status
        return TransactionRecord(
            id=record_id or f"p{next(counter)}",
            amount_cents=amount_cents,
            source=TransactionSource.PAYOUT,
            raw=raw,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_ledger():
    """Factory for ledger records with sequential ids (l1, l2, ...)."""
    counter = itertools.count(1)

    def _make(amount_cents, entry_type=None, record_id=None, **kwargs):
        raw = dict(kwargs.pop("raw", {}))
        if entry_type:
            raw["type"] = entry_type
        return TransactionRecord(
            id=record_id or f"l{next(counter)}",
            amount_cents=amount_cents,
            source=TransactionSource.LEDGER,
            raw=raw,
            **kwargs,
        )

    return _make
