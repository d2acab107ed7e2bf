"""
Integration tests for the reconciliation pipeline.
"""

import json

import pytest

from recon_engine.config import JobSettings
from recon_engine.models import (
    AuditAction,
    ClusterStatus,
    InvalidRecordError,
    MatchConfidence,
    MatchType,
)
from recon_engine.reconciliation import ReconciliationOrchestrator, reconcile


T0 = "2024-03-01T10:00:00Z"
T0_PLUS_1H = "2024-03-01T11:00:00Z"


@pytest.fixture
def orchestrator(job_settings):
    return ReconciliationOrchestrator(job_settings)


@pytest.fixture
def mixed_batch(make_payout, make_ledger):
    """One of each situation the engine has to explain."""
    payouts = [
        make_payout(10000, status="SUCCESS", tx_id="T1", reference="TXN-1", timestamp=T0),
        make_payout(5000, reference="INV-1", timestamp=T0),
        make_payout(7500, status="FAILED", reference="TXN-3", timestamp=T0),
        make_payout(20000, status="REVERSED", reference="TXN-4", timestamp=T0),
        make_payout(9999999, reference="big", timestamp=T0),
    ]
    ledger = [
        make_ledger(-10000, entry_type="DEBIT", tx_id="T1", reference="TXN-1", timestamp=T0),
        make_ledger(5005, reference="INV-1", timestamp=T0_PLUS_1H),
        make_ledger(-150, entry_type="DEBIT", reference="TXN-1", timestamp=T0),
        make_ledger(20000, entry_type="CREDIT", reference="TXN-4", timestamp=T0_PLUS_1H),
        make_ledger(-20000, entry_type="DEBIT", reference="TXN-4", timestamp=T0_PLUS_1H),
        make_ledger(-250, reference="NOISE-1", timestamp=T0),
    ]
    return payouts, ledger


class TestReconciliationScenarios:
    """Reference scenarios, one reconciliation each."""

    def test_exact_tx_id_match(self, orchestrator, make_payout, make_ledger):
        payouts = [make_payout(10000, status="SUCCESS", tx_id="T1")]
        ledger = [make_ledger(-10000, entry_type="DEBIT", tx_id="T1")]

        result = orchestrator.reconcile(payouts, ledger)

        assert len(result.matches) == 1
        assert result.matches[0].match_type == MatchType.EXACT
        assert result.matches[0].score == pytest.approx(1.0)
        assert result.matches[0].confidence_level == MatchConfidence.HIGH
        assert result.match_rate == 1.0
        assert result.clusters == []
        assert result.total_unmatched_amount_cents == 0

    def test_reference_match_within_tolerance(self, orchestrator, make_payout, make_ledger):
        payouts = [make_payout(5000, reference="INV-1", timestamp=T0)]
        ledger = [make_ledger(5005, reference="INV-1", timestamp=T0_PLUS_1H)]

        result = orchestrator.reconcile(payouts, ledger)

        match = result.matches[0]
        assert match.match_type == MatchType.EXACT
        assert match.score_breakdown.amount_score == pytest.approx(0.95)
        assert match.score_breakdown.time_score == 1.0
        assert match.score_breakdown.exact_match == 1.0
        assert match.score == pytest.approx(0.9875)
        assert result.stats["passes"]["exact_reference"] == 1

    def test_failed_payout_has_no_cash_impact(self, orchestrator, make_payout):
        result = orchestrator.reconcile([make_payout(7500, status="FAILED")], [])

        assert [c.status for c in result.clusters] == [ClusterStatus.FAILED]
        assert result.total_unmatched_amount_cents == 0
        assert result.unmatched_count == 1
        assert result.match_rate == 0.0

    def test_fee_split_excluded_from_total(self, orchestrator, make_ledger):
        ledger = [
            make_ledger(10000, reference="TXN-100"),
            make_ledger(150, reference="TXN-100"),
        ]

        result = orchestrator.reconcile([], ledger)

        assert len(result.clusters) == 1
        assert result.clusters[0].status == ClusterStatus.FEE
        assert result.clusters[0].size == 2
        assert result.total_unmatched_amount_cents == 0
        # No payouts, no division by zero
        assert result.match_rate == 0.0

    def test_orphan_payout_counts_in_total(self, orchestrator, make_payout):
        result = orchestrator.reconcile([make_payout(9999999)], [])

        assert [c.status for c in result.clusters] == [ClusterStatus.UNMATCHED]
        assert result.total_unmatched_amount_cents == 9999999


class TestMixedBatch:
    """A batch exercising every pass and cluster rule together."""

    def test_matches_and_clusters(self, orchestrator, mixed_batch):
        payouts, ledger = mixed_batch

        result = orchestrator.reconcile(payouts, ledger)

        assert {(m.payout_id, m.ledger_id) for m in result.matches} == {
            ("p1", "l1"),
            ("p2", "l2"),
            ("p4", "l4"),
        }
        assert [r.id for r in result.unmatched_payouts] == ["p3", "p5"]
        assert [r.id for r in result.unmatched_ledger] == ["l3", "l5", "l6"]
        assert [(c.status, c.rule) for c in result.clusters] == [
            (ClusterStatus.FAILED, "failed"),
            (ClusterStatus.REVERSED, "reversal"),
            (ClusterStatus.FEE, "fee-residual"),
            (ClusterStatus.UNMATCHED, "unmatched"),
            (ClusterStatus.UNMATCHED, "noise"),
        ]
        assert result.total_unmatched_amount_cents == 9999999 - 250
        assert result.matched_count == 3
        assert result.unmatched_count == 5
        assert result.match_rate == pytest.approx(0.6)

    def test_ids_used_at_most_once(self, orchestrator, mixed_batch):
        payouts, ledger = mixed_batch

        result = orchestrator.reconcile(payouts, ledger)

        ids = [m.payout_id for m in result.matches] + [m.ledger_id for m in result.matches]
        assert len(ids) == len(set(ids))

    def test_total_bounded_by_absolute_unmatched(self, orchestrator, mixed_batch):
        payouts, ledger = mixed_batch

        result = orchestrator.reconcile(payouts, ledger)

        bound = (
            sum(abs(r.amount_cents) for r in result.unmatched_payouts)
            + sum(abs(r.amount_cents) for r in result.unmatched_ledger)
        )
        assert result.total_unmatched_amount_cents <= bound
        assert 0.0 <= result.match_rate <= 1.0

    def test_idempotent(self, orchestrator, mixed_batch):
        payouts, ledger = mixed_batch

        first = orchestrator.reconcile(payouts, ledger)
        second = orchestrator.reconcile(payouts, ledger)

        assert first.to_dict() == second.to_dict()

    def test_inputs_not_mutated(self, orchestrator, mixed_batch):
        payouts, ledger = mixed_batch
        before = [r.to_dict() for r in payouts + ledger]

        orchestrator.reconcile(payouts, ledger)

        assert [r.to_dict() for r in payouts + ledger] == before

    def test_export_shape(self, orchestrator, mixed_batch):
        payouts, ledger = mixed_batch

        exported = orchestrator.reconcile(payouts, ledger).to_dict()

        assert set(exported) == {
            "matches",
            "clusters",
            "unmatched_payouts",
            "unmatched_ledger",
            "total_unmatched_amount_cents",
            "matched_count",
            "unmatched_count",
            "match_rate",
        }
        assert exported["matches"][0] == {
            "payout_id": "p1",
            "ledger_id": "l1",
            "score": pytest.approx(1.0),
            "score_breakdown": {
                "exact_match": 1.0,
                "amount_score": 1.0,
                "time_score": 1.0,
                "fuzzy_score": 1.0,
                "weights": {"exact": 40, "amount": 25, "time": 20, "fuzzy": 15},
            },
            "match_type": "exact",
            "confidence_level": "high",
        }
        assert exported["clusters"][0] == {
            "pivot_id": "p3",
            "pivot_type": "payout",
            "records": [payouts[2].to_dict()],
            "amount": 7500,
            "status": "failed",
            "label": "Failed Payouts #1",
            "notes": "1 failed payout(s), no money moved",
            "size": 1,
        }
        assert [r["id"] for r in exported["unmatched_ledger"]] == ["l3", "l5", "l6"]
        assert exported["unmatched_payouts"][1]["raw"] == {}
        assert exported["total_unmatched_amount_cents"] == 9999749
        assert exported["match_rate"] == pytest.approx(0.6)
        json.dumps(exported)

    def test_audit_trail(self, orchestrator, mixed_batch):
        payouts, ledger = mixed_batch

        result = orchestrator.reconcile(payouts, ledger, job_id="job-1")

        actions = [entry.action for entry in result.audit_log]
        assert actions[0] == AuditAction.RECONCILIATION_STARTED
        assert actions[-1] == AuditAction.RECONCILIATION_COMPLETED
        assert actions.count(AuditAction.MATCH_COMMITTED) == 3
        assert actions.count(AuditAction.CLUSTER_CREATED) == 5
        assert result.completed_at is not None


class TestOrchestratorInputs:
    """Input handling at the entry point."""

    def test_plain_mappings_accepted(self, job_settings):
        payouts = [{
            "id": "p1",
            "tx_id": "T1",
            "amount_cents": 10000,
            "source": "payout",
            "raw": {"status": "success"},
        }]
        ledger = [{
            "id": "l1",
            "tx_id": "T1",
            "amount_cents": -10000,
            "source": "ledger",
            "raw": {"type": "debit"},
        }]

        result = reconcile(payouts, ledger, job_settings)

        assert result.matched_count == 1
        assert result.to_dict()["matches"][0]["score"] == pytest.approx(1.0)

    def test_unknown_status_fails_loudly(self, job_settings):
        payouts = [{"id": "p1", "amount_cents": 100, "raw": {"status": "BOUNCED"}}]

        with pytest.raises(InvalidRecordError):
            reconcile(payouts, [], job_settings)

    def test_rows_beyond_max_rows_are_ignored(self, make_payout):
        settings = JobSettings(
            amount_tolerance_cents=100,
            time_window_hours=48,
            fuzzy_threshold=85,
            max_rows=2,
        )
        payouts = [make_payout(100 * (i + 1)) for i in range(3)]

        result = ReconciliationOrchestrator(settings).reconcile(payouts, [])

        assert [r.id for r in result.unmatched_payouts] == ["p1", "p2"]
        assert result.stats["total_payouts"] == 2
        assert any(e.action == AuditAction.ROWS_TRUNCATED for e in result.audit_log)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
