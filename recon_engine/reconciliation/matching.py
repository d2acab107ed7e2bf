"""
Matching Engine - four ordered passes pairing payouts with ledger entries.

1. Exact id:        identical provider tx_id
2. Exact reference: identical reference, amount-eligible
3. Deterministic:   best weighted amount/time/reference score in the window
4. Fuzzy:           like 3, restricted to similar references

Every pass only sees records left unmatched by the passes before it. The set
of matched ids is an explicit MatchState handed from one pass to the next.
"""

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterator, List, Optional, Set, Tuple

import structlog

from ..config import JobSettings
from ..models import (
    AuditAction,
    AuditEntry,
    MatchResult,
    MatchType,
    ScoreBreakdown,
    TransactionRecord,
)
from ..utils.temporal import TemporalComparator
from ..utils.text_similarity import StringSimilarity
from .amounts import AmountComparator

logger = structlog.get_logger()


EXACT_REFERENCE_MIN_SCORE = 0.5
DETERMINISTIC_MIN_SCORE = 0.5
FUZZY_MIN_SCORE = 0.4
UNKNOWN_TIME_SCORE = 0.5


@dataclass
class MatchState:
    """Ids already claimed by a match. Each pass works on its own copy."""
    matched_payout_ids: Set[str] = field(default_factory=set)
    matched_ledger_ids: Set[str] = field(default_factory=set)

    def copy(self) -> "MatchState":
        return MatchState(
            matched_payout_ids=set(self.matched_payout_ids),
            matched_ledger_ids=set(self.matched_ledger_ids),
        )

    def payout_free(self, payout: TransactionRecord) -> bool:
        return payout.id not in self.matched_payout_ids

    def ledger_free(self, ledger: TransactionRecord) -> bool:
        return ledger.id not in self.matched_ledger_ids

    def commit(self, match: MatchResult) -> None:
        self.matched_payout_ids.add(match.payout_id)
        self.matched_ledger_ids.add(match.ledger_id)


@dataclass
class MatchingResult:
    """Result of the matching phase."""
    matches: List[MatchResult]
    state: MatchState
    audit_entries: List[AuditEntry]
    stats: Dict[str, int]


class MatchingEngine:
    """
    Four-pass deterministic matcher.

    Component weights are fixed (exact=40, amount=25, time=20, fuzzy=15) and
    a match's score is their weighted mean. Exact passes take the first
    acceptable candidate; scored passes keep the strictly highest scoring
    candidate, so the earliest ledger entry wins ties.
    """

    def __init__(self, settings: Optional[JobSettings] = None):
        self.settings = settings or JobSettings.defaults()
        self.amounts = AmountComparator(self.settings.amount_tolerance_cents)
        self.time_window = self.settings.time_window_hours
        self.fuzzy_threshold = self.settings.fuzzy_threshold / 100.0

    def process(
        self,
        payouts: List[TransactionRecord],
        ledger: List[TransactionRecord],
    ) -> MatchingResult:
        """
        Run all four passes.

        Args:
            payouts: Payout records in input order
            ledger: Ledger records in input order

        Returns:
            MatchingResult with matches in pass order
        """
        logger.info(
            "Starting matching",
            payouts=len(payouts),
            ledger=len(ledger),
        )

        state = MatchState()
        matches: List[MatchResult] = []
        stats: Dict[str, int] = {}

        passes = (
            ("exact_id", self.exact_id_pass),
            ("exact_reference", self.exact_reference_pass),
            ("deterministic", self.deterministic_pass),
            ("fuzzy", self.fuzzy_pass),
        )
        audit_entries: List[AuditEntry] = []

        for name, run_pass in passes:
            pass_matches, state = run_pass(payouts, ledger, state)
            matches.extend(pass_matches)
            stats[name] = len(pass_matches)

            audit_entries.extend(
                AuditEntry(
                    action=AuditAction.MATCH_COMMITTED,
                    transaction_ids=[match.payout_id, match.ledger_id],
                    message=f"{name} match ({match.confidence_level.value})",
                    details={
                        "pass": name,
                        "score": match.score,
                        "match_type": match.match_type.value,
                    },
                )
                for match in pass_matches
            )

        stats["matched"] = len(matches)
        logger.info("Matching complete", **stats)

        return MatchingResult(
            matches=matches,
            state=state,
            audit_entries=audit_entries,
            stats=stats,
        )

    # Pass 1

    def exact_id_pass(
        self,
        payouts: List[TransactionRecord],
        ledger: List[TransactionRecord],
        state: MatchState,
    ) -> Tuple[List[MatchResult], MatchState]:
        """
        Pair payouts and ledger entries sharing a provider tx_id.

        The tx_id is taken as authoritative: an amount the comparator rejects
        only zeroes the amount component, it does not block the match.
        """
        state = state.copy()
        matches = []
        index = self._build_index(ledger, lambda record: record.tx_id)

        for payout in payouts:
            if not payout.tx_id or not state.payout_free(payout):
                continue

            candidate = next(
                (entry for entry in index.get(payout.tx_id, []) if state.ledger_free(entry)),
                None,
            )
            if candidate is None:
                continue

            breakdown = ScoreBreakdown(
                exact_match=1.0,
                amount_score=1.0 if self.amounts.is_eligible(payout, candidate) else 0.0,
                time_score=1.0,
                fuzzy_score=1.0,
            )
            match = MatchResult.build(payout.id, candidate.id, breakdown, MatchType.EXACT)
            matches.append(match)
            state.commit(match)

        return matches, state

    # Pass 2

    def exact_reference_pass(
        self,
        payouts: List[TransactionRecord],
        ledger: List[TransactionRecord],
        state: MatchState,
    ) -> Tuple[List[MatchResult], MatchState]:
        """
        Pair payouts with an amount-eligible ledger entry carrying the same reference.

        Stricter than the scored passes on time: an unknown time distance
        scores 0 here rather than the neutral 0.5.
        """
        state = state.copy()
        matches = []
        index = self._build_index(ledger, lambda record: record.reference)

        for payout in payouts:
            if payout.is_failed or not payout.reference or not state.payout_free(payout):
                continue

            for candidate in index.get(payout.reference, []):
                if not state.ledger_free(candidate):
                    continue
                if not self.amounts.is_eligible(payout, candidate):
                    continue

                hours = TemporalComparator.hours_between(payout.timestamp, candidate.timestamp)
                breakdown = ScoreBreakdown(
                    exact_match=1.0,
                    amount_score=self.amounts.score(payout, candidate),
                    time_score=1.0 if hours is not None and hours <= self.time_window else 0.0,
                    fuzzy_score=StringSimilarity.score(payout.reference, candidate.reference),
                )
                if breakdown.weighted_score() < EXACT_REFERENCE_MIN_SCORE:
                    continue

                match = MatchResult.build(payout.id, candidate.id, breakdown, MatchType.EXACT)
                matches.append(match)
                state.commit(match)
                break

        return matches, state

    # Pass 3

    def deterministic_pass(
        self,
        payouts: List[TransactionRecord],
        ledger: List[TransactionRecord],
        state: MatchState,
    ) -> Tuple[List[MatchResult], MatchState]:
        """Best weighted candidate among amount-eligible entries inside the time window."""
        return self._best_candidate_pass(
            payouts,
            ledger,
            state,
            match_type=MatchType.DETERMINISTIC,
            min_score=DETERMINISTIC_MIN_SCORE,
            min_fuzzy=None,
        )

    # Pass 4

    def fuzzy_pass(
        self,
        payouts: List[TransactionRecord],
        ledger: List[TransactionRecord],
        state: MatchState,
    ) -> Tuple[List[MatchResult], MatchState]:
        """Like the deterministic pass, but only references above the fuzzy threshold compete."""
        return self._best_candidate_pass(
            payouts,
            ledger,
            state,
            match_type=MatchType.FUZZY,
            min_score=FUZZY_MIN_SCORE,
            min_fuzzy=self.fuzzy_threshold,
        )

    def _best_candidate_pass(
        self,
        payouts: List[TransactionRecord],
        ledger: List[TransactionRecord],
        state: MatchState,
        match_type: MatchType,
        min_score: float,
        min_fuzzy: Optional[float],
    ) -> Tuple[List[MatchResult], MatchState]:
        state = state.copy()
        matches = []

        for payout in payouts:
            if payout.is_failed or not state.payout_free(payout):
                continue

            best: Optional[Tuple[TransactionRecord, ScoreBreakdown, float]] = None

            for candidate, breakdown in self._scored_candidates(payout, ledger, state):
                if min_fuzzy is not None and breakdown.fuzzy_score < min_fuzzy:
                    continue

                score = breakdown.weighted_score()
                if best is None or score > best[2]:
                    best = (candidate, breakdown, score)

            if best is None or best[2] < min_score:
                continue

            match = MatchResult.build(payout.id, best[0].id, best[1], match_type)
            matches.append(match)
            state.commit(match)

        return matches, state

    def _scored_candidates(
        self,
        payout: TransactionRecord,
        ledger: List[TransactionRecord],
        state: MatchState,
    ) -> Iterator[Tuple[TransactionRecord, ScoreBreakdown]]:
        """Amount-eligible, in-window ledger entries with their score breakdown."""
        for candidate in ledger:
            if not state.ledger_free(candidate):
                continue
            if not self.amounts.is_eligible(payout, candidate):
                continue

            hours = TemporalComparator.hours_between(payout.timestamp, candidate.timestamp)
            if hours is not None and hours > self.time_window:
                continue

            yield candidate, ScoreBreakdown(
                exact_match=0.0,
                amount_score=self.amounts.score(payout, candidate),
                time_score=self._time_score(hours),
                fuzzy_score=StringSimilarity.score(payout.reference, candidate.reference),
            )

    def _time_score(self, hours: Optional[float]) -> float:
        """Linear decay across the window; unknown distance is neutral."""
        if hours is None:
            return UNKNOWN_TIME_SCORE
        if self.time_window == 0:
            return 1.0 if hours == 0 else 0.0
        return max(0.0, 1.0 - hours / self.time_window)

    def _build_index(
        self,
        records: List[TransactionRecord],
        key,
    ) -> Dict[str, List[TransactionRecord]]:
        """Index records by a string key, keeping input order per key."""
        index = defaultdict(list)
        for record in records:
            value = key(record)
            if value:
                index[value].append(record)
        return index
