"""Tests for thesis.core.store - the in-memory EngineStore."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from thesis.core.exceptions import ConflictError, NotFoundError
from thesis.core.models import (
    MarketDataPoint,
    ReputationFactor,
    ReputationHistoryEntry,
    Stance,
    StancePhase,
)
from thesis.core.store import EngineStore, InMemoryEngineStore

T0 = datetime(2026, 3, 1, tzinfo=UTC)


def _stance(voter: str, phase: StancePhase, value: int = 50, debate: str = "debate-1", **kwargs) -> Stance:
    return Stance(
        id=f"{debate}-{voter}-{phase.value}",
        debate_id=debate,
        voter_id=voter,
        phase=phase,
        support_value=value,
        confidence=3,
        **kwargs,
    )


def test_implements_protocol():
    assert isinstance(InMemoryEngineStore(), EngineStore)


class TestStances:
    def test_insert_and_get(self, store):
        store.insert_stance(_stance("v1", StancePhase.PRE, 40))

        found = store.get_stance("debate-1", "v1", StancePhase.PRE)
        assert found.support_value == 40
        assert store.get_stance("debate-1", "v1", StancePhase.POST) is None

    def test_one_stance_per_phase(self, store):
        store.insert_stance(_stance("v1", StancePhase.PRE, 40))

        with pytest.raises(ConflictError) as exc_info:
            store.insert_stance(Stance("other-id", "debate-1", "v1", StancePhase.PRE, 60, 3))

        assert exc_info.value.retryable is True
        assert exc_info.value.existing_id == "debate-1-v1-pre"
        assert store.get_stance("debate-1", "v1", StancePhase.PRE).support_value == 40

    def test_returned_rows_are_copies(self, store):
        store.insert_stance(_stance("v1", StancePhase.PRE, 40))
        found = store.get_stance("debate-1", "v1", StancePhase.PRE)
        found.support_value = 99

        assert store.get_stance("debate-1", "v1", StancePhase.PRE).support_value == 40

    def test_list_stances_by_debate(self, store):
        store.insert_stance(_stance("v1", StancePhase.PRE))
        store.insert_stance(_stance("v2", StancePhase.PRE))
        store.insert_stance(_stance("v1", StancePhase.PRE, debate="debate-2"))

        assert [s.voter_id for s in store.list_stances("debate-1")] == ["v1", "v2"]

    def test_list_voter_stances_newest_first(self, store):
        store.insert_stance(_stance("v1", StancePhase.PRE, created_at=T0))
        store.insert_stance(_stance("v1", StancePhase.POST, created_at=T0 + timedelta(hours=1)))
        store.insert_stance(_stance("v1", StancePhase.PRE, debate="debate-2", created_at=T0 + timedelta(hours=2)))

        stances = store.list_voter_stances("v1")
        assert [(s.debate_id, s.phase) for s in stances] == [
            ("debate-2", StancePhase.PRE),
            ("debate-1", StancePhase.POST),
            ("debate-1", StancePhase.PRE),
        ]

    def test_set_attribution(self, store):
        store.insert_stance(_stance("v1", StancePhase.POST, 80))

        updated = store.set_attribution("debate-1-v1-post", "arg-1", T0)

        assert updated.attributed_argument_id == "arg-1"
        assert updated.attributed_at == T0
        assert [s.id for s in store.list_attributed_post_stances("arg-1")] == ["debate-1-v1-post"]

    def test_set_attribution_unknown_stance(self, store):
        with pytest.raises(NotFoundError):
            store.set_attribution("missing", "arg-1", T0)


class TestTransactions:
    def test_rollback_on_error(self, store):
        store.insert_stance(_stance("v1", StancePhase.PRE))

        with pytest.raises(RuntimeError):
            with store.transaction():
                store.insert_stance(_stance("v2", StancePhase.PRE))
                store.append_market_data_point(MarketDataPoint("p1", "debate-1", 50, 2, T0))
                raise RuntimeError("boom")

        assert [s.voter_id for s in store.list_stances("debate-1")] == ["v1"]
        assert store.list_market_data_points("debate-1") == []

    def test_nested_transactions_roll_back_together(self, store):
        with pytest.raises(RuntimeError):
            with store.transaction():
                store.insert_stance(_stance("v1", StancePhase.PRE))
                with store.transaction():
                    store.insert_stance(_stance("v2", StancePhase.PRE))
                raise RuntimeError("outer failure")

        assert store.list_stances("debate-1") == []

    def test_commit(self, store):
        with store.transaction():
            store.insert_stance(_stance("v1", StancePhase.PRE))
        assert len(store.list_stances("debate-1")) == 1


class TestReputationRows:
    def test_create_is_insert_if_absent(self, store):
        first = store.create_reputation_factor(ReputationFactor("u1", impact_score_total=10))
        second = store.create_reputation_factor(ReputationFactor("u1", impact_score_total=99))

        assert first.impact_score_total == 10
        assert second.impact_score_total == 10

    def test_compare_and_swap(self, store):
        store.create_reputation_factor(ReputationFactor("u1"))

        assert store.update_reputation_factor(ReputationFactor("u1", participation_count=1, version=1), 0)
        # Stale writer still expects version 0
        assert not store.update_reputation_factor(ReputationFactor("u1", participation_count=7, version=1), 0)

        stored = store.get_reputation_factor("u1")
        assert stored.version == 1
        assert stored.participation_count == 1

    def test_update_missing_factor(self, store):
        assert not store.update_reputation_factor(ReputationFactor("ghost", version=1), 0)

    def test_history_newest_first_with_limit(self, store):
        for i in range(3):
            store.append_reputation_history(
                ReputationHistoryEntry(f"h{i}", "u1", 300 + i, 301 + i, 1, "High impact argument")
            )
        store.append_reputation_history(ReputationHistoryEntry("other", "u2", 1, 2, 1, "x"))

        assert [h.id for h in store.list_reputation_history("u1")] == ["h2", "h1", "h0"]
        assert [h.id for h in store.list_reputation_history("u1", limit=2)] == ["h2", "h1"]
