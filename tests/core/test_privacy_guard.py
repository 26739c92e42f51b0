"""Tests for thesis.core.privacy_guard - aggregate-only and self-access reads."""

from __future__ import annotations

import dataclasses
import random

import pytest

from thesis.core.exceptions import BlindVotingError, NotSelfAccessError, PrivacyViolationError
from thesis.core.models import AggregateStanceData, PrivacyQuery, Stance, StancePhase
from thesis.core.privacy_guard import (
    BLIND_VOTING_REASON,
    filter_for_public_response,
    validate_privacy_compliance,
)

AGGREGATE_FIELDS = {
    "total_voters",
    "average_pre_stance",
    "average_post_stance",
    "average_delta",
    "mind_changed_count",
}


def _pair(voter: str, pre: int, post: int | None, debate: str = "debate-1") -> list[Stance]:
    stances = [Stance(f"{voter}-pre", debate, voter, StancePhase.PRE, pre, 3)]
    if post is not None:
        stances.append(Stance(f"{voter}-post", debate, voter, StancePhase.POST, post, 3))
    return stances


@pytest.fixture
def guard(engine):
    return engine.guard


# ============================================================================
# filter_for_public_response
# ============================================================================


class TestFilterForPublicResponse:
    def test_worked_example(self):
        """A (40 -> 70) and B (60 -> 55)."""
        stats = filter_for_public_response(_pair("A", 40, 70) + _pair("B", 60, 55))

        assert stats.total_voters == 2
        assert stats.average_pre_stance == 50
        assert stats.average_post_stance == 62.5
        assert stats.average_delta == 12.5
        assert stats.mind_changed_count == 1

    def test_empty_input_is_neutral(self):
        stats = filter_for_public_response([])
        assert stats == AggregateStanceData(0, 50, 50, 0, 0)

    def test_voters_without_post_are_excluded(self):
        stats = filter_for_public_response(_pair("A", 40, 70) + _pair("B", 0, None))

        assert stats.total_voters == 1
        assert stats.average_pre_stance == 40

    def test_only_pre_stances_is_neutral(self):
        stats = filter_for_public_response(_pair("A", 10, None) + _pair("B", 90, None))
        assert stats.total_voters == 0
        assert stats.average_pre_stance == 50

    def test_means_rounded_to_one_decimal(self):
        stances = _pair("A", 10, 11) + _pair("B", 10, 11) + _pair("C", 11, 12)
        stats = filter_for_public_response(stances)

        assert stats.average_pre_stance == 10.3
        assert stats.average_post_stance == 11.3
        assert stats.average_delta == 1.0

    def test_output_never_contains_voter_ids(self):
        rng = random.Random(7)
        voters = [f"user-{rng.randrange(10**6)}" for _ in range(25)]
        stances = [s for v in voters for s in _pair(v, rng.randrange(101), rng.randrange(101))]

        stats = filter_for_public_response(stances)

        values = dataclasses.asdict(stats)
        assert set(values) == AGGREGATE_FIELDS
        assert set(stats.to_dict()) == AGGREGATE_FIELDS
        assert not set(map(str, values.values())) & set(voters)

    def test_no_field_can_be_attached(self):
        stats = filter_for_public_response(_pair("A", 40, 70))
        with pytest.raises((AttributeError, TypeError)):
            stats.voter_id = "A"


# ============================================================================
# Access checks
# ============================================================================


class TestSelfAccess:
    @pytest.mark.parametrize("user", ["alice", "user-1", ""])
    def test_owner_may_access(self, guard, user):
        assert guard.can_access_own_stance(user, user) is True

    @pytest.mark.parametrize("owner,requester", [("alice", "bob"), ("bob", "alice"), ("u1", "U1")])
    def test_others_may_not(self, guard, owner, requester):
        assert guard.can_access_own_stance(owner, requester) is False

    def test_require_self_access(self, guard):
        guard.require_self_access("carol", "carol")
        with pytest.raises(NotSelfAccessError):
            guard.require_self_access("carol", "dave")

    def test_get_own_stances(self, engine, guard):
        engine.ledger.record_pre_stance("debate-1", "carol", 40)

        own = guard.get_own_stances("debate-1", "carol", "carol")

        assert own.pre.support_value == 40
        assert own.post is None

    def test_get_own_stances_for_someone_else(self, engine, guard):
        engine.ledger.record_pre_stance("debate-1", "carol", 40)
        assert guard.get_own_stances("debate-1", "carol", "dave") is None


class TestValidatePrivacyCompliance:
    def test_aggregate_only_always_valid(self):
        query = PrivacyQuery(is_aggregate_only=True, includes_voter_id=True, requester_id="a", target_user_id="b")
        assert validate_privacy_compliance(query).valid is True

    def test_voter_id_without_self_access(self):
        result = validate_privacy_compliance(PrivacyQuery(includes_voter_id=True))
        assert result.valid is False
        assert result.reason == "Cannot query stance data by voter ID through public API"

    def test_self_access_mismatch(self):
        query = PrivacyQuery(includes_voter_id=True, is_self_access=True, requester_id="a", target_user_id="b")
        result = validate_privacy_compliance(query)
        assert result.valid is False
        assert result.reason == "Can only access your own stance data"

    def test_self_access_match(self):
        query = PrivacyQuery(includes_voter_id=True, is_self_access=True, requester_id="a", target_user_id="a")
        assert validate_privacy_compliance(query).valid is True

    def test_plain_query_valid(self):
        assert validate_privacy_compliance(PrivacyQuery()).valid is True

    def test_guard_raises_on_invalid_shape(self, guard):
        with pytest.raises(PrivacyViolationError):
            guard._require_compliant(PrivacyQuery(includes_voter_id=True))


# ============================================================================
# Blind voting
# ============================================================================


class TestBlindVoting:
    def test_gate_opens_after_pre_stance(self, engine, guard):
        before = guard.can_access_market_price("debate-1", "carol")
        assert before.can_access is False
        assert before.reason == BLIND_VOTING_REASON

        engine.ledger.record_pre_stance("debate-1", "carol", 40)

        assert guard.can_access_market_price("debate-1", "carol").can_access is True

    def test_gate_is_per_debate_and_user(self, engine, guard):
        engine.ledger.record_pre_stance("debate-1", "carol", 40)

        assert guard.can_access_market_price("debate-2", "carol").can_access is False
        assert guard.can_access_market_price("debate-1", "dave").can_access is False

    def test_debaters_exempt(self, guard):
        assert guard.can_access_market_price("debate-1", "alice").can_access is True
        assert guard.can_access_market_price("debate-2", "alice").can_access is False

    def test_enforce_blind_voting(self, engine, guard):
        with pytest.raises(BlindVotingError) as exc_info:
            guard.enforce_blind_voting("debate-1", "carol")
        assert exc_info.value.message == BLIND_VOTING_REASON

        engine.ledger.record_pre_stance("debate-1", "carol", 40)
        guard.enforce_blind_voting("debate-1", "carol")

    def test_get_market_price_gated(self, engine, guard):
        engine.ledger.record_pre_stance("debate-1", "dave", 80)

        with pytest.raises(BlindVotingError):
            guard.get_market_price("debate-1", "carol")

        engine.ledger.record_pre_stance("debate-1", "carol", 40)
        assert guard.get_market_price("debate-1", "carol").support_price == 60


# ============================================================================
# Aggregate stats and voting history
# ============================================================================


class TestAggregateStats:
    def test_from_ledger(self, engine, guard):
        engine.ledger.record_pre_stance("debate-1", "carol", 40)
        engine.ledger.record_post_stance("debate-1", "carol", 70)
        engine.ledger.record_pre_stance("debate-1", "dave", 60)
        engine.ledger.record_post_stance("debate-1", "dave", 55)
        engine.ledger.record_pre_stance("debate-1", "erin", 10)

        stats = guard.get_aggregate_stats("debate-1")

        assert stats == AggregateStanceData(2, 50, 62.5, 12.5, 1)

    def test_no_votes(self, guard):
        assert guard.get_aggregate_stats("debate-1") == AggregateStanceData(0, 50, 50, 0, 0)


class TestVotingHistory:
    def test_only_owner(self, engine, guard):
        engine.ledger.record_pre_stance("debate-1", "carol", 40)
        assert guard.get_voting_history("carol", "dave") is None

    def test_entries_most_recent_first(self, engine, guard, clock):
        engine.ledger.record_pre_stance("debate-1", "carol", 40)
        clock.advance(minutes=10)
        engine.ledger.record_pre_stance("debate-2", "carol", 20)
        clock.advance(minutes=10)
        engine.ledger.record_post_stance("debate-1", "carol", 65)

        history = guard.get_voting_history("carol", "carol")

        assert [h.debate_id for h in history] == ["debate-1", "debate-2"]
        first, second = history
        assert first.resolution == "Cities should ban private cars downtown"
        assert first.debate_status == "active"
        assert (first.pre_stance, first.post_stance, first.delta) == (40, 65, 25)
        assert first.voted_at == clock.now
        assert second.debate_status == "concluded"
        assert (second.pre_stance, second.post_stance, second.delta) == (20, None, None)

    def test_unknown_debate(self, engine, guard):
        engine.ledger.record_pre_stance("debate-x", "carol", 40)

        (entry,) = guard.get_voting_history("carol", "carol")

        assert entry.resolution == "Unknown"
        assert entry.debate_status == "unknown"

    def test_empty(self, guard):
        assert guard.get_voting_history("carol", "carol") == []
