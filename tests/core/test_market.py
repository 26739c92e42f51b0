"""Tests for thesis.core.market - pricing, history, spikes and impact scores."""

from __future__ import annotations

import pytest

from thesis.core.constants import StanceConstants
from thesis.core.market import MarketPricing, price_from_stances, spike_label
from thesis.core.models import SpikeDirection, Stance, StancePhase


def _stance(voter: str, phase: StancePhase, value: int, debate: str = "debate-1", **kwargs) -> Stance:
    return Stance(f"{debate}-{voter}-{phase.value}", debate, voter, phase, value, 3, **kwargs)


@pytest.fixture
def market(store, clock) -> MarketPricing:
    return MarketPricing(store, clock=clock)


# ============================================================================
# Price computation
# ============================================================================


class TestPriceFromStances:
    def test_empty_is_neutral(self):
        snapshot = price_from_stances([])

        assert snapshot.support_price == 50
        assert snapshot.oppose_price == 50
        assert snapshot.total_votes == 0
        assert snapshot.mind_change_count == 0

    def test_uses_latest_stance_per_voter(self):
        snapshot = price_from_stances(
            [
                _stance("a", StancePhase.PRE, 40),
                _stance("a", StancePhase.POST, 70),
                _stance("b", StancePhase.PRE, 60),
            ]
        )

        # a counts as 70 (post), b as 60 (pre only)
        assert snapshot.support_price == 65
        assert snapshot.oppose_price == 35
        assert snapshot.total_votes == 2

    def test_rounds_half_up(self):
        snapshot = price_from_stances([_stance("a", StancePhase.PRE, 50), _stance("b", StancePhase.PRE, 51)])
        assert snapshot.support_price == 51  # 50.5

    def test_oppose_complements_support(self):
        snapshot = price_from_stances([_stance("a", StancePhase.PRE, 0), _stance("b", StancePhase.PRE, 33)])
        assert snapshot.support_price + snapshot.oppose_price == 100

    def test_mind_changes_use_threshold(self):
        threshold = StanceConstants.MIND_CHANGE_THRESHOLD
        snapshot = price_from_stances(
            [
                _stance("a", StancePhase.PRE, 50),
                _stance("a", StancePhase.POST, 50 + threshold),
                _stance("b", StancePhase.PRE, 50),
                _stance("b", StancePhase.POST, 50 - threshold + 1),
                _stance("c", StancePhase.PRE, 80),
                _stance("c", StancePhase.POST, 80 - threshold),
            ]
        )
        assert snapshot.mind_change_count == 2


class TestMarketPricing:
    def test_calculate_market_price_no_votes(self, market):
        """A debate nobody voted on prices at 50/50."""
        snapshot = market.calculate_market_price("debate-empty")
        assert (snapshot.support_price, snapshot.oppose_price, snapshot.total_votes) == (50, 50, 0)

    def test_calculate_market_price_reads_store(self, market, store):
        store.insert_stance(_stance("a", StancePhase.PRE, 20))
        store.insert_stance(_stance("b", StancePhase.PRE, 80, debate="debate-2"))

        assert market.calculate_market_price("debate-1").support_price == 20

    def test_snapshot_market_appends_history(self, market, store, clock):
        store.insert_stance(_stance("a", StancePhase.PRE, 30))
        market.snapshot_market("debate-1")
        clock.advance(minutes=5)
        store.insert_stance(_stance("b", StancePhase.PRE, 50))
        snapshot = market.snapshot_market("debate-1")

        history = market.get_market_history("debate-1")
        assert snapshot.support_price == 40
        assert [(p.support_price, p.vote_count) for p in history] == [(30, 1), (40, 2)]
        assert history[1].timestamp > history[0].timestamp

    def test_record_market_data_point(self, market, clock):
        point = market.record_market_data_point("debate-1", 55, 9)

        assert point.timestamp == clock.now
        assert market.get_market_history("debate-1") == [point]


# ============================================================================
# Spikes
# ============================================================================


class TestSpikeDetection:
    def test_below_threshold_records_nothing(self, market):
        assert market.detect_and_record_spike("debate-1", "arg-1", 9, threshold=10) is None
        assert market.get_spikes("debate-1") == []

    def test_at_threshold_records_one(self, market):
        spike = market.detect_and_record_spike("debate-1", "arg-1", 10, threshold=10)

        assert spike.direction == SpikeDirection.SUPPORT
        assert spike.delta_amount == 10
        assert market.get_spikes("debate-1") == [spike]

    def test_negative_delta_moves_toward_oppose(self, market):
        spike = market.detect_and_record_spike("debate-1", "arg-1", -10, threshold=10)

        assert spike.direction == SpikeDirection.OPPOSE
        assert spike.delta_amount == -10
        assert spike.label == "-10 toward Oppose"

    def test_default_threshold_is_auto_spike(self, market):
        assert market.detect_and_record_spike("debate-1", "arg-1", StanceConstants.AUTO_SPIKE_THRESHOLD - 1) is None
        assert market.detect_and_record_spike("debate-1", "arg-1", StanceConstants.AUTO_SPIKE_THRESHOLD)

    def test_spikes_in_append_order(self, market, clock):
        market.detect_and_record_spike("debate-1", "arg-1", 20)
        clock.advance(seconds=1)
        market.detect_and_record_spike("debate-1", "arg-2", -30)

        assert [s.argument_id for s in market.get_spikes("debate-1")] == ["arg-1", "arg-2"]

    def test_spike_label(self):
        assert spike_label(23, SpikeDirection.SUPPORT) == "+23 toward Support"
        assert spike_label(-17, SpikeDirection.OPPOSE) == "-17 toward Oppose"


# ============================================================================
# Impact score
# ============================================================================


class TestImpactScore:
    def test_no_attributions(self, market):
        assert market.calculate_impact_score("arg-1") == 0.0

    def test_signed_average_over_attributing_voters(self, market, store):
        store.insert_stance(_stance("a", StancePhase.PRE, 40))
        store.insert_stance(_stance("a", StancePhase.POST, 70, attributed_argument_id="arg-1"))
        store.insert_stance(_stance("b", StancePhase.PRE, 60))
        store.insert_stance(_stance("b", StancePhase.POST, 55, attributed_argument_id="arg-1"))
        store.insert_stance(_stance("c", StancePhase.PRE, 10))
        store.insert_stance(_stance("c", StancePhase.POST, 90, attributed_argument_id="arg-2"))

        # (30 + -5) / 2
        assert market.calculate_impact_score("arg-1") == 12.5

    def test_rounded_to_two_decimals(self, market, store):
        for voter, (pre, post) in {"a": (0, 10), "b": (0, 10), "c": (0, 0)}.items():
            store.insert_stance(_stance(voter, StancePhase.PRE, pre))
            store.insert_stance(_stance(voter, StancePhase.POST, post, attributed_argument_id="arg-1"))

        assert market.calculate_impact_score("arg-1") == 6.67
