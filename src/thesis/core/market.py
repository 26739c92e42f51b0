"""Market pricing and spike detection.

The price is recomputed from raw stances on every read rather than kept as
a running aggregate. The ledger is the only source of truth; snapshots and
data points are derived.

- Price: mean of each voter's latest stance (post if present, else pre),
  rounded to a whole number; oppose is always ``100 - support``.
- Spikes: append-only records of large swings attributed to an argument.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from .constants import StanceConstants
from .db import generate_id
from .models import (
    MarketDataPoint,
    MarketPriceSnapshot,
    SpikeDirection,
    Stance,
    StancePhase,
    StanceSpike,
    round_half_up,
    utcnow,
)
from .store import EngineStore

logger = logging.getLogger(__name__)


def _latest_by_voter(stances: list[Stance]) -> dict[str, dict[StancePhase, int]]:
    by_voter: dict[str, dict[StancePhase, int]] = {}
    for stance in stances:
        by_voter.setdefault(stance.voter_id, {})[stance.phase] = stance.support_value
    return by_voter


def price_from_stances(stances: list[Stance]) -> MarketPriceSnapshot:
    """Compute a price snapshot from one debate's stances.

    Empty input yields the neutral 50/50 price with zero counts.
    """
    by_voter = _latest_by_voter(stances)
    if not by_voter:
        neutral = StanceConstants.NEUTRAL_PRICE
        return MarketPriceSnapshot(
            support_price=neutral,
            oppose_price=100 - neutral,
            total_votes=0,
            mind_change_count=0,
        )

    latest = [phases.get(StancePhase.POST, phases.get(StancePhase.PRE)) for phases in by_voter.values()]
    mean = sum(latest) / len(latest)
    support = int(min(StanceConstants.SUPPORT_MAX, max(StanceConstants.SUPPORT_MIN, round_half_up(mean))))

    mind_changes = sum(
        1
        for phases in by_voter.values()
        if StancePhase.PRE in phases
        and StancePhase.POST in phases
        and abs(phases[StancePhase.POST] - phases[StancePhase.PRE]) >= StanceConstants.MIND_CHANGE_THRESHOLD
    )

    return MarketPriceSnapshot(
        support_price=support,
        oppose_price=100 - support,
        total_votes=len(by_voter),
        mind_change_count=mind_changes,
    )


def spike_label(delta: int, direction: SpikeDirection) -> str:
    """Human-readable spike label, e.g. ``"+23 toward Support"``."""
    return f"{delta:+g} toward {direction.value.capitalize()}"


class MarketPricing:
    """Derives market prices from the ledger and records spikes and history."""

    def __init__(self, store: EngineStore, clock: Callable[[], datetime] = utcnow):
        self._store = store
        self._clock = clock

    def calculate_market_price(self, debate_id: str) -> MarketPriceSnapshot:
        """Current support/oppose price for a debate."""
        return price_from_stances(self._store.list_stances(debate_id))

    def record_market_data_point(self, debate_id: str, support_price: float, vote_count: int) -> MarketDataPoint:
        """Append one immutable point to the debate's price history."""
        point = MarketDataPoint(
            id=generate_id(),
            debate_id=debate_id,
            support_price=support_price,
            vote_count=vote_count,
            timestamp=self._clock(),
        )
        self._store.append_market_data_point(point)
        return point

    def snapshot_market(self, debate_id: str) -> MarketPriceSnapshot:
        """Compute the current price and append it to the history."""
        with self._store.transaction():
            snapshot = self.calculate_market_price(debate_id)
            self.record_market_data_point(debate_id, snapshot.support_price, snapshot.total_votes)
        return snapshot

    def detect_and_record_spike(
        self,
        debate_id: str,
        argument_id: str,
        delta: int,
        threshold: int = StanceConstants.AUTO_SPIKE_THRESHOLD,
    ) -> StanceSpike | None:
        """Record a spike if ``|delta|`` reaches ``threshold``.

        Below the threshold nothing happens and None is returned; that is
        not an error.
        """
        if abs(delta) < threshold:
            return None

        direction = SpikeDirection.SUPPORT if delta > 0 else SpikeDirection.OPPOSE
        spike = StanceSpike(
            id=generate_id(),
            debate_id=debate_id,
            argument_id=argument_id,
            delta_amount=delta,
            direction=direction,
            label=spike_label(delta, direction),
            timestamp=self._clock(),
        )
        self._store.append_spike(spike)
        logger.info(f"Spike recorded: {spike.label}", extra={"debate_id": debate_id, "argument_id": argument_id})
        return spike

    def get_market_history(self, debate_id: str) -> list[MarketDataPoint]:
        return self._store.list_market_data_points(debate_id)

    def get_spikes(self, debate_id: str) -> list[StanceSpike]:
        return self._store.list_spikes(debate_id)

    def calculate_impact_score(self, argument_id: str) -> float:
        """Average signed delta over the voters who attributed their change to an argument.

        Attributing voters without a pre-stance are skipped; no attributions
        gives 0.
        """
        deltas = []
        for post in self._store.list_attributed_post_stances(argument_id):
            pre = self._store.get_stance(post.debate_id, post.voter_id, StancePhase.PRE)
            if pre is not None:
                deltas.append(post.support_value - pre.support_value)

        if not deltas:
            return 0.0
        return round_half_up(sum(deltas) / len(deltas), 2)
