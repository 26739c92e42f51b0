# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Thesis Contributors

"""Privacy aggregation guard.

The only read surface over more than one voter's stances. Public responses
are reduced to :class:`~thesis.core.models.AggregateStanceData`; a voter's
own rows are returned only to that voter; the market price is hidden until
the requester has recorded a pre-stance (blind voting).

Every read that touches raw stance rows first checks the shape of its
query with :meth:`PrivacyGuard.validate_privacy_compliance`.
"""

from __future__ import annotations

import logging

from .constants import StanceConstants
from .directory import DebateDirectory
from .exceptions import BlindVotingError, NotSelfAccessError, PrivacyViolationError
from .market import MarketPricing
from .models import (
    AccessDecision,
    AggregateStanceData,
    MarketPriceSnapshot,
    PrivacyQuery,
    PrivacyValidation,
    Stance,
    StancePhase,
    UserStances,
    VotingHistoryEntry,
    round_half_up,
)
from .store import EngineStore

logger = logging.getLogger(__name__)

BLIND_VOTING_REASON = "Record your initial stance to see the market price"
VOTER_ID_QUERY_REASON = "Cannot query stance data by voter ID through public API"
SELF_ACCESS_REASON = "Can only access your own stance data"

UNKNOWN_RESOLUTION = "Unknown"
UNKNOWN_STATUS = "unknown"


def filter_for_public_response(stances: list[Stance]) -> AggregateStanceData:
    """Reduce raw stances to aggregate statistics.

    Only voters with both a pre- and a post-stance are counted. Means are
    rounded half-up to one decimal. No voters gives the neutral
    ``(0, 50, 50, 0, 0)``.
    """
    by_voter: dict[str, dict[StancePhase, int]] = {}
    for stance in stances:
        by_voter.setdefault(stance.voter_id, {})[stance.phase] = stance.support_value

    pairs = [
        (phases[StancePhase.PRE], phases[StancePhase.POST])
        for phases in by_voter.values()
        if StancePhase.PRE in phases and StancePhase.POST in phases
    ]
    if not pairs:
        neutral = float(StanceConstants.NEUTRAL_PRICE)
        return AggregateStanceData(
            total_voters=0,
            average_pre_stance=neutral,
            average_post_stance=neutral,
            average_delta=0.0,
            mind_changed_count=0,
        )

    average_pre = sum(pre for pre, _ in pairs) / len(pairs)
    average_post = sum(post for _, post in pairs) / len(pairs)
    mind_changed = sum(1 for pre, post in pairs if abs(post - pre) >= StanceConstants.MIND_CHANGE_THRESHOLD)

    return AggregateStanceData(
        total_voters=len(pairs),
        average_pre_stance=round_half_up(average_pre, 1),
        average_post_stance=round_half_up(average_post, 1),
        average_delta=round_half_up(average_post - average_pre, 1),
        mind_changed_count=mind_changed,
    )


def can_access_own_stance(owner_id: str, requester_id: str) -> bool:
    return owner_id == requester_id


def validate_privacy_compliance(query: PrivacyQuery) -> PrivacyValidation:
    """Check that a query cannot expose another voter's individual stances.

    Rules, first match wins:
    1. aggregate-only queries are valid
    2. a query by voter id must be self-access
    3. self-access requires requester == target
    """
    if query.is_aggregate_only:
        return PrivacyValidation(valid=True)
    if query.includes_voter_id and not query.is_self_access:
        return PrivacyValidation(valid=False, reason=VOTER_ID_QUERY_REASON)
    if query.is_self_access and query.requester_id != query.target_user_id:
        return PrivacyValidation(valid=False, reason=SELF_ACCESS_REASON)
    return PrivacyValidation(valid=True)


class PrivacyGuard:
    """Aggregate-only and self-access reads over the stance ledger."""

    def __init__(
        self,
        store: EngineStore,
        market: MarketPricing,
        directory: DebateDirectory | None = None,
    ):
        self._store = store
        self._market = market
        self._directory = directory

    filter_for_public_response = staticmethod(filter_for_public_response)
    can_access_own_stance = staticmethod(can_access_own_stance)
    validate_privacy_compliance = staticmethod(validate_privacy_compliance)

    def _require_compliant(self, query: PrivacyQuery) -> None:
        result = validate_privacy_compliance(query)
        if not result.valid:
            logger.warning(f"Rejected stance query: {result.reason}")
            raise PrivacyViolationError(result.reason)

    def require_self_access(self, owner_id: str, requester_id: str) -> None:
        """Raise :class:`NotSelfAccessError` unless requester and owner match."""
        if not can_access_own_stance(owner_id, requester_id):
            raise NotSelfAccessError()

    def get_aggregate_stats(self, debate_id: str) -> AggregateStanceData:
        """Public statistics for one debate."""
        self._require_compliant(PrivacyQuery(is_aggregate_only=True))
        return filter_for_public_response(self._store.list_stances(debate_id))

    def get_own_stances(self, debate_id: str, owner_id: str, requester_id: str) -> UserStances | None:
        """The owner's own stances, or None if someone else is asking."""
        if not can_access_own_stance(owner_id, requester_id):
            return None

        self._require_compliant(
            PrivacyQuery(
                includes_voter_id=True,
                is_self_access=True,
                requester_id=requester_id,
                target_user_id=owner_id,
            )
        )
        return UserStances(
            pre=self._store.get_stance(debate_id, owner_id, StancePhase.PRE),
            post=self._store.get_stance(debate_id, owner_id, StancePhase.POST),
        )

    def has_pre_stance(self, debate_id: str, user_id: str) -> bool:
        return self._store.get_stance(debate_id, user_id, StancePhase.PRE) is not None

    def _is_debater(self, debate_id: str, user_id: str) -> bool:
        return self._directory is not None and user_id in self._directory.debaters(debate_id)

    def can_access_market_price(self, debate_id: str, user_id: str) -> AccessDecision:
        """Blind-voting gate: the price is hidden until a pre-stance exists.

        Debaters of the debate are always allowed.
        """
        if self._is_debater(debate_id, user_id) or self.has_pre_stance(debate_id, user_id):
            return AccessDecision(can_access=True)
        return AccessDecision(can_access=False, reason=BLIND_VOTING_REASON)

    def enforce_blind_voting(self, debate_id: str, user_id: str) -> None:
        """Raise :class:`BlindVotingError` unless the user may see the price."""
        decision = self.can_access_market_price(debate_id, user_id)
        if not decision.can_access:
            raise BlindVotingError(debate_id, decision.reason)

    def get_market_price(self, debate_id: str, requester_id: str) -> MarketPriceSnapshot:
        """The market price, gated by blind voting."""
        self.enforce_blind_voting(debate_id, requester_id)
        return self._market.calculate_market_price(debate_id)

    def get_voting_history(self, owner_id: str, requester_id: str) -> list[VotingHistoryEntry] | None:
        """The owner's votes across debates, most recent first.

        Returns None if someone else is asking.
        """
        if not can_access_own_stance(owner_id, requester_id):
            return None

        self._require_compliant(
            PrivacyQuery(
                includes_voter_id=True,
                is_self_access=True,
                requester_id=requester_id,
                target_user_id=owner_id,
            )
        )

        by_debate: dict[str, UserStances] = {}
        for stance in self._store.list_voter_stances(owner_id):
            entry = by_debate.setdefault(stance.debate_id, UserStances())
            if stance.phase == StancePhase.PRE:
                entry.pre = stance
            else:
                entry.post = stance

        history = []
        for debate_id, stances in by_debate.items():
            info = self._directory.describe_debate(debate_id) if self._directory else None
            pre, post = stances.pre, stances.post
            history.append(
                VotingHistoryEntry(
                    debate_id=debate_id,
                    resolution=info.resolution if info else UNKNOWN_RESOLUTION,
                    debate_status=info.status if info else UNKNOWN_STATUS,
                    pre_stance=pre.support_value if pre else None,
                    post_stance=post.support_value if post else None,
                    delta=post.support_value - pre.support_value if pre and post else None,
                    voted_at=(post or pre).created_at,
                )
            )

        history.sort(key=lambda h: h.voted_at, reverse=True)
        return history
