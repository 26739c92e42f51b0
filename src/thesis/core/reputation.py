"""Reputation engine.

Turns persuasion outcomes (argument impact scores) and prediction
correctness into one bounded score per user.

Overall score (0-1000) is a weighted sum of five factors, each 0-100:

    impact (persuasion skill)   0.35
    prediction accuracy         0.25
    participation quality       0.20
    consistency                 0.10
    community trust             0.10

Repeated contributions earn less (diminishing returns on participation
count) and inactive users lose 1% per full week once 30 days have passed.
Decay is applied lazily on every read; :meth:`ReputationEngine.apply_decay`
persists it for an external scheduler.

Factor rows are updated with compare-and-swap on ``version`` so concurrent
events for one user never lose an update.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable
from dataclasses import replace
from datetime import datetime, timedelta

from .config import CoreSettings, get_config
from .constants import ReputationConstants
from .db import generate_id
from .exceptions import ConflictError, NotFoundError
from .models import (
    ReputationBreakdown,
    ReputationFactor,
    ReputationFactorContribution,
    ReputationHistoryEntry,
    ReputationScore,
    ReputationState,
    StancePhase,
    WinnerSide,
    round_half_up,
    utcnow,
)
from .store import EngineStore

logger = logging.getLogger(__name__)

HIGH_IMPACT_REASON = "High impact argument"


# ============================================================================
# Pure scoring functions
# ============================================================================


def diminishing_returns_factor(participation_count: int) -> float:
    """1.0 at zero participation, strictly decreasing toward 0 after that."""
    return 1 / (1 + math.log10(max(participation_count, 0) + 1))


def apply_diminishing_returns(raw_impact_score: float, participation_count: int) -> float:
    return raw_impact_score * diminishing_returns_factor(participation_count)


def impact_gain(raw_impact_score: float, participation_count: int) -> float:
    """Diminished gain rounded to 2 decimals, never larger in magnitude than the raw score."""
    gain = round_half_up(apply_diminishing_returns(raw_impact_score, participation_count), 2)
    if abs(gain) > abs(raw_impact_score):
        return raw_impact_score
    return gain


def normalize_impact_score(impact_score_total: float) -> float:
    """Map cumulative impact to 0-100 on a log scale (100 -> 50, 10000 -> 100)."""
    if impact_score_total <= 0:
        return 0.0
    return min(100.0, round_half_up(math.log10(impact_score_total + 1) * 25, 2))


def consistency_score(participation_count: int, quality_score: float) -> float:
    if participation_count == 0:
        return ReputationConstants.DEFAULT_CONSISTENCY
    participation = min(1, participation_count / ReputationConstants.CONSISTENCY_SATURATION)
    return round_half_up(50 + participation * (quality_score / 100) * 50, 2)


def trust_level(persuasion: float, accuracy: float, consistency: float) -> float:
    return round_half_up(persuasion * 0.4 + accuracy * 0.4 + consistency * 0.2, 2)


def inactive_weeks(last_active_at: datetime | None, now: datetime) -> int:
    """Full weeks of inactivity past the grace period (0 within it)."""
    if last_active_at is None:
        return 0
    days = (now - last_active_at) / timedelta(days=1)
    if days <= ReputationConstants.DECAY_THRESHOLD_DAYS:
        return 0
    return math.floor((days - ReputationConstants.DECAY_THRESHOLD_DAYS) / 7)


def decay_multiplier(weeks: int) -> float:
    return (1 - ReputationConstants.DECAY_RATE_PER_WEEK) ** weeks


def prediction_direction(support_value: int) -> WinnerSide | None:
    """Which side a post-stance predicts; None for a neutral 50."""
    if support_value > 50:
        return WinnerSide.SUPPORT
    if support_value < 50:
        return WinnerSide.OPPOSE
    return None


def vote_weight(overall: float, prediction_accuracy: float) -> float:
    """Vote weight in [0.5, 1.5]; 1.0 at a 500 score and 50% accuracy."""
    score_modifier = (
        overall - ReputationConstants.VOTE_WEIGHT_SCORE_MIDPOINT
    ) / ReputationConstants.VOTE_WEIGHT_SCORE_SPAN
    accuracy_modifier = (prediction_accuracy - 50) / ReputationConstants.VOTE_WEIGHT_ACCURACY_SPAN
    weight = ReputationConstants.VOTE_WEIGHT_BASE + score_modifier + accuracy_modifier
    return max(ReputationConstants.VOTE_WEIGHT_MIN, min(ReputationConstants.VOTE_WEIGHT_MAX, weight))


def outcome_from_support(support_values: Iterable[int]) -> WinnerSide:
    """Side favoured by the mean post-stance; a tie at exactly 50 or with no votes."""
    values = list(support_values)
    if not values:
        return WinnerSide.TIE
    mean = sum(values) / len(values)
    if mean > 50:
        return WinnerSide.SUPPORT
    if mean < 50:
        return WinnerSide.OPPOSE
    return WinnerSide.TIE


def score_factor(factor: ReputationFactor, now: datetime) -> ReputationScore:
    """Project a factor row onto the visible score, decay included."""
    persuasion = normalize_impact_score(factor.impact_score_total)
    accuracy = factor.prediction_accuracy
    consistency = consistency_score(factor.participation_count, factor.quality_score)
    trust = trust_level(persuasion, accuracy, consistency)

    weighted = (
        persuasion * ReputationConstants.IMPACT_WEIGHT
        + accuracy * ReputationConstants.PREDICTION_ACCURACY_WEIGHT
        + factor.quality_score * ReputationConstants.PARTICIPATION_QUALITY_WEIGHT
        + consistency * ReputationConstants.CONSISTENCY_WEIGHT
        + trust * ReputationConstants.COMMUNITY_TRUST_WEIGHT
    )
    base = max(0, min(ReputationConstants.OVERALL_MAX, round_half_up(weighted * ReputationConstants.OVERALL_SCALE)))
    overall = int(round_half_up(base * decay_multiplier(inactive_weeks(factor.last_active_at, now))))

    return ReputationScore(
        overall=overall,
        persuasion_skill=persuasion,
        prediction_accuracy=accuracy,
        consistency=consistency,
        trust_level=trust,
    )


# ============================================================================
# Engine
# ============================================================================


class ReputationEngine:
    """Owns ReputationFactor rows and the reputation history."""

    def __init__(
        self,
        store: EngineStore,
        settings: CoreSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._settings = settings or get_config()
        self._clock = clock

    def get_or_create_factor(self, user_id: str) -> ReputationFactor:
        """Return the user's factor row, creating a zeroed one on first access."""
        factor = self._store.get_reputation_factor(user_id)
        if factor is not None:
            return factor

        now = self._clock()
        fresh = ReputationFactor(user_id=user_id, updated_at=now)
        fresh.reputation_score = float(score_factor(fresh, now).overall)
        created = self._store.create_reputation_factor(fresh)
        logger.debug(f"Created reputation factors for user {user_id}")
        return created

    def _compare_and_swap(
        self,
        user_id: str,
        apply: Callable[[ReputationFactor], ReputationFactor],
        history: Callable[[ReputationFactor, ReputationFactor], ReputationHistoryEntry | None] | None = None,
    ) -> tuple[ReputationFactor, ReputationFactor]:
        """Read-modify-write a factor row, retrying on version conflicts.

        ``apply`` receives a copy of the current row and returns the new one;
        version, timestamps and the projected score are filled in here.
        ``history`` may return an entry to append alongside the write.

        Returns:
            (previous row, stored row)

        Raises:
            ConflictError: If every attempt lost to a concurrent writer
        """
        attempts = self._settings.reputation_max_retries
        for attempt in range(1, attempts + 1):
            now = self._clock()
            with self._store.transaction():
                current = self.get_or_create_factor(user_id)
                updated = apply(replace(current))
                updated.version = current.version + 1
                updated.updated_at = now
                updated.reputation_score = float(score_factor(updated, now).overall)

                if self._store.update_reputation_factor(updated, current.version):
                    entry = history(current, updated) if history else None
                    if entry is not None:
                        self._store.append_reputation_history(entry)
                    return current, updated

            logger.debug(f"Reputation update for user {user_id} lost a version race (attempt {attempt}/{attempts})")

        raise ConflictError(f"Reputation for user {user_id} is being updated concurrently; retry")

    def _history_entry(
        self,
        user_id: str,
        previous_score: float,
        new_score: float,
        reason: str,
        debate_id: str | None,
    ) -> ReputationHistoryEntry:
        return ReputationHistoryEntry(
            id=generate_id(),
            user_id=user_id,
            previous_score=previous_score,
            new_score=new_score,
            change_amount=round_half_up(new_score - previous_score, 2),
            reason=reason,
            debate_id=debate_id,
            created_at=self._clock(),
        )

    def calculate_reputation(self, user_id: str) -> ReputationScore:
        """Current weighted score with lazy decay applied."""
        return score_factor(self.get_or_create_factor(user_id), self._clock())

    def get_reputation_state(self, user_id: str) -> ReputationState:
        factor = self._store.get_reputation_factor(user_id)
        if factor is None:
            return ReputationState.UNSCORED
        if factor.last_active_at is not None:
            inactive_days = (self._clock() - factor.last_active_at) / timedelta(days=1)
            if inactive_days > ReputationConstants.DECAY_THRESHOLD_DAYS:
                return ReputationState.DECAYING
        return ReputationState.ACTIVE

    def update_reputation_on_impact(
        self,
        user_id: str,
        raw_impact_score: float,
        debate_id: str | None = None,
    ) -> float:
        """Fold one argument's impact into the author's reputation.

        Impacts smaller than ``LOW_IMPACT_THRESHOLD`` in magnitude change
        nothing. Otherwise the gain is scaled down by the author's prior
        participation count, and a history row is written only if the gain
        itself exceeds the threshold.

        Returns:
            The applied gain (0.0 when nothing changed).
        """
        if abs(raw_impact_score) < ReputationConstants.LOW_IMPACT_THRESHOLD:
            logger.debug(f"Impact {raw_impact_score} for user {user_id} below threshold; ignored")
            return 0.0

        def gain_for(factor: ReputationFactor) -> float:
            return impact_gain(raw_impact_score, factor.participation_count)

        def apply(factor: ReputationFactor) -> ReputationFactor:
            factor.impact_score_total += gain_for(factor)
            factor.participation_count += 1
            factor.last_active_at = self._clock()
            return factor

        def history(current: ReputationFactor, updated: ReputationFactor) -> ReputationHistoryEntry | None:
            if abs(gain_for(current)) <= ReputationConstants.LOW_IMPACT_THRESHOLD:
                return None
            previous = score_factor(current, updated.updated_at).overall
            return self._history_entry(user_id, previous, updated.reputation_score, HIGH_IMPACT_REASON, debate_id)

        current, updated = self._compare_and_swap(user_id, apply, history)
        gain = gain_for(current)
        logger.info(
            f"Reputation gain {gain} (score now {updated.reputation_score:g})",
            extra={"user_id": user_id, "debate_id": debate_id},
        )
        return gain

    def update_prediction_accuracy(self, user_id: str, was_correct: bool, debate_id: str | None = None) -> float:
        """Move prediction accuracy a tenth of the way toward 100 or 0.

        Returns:
            The new accuracy.
        """
        weight = ReputationConstants.PREDICTION_UPDATE_WEIGHT

        def apply(factor: ReputationFactor) -> ReputationFactor:
            accuracy = factor.prediction_accuracy
            if was_correct:
                accuracy += (100 - accuracy) * weight
            else:
                accuracy -= accuracy * weight
            factor.prediction_accuracy = round_half_up(accuracy, 2)
            return factor

        _, updated = self._compare_and_swap(user_id, apply)
        logger.debug(f"Prediction accuracy for user {user_id} now {updated.prediction_accuracy} (debate {debate_id})")
        return updated.prediction_accuracy

    def apply_decay(self, user_id: str) -> float:
        """Persist the decayed score for an inactive user.

        Scheduler hook; safe to call repeatedly since the score is always
        recomputed from the factors. Writes a history row only when the
        stored score actually drops.

        Raises:
            NotFoundError: If the user has no factor row
        """
        factor = self._store.get_reputation_factor(user_id)
        if factor is None:
            raise NotFoundError("ReputationFactor", user_id)

        weeks = inactive_weeks(factor.last_active_at, self._clock())
        decayed = float(score_factor(factor, self._clock()).overall)
        if weeks == 0 or decayed >= factor.reputation_score:
            return factor.reputation_score

        def history(current: ReputationFactor, updated: ReputationFactor) -> ReputationHistoryEntry | None:
            if updated.reputation_score >= current.reputation_score:
                return None
            return self._history_entry(
                user_id,
                current.reputation_score,
                updated.reputation_score,
                f"Inactivity decay ({weeks} weeks)",
                None,
            )

        _, updated = self._compare_and_swap(user_id, lambda f: f, history)
        logger.info(
            f"Applied {weeks} weeks of decay to user {user_id}: "
            f"{factor.reputation_score:g} -> {updated.reputation_score:g}"
        )
        return updated.reputation_score

    def calculate_vote_weight(self, user_id: str) -> float:
        """How much the user's vote counts, from decayed score and prediction accuracy.

        Unscored users get the minimum weight; no factor row is created.
        """
        factor = self._store.get_reputation_factor(user_id)
        if factor is None:
            return ReputationConstants.VOTE_WEIGHT_MIN
        score = score_factor(factor, self._clock())
        return vote_weight(score.overall, score.prediction_accuracy)

    def determine_debate_outcome(self, debate_id: str) -> WinnerSide:
        """Winning side by the mean of recorded post-stances."""
        return outcome_from_support(
            stance.support_value for stance in self._store.list_stances(debate_id) if stance.phase == StancePhase.POST
        )

    def process_debate_conclusion(
        self,
        debate_id: str,
        winner_side: WinnerSide | str | None = None,
        argument_impacts: Iterable[tuple[str, float]] = (),
    ) -> None:
        """Settle reputation for a concluded debate.

        Every post-stance voter's prediction is scored against the outcome
        (neutral stances and ties are skipped), then each
        ``(author_id, impact_score)`` pair is folded in as an impact event.
        Without ``winner_side`` the outcome comes from
        :meth:`determine_debate_outcome`.
        """
        if winner_side is None:
            winner = self.determine_debate_outcome(debate_id)
        else:
            winner = WinnerSide(winner_side)

        predictions = 0
        if winner != WinnerSide.TIE:
            for stance in self._store.list_stances(debate_id):
                if stance.phase != StancePhase.POST:
                    continue
                predicted = prediction_direction(stance.support_value)
                if predicted is None:
                    continue
                self.update_prediction_accuracy(stance.voter_id, predicted == winner, debate_id)
                predictions += 1

        impacts = 0
        for author_id, impact_score in argument_impacts:
            self.update_reputation_on_impact(author_id, impact_score, debate_id)
            impacts += 1

        logger.info(
            f"Debate {debate_id} concluded ({winner.value}): {predictions} predictions scored, {impacts} impact events"
        )

    def get_reputation_breakdown(self, user_id: str) -> ReputationBreakdown:
        """Score explained factor by factor, with the latest changes."""
        factor = self.get_or_create_factor(user_id)
        score = score_factor(factor, self._clock())

        values = [
            ("Impact Score", score.persuasion_skill, ReputationConstants.IMPACT_WEIGHT),
            ("Prediction Accuracy", score.prediction_accuracy, ReputationConstants.PREDICTION_ACCURACY_WEIGHT),
            ("Participation Quality", factor.quality_score, ReputationConstants.PARTICIPATION_QUALITY_WEIGHT),
            ("Consistency", score.consistency, ReputationConstants.CONSISTENCY_WEIGHT),
            ("Community Trust", score.trust_level, ReputationConstants.COMMUNITY_TRUST_WEIGHT),
        ]
        factors = [
            ReputationFactorContribution(
                name=name,
                value=value,
                weight=weight,
                contribution=int(round_half_up(value * weight * ReputationConstants.OVERALL_SCALE)),
            )
            for name, value, weight in values
        ]

        return ReputationBreakdown(
            overall=score.overall,
            factors=factors,
            recent_changes=self.get_reputation_history(user_id),
        )

    def get_reputation_history(
        self,
        user_id: str,
        limit: int = ReputationConstants.RECENT_HISTORY_LIMIT,
    ) -> list[ReputationHistoryEntry]:
        return self._store.list_reputation_history(user_id, limit=limit)
