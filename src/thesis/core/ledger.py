"""Stance ledger - pre/post votes per (debate, voter).

Protocol enforced here:
- a pre-stance must exist before a post-stance
- each phase can be written once; a repeat write is rejected with
  AlreadyRecordedError (a concurrent duplicate that slips past the check
  loses at the store's uniqueness constraint with a retryable ConflictError)
- a post-stance may be explicitly attributed to an argument once

Writes that belong together (post-stance, spike, market data point) share
one store transaction.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from .config import CoreSettings, get_config
from .constants import StanceConstants
from .db import generate_id
from .directory import DebateDirectory
from .exceptions import (
    AlreadyRecordedError,
    ConfigException,
    InvalidRangeError,
    NotFoundError,
    PostStanceRequiredError,
    PreStanceRequiredError,
    ValidationException,
    VotingNotPermittedError,
)
from .market import MarketPricing
from .models import (
    PersuasionDelta,
    PostStanceResult,
    Stance,
    StancePhase,
    UserStances,
    utcnow,
)
from .store import EngineStore

logger = logging.getLogger(__name__)


def validate_stance_input(support_value: int, confidence: int) -> None:
    """Check support and confidence ranges.

    Raises:
        ValidationException: If a value is not an integer
        InvalidRangeError: If a value is out of range
    """
    for name, value in (("support_value", support_value), ("confidence", confidence)):
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValidationException(f"{name} must be an integer", field=name, value=value)

    limits = (
        ("support_value", support_value, StanceConstants.SUPPORT_MIN, StanceConstants.SUPPORT_MAX),
        ("confidence", confidence, StanceConstants.CONFIDENCE_MIN, StanceConstants.CONFIDENCE_MAX),
    )
    for name, value, minimum, maximum in limits:
        if not minimum <= value <= maximum:
            raise InvalidRangeError(name, value, minimum, maximum)


class StanceLedger:
    """Records stances and answers what a voter has recorded for a debate."""

    def __init__(
        self,
        store: EngineStore,
        market: MarketPricing,
        directory: DebateDirectory | None = None,
        settings: CoreSettings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._store = store
        self._market = market
        self._directory = directory
        self._settings = settings or get_config()
        self._clock = clock

    def _check_voter_permitted(self, debate_id: str, voter_id: str) -> None:
        if self._directory is None or self._settings.allow_debater_votes:
            return
        if voter_id in self._directory.debaters(debate_id):
            raise VotingNotPermittedError(debate_id)

    def _check_argument_debate(self, debate_id: str, argument_id: str) -> None:
        if self._directory is None:
            return
        owner = self._directory.debate_for_argument(argument_id)
        if owner is not None and owner != debate_id:
            raise ValidationException(
                "Attributed argument belongs to a different debate",
                field="attributed_argument_id",
                value=argument_id,
            )

    def _new_stance(
        self,
        debate_id: str,
        voter_id: str,
        phase: StancePhase,
        support_value: int,
        confidence: int,
        attributed_argument_id: str | None = None,
    ) -> Stance:
        return Stance(
            id=generate_id(),
            debate_id=debate_id,
            voter_id=voter_id,
            phase=phase,
            support_value=support_value,
            confidence=confidence,
            attributed_argument_id=attributed_argument_id,
            created_at=self._clock(),
        )

    def record_pre_stance(
        self,
        debate_id: str,
        voter_id: str,
        support_value: int,
        confidence: int | None = None,
    ) -> Stance:
        """Record a voter's opinion before reading the arguments.

        Raises:
            InvalidRangeError: If support or confidence is out of range
            VotingNotPermittedError: If the voter is a debater and debaters may not vote
            AlreadyRecordedError: If a pre-stance already exists
            ConflictError: If a concurrent request recorded it first (retryable)
        """
        confidence = StanceConstants.DEFAULT_CONFIDENCE if confidence is None else confidence
        validate_stance_input(support_value, confidence)
        self._check_voter_permitted(debate_id, voter_id)

        with self._store.transaction():
            if self._store.get_stance(debate_id, voter_id, StancePhase.PRE) is not None:
                raise AlreadyRecordedError(debate_id, StancePhase.PRE.value)
            stance = self._store.insert_stance(
                self._new_stance(debate_id, voter_id, StancePhase.PRE, support_value, confidence)
            )

        logger.info("Pre-stance recorded", extra={"debate_id": debate_id, "stance_id": stance.id})
        return stance

    def record_post_stance(
        self,
        debate_id: str,
        voter_id: str,
        support_value: int,
        confidence: int | None = None,
        attributed_argument_id: str | None = None,
    ) -> PostStanceResult:
        """Record a voter's opinion after reading, with the resulting delta.

        A swing of at least ``AUTO_SPIKE_THRESHOLD`` with a known argument
        records a spike; the market price is recomputed (and appended to the
        history unless disabled). Everything commits together. Once committed,
        a named argument's impact score is pushed to the directory.

        Raises:
            InvalidRangeError: If support or confidence is out of range
            VotingNotPermittedError: If the voter is a debater and debaters may not vote
            PreStanceRequiredError: If no pre-stance exists
            AlreadyRecordedError: If a post-stance already exists
            ConflictError: If a concurrent request recorded it first (retryable)
        """
        confidence = StanceConstants.DEFAULT_CONFIDENCE if confidence is None else confidence
        validate_stance_input(support_value, confidence)
        self._check_voter_permitted(debate_id, voter_id)
        if attributed_argument_id:
            self._check_argument_debate(debate_id, attributed_argument_id)

        with self._store.transaction():
            pre = self._store.get_stance(debate_id, voter_id, StancePhase.PRE)
            if pre is None:
                raise PreStanceRequiredError(debate_id)
            if self._store.get_stance(debate_id, voter_id, StancePhase.POST) is not None:
                raise AlreadyRecordedError(debate_id, StancePhase.POST.value)

            post = self._store.insert_stance(
                self._new_stance(
                    debate_id,
                    voter_id,
                    StancePhase.POST,
                    support_value,
                    confidence,
                    attributed_argument_id or None,
                )
            )
            delta = PersuasionDelta.between(pre, post)

            spike = None
            if post.attributed_argument_id:
                spike = self._market.detect_and_record_spike(
                    debate_id,
                    post.attributed_argument_id,
                    delta.delta,
                    threshold=StanceConstants.AUTO_SPIKE_THRESHOLD,
                )

            if self._settings.record_history_on_post:
                snapshot = self._market.snapshot_market(debate_id)
            else:
                snapshot = self._market.calculate_market_price(debate_id)

        if post.attributed_argument_id:
            self._push_impact_score(post.attributed_argument_id)

        logger.info("Post-stance recorded", extra={"debate_id": debate_id, "stance_id": post.id})
        return PostStanceResult(stance=post, delta=delta, spike=spike, snapshot=snapshot)

    def _push_impact_score(self, argument_id: str) -> float:
        impact_score = self._market.calculate_impact_score(argument_id)
        if self._directory is not None:
            self._directory.record_impact_score(argument_id, impact_score)
        return impact_score

    def get_user_stances(self, debate_id: str, voter_id: str) -> UserStances:
        """A voter's own pre and post stance (either may be None).

        Engine-internal: external callers go through the privacy guard.
        """
        return UserStances(
            pre=self._store.get_stance(debate_id, voter_id, StancePhase.PRE),
            post=self._store.get_stance(debate_id, voter_id, StancePhase.POST),
        )

    def has_pre_stance(self, debate_id: str, voter_id: str) -> bool:
        return self._store.get_stance(debate_id, voter_id, StancePhase.PRE) is not None

    def get_persuasion_delta(self, debate_id: str, voter_id: str) -> PersuasionDelta | None:
        """The voter's delta, or None until both phases are recorded."""
        stances = self.get_user_stances(debate_id, voter_id)
        if stances.pre is None or stances.post is None:
            return None
        return PersuasionDelta.between(stances.pre, stances.post)

    def attribute_mind_change(self, argument_id: str, voter_id: str) -> float:
        """Credit an argument with changing the voter's mind.

        Sets the attribution on the voter's post-stance, recomputes the
        argument's impact score and records a spike when the voter's swing
        reaches ``ATTRIBUTION_SPIKE_THRESHOLD``. A swing already spiked when
        the post-stance named this argument is not spiked again. If the
        attribution moves away from an argument named at post time, that
        argument's score is recomputed and pushed as well.

        Returns:
            The argument's new impact score.

        Raises:
            ConfigException: If no debate directory is configured
            NotFoundError: If the argument is unknown
            PostStanceRequiredError: If the voter has no post-stance for that debate
            AlreadyRecordedError: If the mind change was already credited elsewhere
        """
        if self._directory is None:
            raise ConfigException("Attributing a mind change requires a debate directory")

        debate_id = self._directory.debate_for_argument(argument_id)
        if debate_id is None:
            raise NotFoundError("Argument", argument_id)

        with self._store.transaction():
            post = self._store.get_stance(debate_id, voter_id, StancePhase.POST)
            if post is None:
                raise PostStanceRequiredError(debate_id)

            if post.attributed_at is not None:
                if post.attributed_argument_id != argument_id:
                    raise AlreadyRecordedError(
                        debate_id,
                        StancePhase.POST.value,
                        message="Mind change already attributed to another argument",
                    )
                return self._market.calculate_impact_score(argument_id)

            previous_argument_id = post.attributed_argument_id
            post = self._store.set_attribution(post.id, argument_id, self._clock())
            pre = self._store.get_stance(debate_id, voter_id, StancePhase.PRE)
            delta = post.support_value - pre.support_value if pre else 0

            # The post-stance already spiked this swing for this argument
            already_spiked = (
                previous_argument_id == argument_id and abs(delta) >= StanceConstants.AUTO_SPIKE_THRESHOLD
            )
            if not already_spiked:
                self._market.detect_and_record_spike(
                    debate_id,
                    argument_id,
                    delta,
                    threshold=StanceConstants.ATTRIBUTION_SPIKE_THRESHOLD,
                )

        impact_score = self._push_impact_score(argument_id)
        if previous_argument_id and previous_argument_id != argument_id:
            self._push_impact_score(previous_argument_id)
        logger.info(
            f"Mind change attributed (impact now {impact_score})",
            extra={"debate_id": debate_id, "argument_id": argument_id},
        )
        return impact_score
