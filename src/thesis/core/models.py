"""Data models for the opinion market and reputation engine.

Row-backed records expose ``from_row()`` for database dicts and
``to_dict()`` for JSON payloads pushed by the transport layer.
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Any


def utcnow() -> datetime:
    """Timezone-aware current time; the default engine clock."""
    return datetime.now(UTC)


def round_half_up(value: float, ndigits: int = 0) -> float:
    """Round halves toward +infinity, unlike the built-in banker's ``round``."""
    scale = 10**ndigits
    return math.floor(value * scale + 0.5) / scale


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


# ============================================================================
# Enums
# ============================================================================


class StancePhase(str, Enum):
    """When a stance was recorded relative to reading the arguments."""

    PRE = "pre"
    POST = "post"


class SpikeDirection(str, Enum):
    """Which side a spike moved opinion toward."""

    SUPPORT = "support"
    OPPOSE = "oppose"


class WinnerSide(str, Enum):
    """Outcome of a concluded debate."""

    SUPPORT = "support"
    OPPOSE = "oppose"
    TIE = "tie"


class ReputationState(str, Enum):
    """Lifecycle of a user's reputation factor row."""

    UNSCORED = "unscored"  # no factor row yet
    ACTIVE = "active"
    DECAYING = "decaying"  # inactive past the grace period


# ============================================================================
# Stance ledger
# ============================================================================


@dataclass
class Stance:
    """One vote by one voter, for one debate, in one phase."""

    id: str
    debate_id: str
    voter_id: str
    phase: StancePhase
    support_value: int
    confidence: int
    attributed_argument_id: str | None = None
    attributed_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> Stance:
        return cls(
            id=str(row["id"]),
            debate_id=row["debate_id"],
            voter_id=row["voter_id"],
            phase=StancePhase(row["phase"]),
            support_value=int(row["support_value"]),
            confidence=int(row["confidence"]),
            attributed_argument_id=row.get("attributed_argument_id"),
            attributed_at=row.get("attributed_at"),
            created_at=row["created_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "debate_id": self.debate_id,
            "voter_id": self.voter_id,
            "phase": self.phase.value,
            "support_value": self.support_value,
            "confidence": self.confidence,
            "attributed_argument_id": self.attributed_argument_id,
            "attributed_at": _iso(self.attributed_at),
            "created_at": _iso(self.created_at),
        }


@dataclass
class UserStances:
    """A single voter's pre and post stance for one debate."""

    pre: Stance | None = None
    post: Stance | None = None

    @classmethod
    def from_stances(cls, stances: list[Stance]) -> UserStances:
        result = cls()
        for stance in stances:
            if stance.phase == StancePhase.PRE:
                result.pre = stance
            else:
                result.post = stance
        return result

    def to_dict(self) -> dict[str, Any]:
        return {
            "pre": self.pre.to_dict() if self.pre else None,
            "post": self.post.to_dict() if self.post else None,
        }


@dataclass(frozen=True)
class StanceValue:
    """Support and confidence of one recorded stance."""

    support_value: int
    confidence: int


@dataclass
class PersuasionDelta:
    """How far one voter moved between pre- and post-stance."""

    user_id: str
    debate_id: str
    pre: StanceValue
    post: StanceValue
    delta: int
    attributed_argument_id: str | None = None

    @classmethod
    def between(cls, pre: Stance, post: Stance) -> PersuasionDelta:
        return cls(
            user_id=post.voter_id,
            debate_id=post.debate_id,
            pre=StanceValue(pre.support_value, pre.confidence),
            post=StanceValue(post.support_value, post.confidence),
            delta=post.support_value - pre.support_value,
            attributed_argument_id=post.attributed_argument_id,
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


# ============================================================================
# Market pricing
# ============================================================================


@dataclass(frozen=True)
class MarketPriceSnapshot:
    """Point-in-time opinion price derived from the ledger."""

    support_price: int
    oppose_price: int
    total_votes: int
    mind_change_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class MarketDataPoint:
    """One append-only sample of the price time series."""

    id: str
    debate_id: str
    support_price: float
    vote_count: int
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> MarketDataPoint:
        return cls(
            id=str(row["id"]),
            debate_id=row["debate_id"],
            support_price=float(row["support_price"]),
            vote_count=int(row["vote_count"]),
            timestamp=row["timestamp"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": _iso(self.timestamp),
            "support_price": self.support_price,
            "vote_count": self.vote_count,
        }


@dataclass
class StanceSpike:
    """A large, argument-attributed opinion swing."""

    id: str
    debate_id: str
    argument_id: str
    delta_amount: int
    direction: SpikeDirection
    label: str
    timestamp: datetime = field(default_factory=utcnow)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> StanceSpike:
        return cls(
            id=str(row["id"]),
            debate_id=row["debate_id"],
            argument_id=row["argument_id"],
            delta_amount=int(row["delta_amount"]),
            direction=SpikeDirection(row["direction"]),
            label=row["label"],
            timestamp=row["timestamp"],
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": _iso(self.timestamp),
            "argument_id": self.argument_id,
            "delta_amount": self.delta_amount,
            "direction": self.direction.value,
            "label": self.label,
        }


@dataclass
class PostStanceResult:
    """Everything a post-stance write produced, for push payloads."""

    stance: Stance
    delta: PersuasionDelta
    spike: StanceSpike | None = None
    snapshot: MarketPriceSnapshot | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "stance": self.stance.to_dict(),
            "delta": self.delta.to_dict(),
            "spike": self.spike.to_dict() if self.spike else None,
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
        }


# ============================================================================
# Privacy guard
# ============================================================================


@dataclass(frozen=True, slots=True)
class AggregateStanceData:
    """Aggregate-only view of a debate's stances.

    The field set is closed: there is no slot a voter id could occupy.
    """

    total_voters: int
    average_pre_stance: float
    average_post_stance: float
    average_delta: float
    mind_changed_count: int

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class AccessDecision:
    """Result of an access check that callers branch on instead of catching."""

    can_access: bool
    reason: str | None = None


@dataclass(frozen=True)
class PrivacyQuery:
    """Shape of an internal query, checked before raw rows are touched."""

    includes_voter_id: bool = False
    is_aggregate_only: bool = False
    is_self_access: bool = False
    requester_id: str | None = None
    target_user_id: str | None = None


@dataclass(frozen=True)
class PrivacyValidation:
    """Outcome of a privacy compliance check."""

    valid: bool
    reason: str | None = None


@dataclass
class VotingHistoryEntry:
    """One debate in a user's private voting history."""

    debate_id: str
    resolution: str
    debate_status: str
    pre_stance: int | None
    post_stance: int | None
    delta: int | None
    voted_at: datetime

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["voted_at"] = _iso(self.voted_at)
        return data


# ============================================================================
# Reputation
# ============================================================================


@dataclass
class ReputationFactor:
    """Per-user inputs to the reputation formula.

    ``version`` increases on every write and guards compare-and-swap updates.
    """

    user_id: str
    impact_score_total: float = 0.0
    prediction_accuracy: float = 50.0
    participation_count: int = 0
    quality_score: float = 50.0
    reputation_score: float = 0.0
    last_active_at: datetime | None = None
    updated_at: datetime = field(default_factory=utcnow)
    version: int = 0

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ReputationFactor:
        return cls(
            user_id=row["user_id"],
            impact_score_total=float(row["impact_score_total"]),
            prediction_accuracy=float(row["prediction_accuracy"]),
            participation_count=int(row["participation_count"]),
            quality_score=float(row["quality_score"]),
            reputation_score=float(row["reputation_score"]),
            last_active_at=row.get("last_active_at"),
            updated_at=row["updated_at"],
            version=int(row["version"]),
        )


@dataclass
class ReputationHistoryEntry:
    """Append-only audit record of a visible score change."""

    id: str
    user_id: str
    previous_score: float
    new_score: float
    change_amount: float
    reason: str
    debate_id: str | None = None
    created_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> ReputationHistoryEntry:
        return cls(
            id=str(row["id"]),
            user_id=row["user_id"],
            previous_score=float(row["previous_score"]),
            new_score=float(row["new_score"]),
            change_amount=float(row["change_amount"]),
            reason=row["reason"],
            debate_id=row.get("debate_id"),
            created_at=row["created_at"],
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["created_at"] = _iso(self.created_at)
        return data


@dataclass(frozen=True)
class ReputationScore:
    """Weighted reputation with its factor values (each 0-100)."""

    overall: int
    persuasion_skill: float
    prediction_accuracy: float
    consistency: float
    trust_level: float

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ReputationFactorContribution:
    name: str
    value: float
    weight: float
    contribution: int


@dataclass
class ReputationBreakdown:
    """Reputation explained factor by factor, plus recent changes."""

    overall: int
    factors: list[ReputationFactorContribution]
    recent_changes: list[ReputationHistoryEntry]

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall,
            "factors": [asdict(f) for f in self.factors],
            "recent_changes": [
                {"date": _iso(h.created_at), "change": h.change_amount, "reason": h.reason}
                for h in self.recent_changes
            ],
        }
