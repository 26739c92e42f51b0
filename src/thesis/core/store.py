"""Persistence interface for the engine, plus an in-memory implementation.

Every engine component takes an :class:`EngineStore` at construction time.
Writes that must land together (a post-stance and the spike it triggers)
run inside ``store.transaction()``; a store either commits all of them or
none.
"""

from __future__ import annotations

import copy
import threading
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Protocol, runtime_checkable

from .exceptions import ConflictError, NotFoundError
from .models import (
    MarketDataPoint,
    ReputationFactor,
    ReputationHistoryEntry,
    Stance,
    StancePhase,
    StanceSpike,
)


@runtime_checkable
class EngineStore(Protocol):
    """Storage backend for stances, market history, spikes and reputation."""

    def transaction(self) -> AbstractContextManager[None]:
        """Group writes so they commit or roll back together. Re-entrant."""
        ...

    # -- stances ----------------------------------------------------------

    def insert_stance(self, stance: Stance) -> Stance:
        """Insert a stance.

        Raises:
            ConflictError: If (debate_id, voter_id, phase) is already occupied.
        """
        ...

    def get_stance(self, debate_id: str, voter_id: str, phase: StancePhase) -> Stance | None: ...

    def list_stances(self, debate_id: str) -> list[Stance]:
        """All stances of a debate in insertion order."""
        ...

    def list_voter_stances(self, voter_id: str) -> list[Stance]:
        """All stances of a voter across debates, newest first."""
        ...

    def list_attributed_post_stances(self, argument_id: str) -> list[Stance]: ...

    def set_attribution(self, stance_id: str, argument_id: str, attributed_at: datetime) -> Stance:
        """Attribute a post-stance to an argument.

        Raises:
            NotFoundError: If the stance does not exist.
        """
        ...

    # -- market history and spikes -----------------------------------------

    def append_market_data_point(self, point: MarketDataPoint) -> MarketDataPoint: ...

    def list_market_data_points(self, debate_id: str) -> list[MarketDataPoint]: ...

    def append_spike(self, spike: StanceSpike) -> StanceSpike: ...

    def list_spikes(self, debate_id: str) -> list[StanceSpike]: ...

    # -- reputation ----------------------------------------------------------

    def get_reputation_factor(self, user_id: str) -> ReputationFactor | None: ...

    def create_reputation_factor(self, factor: ReputationFactor) -> ReputationFactor:
        """Insert a factor row unless one exists; return the stored row."""
        ...

    def update_reputation_factor(self, factor: ReputationFactor, expected_version: int) -> bool:
        """Compare-and-swap: store ``factor`` only if the stored version matches.

        ``factor.version`` must already be ``expected_version + 1``.

        Returns:
            True if written, False if another writer got there first.
        """
        ...

    def append_reputation_history(self, entry: ReputationHistoryEntry) -> ReputationHistoryEntry: ...

    def list_reputation_history(self, user_id: str, limit: int | None = None) -> list[ReputationHistoryEntry]:
        """History rows for a user, newest first."""
        ...


class InMemoryEngineStore:
    """In-memory :class:`EngineStore` for testing and single-process use.

    Not persistent - data lost on process restart. Transactions are
    serialised under one re-entrant lock and roll back to a snapshot on
    error.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._depth = 0
        self._stances: list[Stance] = []
        self._data_points: list[MarketDataPoint] = []
        self._spikes: list[StanceSpike] = []
        self._factors: dict[str, ReputationFactor] = {}
        self._history: list[ReputationHistoryEntry] = []

    def _state(self) -> tuple:
        return (self._stances, self._data_points, self._spikes, self._factors, self._history)

    def _restore(self, state: tuple) -> None:
        self._stances, self._data_points, self._spikes, self._factors, self._history = state

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            snapshot = copy.deepcopy(self._state()) if self._depth == 0 else None
            self._depth += 1
            try:
                yield
            except BaseException:
                if snapshot is not None:
                    self._restore(snapshot)
                raise
            finally:
                self._depth -= 1

    # -- stances ----------------------------------------------------------

    def _find(self, debate_id: str, voter_id: str, phase: StancePhase) -> Stance | None:
        for stance in self._stances:
            if stance.debate_id == debate_id and stance.voter_id == voter_id and stance.phase == phase:
                return stance
        return None

    def insert_stance(self, stance: Stance) -> Stance:
        with self._lock:
            existing = self._find(stance.debate_id, stance.voter_id, stance.phase)
            if existing is not None:
                raise ConflictError(
                    f"{stance.phase.value}-stance already exists for this voter and debate",
                    existing_id=existing.id,
                )
            self._stances.append(replace(stance))
            return replace(stance)

    def get_stance(self, debate_id: str, voter_id: str, phase: StancePhase) -> Stance | None:
        with self._lock:
            stance = self._find(debate_id, voter_id, phase)
            return replace(stance) if stance else None

    def list_stances(self, debate_id: str) -> list[Stance]:
        with self._lock:
            return [replace(s) for s in self._stances if s.debate_id == debate_id]

    def list_voter_stances(self, voter_id: str) -> list[Stance]:
        with self._lock:
            stances = [replace(s) for s in self._stances if s.voter_id == voter_id]
        return sorted(stances, key=lambda s: s.created_at, reverse=True)

    def list_attributed_post_stances(self, argument_id: str) -> list[Stance]:
        with self._lock:
            return [
                replace(s)
                for s in self._stances
                if s.phase == StancePhase.POST and s.attributed_argument_id == argument_id
            ]

    def set_attribution(self, stance_id: str, argument_id: str, attributed_at: datetime) -> Stance:
        with self._lock:
            for index, stance in enumerate(self._stances):
                if stance.id == stance_id:
                    updated = replace(stance, attributed_argument_id=argument_id, attributed_at=attributed_at)
                    self._stances[index] = updated
                    return replace(updated)
        raise NotFoundError("Stance", stance_id)

    # -- market history and spikes -----------------------------------------

    def append_market_data_point(self, point: MarketDataPoint) -> MarketDataPoint:
        with self._lock:
            self._data_points.append(replace(point))
        return point

    def list_market_data_points(self, debate_id: str) -> list[MarketDataPoint]:
        with self._lock:
            return [replace(p) for p in self._data_points if p.debate_id == debate_id]

    def append_spike(self, spike: StanceSpike) -> StanceSpike:
        with self._lock:
            self._spikes.append(replace(spike))
        return spike

    def list_spikes(self, debate_id: str) -> list[StanceSpike]:
        with self._lock:
            return [replace(s) for s in self._spikes if s.debate_id == debate_id]

    # -- reputation ----------------------------------------------------------

    def get_reputation_factor(self, user_id: str) -> ReputationFactor | None:
        with self._lock:
            factor = self._factors.get(user_id)
            return replace(factor) if factor else None

    def create_reputation_factor(self, factor: ReputationFactor) -> ReputationFactor:
        with self._lock:
            if factor.user_id not in self._factors:
                self._factors[factor.user_id] = replace(factor)
            return replace(self._factors[factor.user_id])

    def update_reputation_factor(self, factor: ReputationFactor, expected_version: int) -> bool:
        with self._lock:
            current = self._factors.get(factor.user_id)
            if current is None or current.version != expected_version:
                return False
            self._factors[factor.user_id] = replace(factor)
            return True

    def append_reputation_history(self, entry: ReputationHistoryEntry) -> ReputationHistoryEntry:
        with self._lock:
            self._history.append(replace(entry))
        return entry

    def list_reputation_history(self, user_id: str, limit: int | None = None) -> list[ReputationHistoryEntry]:
        with self._lock:
            entries = [replace(h) for h in self._history if h.user_id == user_id]
        entries.reverse()
        return entries[:limit] if limit is not None else entries
