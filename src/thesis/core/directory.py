"""Boundary to the debate/argument subsystem.

The engine never stores arguments or debates itself. It only needs to know
which debate an argument belongs to, who the two debaters are, how to label
a debate in a voter's history, and where to report a recomputed impact score.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class DebateInfo:
    """Display data for a debate."""

    debate_id: str
    resolution: str
    status: str = "active"


@runtime_checkable
class DebateDirectory(Protocol):
    """Lookup interface implemented by the argument subsystem."""

    def debate_for_argument(self, argument_id: str) -> str | None:
        """Return the debate an argument was submitted to, or None if unknown."""
        ...

    def debaters(self, debate_id: str) -> frozenset[str]:
        """Return the user ids of the debate's participants (empty if unknown)."""
        ...

    def describe_debate(self, debate_id: str) -> DebateInfo | None:
        """Return display data for a debate, or None if unknown."""
        ...

    def record_impact_score(self, argument_id: str, impact_score: float) -> None:
        """Store an argument's recomputed impact score."""
        ...


class InMemoryDebateDirectory:
    """In-memory :class:`DebateDirectory` for tests and embedded use."""

    def __init__(self) -> None:
        self._debates: dict[str, DebateInfo] = {}
        self._debaters: dict[str, frozenset[str]] = {}
        self._arguments: dict[str, str] = {}
        self._impact_scores: dict[str, float] = {}
        self._lock = threading.Lock()

    def add_debate(
        self,
        debate_id: str,
        resolution: str = "",
        debaters: tuple[str, ...] = (),
        status: str = "active",
    ) -> DebateInfo:
        info = DebateInfo(debate_id=debate_id, resolution=resolution, status=status)
        with self._lock:
            self._debates[debate_id] = info
            self._debaters[debate_id] = frozenset(debaters)
        return info

    def add_argument(self, argument_id: str, debate_id: str) -> None:
        with self._lock:
            self._arguments[argument_id] = debate_id

    def debate_for_argument(self, argument_id: str) -> str | None:
        return self._arguments.get(argument_id)

    def debaters(self, debate_id: str) -> frozenset[str]:
        return self._debaters.get(debate_id, frozenset())

    def describe_debate(self, debate_id: str) -> DebateInfo | None:
        return self._debates.get(debate_id)

    def record_impact_score(self, argument_id: str, impact_score: float) -> None:
        with self._lock:
            self._impact_scores[argument_id] = impact_score

    def impact_score(self, argument_id: str) -> float | None:
        """Last impact score reported for an argument (testing helper)."""
        return self._impact_scores.get(argument_id)
