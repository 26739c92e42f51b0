"""PostgreSQL-backed :class:`~thesis.core.store.EngineStore`.

This is the store for production deployments:
- Survives process restarts
- Works across processes and threads sharing one database
- Enforces one pre and one post stance per voter with a UNIQUE constraint

Requires ``schema.sql`` to be applied (``thesis init``).

Example:
    store = DatabaseEngineStore()
    engine = create_engine(store=store)
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Generator, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from psycopg2 import errors as pg_errors

from .db import get_cursor
from .exceptions import ConflictError, NotFoundError
from .models import (
    MarketDataPoint,
    ReputationFactor,
    ReputationHistoryEntry,
    Stance,
    StancePhase,
    StanceSpike,
)

logger = logging.getLogger(__name__)

_STANCE_COLUMNS = (
    "id, debate_id, voter_id, phase, support_value, confidence, attributed_argument_id, attributed_at, created_at"
)


class DatabaseEngineStore:
    """Stores engine state in the tables created by ``schema.sql``.

    Inside ``transaction()`` every call on the same thread reuses one cursor,
    so the whole block commits or rolls back as a unit. Outside a
    transaction each call runs in its own short transaction.
    """

    def __init__(self) -> None:
        self._local = threading.local()

    @contextmanager
    def transaction(self) -> Iterator[None]:
        if getattr(self._local, "cursor", None) is not None:
            yield
            return
        with get_cursor() as cur:
            self._local.cursor = cur
            try:
                yield
            finally:
                self._local.cursor = None

    @contextmanager
    def _cursor(self) -> Generator[Any, None, None]:
        cur = getattr(self._local, "cursor", None)
        if cur is not None:
            yield cur
        else:
            with get_cursor() as fresh:
                yield fresh

    # -- stances ----------------------------------------------------------

    def insert_stance(self, stance: Stance) -> Stance:
        try:
            with self._cursor() as cur:
                cur.execute(
                    f"""
                    INSERT INTO stances ({_STANCE_COLUMNS})
                    VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                    RETURNING {_STANCE_COLUMNS}
                    """,
                    (
                        stance.id,
                        stance.debate_id,
                        stance.voter_id,
                        stance.phase.value,
                        stance.support_value,
                        stance.confidence,
                        stance.attributed_argument_id,
                        stance.attributed_at,
                        stance.created_at,
                    ),
                )
                row = cur.fetchone()
        except pg_errors.UniqueViolation as e:
            logger.info(f"Concurrent {stance.phase.value}-stance insert lost", extra={"debate_id": stance.debate_id})
            raise ConflictError(f"{stance.phase.value}-stance already exists for this voter and debate") from e
        return Stance.from_row(row)

    def get_stance(self, debate_id: str, voter_id: str, phase: StancePhase) -> Stance | None:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {_STANCE_COLUMNS} FROM stances WHERE debate_id = %s AND voter_id = %s AND phase = %s",
                (debate_id, voter_id, phase.value),
            )
            row = cur.fetchone()
        return Stance.from_row(row) if row else None

    def list_stances(self, debate_id: str) -> list[Stance]:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {_STANCE_COLUMNS} FROM stances WHERE debate_id = %s ORDER BY created_at, id",
                (debate_id,),
            )
            return [Stance.from_row(row) for row in cur.fetchall()]

    def list_voter_stances(self, voter_id: str) -> list[Stance]:
        with self._cursor() as cur:
            cur.execute(
                f"SELECT {_STANCE_COLUMNS} FROM stances WHERE voter_id = %s ORDER BY created_at DESC",
                (voter_id,),
            )
            return [Stance.from_row(row) for row in cur.fetchall()]

    def list_attributed_post_stances(self, argument_id: str) -> list[Stance]:
        with self._cursor() as cur:
            cur.execute(
                f"""
                SELECT {_STANCE_COLUMNS} FROM stances
                WHERE phase = 'post' AND attributed_argument_id = %s
                ORDER BY created_at
                """,
                (argument_id,),
            )
            return [Stance.from_row(row) for row in cur.fetchall()]

    def set_attribution(self, stance_id: str, argument_id: str, attributed_at: datetime) -> Stance:
        with self._cursor() as cur:
            cur.execute(
                f"""
                UPDATE stances SET attributed_argument_id = %s, attributed_at = %s
                WHERE id = %s AND phase = 'post'
                RETURNING {_STANCE_COLUMNS}
                """,
                (argument_id, attributed_at, stance_id),
            )
            row = cur.fetchone()
        if not row:
            raise NotFoundError("Stance", stance_id)
        return Stance.from_row(row)

    # -- market history and spikes -----------------------------------------

    def append_market_data_point(self, point: MarketDataPoint) -> MarketDataPoint:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO market_data_points (id, debate_id, timestamp, support_price, vote_count)
                VALUES (%s, %s, %s, %s, %s)
                """,
                (point.id, point.debate_id, point.timestamp, point.support_price, point.vote_count),
            )
        return point

    def list_market_data_points(self, debate_id: str) -> list[MarketDataPoint]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT id, debate_id, timestamp, support_price, vote_count
                FROM market_data_points WHERE debate_id = %s ORDER BY seq
                """,
                (debate_id,),
            )
            return [MarketDataPoint.from_row(row) for row in cur.fetchall()]

    def append_spike(self, spike: StanceSpike) -> StanceSpike:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO stance_spikes (id, debate_id, argument_id, timestamp, delta_amount, direction, label)
                VALUES (%s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    spike.id,
                    spike.debate_id,
                    spike.argument_id,
                    spike.timestamp,
                    spike.delta_amount,
                    spike.direction.value,
                    spike.label,
                ),
            )
        return spike

    def list_spikes(self, debate_id: str) -> list[StanceSpike]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT id, debate_id, argument_id, timestamp, delta_amount, direction, label
                FROM stance_spikes WHERE debate_id = %s ORDER BY seq
                """,
                (debate_id,),
            )
            return [StanceSpike.from_row(row) for row in cur.fetchall()]

    # -- reputation ----------------------------------------------------------

    def get_reputation_factor(self, user_id: str) -> ReputationFactor | None:
        with self._cursor() as cur:
            cur.execute("SELECT * FROM reputation_factors WHERE user_id = %s", (user_id,))
            row = cur.fetchone()
        return ReputationFactor.from_row(row) if row else None

    def create_reputation_factor(self, factor: ReputationFactor) -> ReputationFactor:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO reputation_factors (
                    user_id, impact_score_total, prediction_accuracy, participation_count,
                    quality_score, reputation_score, last_active_at, updated_at, version
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s, %s)
                ON CONFLICT (user_id) DO NOTHING
                """,
                (
                    factor.user_id,
                    factor.impact_score_total,
                    factor.prediction_accuracy,
                    factor.participation_count,
                    factor.quality_score,
                    factor.reputation_score,
                    factor.last_active_at,
                    factor.updated_at,
                    factor.version,
                ),
            )
            cur.execute("SELECT * FROM reputation_factors WHERE user_id = %s", (factor.user_id,))
            row = cur.fetchone()
        return ReputationFactor.from_row(row)

    def update_reputation_factor(self, factor: ReputationFactor, expected_version: int) -> bool:
        with self._cursor() as cur:
            cur.execute(
                """
                UPDATE reputation_factors SET
                    impact_score_total = %s,
                    prediction_accuracy = %s,
                    participation_count = %s,
                    quality_score = %s,
                    reputation_score = %s,
                    last_active_at = %s,
                    updated_at = %s,
                    version = %s
                WHERE user_id = %s AND version = %s
                """,
                (
                    factor.impact_score_total,
                    factor.prediction_accuracy,
                    factor.participation_count,
                    factor.quality_score,
                    factor.reputation_score,
                    factor.last_active_at,
                    factor.updated_at,
                    factor.version,
                    factor.user_id,
                    expected_version,
                ),
            )
            return cur.rowcount == 1

    def append_reputation_history(self, entry: ReputationHistoryEntry) -> ReputationHistoryEntry:
        with self._cursor() as cur:
            cur.execute(
                """
                INSERT INTO reputation_history (
                    id, user_id, previous_score, new_score, change_amount, reason, debate_id, created_at
                )
                VALUES (%s, %s, %s, %s, %s, %s, %s, %s)
                """,
                (
                    entry.id,
                    entry.user_id,
                    entry.previous_score,
                    entry.new_score,
                    entry.change_amount,
                    entry.reason,
                    entry.debate_id,
                    entry.created_at,
                ),
            )
        return entry

    def list_reputation_history(self, user_id: str, limit: int | None = None) -> list[ReputationHistoryEntry]:
        with self._cursor() as cur:
            cur.execute(
                """
                SELECT id, user_id, previous_score, new_score, change_amount, reason, debate_id, created_at
                FROM reputation_history
                WHERE user_id = %s
                ORDER BY seq DESC
                LIMIT %s
                """,
                (user_id, limit),
            )
            return [ReputationHistoryEntry.from_row(row) for row in cur.fetchall()]
