"""Composition root: one store, four components.

Example:
    engine = create_engine(directory=my_directory)
    engine.ledger.record_pre_stance("debate-1", "user-1", 40)
    engine.guard.get_market_price("debate-1", "user-1")
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from .config import CoreSettings, get_config
from .directory import DebateDirectory
from .ledger import StanceLedger
from .market import MarketPricing
from .models import utcnow
from .privacy_guard import PrivacyGuard
from .reputation import ReputationEngine
from .store import EngineStore, InMemoryEngineStore


@dataclass
class OpinionEngine:
    """The wired-up engine. All components share ``store``."""

    store: EngineStore
    ledger: StanceLedger
    market: MarketPricing
    guard: PrivacyGuard
    reputation: ReputationEngine
    directory: DebateDirectory | None = None


def create_engine(
    store: EngineStore | None = None,
    directory: DebateDirectory | None = None,
    settings: CoreSettings | None = None,
    clock: Callable[[], datetime] | None = None,
) -> OpinionEngine:
    """Build an :class:`OpinionEngine`.

    Args:
        store: Storage backend; defaults to a fresh in-memory store
        directory: Debate/argument lookup; required for mind-change attribution
        settings: Engine settings; defaults to the global config
        clock: Time source; defaults to UTC now
    """
    store = store if store is not None else InMemoryEngineStore()
    settings = settings or get_config()
    clock = clock or utcnow

    market = MarketPricing(store, clock=clock)
    return OpinionEngine(
        store=store,
        ledger=StanceLedger(store, market, directory=directory, settings=settings, clock=clock),
        market=market,
        guard=PrivacyGuard(store, market, directory=directory),
        reputation=ReputationEngine(store, settings=settings, clock=clock),
        directory=directory,
    )
