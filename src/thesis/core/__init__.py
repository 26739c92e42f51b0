"""Thesis Core - stance ledger, market pricing, privacy guard and reputation."""

from .config import CoreSettings, clear_config_cache, get_config
from .db import generate_id, get_connection
from .directory import DebateDirectory, DebateInfo, InMemoryDebateDirectory
from .engine import OpinionEngine, create_engine
from .exceptions import (
    AlreadyRecordedError,
    AuthorizationError,
    BlindVotingError,
    ConfigException,
    ConflictError,
    DatabaseException,
    InvalidRangeError,
    NotFoundError,
    NotSelfAccessError,
    PostStanceRequiredError,
    PreStanceRequiredError,
    PrivacyViolationError,
    ProtocolOrderError,
    ThesisException,
    ValidationException,
    VotingNotPermittedError,
)
from .ledger import StanceLedger
from .logging import configure_logging, correlation_context
from .market import MarketPricing
from .models import (
    AccessDecision,
    AggregateStanceData,
    MarketDataPoint,
    MarketPriceSnapshot,
    PersuasionDelta,
    PostStanceResult,
    ReputationBreakdown,
    ReputationFactor,
    ReputationHistoryEntry,
    ReputationScore,
    ReputationState,
    SpikeDirection,
    Stance,
    StancePhase,
    StanceSpike,
    UserStances,
    VotingHistoryEntry,
    WinnerSide,
)
from .privacy_guard import PrivacyGuard
from .reputation import ReputationEngine
from .store import EngineStore, InMemoryEngineStore

__all__ = [
    # Engine
    "OpinionEngine",
    "create_engine",
    "StanceLedger",
    "MarketPricing",
    "PrivacyGuard",
    "ReputationEngine",
    # Collaborators
    "EngineStore",
    "InMemoryEngineStore",
    "DebateDirectory",
    "DebateInfo",
    "InMemoryDebateDirectory",
    # Models
    "AccessDecision",
    "AggregateStanceData",
    "MarketDataPoint",
    "MarketPriceSnapshot",
    "PersuasionDelta",
    "PostStanceResult",
    "ReputationBreakdown",
    "ReputationFactor",
    "ReputationHistoryEntry",
    "ReputationScore",
    "ReputationState",
    "SpikeDirection",
    "Stance",
    "StancePhase",
    "StanceSpike",
    "UserStances",
    "VotingHistoryEntry",
    "WinnerSide",
    # Exceptions
    "ThesisException",
    "DatabaseException",
    "ConfigException",
    "ValidationException",
    "InvalidRangeError",
    "ProtocolOrderError",
    "PreStanceRequiredError",
    "PostStanceRequiredError",
    "AlreadyRecordedError",
    "AuthorizationError",
    "NotSelfAccessError",
    "BlindVotingError",
    "VotingNotPermittedError",
    "PrivacyViolationError",
    "NotFoundError",
    "ConflictError",
    # Infrastructure
    "CoreSettings",
    "get_config",
    "clear_config_cache",
    "get_connection",
    "generate_id",
    "configure_logging",
    "correlation_context",
]
