"""Constants for the opinion market and reputation engine.

The mind-change threshold and the two spike thresholds stay separate
names even where their values coincide.
"""

from __future__ import annotations


class StanceConstants:
    """Constants for stance recording, pricing and spike detection."""

    # Ranges
    SUPPORT_MIN = 0
    SUPPORT_MAX = 100
    CONFIDENCE_MIN = 1
    CONFIDENCE_MAX = 5
    DEFAULT_CONFIDENCE = 3

    # A voter whose |post - pre| reaches this has changed their mind
    MIND_CHANGE_THRESHOLD = 10

    # Spike detection
    AUTO_SPIKE_THRESHOLD = 15  # post-stance with a known argument
    ATTRIBUTION_SPIKE_THRESHOLD = 10  # explicit "this argument changed my mind"

    # Price reported when nobody has voted
    NEUTRAL_PRICE = 50


class ReputationConstants:
    """Constants for reputation calculations."""

    # Factor weights (sum to 1.0)
    IMPACT_WEIGHT = 0.35
    PREDICTION_ACCURACY_WEIGHT = 0.25
    PARTICIPATION_QUALITY_WEIGHT = 0.20
    CONSISTENCY_WEIGHT = 0.10
    COMMUNITY_TRUST_WEIGHT = 0.10

    # Overall score is reported on a 0-1000 scale
    OVERALL_SCALE = 10
    OVERALL_MAX = 1000

    # Defaults for a freshly created factor row
    DEFAULT_PREDICTION_ACCURACY = 50.0
    DEFAULT_QUALITY_SCORE = 50.0
    DEFAULT_CONSISTENCY = 50.0

    # Contributions below this are ignored, and gains at or below it are not logged
    LOW_IMPACT_THRESHOLD = 5.0

    # Consistency saturates at this many contributions
    CONSISTENCY_SATURATION = 50

    # Prediction accuracy moves this fraction of the way toward 0 or 100
    PREDICTION_UPDATE_WEIGHT = 0.1

    # Vote weight: 1.0 shifted by up to +/-0.25 each for overall score and accuracy
    VOTE_WEIGHT_BASE = 1.0
    VOTE_WEIGHT_MIN = 0.5  # also the weight of an unscored user
    VOTE_WEIGHT_MAX = 1.5
    VOTE_WEIGHT_SCORE_MIDPOINT = 500
    VOTE_WEIGHT_SCORE_SPAN = 2000
    VOTE_WEIGHT_ACCURACY_SPAN = 200

    # Decay
    DECAY_THRESHOLD_DAYS = 30
    DECAY_RATE_PER_WEEK = 0.01

    # History listing
    RECENT_HISTORY_LIMIT = 10
