"""
Application constants and algorithm configuration.

These are values that don't change based on environment but may need
to be tuned or referenced across the codebase. The classifier thresholds
are hand-tuned heuristics carried over from the storefront; keep them
here rather than inlining them in the rule table.
"""

from dataclasses import dataclass
from typing import Dict, Tuple


# =============================================================================
# Behavior Classifier
# =============================================================================

@dataclass(frozen=True)
class ClassifierThresholds:
    """Thresholds for the rule-based intent classifier."""

    # Rule 1: impulse buyer
    IMPULSE_MAX_AVG_HOVER_MS: float = 1000.0
    IMPULSE_MIN_CART_ACTIONS: int = 0  # strictly greater than

    # Rule 2: researcher
    RESEARCHER_MIN_PAGE_VISITS: int = 3  # strictly greater than
    RESEARCHER_MIN_AVG_HOVER_MS: float = 3000.0  # strictly greater than

    # Rule 3: price sensitive (wishlist > cart and wishlist > this)
    PRICE_SENSITIVE_MIN_WISHLIST: int = 0


DEFAULT_CLASSIFIER_THRESHOLDS = ClassifierThresholds()


# =============================================================================
# Behavior Aggregator
# =============================================================================

@dataclass(frozen=True)
class AggregatorConfig:
    """Windows used when reducing the interaction log."""

    HOVER_PAIR_WINDOW_MS: int = 30_000
    RECENT_SEQUENCE_LENGTH: int = 20
    FAST_ACTION_GAP_MS: int = 1_000
    SLOW_ACTION_GAP_MS: int = 10_000
    QUICK_BOUNCE_MAX_MS: int = 200


DEFAULT_AGGREGATOR_CONFIG = AggregatorConfig()


# =============================================================================
# Signal Weights
# =============================================================================

@dataclass(frozen=True)
class SignalWeights:
    """Per-generator multipliers applied to raw signal strength."""

    COLLABORATIVE: float = 0.4
    MARKET_BASKET: float = 0.3
    BEHAVIORAL: float = 0.3


DEFAULT_SIGNAL_WEIGHTS = SignalWeights()


@dataclass(frozen=True)
class SearchWeights:
    """Additive points for search relevance."""

    TITLE_EXACT: float = 30.0
    TITLE_TOKEN: float = 15.0
    DESCRIPTION_EXACT: float = 20.0
    DESCRIPTION_TOKEN: float = 10.0
    TAG_MATCH: float = 12.0
    PRODUCT_TYPE_EXACT: float = 25.0
    MIN_TOKEN_LENGTH: int = 3
    # confidence = min(1, score / CONFIDENCE_SCALE)
    CONFIDENCE_SCALE: float = 100.0


DEFAULT_SEARCH_WEIGHTS = SearchWeights()


@dataclass(frozen=True)
class ContextBoosts:
    """Additive context-dependent boosts."""

    COLLECTION_MEMBER: float = 15.0
    SAME_PRODUCT_TYPE: float = 20.0
    SHARED_TAG: float = 5.0
    HOME_HIGHLIGHT: float = 10.0
    HOME_HIGHLIGHT_TAGS: Tuple[str, ...] = ("featured", "popular")
    CONFIDENCE_SCALE: float = 50.0


DEFAULT_CONTEXT_BOOSTS = ContextBoosts()


# =============================================================================
# Confidence Buckets
# =============================================================================

# Lower bounds on the 0-1 confidence scale, checked top-down.
CONFIDENCE_BUCKET_THRESHOLDS: Dict[str, float] = {
    "very_high": 0.8,
    "high": 0.6,
    "medium": 0.4,
}


# =============================================================================
# Baseline Ranker (fallback strategy)
# =============================================================================

@dataclass(frozen=True)
class BaselineRankerConfig:
    """Point table for the transparent fallback ranker."""

    # (min quantity, points), checked top-down
    STOCK_TIERS: Tuple[Tuple[int, float], ...] = ((10, 25.0), (5, 20.0), (1, 15.0))
    STOCK_UNKNOWN: float = 10.0

    PRICE_MID_RANGE: float = 20.0
    PRICE_BUDGET: float = 15.0
    PRICE_PREMIUM: float = 12.0
    PRICE_NO_REFERENCE: float = 10.0

    # (max days since publish, points), checked top-down
    RECENCY_TIERS: Tuple[Tuple[int, float], ...] = (
        (7, 20.0), (30, 15.0), (90, 10.0), (180, 5.0),
    )

    FEATURED_TOP_BONUS: float = 100.0
    FEATURED_STEP: float = 10.0

    # confidence = min(1, (stock + price + recency) / BASE_SCORE_SCALE)
    BASE_SCORE_SCALE: float = 65.0


DEFAULT_BASELINE_CONFIG = BaselineRankerConfig()


# =============================================================================
# Result Assembler
# =============================================================================

@dataclass(frozen=True)
class AssemblerConfig:
    """Metadata thresholds for the assembled result."""

    HIGH_CONFIDENCE_BUCKETS: Tuple[str, ...] = ("high", "very_high")
    ACTIVE_SCORE_THRESHOLD: float = 0.0  # strictly greater than
    REASON_SEPARATOR: str = " + "


DEFAULT_ASSEMBLER_CONFIG = AssemblerConfig()


# =============================================================================
# Sorting
# =============================================================================

# User-facing sort values -> canonical criterion. "recommended" means scored.
SORT_ALIASES: Dict[str, str] = {
    "price-asc": "price-asc",
    "price-low-high": "price-asc",
    "price-desc": "price-desc",
    "price-high-low": "price-desc",
    "newest": "newest",
    "name-asc": "name-asc",
    "name-a-z": "name-asc",
    "name-desc": "name-desc",
    "name-z-a": "name-desc",
}

RECOMMENDED_SORT = "recommended"

STRATEGY_SEARCH = "search-optimized"
STRATEGY_COLLECTION = "collection-contextual"
STRATEGY_PERSONALIZED = "ai-personalized"
STRATEGY_FALLBACK = "fallback"
STRATEGY_STANDARD_PREFIX = "standard-"


@dataclass(frozen=True)
class IntentDefaults:
    """Outputs of the default rule when nothing else matches."""

    LABEL: str = "researcher"
    CONFIDENCE: float = 0.6
    TIME_TO_CONVERT_SEC: int = 60
    ORDER_VALUE: float = 50.0


DEFAULT_INTENT = IntentDefaults()
