"""Engine configuration.

All tunable weights, thresholds and cache lifetimes live in immutable
dataclasses so alternate weightings can be passed into the engine and the
hybrid combiner in tests without touching module state.
"""

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Mapping, Tuple

# Interest scale
MAX_INTEREST = 100.0
DECAY_FACTOR = 0.1
MAX_BEHAVIORS = 1000
MAX_PERSONALIZATION_MULTIPLIER = 5.0

# Behavior action weights
DEFAULT_BEHAVIOR_WEIGHTS = MappingProxyType({
    "view": 1.0,
    "addToCart": 3.0,
    "purchase": 10.0,
    "like": 2.0,
    "share": 4.0,
    "search": 1.5,
})

# Order statuses that count for each kind of query
PROFILE_ORDER_STATUSES = ("delivered", "processing", "shipped")
OWNED_ORDER_STATUSES = ("delivered", "processing")
SALES_ORDER_STATUSES = ("delivered", "processing", "shipped")

# Seasonal keyword table
SEASONAL_KEYWORDS = MappingProxyType({
    "spring": ("spring", "light", "outdoor", "casual", "t-shirt", "shorts"),
    "summer": ("summer", "beach", "swimwear", "shorts", "sandals", "hat"),
    "autumn": ("autumn", "fall", "jacket", "long-sleeve", "boots", "warm"),
    "winter": ("winter", "coat", "sweater", "boots", "warm", "holiday"),
})

SEASONAL_SCORING_MODES = ("keyword", "random")


@dataclass(frozen=True)
class HybridWeights:
    """Per-generator weights used by the hybrid combiner.

    Attributes:
        collaborative: Weight of neighbor-user purchase overlap.
        content_based: Weight of profile/product cosine similarity.
        popularity: Weight of 30-day sales popularity.
        trending: Weight of order velocity.
        seasonal: Weight of seasonal keyword matches.
    """

    collaborative: float = 0.30
    content_based: float = 0.25
    popularity: float = 0.20
    trending: float = 0.15
    seasonal: float = 0.10

    def __post_init__(self) -> None:
        values = self.as_tuple()
        if any(w < 0 for w in values):
            raise ValueError("Hybrid weights must be non-negative")
        if not math.isclose(sum(values), 1.0, abs_tol=1e-9):
            raise ValueError(f"Hybrid weights must sum to 1.0, got {sum(values):.4f}")

    def as_tuple(self) -> Tuple[float, float, float, float, float]:
        return (
            self.collaborative,
            self.content_based,
            self.popularity,
            self.trending,
            self.seasonal,
        )


@dataclass(frozen=True)
class CacheTTLs:
    """Cache lifetimes in seconds per data kind."""

    recommendations: int = 3600
    profile: int = 3600
    popularity: int = 1800
    trending: int = 1800
    seasonal: int = 86400
    similar: int = 3600
    content: int = 1800
    segments: int = 86400


@dataclass(frozen=True)
class EngineConfig:
    """Immutable configuration for the recommendation engine.

    Defaults reproduce the production tuning. Build a new instance to test
    alternate weightings.
    """

    hybrid_weights: HybridWeights = field(default_factory=HybridWeights)
    ttls: CacheTTLs = field(default_factory=CacheTTLs)
    behavior_weights: Mapping[str, float] = field(
        default_factory=lambda: DEFAULT_BEHAVIOR_WEIGHTS
    )
    max_interest: float = MAX_INTEREST
    decay_factor: float = DECAY_FACTOR
    max_behaviors: int = MAX_BEHAVIORS
    max_multiplier: float = MAX_PERSONALIZATION_MULTIPLIER
    search_term_factor: float = 0.5

    # Generator windows and limits
    popularity_window_days: int = 30
    trending_window_days: int = 7
    trending_cache_size: int = 50
    similar_cache_size: int = 50
    candidate_multiplier: float = 1.5
    default_generator_limit: int = 20

    # Collaborative filtering
    neighbor_min_similarity: float = 0.1
    max_neighbors: int = 10

    # Seasonal scoring: "keyword" (deterministic) or "random"
    seasonal_scoring: str = "keyword"

    # Segmentation thresholds
    high_value_spend: float = 1000.0
    mid_value_spend: float = 500.0
    recent_window_days: int = 7
    browser_views: int = 20
    cart_heavy_adds: int = 5
    frequent_buyer_purchases: int = 2

    # Reason visibility thresholds
    category_reason_threshold: float = 50.0
    price_reason_threshold: float = 30.0
    brand_reason_threshold: float = 40.0

    def __post_init__(self) -> None:
        if not 0 <= self.decay_factor < 1:
            raise ValueError("decay_factor must be in [0, 1)")
        if self.seasonal_scoring not in SEASONAL_SCORING_MODES:
            raise ValueError(
                f"seasonal_scoring must be one of {SEASONAL_SCORING_MODES}, "
                f"got {self.seasonal_scoring!r}"
            )

    def behavior_weight(self, action: str) -> float:
        """Weight of a behavior action; unknown actions weigh 1."""
        return self.behavior_weights.get(action, 1.0)

    def candidate_limit(self, limit: int) -> int:
        """Number of candidates each generator produces for the hybrid blend."""
        return math.ceil(limit * self.candidate_multiplier)
