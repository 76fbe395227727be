"""Personalization scoring.

Re-weights any product list against a user's interest profile. The profile
contributes a multiplier (never a replacement score), so an item's ranking
still reflects the algorithm that produced it.
"""

import logging
from typing import List, Sequence

from recoengine.recommender.config import EngineConfig
from recoengine.recommender.features import (
    age_key,
    brand_key,
    category_key,
    price_bucket,
    price_key,
)
from recoengine.recommender.models import InterestProfile, Product, RecommendationItem

# Configure module logger
logger = logging.getLogger(__name__)

# Relative strength of each attribute class in the multiplier
CATEGORY_FACTOR = 1.0
PRICE_FACTOR = 0.5
BRAND_FACTOR = 0.3
AGE_FACTOR = 0.7

DEFAULT_REASON = "Recommended for you"


class PersonalizationScorer:
    """Scores products by affinity with an interest profile."""

    def __init__(self, config: EngineConfig):
        self.config = config

    def multiplier(self, product: Product, profile: InterestProfile) -> float:
        """Affinity multiplier in [1, max_multiplier].

        Starts at 1 and multiplies in ``1 + interest/MAX * factor`` for each
        of category, price bucket, brand and age range the user has shown
        interest in.
        """
        interests = profile.interests
        max_interest = self.config.max_interest
        score = 1.0

        keyed_factors = [(price_key(product.price), PRICE_FACTOR)]
        if product.category:
            keyed_factors.insert(0, (category_key(product.category), CATEGORY_FACTOR))
        if product.brand:
            keyed_factors.append((brand_key(product.brand), BRAND_FACTOR))
        if product.age_range:
            keyed_factors.append((age_key(product.age_range), AGE_FACTOR))

        for key, factor in keyed_factors:
            interest = interests.get(key, 0.0)
            if interest:
                score *= 1 + interest / max_interest * factor

        return min(score, self.config.max_multiplier)

    def reason(self, product: Product, profile: InterestProfile) -> str:
        """Explain which interests made this product a match."""
        interests = profile.interests
        reasons = []

        if product.category and interests.get(category_key(product.category), 0) > self.config.category_reason_threshold:
            reasons.append(f"You frequently browse {product.category}")

        if interests.get(price_key(product.price), 0) > self.config.price_reason_threshold:
            reasons.append(f"Matches your {price_bucket(product.price)} price preference")

        if product.brand and interests.get(brand_key(product.brand), 0) > self.config.brand_reason_threshold:
            reasons.append(f"You like {product.brand} products")

        return ", ".join(reasons) if reasons else DEFAULT_REASON

    def score(self, item: RecommendationItem, profile: InterestProfile) -> RecommendationItem:
        """Return a copy of ``item`` with its personalized final score."""
        multiplier = self.multiplier(item, profile)
        base_score = item.recommendation_score if item.recommendation_score is not None else 1.0
        return item.model_copy(
            update={
                "personalized_score": multiplier,
                "original_score": item.recommendation_score,
                "final_score": base_score * multiplier,
                "personalized_reason": self.reason(item, profile),
            }
        )

    def rescore(
        self,
        items: Sequence[RecommendationItem],
        profile: InterestProfile,
    ) -> List[RecommendationItem]:
        """Personalize a list and sort it by final score, highest first."""
        scored = [self.score(item, profile) for item in items]
        scored.sort(key=lambda item: item.final_score, reverse=True)

        logger.debug(
            "Personalized recommendation list",
            extra={"user_id": profile.user_id, "num_items": len(scored)},
        )

        return scored
