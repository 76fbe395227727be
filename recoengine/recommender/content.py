"""Personalized content builder.

Assembles the user-facing bundles (products, categories, deals and the
homepage) from the recommendation pipeline and the interest profile.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Union

from recoengine.recommender.algorithms import GeneratorOptions, RecommendationGenerator
from recoengine.recommender.features import CATEGORY_PREFIX
from recoengine.recommender.models import (
    Algorithm,
    CategoryAffinity,
    ContentType,
    DealItem,
    HeroContent,
    HomepageContent,
    InterestProfile,
    Product,
    RecommendationBlock,
    RecommendationItem,
    RecommendationOptions,
)
from recoengine.recommender.personalization import PersonalizationScorer
from recoengine.recommender.stores import CatalogStore, ProductFilter

# Configure module logger
logger = logging.getLogger(__name__)

# Homepage section sizes
HOMEPAGE_FEATURED = 8
HOMEPAGE_CATEGORIES = 6
HOMEPAGE_DEALS = 6
HOMEPAGE_RECOMMENDATIONS = 12
HOMEPAGE_RECENTLY_VIEWED = 8
HOMEPAGE_TRENDING = 8

# Purchased items weigh ten times an interest point in category affinity
PURCHASE_COUNT_WEIGHT = 10

INTEREST_CATEGORY_REASON = "Based on your browsing and purchase history"

DEFAULT_HERO = HeroContent(
    title="Discover Amazing Kids Fashion",
    subtitle="Quality clothing for every adventure",
    cta="Shop Now",
    background_image="/images/hero-default.jpg",
)

DEFAULT_BLOCK_TITLE = "Recommended for You"
SEGMENT_BLOCK_TITLES = (
    ("high-value", "Exclusive Recommendations"),
    ("frequent-buyer", "More Items You'll Love"),
    ("browser", "Based on What You've Viewed"),
)

Content = Union[
    List[RecommendationItem],
    List[CategoryAffinity],
    List[DealItem],
    HomepageContent,
]
RecommendFn = Callable[[str, RecommendationOptions], Awaitable[List[RecommendationItem]]]


def hero_content(profile: InterestProfile) -> HeroContent:
    """Hero banner for the user's strongest category interest."""
    categories = [
        (key[len(CATEGORY_PREFIX):], score)
        for key, score in profile.interests.items()
        if key.startswith(CATEGORY_PREFIX)
    ]
    if not categories:
        return DEFAULT_HERO

    category = max(categories, key=lambda x: x[1])[0]
    return HeroContent(
        title=f"New {category} Collection",
        subtitle="Discover the latest styles in your favorite category",
        cta=f"Shop {category}",
        background_image=f"/images/hero-{category}.jpg",
    )


def recommendation_title(profile: InterestProfile) -> str:
    for segment, title in SEGMENT_BLOCK_TITLES:
        if segment in profile.segments:
            return title
    return DEFAULT_BLOCK_TITLE


class PersonalizedContentBuilder:
    """Builds personalized content bundles for one user at a time."""

    def __init__(
        self,
        catalog: CatalogStore,
        scorer: PersonalizationScorer,
        recommend: RecommendFn,
        trending: RecommendationGenerator,
    ):
        self.catalog = catalog
        self.scorer = scorer
        self.recommend = recommend
        self.trending = trending

    async def build(
        self,
        content_type: ContentType,
        user_id: str,
        profile: InterestProfile,
        limit: int,
    ) -> Content:
        builders: Dict[ContentType, Callable[..., Awaitable[Content]]] = {
            ContentType.PRODUCTS: self.products,
            ContentType.CATEGORIES: self.categories,
            ContentType.DEALS: self.deals,
            ContentType.HOMEPAGE: self.homepage,
        }
        return await builders[content_type](user_id, profile, limit)

    async def products(
        self,
        user_id: str,
        profile: InterestProfile,
        limit: int,
    ) -> List[RecommendationItem]:
        """Hybrid recommendations re-ranked by personal affinity."""
        try:
            candidates = await self.recommend(
                user_id,
                RecommendationOptions(algorithm=Algorithm.HYBRID, limit=limit * 2),
            )
            return self.scorer.rescore(candidates, profile)[:limit]
        except Exception as e:
            logger.error(
                "Failed to build personalized products",
                extra={"user_id": user_id, "error": str(e), "error_type": type(e).__name__},
                exc_info=True,
            )
            return []

    async def categories(
        self,
        user_id: str,
        profile: InterestProfile,
        limit: int,
    ) -> List[CategoryAffinity]:
        """Categories ranked by interest score or purchase volume, whichever is higher."""
        from_interests = sorted(
            (
                CategoryAffinity(
                    category=key[len(CATEGORY_PREFIX):],
                    score=score,
                    reason=INTEREST_CATEGORY_REASON,
                )
                for key, score in profile.interests.items()
                if key.startswith(CATEGORY_PREFIX)
            ),
            key=lambda c: c.score,
            reverse=True,
        )
        from_purchases = [
            CategoryAffinity(
                category=category,
                score=count * PURCHASE_COUNT_WEIGHT,
                reason=f"You've purchased {count} items from this category",
            )
            for category, count in profile.purchase_history.category_counts.items()
        ]

        combined: Dict[str, CategoryAffinity] = {}
        for affinity in [*from_interests, *from_purchases]:
            existing = combined.get(affinity.category)
            if existing is None or existing.score < affinity.score:
                combined[affinity.category] = affinity

        return sorted(combined.values(), key=lambda c: c.score, reverse=True)[:limit]

    async def deals(
        self,
        user_id: str,
        profile: InterestProfile,
        limit: int,
    ) -> List[DealItem]:
        """Discounted products, boosted by both affinity and discount depth."""
        try:
            products = await self.catalog.find_active_products(ProductFilter(on_sale=True))
        except Exception as e:
            logger.error(
                "Failed to load discounted products",
                extra={"user_id": user_id, "error": str(e), "error_type": type(e).__name__},
                exc_info=True,
            )
            return []

        deals = []
        for product in products:
            multiplier = self.scorer.multiplier(product, profile)
            discount = (product.old_price - product.price) / product.old_price * 100
            deals.append(
                DealItem.from_product(
                    product,
                    discount=round(discount),
                    savings=product.old_price - product.price,
                    personalized_score=multiplier,
                    final_score=multiplier * (1 + discount / 100),
                    reason=f"{round(discount)}% off - matches your interests in {product.category}",
                )
            )

        deals.sort(key=lambda d: d.final_score, reverse=True)
        return deals[:limit]

    async def recently_viewed(self, profile: InterestProfile, limit: int) -> List[Product]:
        """Products from the latest view events, most recent first, active only."""
        views = [b for b in profile.behaviors if b.action == "view" and b.product_id]
        product_ids = list(dict.fromkeys(b.product_id for b in reversed(views[-limit:])))
        if not product_ids:
            return []

        try:
            products = {p.id: p for p in await self.catalog.find_products_by_ids(product_ids)}
        except Exception as e:
            logger.error(
                "Failed to load recently viewed products",
                extra={"user_id": profile.user_id, "error": str(e), "error_type": type(e).__name__},
            )
            return []

        return [
            products[pid] for pid in product_ids
            if pid in products and products[pid].is_active
        ][:limit]

    async def homepage(
        self,
        user_id: str,
        profile: InterestProfile,
        limit: int = 0,
    ) -> HomepageContent:
        """Every homepage section in one bundle; section sizes are fixed."""
        featured, categories, deals, block, recently_viewed, trending = await asyncio.gather(
            self.products(user_id, profile, HOMEPAGE_FEATURED),
            self.categories(user_id, profile, HOMEPAGE_CATEGORIES),
            self.deals(user_id, profile, HOMEPAGE_DEALS),
            self.products(user_id, profile, HOMEPAGE_RECOMMENDATIONS),
            self.recently_viewed(profile, HOMEPAGE_RECENTLY_VIEWED),
            self.trending.generate(user_id, GeneratorOptions(limit=HOMEPAGE_TRENDING)),
        )

        return HomepageContent(
            hero=hero_content(profile),
            featured_products=featured,
            categories=categories,
            deals=deals,
            recommendations=RecommendationBlock(
                title=recommendation_title(profile),
                products=block,
            ),
            recently_viewed=recently_viewed,
            trending=trending,
        )
