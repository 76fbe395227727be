"""Recommendation generators.

Six independent strategies share one interface: ``generate(user_id,
options)`` returns a ranked list of ``RecommendationItem``. Every generator
catches failures at its boundary, logs them and returns an empty list, so
one broken data source never takes down a blended result.
"""

import asyncio
import logging
import random
import time
from abc import ABC, abstractmethod
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

import pandas as pd

from recoengine.recommender.cache import Cache
from recoengine.recommender.config import (
    OWNED_ORDER_STATUSES,
    SALES_ORDER_STATUSES,
    SEASONAL_KEYWORDS,
    EngineConfig,
)
from recoengine.recommender.features import (
    age_range_midpoint,
    extract_product_features,
    parse_age_range,
)
from recoengine.recommender.models import Algorithm, Product, RecommendationItem, utc_now
from recoengine.recommender.profile import InterestProfileStore
from recoengine.recommender.similarity import batch_cosine_similarity, jaccard_similarity
from recoengine.recommender.stores import CatalogStore, OrderStore

# Configure module logger
logger = logging.getLogger(__name__)

# Reasons shown to users
POPULAR_REASON = "Popular choice"
TRENDING_REASON = "Trending now"
CONTENT_REASON = "Based on your preferences"
COLLABORATIVE_REASON = "Users with similar preferences also bought this"

# Popularity composite weights
ORDER_COUNT_WEIGHT = 0.4
QUANTITY_WEIGHT = 0.3
REVENUE_WEIGHT = 0.3
REVENUE_SCALE = 100.0

# Seasonal keyword-match scores lie in [SEASONAL_MIN_SCORE, 1]
SEASONAL_MIN_SCORE = 0.5

# Age-fit scores lie in [AGE_MIN_SCORE, 1], 1 at the middle of the range
AGE_MIN_SCORE = 0.7


@dataclass(frozen=True)
class GeneratorOptions:
    """Per-call generator options."""

    limit: int = 20
    season: Optional[str] = None
    child_age: Optional[float] = None


@dataclass
class GeneratorContext:
    """Collaborators shared by all generators of one engine."""

    catalog: CatalogStore
    orders: OrderStore
    cache: Cache
    profiles: InterestProfileStore
    config: EngineConfig
    clock: Callable[[], datetime] = utc_now
    rng: random.Random = field(default_factory=random.Random)


def current_season(now: datetime) -> str:
    """Meteorological season (northern hemisphere) for a date."""
    month = now.month
    if 3 <= month <= 5:
        return "spring"
    if 6 <= month <= 8:
        return "summer"
    if 9 <= month <= 11:
        return "autumn"
    return "winter"


def matched_keywords(product: Product, keywords: Iterable[str]) -> List[str]:
    """Seasonal keywords found in a product's name, description or tags."""
    name = product.name.lower()
    description = product.description.lower()
    tags = {t.lower() for t in product.tags}
    return [
        k for k in keywords
        if k in name or k in description or k in tags
    ]


class RecommendationGenerator(ABC):
    """Base class for the recommendation strategies."""

    kind: Algorithm

    def __init__(self, context: GeneratorContext):
        self.context = context

    @property
    def config(self) -> EngineConfig:
        return self.context.config

    async def generate(self, user_id: str, options: GeneratorOptions) -> List[RecommendationItem]:
        """Ranked recommendations; an empty list if anything goes wrong."""
        start_time = time.time()

        try:
            items = await self._generate(user_id, options)
        except Exception as e:
            logger.error(
                "Recommendation generator failed",
                extra={
                    "algorithm": self.kind.value,
                    "user_id": user_id,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
                exc_info=True,
            )
            return []

        logger.debug(
            "Generated recommendations",
            extra={
                "algorithm": self.kind.value,
                "user_id": user_id,
                "num_recommendations": len(items),
                "duration_ms": round((time.time() - start_time) * 1000, 2),
            },
        )
        return items

    @abstractmethod
    async def _generate(self, user_id: str, options: GeneratorOptions) -> List[RecommendationItem]:
        ...

    async def _cached_items(self, key: str) -> Optional[List[RecommendationItem]]:
        cached = await self.context.cache.get(key)
        if cached is None:
            return None
        return [RecommendationItem.model_validate(item) for item in cached]

    async def _cache_items(self, key: str, items: Sequence[RecommendationItem], ttl: int) -> None:
        await self.context.cache.set(key, [item.model_dump(mode="json") for item in items], ttl)

    async def _active_products_by_id(self, product_ids: Iterable[str]) -> Dict[str, Product]:
        products = await self.context.catalog.find_products_by_ids(list(product_ids))
        return {p.id: p for p in products if p.is_active}


class PopularityGenerator(RecommendationGenerator):
    """Best sellers over the last 30 days."""

    kind = Algorithm.POPULARITY

    async def _generate(self, user_id: str, options: GeneratorOptions) -> List[RecommendationItem]:
        window = self.config.popularity_window_days
        cache_key = f"recommendations:popular:{window}:{options.limit}"

        cached = await self._cached_items(cache_key)
        if cached is not None:
            return cached

        since = self.context.clock() - timedelta(days=window)
        sales = await self.context.orders.aggregate_product_sales(since, SALES_ORDER_STATUSES)
        if not sales:
            return []

        df = pd.DataFrame([s.model_dump() for s in sales])
        df["popularity_score"] = (
            df["order_count"] * ORDER_COUNT_WEIGHT
            + df["total_quantity"] * QUANTITY_WEIGHT
            + (df["total_revenue"] / REVENUE_SCALE) * REVENUE_WEIGHT
        )
        df = df.sort_values("popularity_score", ascending=False, kind="mergesort")

        products = await self._active_products_by_id(df["product_id"])
        items = [
            RecommendationItem.from_product(
                products[row.product_id],
                recommendation_score=float(row.popularity_score),
                reason=POPULAR_REASON,
            )
            for row in df.itertuples()
            if row.product_id in products
        ][:options.limit]

        await self._cache_items(cache_key, items, self.config.ttls.popularity)
        return items


class TrendingGenerator(RecommendationGenerator):
    """Products with the sharpest recent order spikes."""

    kind = Algorithm.TRENDING

    async def _generate(self, user_id: str, options: GeneratorOptions) -> List[RecommendationItem]:
        window = self.config.trending_window_days
        cache_key = f"recommendations:trending:{window}"

        cached = await self._cached_items(cache_key)
        if cached is not None:
            return cached[:options.limit]

        since = self.context.clock() - timedelta(days=window)
        daily = await self.context.orders.daily_product_orders(since, SALES_ORDER_STATUSES)
        if not daily:
            return []

        df = pd.DataFrame([d.model_dump() for d in daily])
        stats = df.groupby("product_id", sort=False)["orders"].agg(average="mean", peak="max")
        # average * (peak / average): rewards a single-day spike over a steady seller
        stats["trend_score"] = stats["average"] * (stats["peak"] / stats["average"])
        stats = stats.sort_values("trend_score", ascending=False, kind="mergesort")

        products = await self._active_products_by_id(stats.index)
        items = [
            RecommendationItem.from_product(
                products[product_id],
                recommendation_score=float(score),
                reason=TRENDING_REASON,
            )
            for product_id, score in stats["trend_score"].items()
            if product_id in products
        ][:self.config.trending_cache_size]

        await self._cache_items(cache_key, items, self.config.ttls.trending)
        return items[:options.limit]


class SeasonalGenerator(RecommendationGenerator):
    """Products whose text matches the current season's keywords."""

    kind = Algorithm.SEASONAL

    async def _generate(self, user_id: str, options: GeneratorOptions) -> List[RecommendationItem]:
        season = options.season or current_season(self.context.clock())
        cache_key = f"recommendations:seasonal:{season}"

        cached = await self._cached_items(cache_key)
        if cached is not None:
            return cached[:options.limit]

        keywords = SEASONAL_KEYWORDS.get(season, ())
        if not keywords:
            logger.warning(f"Unknown season '{season}', no seasonal recommendations")
            return []

        products = await self.context.catalog.find_active_products()
        items = []
        for product in products:
            matches = matched_keywords(product, keywords)
            if not matches:
                continue
            items.append(
                RecommendationItem.from_product(
                    product,
                    recommendation_score=self._score(matches, keywords),
                    reason=f"Perfect for {season}",
                )
            )

        items.sort(key=lambda item: item.recommendation_score, reverse=True)

        await self._cache_items(cache_key, items, self.config.ttls.seasonal)
        return items[:options.limit]

    def _score(self, matches: Sequence[str], keywords: Sequence[str]) -> float:
        if self.config.seasonal_scoring == "random":
            return self.context.rng.uniform(SEASONAL_MIN_SCORE, 1.0)
        return SEASONAL_MIN_SCORE + (1 - SEASONAL_MIN_SCORE) * len(matches) / len(keywords)


class ContentBasedGenerator(RecommendationGenerator):
    """Products whose features align with the user's interest profile."""

    kind = Algorithm.CONTENT_BASED

    def __init__(self, context: GeneratorContext, fallback: RecommendationGenerator):
        super().__init__(context)
        self.fallback = fallback

    async def _generate(self, user_id: str, options: GeneratorOptions) -> List[RecommendationItem]:
        profile = await self.context.profiles.get_profile(user_id)
        if not profile.interests:
            logger.info(
                "Empty interest profile, falling back to popularity",
                extra={"user_id": user_id, "algorithm": self.kind.value},
            )
            return await self.fallback.generate(user_id, options)

        products = await self.context.catalog.find_active_products()
        scores = batch_cosine_similarity(
            profile.interests,
            [extract_product_features(p) for p in products],
        )

        items = [
            RecommendationItem.from_product(p, recommendation_score=s, reason=CONTENT_REASON)
            for p, s in zip(products, scores)
        ]
        items.sort(key=lambda item: item.recommendation_score, reverse=True)
        return items[:options.limit]


class CollaborativeGenerator(RecommendationGenerator):
    """Products bought by users whose purchases overlap with this user's."""

    kind = Algorithm.COLLABORATIVE

    def __init__(self, context: GeneratorContext, fallback: RecommendationGenerator):
        super().__init__(context)
        self.fallback = fallback

    async def find_similar_users(self, user_id: str, owned: Set[str]) -> List[Tuple[str, float]]:
        """Neighbors by Jaccard overlap of purchased products, most similar first."""
        others = await self.context.orders.purchased_products_by_user(
            OWNED_ORDER_STATUSES, exclude_user_id=user_id
        )
        similarities = [
            (other_id, jaccard_similarity(owned, products))
            for other_id, products in others.items()
        ]
        neighbors = [
            (other_id, sim) for other_id, sim in similarities
            if sim > self.config.neighbor_min_similarity
        ]
        neighbors.sort(key=lambda x: x[1], reverse=True)
        return neighbors

    async def _generate(self, user_id: str, options: GeneratorOptions) -> List[RecommendationItem]:
        orders = self.context.orders
        user_orders = await orders.find_orders_by_user(user_id, OWNED_ORDER_STATUSES)
        owned = {item.product_id for order in user_orders for item in order.items}

        if not owned:
            logger.info(
                "No purchase history, falling back to popularity",
                extra={"user_id": user_id, "algorithm": self.kind.value},
            )
            return await self.fallback.generate(user_id, options)

        neighbors = (await self.find_similar_users(user_id, owned))[:self.config.max_neighbors]
        neighbor_orders = await asyncio.gather(
            *(orders.find_orders_by_user(nid, OWNED_ORDER_STATUSES) for nid, _ in neighbors)
        )

        scores: Dict[str, float] = defaultdict(float)
        for (_, similarity), their_orders in zip(neighbors, neighbor_orders):
            for order in their_orders:
                for item in order.items:
                    if item.product_id not in owned:
                        scores[item.product_id] += similarity * item.quantity

        ranked = sorted(scores.items(), key=lambda x: x[1], reverse=True)[:options.limit]
        products = await self._active_products_by_id(pid for pid, _ in ranked)

        logger.debug(
            "Collaborative candidates",
            extra={"user_id": user_id, "num_neighbors": len(neighbors), "num_candidates": len(scores)},
        )

        return [
            RecommendationItem.from_product(
                products[pid], recommendation_score=score, reason=COLLABORATIVE_REASON
            )
            for pid, score in ranked
            if pid in products
        ]


def age_fit_score(age: float, bounds: Tuple[float, float]) -> float:
    """How centrally ``age`` sits in an age range that contains it."""
    low, high = bounds
    half_width = (high - low) / 2
    if half_width == 0:
        return 1.0
    distance = abs(age - (low + half_width)) / half_width
    return AGE_MIN_SCORE + (1 - AGE_MIN_SCORE) * (1 - distance)


class AgeBasedGenerator(RecommendationGenerator):
    """Products whose age range covers the child's age.

    The age comes from the caller or is inferred from the age ranges the
    user has bought. Without a usable age this degrades to popularity.
    """

    kind = Algorithm.AGE_BASED

    def __init__(self, context: GeneratorContext, fallback: RecommendationGenerator):
        super().__init__(context)
        self.fallback = fallback

    async def infer_child_age(self, user_id: str) -> Optional[float]:
        """Midpoint of the age range bought most, weighted by quantity."""
        user_orders = await self.context.orders.find_orders_by_user(user_id, OWNED_ORDER_STATUSES)
        product_ids = {item.product_id for order in user_orders for item in order.items}
        if not product_ids:
            return None

        products = {
            p.id: p for p in await self.context.catalog.find_products_by_ids(sorted(product_ids))
        }
        quantities: Dict[str, int] = defaultdict(int)
        for order in user_orders:
            for item in order.items:
                product = products.get(item.product_id)
                if product is not None and product.age_range:
                    quantities[product.age_range] += item.quantity

        if not quantities:
            return None

        # max() keeps the first range seen on ties
        return age_range_midpoint(max(quantities, key=quantities.get))

    async def _generate(self, user_id: str, options: GeneratorOptions) -> List[RecommendationItem]:
        child_age = options.child_age
        if child_age is None:
            child_age = await self.infer_child_age(user_id)

        if child_age is None:
            logger.info(
                "No child age known, falling back to popularity",
                extra={"user_id": user_id, "algorithm": self.kind.value},
            )
            return await self.fallback.generate(user_id, options)

        items = []
        for product in await self.context.catalog.find_active_products():
            bounds = parse_age_range(product.age_range)
            if bounds is None or not bounds[0] <= child_age <= bounds[1]:
                continue
            items.append(
                RecommendationItem.from_product(
                    product,
                    recommendation_score=age_fit_score(child_age, bounds),
                    reason=f"Age-appropriate for {child_age:g} years old",
                )
            )

        if not items:
            logger.info(
                f"No products for age {child_age:g}, falling back to popularity",
                extra={"user_id": user_id, "algorithm": self.kind.value},
            )
            return await self.fallback.generate(user_id, options)

        items.sort(key=lambda item: item.recommendation_score, reverse=True)
        return items[:options.limit]



def build_generators(context: GeneratorContext) -> Dict[Algorithm, RecommendationGenerator]:
    """Instantiate every generator except hybrid, keyed by algorithm."""
    popularity = PopularityGenerator(context)
    generators: List[RecommendationGenerator] = [
        CollaborativeGenerator(context, fallback=popularity),
        ContentBasedGenerator(context, fallback=popularity),
        popularity,
        TrendingGenerator(context),
        SeasonalGenerator(context),
        AgeBasedGenerator(context, fallback=popularity),
    ]
    return {g.kind: g for g in generators}
