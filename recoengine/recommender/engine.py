"""Recommendation engine facade.

``RecommendationEngine`` is the single entry point callers use. It wires the
generators, personalization and post-processing together, owns the result
caches and decides what to invalidate when a user's behavior changes.

The engine holds no per-user state of its own; everything lives in the
injected stores and cache.
"""

import logging
import random
import time
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

from pydantic import TypeAdapter, ValidationError

from recoengine.exceptions import (
    InvalidBehaviorError,
    ProfileUpdateError,
    RecoEngineError,
    UnknownContentTypeError,
)
from recoengine.recommender.algorithms import (
    GeneratorContext,
    GeneratorOptions,
    RecommendationGenerator,
    build_generators,
)
from recoengine.recommender.cache import Cache, ResilientCache
from recoengine.recommender.config import EngineConfig
from recoengine.recommender.content import Content, PersonalizedContentBuilder
from recoengine.recommender.features import extract_product_features
from recoengine.recommender.hybrid import HybridGenerator
from recoengine.recommender.models import (
    Algorithm,
    BehaviorEvent,
    CategoryAffinity,
    ContentType,
    DealItem,
    HomepageContent,
    InterestProfile,
    Product,
    RecommendationItem,
    RecommendationOptions,
    utc_now,
)
from recoengine.recommender.personalization import PersonalizationScorer
from recoengine.recommender.postprocess import PostProcessor
from recoengine.recommender.profile import (
    InterestProfileStore,
    profile_cache_key,
    segment_cache_key,
)
from recoengine.recommender.similarity import batch_cosine_similarity
from recoengine.recommender.stores import CatalogStore, OrderStore, ProductFilter, UserStore

# Configure module logger
logger = logging.getLogger(__name__)

SIMILAR_REASON = "Similar to this product"

# Limits used when a content request does not name one
DEFAULT_CONTENT_LIMITS = {
    ContentType.PRODUCTS: 20,
    ContentType.CATEGORIES: 10,
    ContentType.DEALS: 10,
    ContentType.HOMEPAGE: 0,
}

CONTENT_ADAPTERS: Dict[ContentType, TypeAdapter] = {
    ContentType.PRODUCTS: TypeAdapter(List[RecommendationItem]),
    ContentType.CATEGORIES: TypeAdapter(List[CategoryAffinity]),
    ContentType.DEALS: TypeAdapter(List[DealItem]),
    ContentType.HOMEPAGE: TypeAdapter(HomepageContent),
}


def recommendation_cache_key(user_id: str, options: RecommendationOptions) -> str:
    return f"recommendations:user:{user_id}:{options.algorithm.value}:{options.cache_fragment()}"


def content_cache_key(user_id: str, content_type: ContentType, limit: int) -> str:
    return f"personalization:content:{user_id}:{content_type.value}:{limit}"


def similar_cache_key(product_id: str) -> str:
    return f"recommendations:similar:{product_id}"


def shares_audience(product: Product, target: Product) -> bool:
    """True when two products share a category, age range or gender."""
    return any(
        value is not None and getattr(product, attr) == value
        for attr, value in (
            ("category", target.category),
            ("age_range", target.age_range),
            ("gender", target.gender),
        )
    )


class RecommendationEngine:
    """Recommendation and personalization service.

    Args:
        catalog: Product catalog store.
        orders: Order history store.
        users: User record store.
        cache: Key-value cache for profiles and results. Wrapped in
            ``ResilientCache`` unless it already is one, so backend
            failures read as misses.
        config: Engine configuration; defaults apply when omitted.
        clock: Source of the current aware UTC time.
        rng: Random source for randomized seasonal scoring.
        metrics: Optional recorder with a ``record_fallback(algorithm)`` method.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        orders: OrderStore,
        users: UserStore,
        cache: Cache,
        config: Optional[EngineConfig] = None,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
        metrics: Optional[Any] = None,
    ):
        self.catalog = catalog
        self.orders = orders
        self.users = users
        self.cache = cache if isinstance(cache, ResilientCache) else ResilientCache(cache)
        self.config = config or EngineConfig()
        self.clock = clock
        self.metrics = metrics

        self.profiles = InterestProfileStore(catalog, orders, users, self.cache, self.config, clock)
        context = GeneratorContext(
            catalog=catalog,
            orders=orders,
            cache=self.cache,
            profiles=self.profiles,
            config=self.config,
            clock=clock,
            rng=rng or random.Random(),
        )

        self.generators: Dict[Algorithm, RecommendationGenerator] = build_generators(context)
        self.popularity = self.generators[Algorithm.POPULARITY]
        self.generators[Algorithm.HYBRID] = HybridGenerator(
            context, dict(self.generators), fallback=self.popularity
        )

        self.scorer = PersonalizationScorer(self.config)
        self.postprocessor = PostProcessor(orders)
        self.content = PersonalizedContentBuilder(
            catalog,
            self.scorer,
            recommend=self.get_recommendations,
            trending=self.generators[Algorithm.TRENDING],
        )

    async def get_recommendations(
        self,
        user_id: str,
        options: Optional[RecommendationOptions] = None,
    ) -> List[RecommendationItem]:
        """Ranked, filtered recommendations for a user.

        Never raises. When the requested algorithm fails the call degrades to
        popularity, which itself degrades to an empty list.

        Args:
            user_id: User to recommend for.
            options: Algorithm, limit and filters; defaults when omitted.

        Returns:
            Recommendation items, best first.
        """
        options = options or RecommendationOptions()
        cache_key = recommendation_cache_key(user_id, options)
        start_time = time.time()

        try:
            if not options.force_refresh:
                cached = await self.cache.get(cache_key)
                if cached is not None:
                    logger.debug("Recommendation cache hit", extra={"user_id": user_id, "cache_key": cache_key})
                    return [RecommendationItem.model_validate(item) for item in cached]

            generator = self.generators[options.algorithm]
            items = await generator.generate(
                user_id,
                GeneratorOptions(
                    limit=options.limit,
                    season=options.season,
                    child_age=options.child_age,
                ),
            )
            items = await self.postprocessor.apply(
                items,
                user_id,
                limit=options.limit,
                exclude_owned=options.exclude_owned,
                include_out_of_stock=options.include_out_of_stock,
                categories=options.categories,
                price_range=options.price_range,
            )

            await self.cache.set(
                cache_key,
                [item.model_dump(mode="json") for item in items],
                self.config.ttls.recommendations,
            )

            logger.info(
                f"Generated {len(items)} recommendations for user {user_id}",
                extra={
                    "user_id": user_id,
                    "algorithm": options.algorithm.value,
                    "duration_ms": round((time.time() - start_time) * 1000, 2),
                },
            )
            return items

        except Exception as e:
            logger.warning(
                "Recommendation failed, falling back to popularity",
                extra={
                    "user_id": user_id,
                    "algorithm": options.algorithm.value,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )
            if self.metrics is not None:
                self.metrics.record_fallback(options.algorithm.value)
            return await self.popularity.generate(user_id, GeneratorOptions(limit=options.limit))

    async def track_behavior(
        self,
        user_id: str,
        event: Union[BehaviorEvent, Mapping[str, Any]],
    ) -> InterestProfile:
        """Record a behavior event and invalidate stale results.

        Args:
            user_id: User who acted.
            event: A ``BehaviorEvent`` or its raw mapping.

        Returns:
            The updated interest profile.

        Raises:
            InvalidBehaviorError: If the event does not validate.
            ProfileUpdateError: If the profile could not be updated.
        """
        if not isinstance(event, BehaviorEvent):
            try:
                event = BehaviorEvent.model_validate(event)
            except ValidationError as e:
                raise InvalidBehaviorError(user_id, e) from e

        try:
            profile = await self.profiles.track_behavior(user_id, event)
            await self.update_recommendations(user_id, event.action)
        except RecoEngineError:
            raise
        except Exception as e:
            logger.error(
                "Failed to track behavior",
                extra={"user_id": user_id, "action": event.action, "error": str(e)},
                exc_info=True,
            )
            raise ProfileUpdateError(user_id, e) from e

        return profile

    async def get_profile(self, user_id: str) -> InterestProfile:
        return await self.profiles.get_profile(user_id)

    async def get_personalized_content(
        self,
        user_id: str,
        content_type: Union[ContentType, str],
        limit: Optional[int] = None,
        refresh: bool = False,
    ) -> Content:
        """Personalized products, categories, deals or homepage bundle.

        Raises:
            UnknownContentTypeError: If ``content_type`` is not a known kind.
        """
        try:
            kind = ContentType(content_type)
        except ValueError as e:
            raise UnknownContentTypeError(str(content_type)) from e

        if limit is None:
            limit = DEFAULT_CONTENT_LIMITS[kind]
        adapter = CONTENT_ADAPTERS[kind]
        cache_key = content_cache_key(user_id, kind, limit)

        if not refresh:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                return adapter.validate_python(cached)

        profile = await self.profiles.get_profile(user_id)
        content = await self.content.build(kind, user_id, profile, limit)

        await self.cache.set(cache_key, adapter.dump_python(content, mode="json"), self.config.ttls.content)
        return content

    async def find_similar_products(self, product_id: str, limit: int = 10) -> List[RecommendationItem]:
        """Products most similar to ``product_id`` by feature cosine.

        Returns an empty list for unknown products or on store failure.
        """
        cache_key = similar_cache_key(product_id)

        try:
            cached = await self.cache.get(cache_key)
            if cached is not None:
                return [RecommendationItem.model_validate(item) for item in cached][:limit]

            target = await self.catalog.find_product_by_id(product_id)
            if target is None:
                logger.info(f"Product {product_id} not found, no similar products")
                return []

            candidates = [
                p for p in await self.catalog.find_active_products(ProductFilter(exclude_ids=[product_id]))
                if shares_audience(p, target)
            ]
            scores = batch_cosine_similarity(
                extract_product_features(target),
                [extract_product_features(p) for p in candidates],
            )

            items = [
                RecommendationItem.from_product(
                    p, recommendation_score=s, similarity_score=s, reason=SIMILAR_REASON
                )
                for p, s in zip(candidates, scores)
            ]
            items.sort(key=lambda item: item.similarity_score, reverse=True)
            items = items[:self.config.similar_cache_size]

            await self.cache.set(
                cache_key,
                [item.model_dump(mode="json") for item in items],
                self.config.ttls.similar,
            )
            return items[:limit]

        except Exception as e:
            logger.error(
                "Failed to find similar products",
                extra={"product_id": product_id, "error": str(e), "error_type": type(e).__name__},
                exc_info=True,
            )
            return []

    async def clear_user_cache(self, user_id: str) -> None:
        """Drop every cached entry for a user, including the profile."""
        await self.cache.delete_pattern(f"recommendations:user:{user_id}:*")
        await self.cache.delete_pattern(f"personalization:content:{user_id}:*")
        await self.cache.delete(profile_cache_key(user_id))
        await self.cache.delete(segment_cache_key(user_id))

        logger.info("Cleared user cache", extra={"user_id": user_id})

    async def update_recommendations(self, user_id: str, action: str) -> None:
        """Invalidate results made stale by a new behavior event.

        The freshly saved profile is kept. A purchase also changes global
        sales, so the popularity and trending caches go too.
        """
        await self.cache.delete_pattern(f"recommendations:user:{user_id}:*")
        await self.cache.delete_pattern(f"personalization:content:{user_id}:*")

        if action == "purchase":
            await self.cache.delete_pattern("recommendations:popular:*")
            await self.cache.delete_pattern("recommendations:trending:*")

        logger.debug("Invalidated recommendations", extra={"user_id": user_id, "action": action})
