"""Interest profile store.

Builds per-user interest profiles from order history, keeps them in the
cache, and mutates them incrementally as behavior events are tracked.

Decay is event-driven: every tracked event shrinks all existing interest
weights once before the event's own contribution is added. Concurrent
``track_behavior`` calls for one user are not serialized; the last writer
wins.
"""

import asyncio
import logging
from collections import defaultdict
from datetime import datetime
from typing import Callable, Dict, Iterable, MutableMapping, Optional, Sequence

from recoengine.recommender.cache import Cache
from recoengine.recommender.config import PROFILE_ORDER_STATUSES, EngineConfig
from recoengine.recommender.features import (
    age_key,
    brand_key,
    category_key,
    price_key,
    search_key,
)
from recoengine.recommender.models import (
    BehaviorEvent,
    Demographics,
    FavoriteCategory,
    InterestProfile,
    Order,
    Product,
    PurchaseSummary,
    utc_now,
)
from recoengine.recommender.segmentation import (
    NEW_USER_SEGMENT,
    recent_behaviors,
    segment_profile,
)
from recoengine.recommender.stores import CatalogStore, OrderStore, UserStore

# Configure module logger
logger = logging.getLogger(__name__)

MAX_FAVORITE_CATEGORIES = 5


def profile_cache_key(user_id: str) -> str:
    return f"personalization:profile:{user_id}"


def segment_cache_key(user_id: str) -> str:
    return f"personalization:segment:{user_id}"


def default_profile(user_id: Optional[str] = None) -> InterestProfile:
    """Profile used when nothing is known or the build failed."""
    return InterestProfile(user_id=user_id, segments=[NEW_USER_SEGMENT])


def apply_time_decay(interests: MutableMapping[str, float], decay_factor: float) -> None:
    """Shrink every interest weight in place by ``decay_factor``."""
    for key in interests:
        interests[key] = max(interests[key] * (1 - decay_factor), 0.0)


def add_interest(
    interests: MutableMapping[str, float],
    key: str,
    amount: float,
    max_interest: float,
) -> None:
    interests[key] = min(interests.get(key, 0.0) + amount, max_interest)


def build_interest_scores(
    orders: Sequence[Order],
    products: Dict[str, Product],
    purchase_weight: float,
    max_interest: float,
) -> Dict[str, float]:
    """Interest vector from order history, scaled so the top key is ``max_interest``.

    Each ordered item adds ``quantity * purchase_weight`` to the category,
    price bucket, brand and age-range keys of its product.
    """
    interests: Dict[str, float] = defaultdict(float)

    for order in orders:
        for item in order.items:
            product = products.get(item.product_id)
            if product is None:
                continue

            weight = item.quantity * purchase_weight
            if product.category:
                interests[category_key(product.category)] += weight
            interests[price_key(product.price)] += weight
            if product.brand:
                interests[brand_key(product.brand)] += weight
            if product.age_range:
                interests[age_key(product.age_range)] += weight

    max_score = max([1.0, *interests.values()])
    return {
        key: min(score / max_score * max_interest, max_interest)
        for key, score in interests.items()
    }


def purchase_frequency(orders: Sequence[Order], now: datetime) -> str:
    """Frequency tier from orders per month since the first order."""
    if len(orders) <= 1:
        return "new"

    first_order = min(o.created_at for o in orders)
    days_since_first = (now - first_order).total_seconds() / 86400
    orders_per_month = len(orders) / days_since_first * 30 if days_since_first > 0 else 0

    if orders_per_month >= 4:
        return "vip"
    if orders_per_month >= 2:
        return "frequent"
    if orders_per_month >= 1:
        return "regular"
    return "occasional"


def analyze_purchase_history(
    orders: Sequence[Order],
    products: Dict[str, Product],
    now: datetime,
) -> PurchaseSummary:
    """Summarize spend, categories and cadence of a user's orders."""
    if not orders:
        return PurchaseSummary()

    total_spent = 0.0
    total_lines = 0
    last_order_date = None
    category_spending: Dict[str, float] = defaultdict(float)
    category_counts: Dict[str, int] = defaultdict(int)
    monthly_spending: Dict[str, float] = defaultdict(float)

    for order in orders:
        total_spent += order.total
        if last_order_date is None or order.created_at > last_order_date:
            last_order_date = order.created_at
        monthly_spending[order.created_at.strftime("%Y-%m")] += order.total

        for item in order.items:
            total_lines += 1
            product = products.get(item.product_id)
            if product is not None and product.category:
                category_spending[product.category] += item.quantity * item.price
                category_counts[product.category] += item.quantity

    favorites = sorted(category_spending.items(), key=lambda x: x[1], reverse=True)

    return PurchaseSummary(
        total_orders=len(orders),
        total_spent=total_spent,
        average_order_value=total_spent / len(orders),
        average_items_per_order=total_lines / len(orders),
        favorite_categories=[
            FavoriteCategory(category=category, spent=spent)
            for category, spent in favorites[:MAX_FAVORITE_CATEGORIES]
        ],
        category_counts=dict(category_counts),
        monthly_spending=dict(monthly_spending),
        last_order_date=last_order_date,
        frequency=purchase_frequency(orders, now),
    )


def calculate_personalization_score(
    profile: InterestProfile,
    now: datetime,
    config: EngineConfig,
) -> float:
    """Profile richness on a 0-100 scale.

    Up to 30 points for behavior diversity, 40 for orders, 20 for interest
    breadth and 10 for activity in the recent window.
    """
    score = 0.0
    score += min(len({b.action for b in profile.behaviors}) * 5, 30)
    score += min(profile.purchase_history.total_orders * 2, 40)
    score += min(len(profile.interests), 20)
    recent = recent_behaviors(profile.behaviors, now, config.recent_window_days)
    score += min(len(recent) * 0.5, 10)
    return min(score, 100.0)


class InterestProfileStore:
    """Reads, builds and updates interest profiles."""

    def __init__(
        self,
        catalog: CatalogStore,
        orders: OrderStore,
        users: UserStore,
        cache: Cache,
        config: EngineConfig,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.catalog = catalog
        self.orders = orders
        self.users = users
        self.cache = cache
        self.config = config
        self.clock = clock

    async def get_profile(self, user_id: str) -> InterestProfile:
        """Cached profile, or a freshly built one; the default profile on failure."""
        try:
            cached = await self.cache.get(profile_cache_key(user_id))
            if cached:
                return InterestProfile.model_validate(cached)

            profile = await self.build_profile(user_id)
            await self.cache.set(
                profile_cache_key(user_id),
                profile.model_dump(mode="json"),
                self.config.ttls.profile,
            )
            return profile

        except Exception as e:
            logger.error(
                "Profile build failed, using default profile",
                extra={"user_id": user_id, "error": str(e), "error_type": type(e).__name__},
                exc_info=True,
            )
            return default_profile(user_id)

    async def build_profile(self, user_id: str) -> InterestProfile:
        """Build a profile from the user record and order history."""
        now = self.clock()
        user, orders = await asyncio.gather(
            self.users.find_user_by_id(user_id),
            self.orders.find_orders_by_user(user_id, PROFILE_ORDER_STATUSES),
        )

        product_ids = {item.product_id for order in orders for item in order.items}
        products = {
            p.id: p for p in await self.catalog.find_products_by_ids(sorted(product_ids))
        }

        profile = InterestProfile(
            user_id=user_id,
            demographics=Demographics(
                age=user.age if user else None,
                gender=user.gender if user else None,
                location=user.city if user else None,
                registration_date=user.created_at if user else now,
            ),
            last_updated=now,
        )

        if orders:
            profile.purchase_history = analyze_purchase_history(orders, products, now)
            profile.lifetime_value = profile.purchase_history.total_spent

        profile.interests = build_interest_scores(
            orders,
            products,
            self.config.behavior_weight("purchase"),
            self.config.max_interest,
        )
        profile.segments = segment_profile(profile, now, self.config)
        profile.personalization_score = calculate_personalization_score(profile, now, self.config)

        logger.info(
            "Built interest profile",
            extra={
                "user_id": user_id,
                "num_orders": len(orders),
                "num_interests": len(profile.interests),
                "personalization_score": profile.personalization_score,
            },
        )

        return profile

    async def track_behavior(self, user_id: str, event: BehaviorEvent) -> InterestProfile:
        """Record an event and fold it into the user's interests.

        Args:
            user_id: User who performed the action.
            event: The tracked action; a missing timestamp is set to now.

        Returns:
            The updated profile.
        """
        now = self.clock()
        if event.timestamp is None:
            event = event.model_copy(update={"timestamp": now})

        profile = await self.get_profile(user_id)
        profile.user_id = user_id

        profile.behaviors.append(event)
        if len(profile.behaviors) > self.config.max_behaviors:
            profile.behaviors = profile.behaviors[-self.config.max_behaviors:]

        await self.update_interest_scores(profile, event)

        profile.segments = segment_profile(profile, now, self.config)
        profile.personalization_score = calculate_personalization_score(profile, now, self.config)
        profile.last_updated = now

        await self.save_profile(user_id, profile)

        logger.debug(
            "Tracked behavior",
            extra={"user_id": user_id, "action": event.action, "product_id": event.product_id},
        )

        return profile

    async def update_interest_scores(self, profile: InterestProfile, event: BehaviorEvent) -> None:
        """Decay existing interests, then add the event's contribution."""
        weight = self.config.behavior_weight(event.action)
        max_interest = self.config.max_interest
        interests = profile.interests

        apply_time_decay(interests, self.config.decay_factor)

        if event.product_id:
            product = await self.catalog.find_product_by_id(event.product_id)
            if product is not None:
                if product.category:
                    add_interest(interests, category_key(product.category), weight, max_interest)
                add_interest(interests, price_key(product.price), weight, max_interest)
                if product.brand:
                    add_interest(interests, brand_key(product.brand), weight, max_interest)
        elif event.category:
            add_interest(interests, category_key(event.category), weight, max_interest)

        if event.action == "search" and event.search_query:
            for term in self._search_terms(event.search_query):
                add_interest(
                    interests,
                    search_key(term),
                    weight * self.config.search_term_factor,
                    max_interest,
                )

    @staticmethod
    def _search_terms(query: str) -> Iterable[str]:
        return query.lower().split()

    async def save_profile(self, user_id: str, profile: InterestProfile) -> None:
        """Write the profile to the cache and its snapshot to the user record."""
        await self.cache.set(
            profile_cache_key(user_id),
            profile.model_dump(mode="json"),
            self.config.ttls.profile,
        )
        await self.cache.set(
            segment_cache_key(user_id),
            list(profile.segments),
            self.config.ttls.segments,
        )

        try:
            await self.users.save_personalization(user_id, profile.snapshot())
        except Exception as e:
            logger.error(
                "Failed to save personalization snapshot",
                extra={"user_id": user_id, "error": str(e), "error_type": type(e).__name__},
            )

