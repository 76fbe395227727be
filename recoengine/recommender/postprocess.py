"""Post-processing of ranked recommendation lists.

Hard filters run in a fixed order (stock, category, price, already owned)
before the list is truncated. Filtering to nothing is not an error.
"""

import logging
from typing import List, Optional, Sequence, Set

from recoengine.recommender.config import OWNED_ORDER_STATUSES
from recoengine.recommender.models import PriceRange, RecommendationItem
from recoengine.recommender.stores import OrderStore

# Configure module logger
logger = logging.getLogger(__name__)


class PostProcessor:
    """Applies caller filters to a ranked list."""

    def __init__(self, orders: OrderStore):
        self.orders = orders

    async def owned_product_ids(self, user_id: str) -> Set[str]:
        """Products in the user's delivered or processing orders."""
        orders = await self.orders.find_orders_by_user(user_id, OWNED_ORDER_STATUSES)
        return {item.product_id for order in orders for item in order.items}

    async def apply(
        self,
        items: Sequence[RecommendationItem],
        user_id: str,
        limit: Optional[int] = None,
        exclude_owned: bool = True,
        include_out_of_stock: bool = False,
        categories: Optional[Sequence[str]] = None,
        price_range: Optional[PriceRange] = None,
    ) -> List[RecommendationItem]:
        """Filter and truncate a recommendation list.

        Args:
            items: Ranked recommendations.
            user_id: Owner of the list, for the already-owned filter.
            limit: Maximum number of items to keep.
            exclude_owned: Drop products the user already bought.
            include_out_of_stock: Keep products with no stock.
            categories: Allow-list of categories; empty or None keeps all.
            price_range: Inclusive price bounds.

        Returns:
            The filtered list, possibly empty.
        """
        filtered = list(items)

        if not include_out_of_stock:
            filtered = [p for p in filtered if p.stock_quantity > 0]

        if categories:
            allowed = set(categories)
            filtered = [p for p in filtered if p.category in allowed]

        if price_range is not None:
            filtered = [p for p in filtered if price_range.contains(p.price or 0.0)]

        if exclude_owned:
            try:
                owned = await self.owned_product_ids(user_id)
                filtered = [p for p in filtered if p.id not in owned]
            except Exception as e:
                logger.error(
                    "Owned-product lookup failed, skipping exclusion",
                    extra={"user_id": user_id, "error": str(e), "error_type": type(e).__name__},
                )

        if limit is not None:
            filtered = filtered[:max(limit, 0)]

        return filtered
