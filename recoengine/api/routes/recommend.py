"""Recommendation endpoints.

Thin HTTP layer over ``RecommendationEngine.get_recommendations`` and
``find_similar_products``.
"""

import logging
import time
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field

from recoengine.api.dependencies import get_engine
from recoengine.api.metrics import metrics_service
from recoengine.exceptions import ProductNotFoundError
from recoengine.recommender.engine import RecommendationEngine
from recoengine.recommender.models import (
    Algorithm,
    PriceRange,
    RecommendationItem,
    RecommendationOptions,
)

# Configure module logger
logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(
    prefix="/recommend",
    tags=["recommendations"],
)

MAX_LIMIT = 100


class RecommendationResponse(BaseModel):
    """Response model for recommendation requests.

    Attributes:
        user_id: The user the recommendations are for.
        algorithm: Algorithm that produced them.
        recommendations: Ranked recommendation items.
    """

    user_id: str = Field(..., description="User ID for recommendations")
    algorithm: Algorithm = Field(..., description="Algorithm used")
    recommendations: List[RecommendationItem] = Field(
        ..., description="Ranked recommendation items"
    )


class SimilarProductsResponse(BaseModel):
    product_id: str
    similar_products: List[RecommendationItem]


@router.get("/similar/{product_id}", response_model=SimilarProductsResponse)
async def get_similar_products(
    product_id: str,
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    engine: RecommendationEngine = Depends(get_engine),
) -> SimilarProductsResponse:
    """Products similar to ``product_id``.

    Raises:
        ProductNotFoundError: If the product is not in the catalog.
    """
    if await engine.catalog.find_product_by_id(product_id) is None:
        logger.warning(f"Product {product_id} not found")
        raise ProductNotFoundError(product_id)

    items = await engine.find_similar_products(product_id, limit=limit)
    return SimilarProductsResponse(product_id=product_id, similar_products=items)


@router.get("/{user_id}", response_model=RecommendationResponse)
async def get_recommendations(
    user_id: str,
    algorithm: str = "hybrid",
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    exclude_owned: bool = True,
    include_out_of_stock: bool = False,
    categories: Optional[List[str]] = Query(None),
    min_price: Optional[float] = Query(None, ge=0),
    max_price: Optional[float] = Query(None, ge=0),
    season: Optional[str] = None,
    child_age: Optional[float] = Query(None, ge=0),
    force_refresh: bool = False,
    engine: RecommendationEngine = Depends(get_engine),
) -> RecommendationResponse:
    """Get product recommendations for a user.

    Unknown algorithm names fall back to hybrid.

    Example:
        GET /recommend/u42?algorithm=popularity&limit=5
        Returns the top 5 popular products user u42 does not own yet.
    """
    start_time = time.time()

    price_range = None
    if min_price is not None or max_price is not None:
        price_range = PriceRange(min=min_price or 0.0, max=max_price)

    options = RecommendationOptions(
        algorithm=algorithm,
        limit=limit,
        exclude_owned=exclude_owned,
        include_out_of_stock=include_out_of_stock,
        categories=categories,
        price_range=price_range,
        season=season,
        child_age=child_age,
        force_refresh=force_refresh,
    )

    items = await engine.get_recommendations(user_id, options)

    metrics_service.record_recommendation((time.time() - start_time) * 1000)

    return RecommendationResponse(
        user_id=user_id,
        algorithm=options.algorithm,
        recommendations=items,
    )
