"""Personalization endpoints: behavior tracking, profiles and content."""

import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, Query
from pydantic import BaseModel

from recoengine.api.dependencies import get_engine
from recoengine.api.metrics import metrics_service
from recoengine.recommender.engine import RecommendationEngine
from recoengine.recommender.models import InterestProfile

# Configure module logger
logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/personalize",
    tags=["personalization"],
)


class BehaviorResponse(BaseModel):
    """Profile summary returned after tracking an event."""

    user_id: str
    segments: List[str]
    interests: Dict[str, float]
    personalization_score: float
    num_behaviors: int


@router.post("/{user_id}/behavior", response_model=BehaviorResponse)
async def track_behavior(
    user_id: str,
    event: Dict[str, Any] = Body(...),
    engine: RecommendationEngine = Depends(get_engine),
) -> BehaviorResponse:
    """Track a behavior event (view, addToCart, purchase, like, share, search).

    Malformed events are rejected by the engine with a 422.
    """
    profile = await engine.track_behavior(user_id, event)
    metrics_service.record_behavior()

    return BehaviorResponse(
        user_id=user_id,
        segments=profile.segments,
        interests=profile.interests,
        personalization_score=profile.personalization_score,
        num_behaviors=len(profile.behaviors),
    )


@router.get("/{user_id}/profile", response_model=InterestProfile)
async def get_profile(
    user_id: str,
    engine: RecommendationEngine = Depends(get_engine),
) -> InterestProfile:
    return await engine.get_profile(user_id)


@router.get("/{user_id}/content/{content_type}")
async def get_personalized_content(
    user_id: str,
    content_type: str,
    limit: Optional[int] = Query(None, ge=1, le=100),
    refresh: bool = False,
    engine: RecommendationEngine = Depends(get_engine),
) -> Dict[str, Any]:
    """Personalized products, categories, deals or the homepage bundle."""
    content = await engine.get_personalized_content(user_id, content_type, limit=limit, refresh=refresh)
    return {
        "user_id": user_id,
        "content_type": content_type,
        "content": content,
    }


@router.delete("/{user_id}/cache")
async def clear_user_cache(
    user_id: str,
    engine: RecommendationEngine = Depends(get_engine),
) -> Dict[str, str]:
    """Drop every cached entry for the user."""
    await engine.clear_user_cache(user_id)
    return {"status": "cleared"}
