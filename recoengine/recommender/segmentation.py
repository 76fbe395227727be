"""User segmentation.

Classifies an interest profile into named segments used by downstream
content selection. Segments are recomputed from scratch on every call.
"""

from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, List

from recoengine.recommender.config import EngineConfig
from recoengine.recommender.models import BehaviorEvent, InterestProfile

NEW_USER_SEGMENT = "new-user"
MAX_CATEGORY_SEGMENTS = 2


def recent_behaviors(
    behaviors: Iterable[BehaviorEvent],
    now: datetime,
    window_days: int,
) -> List[BehaviorEvent]:
    """Events whose timestamp falls within the last ``window_days`` days."""
    cutoff = now - timedelta(days=window_days)
    return [b for b in behaviors if b.timestamp is not None and b.timestamp > cutoff]


def value_segment(lifetime_value: float, config: EngineConfig) -> str:
    if lifetime_value >= config.high_value_spend:
        return "high-value"
    if lifetime_value >= config.mid_value_spend:
        return "mid-value"
    return "low-value"


def age_segment(age: int) -> str:
    if age < 30:
        return "young-parent"
    if age < 45:
        return "mid-age-parent"
    return "mature-parent"


def segment_profile(profile: InterestProfile, now: datetime, config: EngineConfig) -> List[str]:
    """Compute the segment labels of a profile.

    Args:
        profile: Profile to classify.
        now: Reference time for the short behavior window.
        config: Thresholds.

    Returns:
        Ordered list of labels: value tier, frequency tier, up to two
        category interests, short-window behavior tags, then a demographic
        tag when the user's age is known.
    """
    segments = [
        value_segment(profile.lifetime_value, config),
        f"frequency-{profile.purchase_history.frequency}",
    ]

    segments.extend(
        f"interested-{favorite.category}"
        for favorite in profile.purchase_history.favorite_categories[:MAX_CATEGORY_SEGMENTS]
    )

    counts = Counter(
        b.action for b in recent_behaviors(profile.behaviors, now, config.recent_window_days)
    )
    if counts["view"] >= config.browser_views:
        segments.append("browser")
    if counts["addToCart"] >= config.cart_heavy_adds:
        segments.append("cart-heavy")
    if counts["purchase"] >= config.frequent_buyer_purchases:
        segments.append("frequent-buyer")

    if profile.demographics.age:
        segments.append(age_segment(profile.demographics.age))

    return segments
