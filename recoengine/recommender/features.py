"""Product feature extraction.

Turns catalog products into sparse feature vectors keyed by semantic
attribute names. The same keys are used for user interest profiles, so a
profile and a product can be compared directly.
"""

import re
from typing import Dict, Optional, Tuple

from recoengine.recommender.models import Product

FeatureVector = Dict[str, float]

# Price bucket upper bounds (inclusive)
PRICE_BUCKETS = (
    ("low", 20.0),
    ("medium", 50.0),
    ("high", 100.0),
)
TOP_PRICE_BUCKET = "premium"

CATEGORY_PREFIX = "category_"

# "3-5", "3-4years", "6-12 months"
AGE_RANGE_PATTERN = re.compile(
    r"^\s*(\d+(?:\.\d+)?)\s*-\s*(\d+(?:\.\d+)?)\s*(months?|years?)?\s*$",
    re.IGNORECASE,
)


def price_bucket(price: Optional[float]) -> str:
    """Map a price to its bucket name; a missing price counts as 0."""
    value = price or 0.0
    for name, upper in PRICE_BUCKETS:
        if value <= upper:
            return name
    return TOP_PRICE_BUCKET


def category_key(category: str) -> str:
    return f"{CATEGORY_PREFIX}{category}"


def price_key(price: Optional[float]) -> str:
    return f"price_{price_bucket(price)}"


def brand_key(brand: str) -> str:
    return f"brand_{brand}"


def age_key(age_range: str) -> str:
    return f"age_{age_range}"


def search_key(term: str) -> str:
    return f"search_{term}"


def extract_product_features(product: Product) -> FeatureVector:
    """Build the feature vector of a product.

    One unit weight per present attribute class: category, price bucket,
    brand and age range. The result is never normalized.

    Args:
        product: Catalog product.

    Returns:
        Sparse mapping of feature key to weight.

    Example:
        >>> extract_product_features(Product(id="p1", category="boys", price=35))
        {'category_boys': 1.0, 'price_medium': 1.0}
    """
    features: FeatureVector = {}

    if product.category:
        features[category_key(product.category)] = 1.0

    features[price_key(product.price)] = 1.0

    if product.brand:
        features[brand_key(product.brand)] = 1.0

    if product.age_range:
        features[age_key(product.age_range)] = 1.0

    return features


def parse_age_range(age_range: Optional[str]) -> Optional[Tuple[float, float]]:
    """Bounds of an age range label in years.

    Accepts ``"3-5"``, ``"3-4years"`` and ``"6-12months"``; bare numbers are
    years. Returns None for labels that do not parse.
    """
    if not age_range:
        return None

    match = AGE_RANGE_PATTERN.match(age_range)
    if match is None:
        return None

    low, high = float(match.group(1)), float(match.group(2))
    if match.group(3) and match.group(3).lower().startswith("month"):
        low, high = low / 12, high / 12
    if low > high:
        return None
    return low, high


def age_range_midpoint(age_range: Optional[str]) -> Optional[float]:
    bounds = parse_age_range(age_range)
    if bounds is None:
        return None
    return (bounds[0] + bounds[1]) / 2
