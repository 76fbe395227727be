"""Domain models for the recommendation engine.

Catalog, order and user records mirror what the external stores hand us;
profiles, events and recommendation items are the engine's own types. Every
model round-trips through JSON so it can live in an external cache.
"""

from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so comparisons never mix kinds."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


BehaviorAction = Literal["view", "addToCart", "purchase", "like", "share", "search"]


class Algorithm(str, Enum):
    """Closed set of recommendation strategies."""

    COLLABORATIVE = "collaborative"
    CONTENT_BASED = "content_based"
    POPULARITY = "popularity"
    TRENDING = "trending"
    SEASONAL = "seasonal"
    AGE_BASED = "age_based"
    HYBRID = "hybrid"

    @property
    def label(self) -> str:
        """Human readable name used in provenance and reasons."""
        return self.value.replace("_", "-")

    @classmethod
    def parse(cls, value: Any) -> "Algorithm":
        """Resolve a user supplied name; unknown names mean hybrid."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            normalized = value.strip().replace("-", "_")
            aliases = {
                "contentBased": "content_based",
                "contentbased": "content_based",
                "ageBased": "age_based",
                "agebased": "age_based",
            }
            normalized = aliases.get(normalized, normalized).lower()
            for member in cls:
                if member.value == normalized:
                    return member
        return cls.HYBRID


class ContentType(str, Enum):
    """Personalized content kinds."""

    PRODUCTS = "products"
    CATEGORIES = "categories"
    DEALS = "deals"
    HOMEPAGE = "homepage"


# ===== Catalog, orders and users =====


class Product(BaseModel):
    """A catalog product as returned by the catalog store."""

    id: str
    name: str = ""
    description: str = ""
    category: Optional[str] = None
    price: float = 0.0
    old_price: Optional[float] = None
    brand: Optional[str] = None
    age_range: Optional[str] = None
    gender: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    stock_quantity: int = 0
    status: str = "active"
    image: Optional[str] = None

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def on_sale(self) -> bool:
        return bool(self.old_price) and self.old_price > self.price


class OrderItem(BaseModel):
    product_id: str
    quantity: int = 1
    price: float = 0.0


class Order(BaseModel):
    """A customer order with its line items."""

    id: str
    user_id: str
    status: str
    items: List[OrderItem] = Field(default_factory=list)
    total: float = 0.0
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def created_at_utc(cls, value: datetime) -> datetime:
        return as_utc(value)


class PersonalizationSnapshot(BaseModel):
    """Denormalized profile summary stored on the user record."""

    segments: List[str] = Field(default_factory=list)
    interests: Dict[str, float] = Field(default_factory=dict)
    personalization_score: float = 0.0
    last_updated: Optional[datetime] = None


class User(BaseModel):
    id: str
    age: Optional[int] = None
    gender: Optional[str] = None
    city: Optional[str] = None
    created_at: Optional[datetime] = None
    personalization: Optional[PersonalizationSnapshot] = None


class ProductSales(BaseModel):
    """Per-product sales aggregate over a time window."""

    product_id: str
    order_count: int
    total_quantity: int
    total_revenue: float


class DailyProductOrders(BaseModel):
    """Number of order lines for one product on one calendar day."""

    product_id: str
    day: date
    orders: int


# ===== Behavior and profiles =====


class BehaviorEvent(BaseModel):
    """An immutable tracked user action.

    The timestamp is filled in by the engine's clock when omitted.
    """

    model_config = ConfigDict(frozen=True)

    action: BehaviorAction
    product_id: Optional[str] = None
    category: Optional[str] = None
    search_query: Optional[str] = None
    session_id: Optional[str] = None
    timestamp: Optional[datetime] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("timestamp")
    @classmethod
    def timestamp_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)


class FavoriteCategory(BaseModel):
    category: str
    spent: float


class PurchaseSummary(BaseModel):
    """Derived statistics over a user's order history."""

    total_orders: int = 0
    total_spent: float = 0.0
    average_order_value: float = 0.0
    average_items_per_order: float = 0.0
    favorite_categories: List[FavoriteCategory] = Field(default_factory=list)
    category_counts: Dict[str, int] = Field(default_factory=dict)
    monthly_spending: Dict[str, float] = Field(default_factory=dict)
    last_order_date: Optional[datetime] = None
    frequency: Literal["new", "occasional", "regular", "frequent", "vip"] = "new"


class Demographics(BaseModel):
    age: Optional[int] = None
    gender: Optional[str] = None
    location: Optional[str] = None
    registration_date: Optional[datetime] = None


class InterestProfile(BaseModel):
    """Everything the engine knows about one user's tastes."""

    user_id: Optional[str] = None
    demographics: Demographics = Field(default_factory=Demographics)
    interests: Dict[str, float] = Field(default_factory=dict)
    behaviors: List[BehaviorEvent] = Field(default_factory=list)
    purchase_history: PurchaseSummary = Field(default_factory=PurchaseSummary)
    segments: List[str] = Field(default_factory=list)
    lifetime_value: float = 0.0
    personalization_score: float = 0.0
    last_updated: Optional[datetime] = None

    def snapshot(self) -> PersonalizationSnapshot:
        return PersonalizationSnapshot(
            segments=list(self.segments),
            interests=dict(self.interests),
            personalization_score=self.personalization_score,
            last_updated=self.last_updated,
        )


# ===== Recommendations =====


class RecommendationItem(Product):
    """A product annotated with its score and an explanation."""

    recommendation_score: Optional[float] = None
    reason: str = ""
    algorithms: List[str] = Field(default_factory=list)
    final_score: Optional[float] = None
    personalized_score: Optional[float] = None
    original_score: Optional[float] = None
    personalized_reason: Optional[str] = None
    similarity_score: Optional[float] = None

    @classmethod
    def from_product(cls, product: Product, **fields: Any) -> "RecommendationItem":
        """Build an item from a product (or another item), overriding fields."""
        data = product.model_dump()
        data.update(fields)
        return cls.model_validate(data)


class PriceRange(BaseModel):
    """Inclusive price bounds; a missing bound is open."""

    min: float = 0.0
    max: Optional[float] = None

    def contains(self, price: float) -> bool:
        if price < self.min:
            return False
        return self.max is None or price <= self.max


class RecommendationOptions(BaseModel):
    """Caller options for ``RecommendationEngine.get_recommendations``."""

    algorithm: Algorithm = Algorithm.HYBRID
    limit: int = 10
    exclude_owned: bool = True
    include_out_of_stock: bool = False
    categories: Optional[List[str]] = None
    price_range: Optional[PriceRange] = None
    season: Optional[str] = None
    child_age: Optional[float] = Field(default=None, ge=0)
    force_refresh: bool = False

    @field_validator("algorithm", mode="before")
    @classmethod
    def resolve_algorithm(cls, value: Any) -> Algorithm:
        return Algorithm.parse(value)

    def cache_fragment(self) -> str:
        """Stable string identifying the result-shaping options."""
        return self.model_dump_json(exclude={"force_refresh"})


# ===== Personalized content =====


class DealItem(RecommendationItem):
    discount: int = 0
    savings: float = 0.0


class CategoryAffinity(BaseModel):
    category: str
    score: float
    reason: str


class HeroContent(BaseModel):
    title: str
    subtitle: str
    cta: str
    background_image: str


class RecommendationBlock(BaseModel):
    title: str
    products: List[RecommendationItem] = Field(default_factory=list)


class HomepageContent(BaseModel):
    hero: HeroContent
    featured_products: List[RecommendationItem] = Field(default_factory=list)
    categories: List[CategoryAffinity] = Field(default_factory=list)
    deals: List[DealItem] = Field(default_factory=list)
    recommendations: RecommendationBlock
    recently_viewed: List[Product] = Field(default_factory=list)
    trending: List[RecommendationItem] = Field(default_factory=list)
