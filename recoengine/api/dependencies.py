"""Service settings and engine construction for the API.

Settings come from environment variables and are read once, when the first
request needs the engine.
"""

import logging
import os
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from recoengine.api.metrics import metrics_service
from recoengine.recommender.cache import Cache, InMemoryCache, RedisCache, ResilientCache
from recoengine.recommender.config import EngineConfig
from recoengine.recommender.engine import RecommendationEngine
from recoengine.recommender.models import utc_now
from recoengine.recommender.stores import (
    InMemoryCatalogStore,
    InMemoryOrderStore,
    InMemoryUserStore,
)
from recoengine.recommender.utils import check_data_exists, load_stores

# Configure module logger
logger = logging.getLogger(__name__)

# Default data directory
DEFAULT_DATA_DIR = "data"

# Engine shared by all requests
_engine: Optional[RecommendationEngine] = None
_loaded_at: Optional[datetime] = None


@dataclass(frozen=True)
class Settings:
    """Service settings.

    Attributes:
        data_dir: Directory holding products.csv, orders.csv and users.csv.
        redis_url: Redis URL; the in-memory cache is used when unset.
        log_level: Root log level.
        seasonal_scoring: "keyword" or "random".
    """

    data_dir: str = DEFAULT_DATA_DIR
    redis_url: Optional[str] = None
    log_level: str = "INFO"
    seasonal_scoring: str = "keyword"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            data_dir=os.getenv("RECO_DATA_DIR", DEFAULT_DATA_DIR),
            redis_url=os.getenv("REDIS_URL") or None,
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            seasonal_scoring=os.getenv("SEASONAL_SCORING", "keyword"),
        )


def build_cache(settings: Settings) -> Cache:
    if settings.redis_url:
        logger.info("Using Redis cache", extra={"redis_url": settings.redis_url})
        return ResilientCache(RedisCache.from_url(settings.redis_url))
    return ResilientCache(InMemoryCache())


def build_engine(settings: Settings) -> RecommendationEngine:
    """Create an engine over the CSV data in ``settings.data_dir``.

    A missing data directory yields empty stores rather than an error, so
    the service still starts and answers with empty recommendations.
    """
    if check_data_exists(settings.data_dir):
        catalog, orders, users = load_stores(settings.data_dir)
    else:
        logger.warning(f"No product data in {settings.data_dir}, starting with empty stores")
        catalog, orders, users = InMemoryCatalogStore(), InMemoryOrderStore(), InMemoryUserStore()

    return RecommendationEngine(
        catalog=catalog,
        orders=orders,
        users=users,
        cache=build_cache(settings),
        config=EngineConfig(seasonal_scoring=settings.seasonal_scoring),
        metrics=metrics_service,
    )


def get_engine() -> RecommendationEngine:
    """FastAPI dependency returning the shared engine, building it on first use."""
    global _engine, _loaded_at

    if _engine is None:
        settings = Settings.from_env()
        logger.info(f"Loading engine from {settings.data_dir}")
        _engine = build_engine(settings)
        _loaded_at = utc_now()
        logger.info("Engine loaded successfully")

    return _engine


def get_engine_status() -> dict:
    """Engine load state and store sizes for the status endpoint."""
    if _engine is None:
        return {
            "engine_loaded": False,
            "timestamp_last_loaded": None,
            "num_products": 0,
            "num_orders": 0,
            "num_users": 0,
        }

    return {
        "engine_loaded": True,
        "timestamp_last_loaded": _loaded_at.isoformat() if _loaded_at else None,
        "num_products": len(getattr(_engine.catalog, "products", {})),
        "num_orders": len(getattr(_engine.orders, "orders", [])),
        "num_users": len(getattr(_engine.users, "users", {})),
    }


def reset_engine() -> None:
    """Forget the shared engine so the next request rebuilds it."""
    global _engine, _loaded_at
    _engine = None
    _loaded_at = None
