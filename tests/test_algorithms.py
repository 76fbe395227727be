"""Tests for the five recommendation generators."""

import random
from datetime import datetime, timezone

import pytest

from recoengine.recommender.algorithms import (
    GeneratorContext,
    GeneratorOptions,
    age_fit_score,
    build_generators,
    current_season,
)
from recoengine.recommender.cache import InMemoryCache
from recoengine.recommender.config import EngineConfig
from recoengine.recommender.models import Algorithm
from recoengine.recommender.profile import InterestProfileStore
from recoengine.recommender.stores import InMemoryOrderStore

from conftest import FailingOrderStore, fixed_clock, make_order


def make_generators(catalog, orders, users, config=None, rng=None):
    config = config or EngineConfig()
    cache = InMemoryCache()
    context = GeneratorContext(
        catalog=catalog,
        orders=orders,
        cache=cache,
        profiles=InterestProfileStore(catalog, orders, users, cache, config, clock=fixed_clock),
        config=config,
        clock=fixed_clock,
        rng=rng or random.Random(3),
    )
    return build_generators(context)


def ids(items):
    return [item.id for item in items]


# ===== Popularity Tests =====


async def test_popularity_ranks_by_weighted_sales(catalog, orders, users):
    """Test the 0.4 / 0.3 / 0.3 blend of orders, quantity and revenue."""
    popularity = make_generators(catalog, orders, users)[Algorithm.POPULARITY]

    items = await popularity.generate("u9", GeneratorOptions(limit=10))

    # Cancelled orders and orders older than 30 days are ignored
    assert ids(items) == ["p1", "p5", "p2", "p3"]
    assert items[0].recommendation_score == pytest.approx(2 * 0.4 + 3 * 0.3 + 1.05 * 0.3)
    assert all(item.reason == "Popular choice" for item in items)


async def test_popularity_respects_limit_and_caches(catalog, orders, users):
    popularity = make_generators(catalog, orders, users)[Algorithm.POPULARITY]

    first = await popularity.generate("u9", GeneratorOptions(limit=2))
    orders.orders.clear()
    second = await popularity.generate("u9", GeneratorOptions(limit=2))

    assert ids(first) == ["p1", "p5"]
    assert ids(second) == ids(first)


async def test_popularity_skips_inactive_products(catalog, users):
    orders = InMemoryOrderStore([make_order("o1", "u1", "delivered", 1, ("p6", 9, 60.0), ("p7", 1, 30.0))])
    popularity = make_generators(catalog, orders, users)[Algorithm.POPULARITY]

    assert ids(await popularity.generate("u9", GeneratorOptions(limit=10))) == ["p7"]


async def test_generator_failure_returns_empty_list(catalog, users):
    """Test that store errors are contained at the generator boundary."""
    generators = make_generators(catalog, FailingOrderStore(), users)

    for algorithm in (Algorithm.POPULARITY, Algorithm.TRENDING, Algorithm.COLLABORATIVE):
        assert await generators[algorithm].generate("u1", GeneratorOptions(limit=5)) == []


# ===== Trending Tests =====


async def test_trending_rewards_daily_spikes(catalog, users):
    """Test that a one-day spike outranks steady daily sales."""
    orders = InMemoryOrderStore([
        make_order("o1", "u1", "delivered", 1, ("p7", 1, 30.0)),
        make_order("o2", "u2", "delivered", 1, ("p7", 1, 30.0)),
        make_order("o3", "u3", "delivered", 1, ("p7", 1, 30.0)),
        make_order("o4", "u1", "delivered", 2, ("p2", 1, 80.0)),
        make_order("o5", "u1", "delivered", 3, ("p2", 1, 80.0)),
        make_order("o6", "u1", "delivered", 4, ("p2", 1, 80.0)),
        make_order("o7", "u1", "delivered", 10, ("p1", 5, 35.0)),
    ])
    trending = make_generators(catalog, orders, users)[Algorithm.TRENDING]

    items = await trending.generate("u9", GeneratorOptions(limit=10))

    # p1 was ordered outside the 7-day window
    assert ids(items) == ["p7", "p2"]
    assert items[0].recommendation_score == pytest.approx(3.0)
    assert items[1].recommendation_score == pytest.approx(1.0)
    assert items[0].reason == "Trending now"


# ===== Seasonal Tests =====


@pytest.mark.parametrize(
    "month, season",
    [(3, "spring"), (5, "spring"), (6, "summer"), (8, "summer"),
     (9, "autumn"), (11, "autumn"), (12, "winter"), (1, "winter"), (2, "winter")],
)
def test_current_season(month, season):
    assert current_season(datetime(2024, month, 10, tzinfo=timezone.utc)) == season


async def test_seasonal_keyword_scoring(catalog, orders, users):
    """Test deterministic scoring by the share of matched keywords."""
    seasonal = make_generators(catalog, orders, users)[Algorithm.SEASONAL]

    items = await seasonal.generate("u9", GeneratorOptions(limit=10))

    # July is summer; the inactive sandals never show up
    assert ids(items) == ["p1", "p3"]
    assert items[0].recommendation_score == pytest.approx(0.5 + 0.5 * 2 / 6)
    assert items[1].recommendation_score == pytest.approx(0.5 + 0.5 * 1 / 6)
    assert items[0].reason == "Perfect for summer"


async def test_seasonal_explicit_season(catalog, orders, users):
    seasonal = make_generators(catalog, orders, users)[Algorithm.SEASONAL]

    items = await seasonal.generate("u9", GeneratorOptions(limit=10, season="winter"))

    # Equal scores keep catalog order
    assert ids(items) == ["p2", "p4", "p7"]


async def test_seasonal_random_scoring_stays_in_range(catalog, orders, users):
    config = EngineConfig(seasonal_scoring="random")
    seasonal = make_generators(catalog, orders, users, config=config)[Algorithm.SEASONAL]

    items = await seasonal.generate("u9", GeneratorOptions(limit=10))

    assert set(ids(items)) == {"p1", "p3"}
    assert all(0.5 <= item.recommendation_score <= 1.0 for item in items)


async def test_seasonal_unknown_season(catalog, orders, users):
    seasonal = make_generators(catalog, orders, users)[Algorithm.SEASONAL]
    assert await seasonal.generate("u9", GeneratorOptions(season="monsoon")) == []


def test_invalid_seasonal_scoring_mode():
    with pytest.raises(ValueError):
        EngineConfig(seasonal_scoring="dice")


# ===== Content-based Tests =====


async def test_content_based_ranks_by_profile_similarity(catalog, orders, users):
    """Test that u1's boys/KidCo history puts the boys KidCo shorts first."""
    content = make_generators(catalog, orders, users)[Algorithm.CONTENT_BASED]

    items = await content.generate("u1", GeneratorOptions(limit=3))

    assert ids(items)[:2] == ["p1", "p3"]
    assert items[0].recommendation_score > items[1].recommendation_score
    assert items[0].reason == "Based on your preferences"


async def test_content_based_empty_profile_falls_back_to_popularity(catalog, orders, users):
    generators = make_generators(catalog, orders, users)

    content = await generators[Algorithm.CONTENT_BASED].generate("u9", GeneratorOptions(limit=5))
    popular = await generators[Algorithm.POPULARITY].generate("u9", GeneratorOptions(limit=5))

    assert ids(content) == ids(popular)


# ===== Collaborative Tests =====


async def test_collaborative_recommends_neighbor_purchases(catalog, orders, users):
    """Test that u2 gets what overlapping user u1 bought and u2 does not own."""
    collaborative = make_generators(catalog, orders, users)[Algorithm.COLLABORATIVE]

    items = await collaborative.generate("u2", GeneratorOptions(limit=10))

    # u1 owns {p1, p3}, u2 owns {p1, p2}: Jaccard 1/3, p3 bought once
    assert ids(items) == ["p3"]
    assert items[0].recommendation_score == pytest.approx(1 / 3)
    assert items[0].reason == "Users with similar preferences also bought this"


async def test_collaborative_similar_users(catalog, orders, users):
    collaborative = make_generators(catalog, orders, users)[Algorithm.COLLABORATIVE]

    neighbors = await collaborative.find_similar_users("u2", {"p1", "p2"})

    # u4 shares nothing; u3's only order is shipped, not owned yet
    assert [uid for uid, _ in neighbors] == ["u1"]
    assert neighbors[0][1] == pytest.approx(1 / 3)


async def test_collaborative_without_history_falls_back_to_popularity(catalog, orders, users):
    generators = make_generators(catalog, orders, users)

    collaborative = await generators[Algorithm.COLLABORATIVE].generate("u9", GeneratorOptions(limit=5))
    popular = await generators[Algorithm.POPULARITY].generate("u9", GeneratorOptions(limit=5))

    assert ids(collaborative) == ids(popular)


# ===== Age-based Tests =====


async def test_infer_child_age_from_purchases(catalog, orders, users):
    """Test that the most-bought age range gives the child's age."""
    age_based = make_generators(catalog, orders, users)[Algorithm.AGE_BASED]

    # u1 bought three "3-5" items
    assert await age_based.infer_child_age("u1") == 4.0
    # u2's five cancelled "6-8" boots do not count; the tie keeps the first range
    assert await age_based.infer_child_age("u2") == 4.0
    # u3's only order is shipped, not owned yet
    assert await age_based.infer_child_age("u3") is None
    assert await age_based.infer_child_age("u9") is None


async def test_infer_child_age_weighs_quantity(catalog, users):
    orders = InMemoryOrderStore([
        make_order("o1", "u1", "delivered", 5, ("p1", 1, 35.0), ("p7", 3, 30.0)),
        make_order("o2", "u1", "processing", 2, ("p3", 1, 15.0)),
    ])
    age_based = make_generators(catalog, orders, users)[Algorithm.AGE_BASED]

    assert await age_based.infer_child_age("u1") == 7.0


async def test_age_based_uses_inferred_age(catalog, orders, users):
    age_based = make_generators(catalog, orders, users)[Algorithm.AGE_BASED]

    items = await age_based.generate("u1", GeneratorOptions(limit=10))

    # p6 is also "3-5" but inactive
    assert ids(items) == ["p1", "p3"]
    assert items[0].recommendation_score == pytest.approx(1.0)
    assert items[0].reason == "Age-appropriate for 4 years old"


async def test_age_based_explicit_age(catalog, orders, users):
    """Test that a given age overrides inference and edges of a range score lowest."""
    age_based = make_generators(catalog, orders, users)[Algorithm.AGE_BASED]

    at_seven = await age_based.generate("u1", GeneratorOptions(limit=10, child_age=7))
    at_five = await age_based.generate("u1", GeneratorOptions(limit=10, child_age=5))

    assert ids(at_seven) == ["p2", "p7"]
    assert at_seven[0].reason == "Age-appropriate for 7 years old"
    assert ids(at_five) == ["p1", "p3"]
    assert [i.recommendation_score for i in at_five] == [pytest.approx(0.7), pytest.approx(0.7)]


async def test_age_based_is_deterministic(catalog, orders, users):
    age_based = make_generators(catalog, orders, users)[Algorithm.AGE_BASED]

    first = await age_based.generate("u1", GeneratorOptions(limit=10, child_age=10))
    second = await age_based.generate("u1", GeneratorOptions(limit=10, child_age=10))

    assert [(i.id, i.recommendation_score) for i in first] == [(i.id, i.recommendation_score) for i in second]


async def test_age_based_without_age_falls_back_to_popularity(catalog, orders, users):
    generators = make_generators(catalog, orders, users)

    age_based = await generators[Algorithm.AGE_BASED].generate("u9", GeneratorOptions(limit=5))
    popular = await generators[Algorithm.POPULARITY].generate("u9", GeneratorOptions(limit=5))

    assert ids(age_based) == ids(popular) == ["p1", "p5", "p2", "p3"]


async def test_age_based_without_matching_range_falls_back_to_popularity(catalog, orders, users):
    """Test that an age between every catalog range degrades to popularity."""
    generators = make_generators(catalog, orders, users)

    age_based = await generators[Algorithm.AGE_BASED].generate(
        "u9", GeneratorOptions(limit=5, child_age=8.5)
    )

    assert ids(age_based) == ["p1", "p5", "p2", "p3"]
    assert age_based[0].reason == "Popular choice"


def test_age_fit_score():
    assert age_fit_score(4, (3.0, 5.0)) == pytest.approx(1.0)
    assert age_fit_score(3, (3.0, 5.0)) == pytest.approx(0.7)
    assert age_fit_score(10.5, (9.0, 12.0)) == pytest.approx(1.0)
    assert age_fit_score(2, (2.0, 2.0)) == 1.0
