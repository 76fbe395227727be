"""Tests for the hybrid combiner and generator."""

import pytest

from recoengine.recommender.algorithms import (
    GeneratorContext,
    GeneratorOptions,
    RecommendationGenerator,
)
from recoengine.recommender.cache import InMemoryCache
from recoengine.recommender.config import EngineConfig, HybridWeights
from recoengine.recommender.hybrid import HYBRID_ORDER, HybridCombiner, HybridGenerator
from recoengine.recommender.models import Algorithm, RecommendationItem
from recoengine.recommender.profile import InterestProfileStore

from conftest import fixed_clock


def item(pid, score=None):
    return RecommendationItem(id=pid, name=f"Product {pid}", recommendation_score=score, stock_quantity=1)


class StubGenerator(RecommendationGenerator):
    """Generator returning a fixed list and remembering the options it saw."""

    def __init__(self, context, kind, items=(), error=None):
        super().__init__(context)
        self.kind = kind
        self.items = list(items)
        self.error = error
        self.seen_options = []

    async def _generate(self, user_id, options):
        self.seen_options.append(options)
        if self.error is not None:
            raise self.error
        return self.items[:options.limit]


class ExplodingGenerator(StubGenerator):
    """Generator that raises past the usual error boundary."""

    async def generate(self, user_id, options):
        raise RuntimeError("generator crashed")


@pytest.fixture
def context(catalog, orders, users):
    cache = InMemoryCache()
    config = EngineConfig()
    return GeneratorContext(
        catalog=catalog,
        orders=orders,
        cache=cache,
        profiles=InterestProfileStore(catalog, orders, users, cache, config, clock=fixed_clock),
        config=config,
        clock=fixed_clock,
    )


# ===== Weights Tests =====


def test_default_weights_sum_to_one():
    weights = HybridWeights()
    assert sum(weights.as_tuple()) == pytest.approx(1.0)
    assert weights.collaborative == 0.30
    assert weights.seasonal == 0.10


def test_weights_must_sum_to_one():
    """Test that weights not summing to 1 are rejected."""
    with pytest.raises(ValueError, match="sum to 1.0"):
        HybridWeights(collaborative=0.5)


def test_weights_must_be_non_negative():
    with pytest.raises(ValueError, match="non-negative"):
        HybridWeights(collaborative=-0.1, content_based=0.65)


def test_weight_for_each_algorithm():
    combiner = HybridCombiner()
    assert combiner.weight_for(Algorithm.COLLABORATIVE) == 0.30
    assert combiner.weight_for(Algorithm.CONTENT_BASED) == 0.25
    assert combiner.weight_for(Algorithm.POPULARITY) == 0.20
    assert combiner.weight_for(Algorithm.TRENDING) == 0.15
    assert combiner.weight_for(Algorithm.SEASONAL) == 0.10


def test_weight_for_uses_configured_weights():
    """Test that custom weights are looked up per algorithm and age-based has none."""
    combiner = HybridCombiner(HybridWeights(0.1, 0.1, 0.2, 0.2, 0.4))

    assert [combiner.weight_for(a) for a in HYBRID_ORDER] == [0.1, 0.1, 0.2, 0.2, 0.4]
    assert Algorithm.AGE_BASED not in HYBRID_ORDER
    with pytest.raises(KeyError):
        combiner.weight_for(Algorithm.AGE_BASED)


# ===== Combiner Tests =====


def test_combine_sums_weighted_scores():
    """Test that a product found by two generators accumulates both contributions."""
    combiner = HybridCombiner()

    blended = combiner.combine([
        (Algorithm.COLLABORATIVE, [item("A", 2.0)]),
        (Algorithm.POPULARITY, [item("A", 1.0), item("B", 3.0)]),
    ])

    # A: 2*0.3 + 1*0.2 = 0.8, B: 3*0.2 = 0.6
    assert [i.id for i in blended] == ["A", "B"]
    assert blended[0].recommendation_score == pytest.approx(0.8)
    assert blended[0].final_score == pytest.approx(0.8)
    assert blended[1].recommendation_score == pytest.approx(0.6)


def test_combine_records_provenance():
    """Test that contributing algorithms are listed in fold order."""
    combiner = HybridCombiner()

    blended = combiner.combine([
        (Algorithm.COLLABORATIVE, [item("A", 2.0)]),
        (Algorithm.POPULARITY, [item("A", 1.0), item("B", 3.0)]),
    ])

    assert blended[0].algorithms == ["collaborative", "popularity"]
    assert blended[0].reason == "Recommended based on collaborative, popularity analysis"
    assert blended[1].algorithms == ["popularity"]


def test_combine_missing_score_counts_as_one():
    combiner = HybridCombiner()

    blended = combiner.combine([(Algorithm.TRENDING, [item("A")])])

    assert blended[0].recommendation_score == pytest.approx(0.15)


def test_combine_ties_keep_insertion_order():
    """Test that equal blended scores keep first-seen order."""
    combiner = HybridCombiner()

    blended = combiner.combine([
        (Algorithm.SEASONAL, [item("C", 1.0), item("A", 1.0), item("B", 1.0)]),
    ])

    assert [i.id for i in blended] == ["C", "A", "B"]


def test_combine_keeps_first_product_data_and_limit():
    combiner = HybridCombiner()
    first = item("A", 1.0).model_copy(update={"name": "First"})
    second = item("A", 1.0).model_copy(update={"name": "Second"})

    blended = combiner.combine(
        [
            (Algorithm.COLLABORATIVE, [first, item("B", 5.0)]),
            (Algorithm.CONTENT_BASED, [second]),
        ],
        limit=1,
    )

    assert len(blended) == 1
    assert blended[0].id == "B"

    blended = combiner.combine([
        (Algorithm.COLLABORATIVE, [first]),
        (Algorithm.CONTENT_BASED, [second]),
    ])
    assert blended[0].name == "First"


def test_combine_custom_weights():
    """Test that alternate weightings change the ranking."""
    weights = HybridWeights(
        collaborative=0.0, content_based=0.0, popularity=0.0, trending=1.0, seasonal=0.0
    )
    combiner = HybridCombiner(weights)

    blended = combiner.combine([
        (Algorithm.COLLABORATIVE, [item("A", 10.0)]),
        (Algorithm.TRENDING, [item("B", 1.0)]),
    ])

    assert [i.id for i in blended] == ["B", "A"]
    assert blended[1].recommendation_score == 0.0


def test_combine_empty_results():
    assert HybridCombiner().combine([(a, []) for a in HYBRID_ORDER]) == []


# ===== Generator Tests =====


async def test_hybrid_generator_uses_candidate_limit(context):
    """Test that every base generator is asked for limit * 1.5 candidates."""
    generators = {a: StubGenerator(context, a, [item("A", 1.0)]) for a in HYBRID_ORDER}
    hybrid = HybridGenerator(context, generators, fallback=generators[Algorithm.POPULARITY])

    blended = await hybrid.generate("u1", GeneratorOptions(limit=4, season="winter"))

    assert [i.id for i in blended] == ["A"]
    assert blended[0].recommendation_score == pytest.approx(1.0)
    assert blended[0].algorithms == ["collaborative", "content-based", "popularity", "trending", "seasonal"]
    for generator in generators.values():
        assert generator.seen_options == [GeneratorOptions(limit=6, season="winter")]


async def test_hybrid_generator_tolerates_a_failing_generator(context):
    """Test that one generator's failure only removes its contribution."""
    generators = {a: StubGenerator(context, a, [item("A", 1.0)]) for a in HYBRID_ORDER}
    generators[Algorithm.COLLABORATIVE] = StubGenerator(
        context, Algorithm.COLLABORATIVE, error=RuntimeError("store down")
    )
    hybrid = HybridGenerator(context, generators, fallback=generators[Algorithm.POPULARITY])

    blended = await hybrid.generate("u1", GeneratorOptions(limit=5))

    assert blended[0].recommendation_score == pytest.approx(0.7)
    assert "collaborative" not in blended[0].algorithms


async def test_hybrid_generator_falls_back_to_popularity(context):
    """Test that a failure in the blend itself returns the popularity list."""
    popular = [item("P", 2.0), item("Q", 1.0)]
    generators = {a: StubGenerator(context, a) for a in HYBRID_ORDER}
    generators[Algorithm.TRENDING] = ExplodingGenerator(context, Algorithm.TRENDING)
    fallback = StubGenerator(context, Algorithm.POPULARITY, popular)
    hybrid = HybridGenerator(context, generators, fallback=fallback)

    blended = await hybrid.generate("u1", GeneratorOptions(limit=5))

    assert [i.id for i in blended] == ["P", "Q"]
    assert blended[0].reason == ""
