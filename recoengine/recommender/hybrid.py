"""Hybrid recommendation module.

Blends the five base generators into one ranked list with provenance.
"""

import asyncio
import logging
from collections import OrderedDict
from typing import Dict, List, Optional, Sequence, Tuple

from recoengine.recommender.algorithms import (
    GeneratorContext,
    GeneratorOptions,
    RecommendationGenerator,
)
from recoengine.recommender.config import HybridWeights
from recoengine.recommender.models import Algorithm, RecommendationItem

# Configure module logger
logger = logging.getLogger(__name__)

# Fold order; ties in the blended score keep this insertion order
HYBRID_ORDER = (
    Algorithm.COLLABORATIVE,
    Algorithm.CONTENT_BASED,
    Algorithm.POPULARITY,
    Algorithm.TRENDING,
    Algorithm.SEASONAL,
)

GeneratorResult = Tuple[Algorithm, Sequence[RecommendationItem]]


class HybridCombiner:
    """Weighted union of generator outputs."""

    def __init__(self, weights: Optional[HybridWeights] = None):
        self.weights = weights or HybridWeights()
        self._weights_by_algorithm: Dict[Algorithm, float] = dict(
            zip(HYBRID_ORDER, self.weights.as_tuple())
        )

        logger.info(
            f"Initialized HybridCombiner: "
            f"collaborative={self.weights.collaborative:.2f}, "
            f"content_based={self.weights.content_based:.2f}, "
            f"popularity={self.weights.popularity:.2f}, "
            f"trending={self.weights.trending:.2f}, "
            f"seasonal={self.weights.seasonal:.2f}"
        )

    def weight_for(self, algorithm: Algorithm) -> float:
        return self._weights_by_algorithm[algorithm]

    def combine(
        self,
        results: Sequence[GeneratorResult],
        limit: Optional[int] = None,
    ) -> List[RecommendationItem]:
        """Merge generator results into one list.

        Each product accumulates ``score * weight`` for every generator that
        returned it (a missing score counts as 1) and keeps the product data
        from the first generator that returned it.

        Args:
            results: (algorithm, items) pairs in fold order.
            limit: Optional truncation of the blended list.

        Returns:
            Blended items sorted by accumulated score, highest first.
        """
        scores: Dict[str, float] = OrderedDict()
        first_seen: Dict[str, RecommendationItem] = {}
        contributors: Dict[str, List[str]] = {}

        for algorithm, items in results:
            weight = self.weight_for(algorithm)
            for item in items:
                score = item.recommendation_score if item.recommendation_score is not None else 1.0
                if item.id not in scores:
                    scores[item.id] = 0.0
                    first_seen[item.id] = item
                    contributors[item.id] = []
                scores[item.id] += score * weight
                if algorithm.label not in contributors[item.id]:
                    contributors[item.id].append(algorithm.label)

        # sorted() is stable, so equal scores keep first-insertion order
        ranked = sorted(scores.items(), key=lambda x: x[1], reverse=True)
        if limit is not None:
            ranked = ranked[:limit]

        return [
            RecommendationItem.from_product(
                first_seen[pid],
                recommendation_score=score,
                final_score=score,
                algorithms=contributors[pid],
                reason=f"Recommended based on {', '.join(contributors[pid])} analysis",
            )
            for pid, score in ranked
        ]


class HybridGenerator(RecommendationGenerator):
    """Runs every base generator concurrently and blends their output."""

    kind = Algorithm.HYBRID

    def __init__(
        self,
        context: GeneratorContext,
        generators: Dict[Algorithm, RecommendationGenerator],
        fallback: RecommendationGenerator,
    ):
        super().__init__(context)
        self.generators = generators
        self.fallback = fallback
        self.combiner = HybridCombiner(context.config.hybrid_weights)

    async def generate(self, user_id: str, options: GeneratorOptions) -> List[RecommendationItem]:
        try:
            return await self._generate(user_id, options)
        except Exception as e:
            logger.warning(
                "Hybrid recommendation failed, falling back to popularity",
                extra={"user_id": user_id, "error": str(e), "error_type": type(e).__name__},
            )
            return await self.fallback.generate(user_id, options)

    async def _generate(self, user_id: str, options: GeneratorOptions) -> List[RecommendationItem]:
        candidate_options = GeneratorOptions(
            limit=self.config.candidate_limit(options.limit),
            season=options.season,
            child_age=options.child_age,
        )
        outputs = await asyncio.gather(
            *(self.generators[a].generate(user_id, candidate_options) for a in HYBRID_ORDER)
        )

        blended = self.combiner.combine(list(zip(HYBRID_ORDER, outputs)), limit=options.limit)

        logger.info(
            f"Generated {len(blended)} hybrid recommendations for user {user_id}",
            extra={
                "user_id": user_id,
                "generator_counts": {a.value: len(o) for a, o in zip(HYBRID_ORDER, outputs)},
            },
        )
        return blended
