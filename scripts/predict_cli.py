"""CLI script for getting product recommendations.

Useful for testing and evaluation. Loads the CSV data directory into an
engine, gets recommendations for a user and prints them to the console.
"""

import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from recoengine.recommender.cache import InMemoryCache
from recoengine.recommender.config import EngineConfig
from recoengine.recommender.engine import RecommendationEngine
from recoengine.recommender.models import Algorithm, RecommendationItem, RecommendationOptions
from recoengine.recommender.utils import load_stores

# Setup logging
logging.basicConfig(
    level=logging.WARNING,
    format="%(levelname)s: %(message)s"
)
logger = logging.getLogger(__name__)


async def get_recommendations(
    user_id: str,
    data_dir: str = "data",
    limit: int = 10,
    algorithm: str = "hybrid",
    seasonal_scoring: str = "keyword",
    similar_to: Optional[str] = None,
    child_age: Optional[float] = None,
) -> List[RecommendationItem]:
    """Get recommendations for a user, or products similar to ``similar_to``.

    Args:
        user_id: User ID to get recommendations for
        data_dir: Directory with products.csv, orders.csv and users.csv
        limit: Number of recommendations to return
        algorithm: Algorithm name; unknown names mean hybrid
        seasonal_scoring: "keyword" or "random"
        similar_to: Optional product ID; switches to similar-product mode
        child_age: Child age in years for the age_based algorithm

    Returns:
        Recommendation items, best first
    """
    try:
        catalog, orders, users = load_stores(data_dir)
    except FileNotFoundError as e:
        print(f"Error: Data not found in {data_dir}", file=sys.stderr)
        print(f"  {e}", file=sys.stderr)
        sys.exit(1)

    engine = RecommendationEngine(
        catalog=catalog,
        orders=orders,
        users=users,
        cache=InMemoryCache(),
        config=EngineConfig(seasonal_scoring=seasonal_scoring),
    )

    if similar_to:
        return await engine.find_similar_products(similar_to, limit=limit)

    return await engine.get_recommendations(
        user_id,
        RecommendationOptions(algorithm=algorithm, limit=limit, child_age=child_age),
    )


def main() -> None:
    """Main CLI function."""
    parser = argparse.ArgumentParser(
        description="Get product recommendations for a user",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/predict_cli.py u42
  python scripts/predict_cli.py u42 --limit 5
  python scripts/predict_cli.py u42 --algorithm collaborative
  python scripts/predict_cli.py u42 --similar-to p7 --explain
        """
    )

    parser.add_argument(
        "user_id",
        type=str,
        help="User ID to get recommendations for"
    )

    parser.add_argument(
        "--limit",
        type=int,
        default=10,
        help="Number of recommendations to return (default: 10)"
    )

    parser.add_argument(
        "--algorithm",
        type=str,
        choices=[a.value for a in Algorithm],
        default=Algorithm.HYBRID.value,
        help="Recommendation algorithm (default: hybrid)"
    )

    parser.add_argument(
        "--data-dir",
        type=str,
        default="data",
        help="Directory containing the CSV data (default: data)"
    )

    parser.add_argument(
        "--seasonal-scoring",
        type=str,
        choices=["keyword", "random"],
        default="keyword",
        help="Seasonal scoring mode (default: keyword)"
    )

    parser.add_argument(
        "--similar-to",
        type=str,
        default=None,
        help="Show products similar to this product ID instead"
    )

    parser.add_argument(
        "--child-age",
        type=float,
        default=None,
        help="Child age in years for age_based (default: inferred from purchases)"
    )

    parser.add_argument(
        "--explain",
        action="store_true",
        help="Show scores and reasons for recommendations"
    )

    parser.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable verbose logging"
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.INFO)

    items = asyncio.run(
        get_recommendations(
            user_id=args.user_id,
            data_dir=args.data_dir,
            limit=args.limit,
            algorithm=args.algorithm,
            seasonal_scoring=args.seasonal_scoring,
            similar_to=args.similar_to,
            child_age=args.child_age,
        )
    )

    if args.similar_to:
        print(f"\nProducts similar to {args.similar_to}:")
    else:
        print(f"\nRecommendations for user {args.user_id} (algorithm: {args.algorithm}):")
    print(f"  Top {len(items)} products: {[item.id for item in items]}")

    if args.explain:
        print(f"\nScore breakdown:")
        for item in items:
            score = item.final_score if item.final_score is not None else item.recommendation_score
            print(f"  {item.id:<8} {score or 0.0:8.3f}  {item.name}  ({item.reason})")

    print()


if __name__ == "__main__":
    main()
