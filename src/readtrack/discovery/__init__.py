"""Book discovery: LLM recommendations and explore suggestions."""

from .explore import ExploreResult, ExploreService, top_genres_and_authors
from .recommendations import (
    Recommendation,
    RecommendationService,
    build_system_prompt,
    parse_recommendations,
)

__all__ = [
    "ExploreResult",
    "ExploreService",
    "top_genres_and_authors",
    "Recommendation",
    "RecommendationService",
    "build_system_prompt",
    "parse_recommendations",
]
