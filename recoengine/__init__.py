"""RecoEngine: recommendation and personalization engine for the shop backend.

This package builds per-user interest profiles from purchase history and
live behavior events, scores catalog items with several independent
recommendation algorithms, and blends them into ranked, explainable lists.

Modules:
    api: FastAPI adapter exposing the engine over HTTP
    recommender: profiles, scoring algorithms, hybrid blending and caching
"""

__version__ = "0.2.0"
