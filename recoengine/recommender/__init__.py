"""Recommendation and personalization module for RecoEngine.

This module contains the feature extractor, the interest profile store, the
similarity kernels, the recommendation generators, the hybrid combiner,
the personalization scorer and the engine facade that ties them together
with caching and fallbacks.
"""
