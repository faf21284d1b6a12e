"""Maximal Marginal Relevance (MMR) diversity selection.

This module provides the vector math and the greedy MMR selector used to
pick a bounded, non-redundant subset of retrieved content.
"""

from .mmr import (
    MMRSelector,
    calculate_diversity_penalty,
    clamped_cosine_relevance,
    cosine_similarity,
    normalized_cosine_relevance,
)

__all__ = [
    "MMRSelector",
    "calculate_diversity_penalty",
    "clamped_cosine_relevance",
    "cosine_similarity",
    "normalized_cosine_relevance",
]
