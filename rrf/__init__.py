"""Reciprocal Rank Fusion (RRF) for combining several ranked groups.

This module provides the ReciprocalRankFusion class used by the candidate
pool builder when groups from several retrievers are fused rather than
concatenated.

Example:
    >>> from rrf import ReciprocalRankFusion
    >>> rrf = ReciprocalRankFusion(k=60)
    >>> fused = rrf.fuse([["doc1", "doc2"], ["doc2", "doc3"]], limit=3)
"""

from .rrf import ReciprocalRankFusion

__all__ = ["ReciprocalRankFusion"]
