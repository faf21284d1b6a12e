"""Candidate pool for a single aggregation call.

Example:
    >>> from candidates import build_candidate_pool
    >>> pool = build_candidate_pool([[content1, content2], [content3]])
    >>> [c.identity for c in pool]
    ['mmr-content-0', 'mmr-content-1', 'mmr-content-2']
"""

from candidates.pool import TEMP_EMBEDDING_ID_PREFIX, Candidate, FusionMode, build_candidate_pool

__all__ = ["Candidate", "FusionMode", "TEMP_EMBEDDING_ID_PREFIX", "build_candidate_pool"]
