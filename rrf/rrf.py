"""Reciprocal Rank Fusion (RRF) implementation.

Reference:
    "Reciprocal Rank Fusion outperforms Condorcet and individual Rank Learning Methods"
    https://plg.uwaterloo.ca/~gvcormac/cormacksigir09-rrf.pdf
"""

from typing import Dict, Hashable, List, Optional, Sequence, Tuple, TypeVar

K = TypeVar("K", bound=Hashable)


class ReciprocalRankFusion:
    """Reciprocal Rank Fusion (RRF) for combining several ranked groups.

    RRF fuses rankings from multiple retrievers using the formula:
        RRF_score(d) = sum(1 / (k + rank_d))

    Where:
        - k is a constant (typically 60) that dampens the impact of low rankings
        - rank_d is the item's 1-based rank in each group

    Items present in several groups are merged into one entry and boosted.
    Equal fused scores keep the order in which items were first seen, so the
    result is deterministic.

    Example:
        >>> rrf = ReciprocalRankFusion(k=60)
        >>> dense = ["doc1", "doc2", "doc3"]
        >>> sparse = ["doc2", "doc4", "doc1"]
        >>> fused = rrf.fuse([dense, sparse])
        >>> [key for key, _ in fused]
        ['doc2', 'doc1', 'doc4', 'doc3']
    """

    def __init__(self, k: int = 60):
        """Initialize RRF with tuning parameter k.

        Args:
            k: RRF constant (default 60). Higher values reduce the impact of ranking differences.
               k=60 is the standard value from the original paper.

        Raises:
            ValueError: If k is negative
        """
        if k < 0:
            raise ValueError(f"k must be non-negative, got {k}")
        self.k = k

    def fuse(
        self,
        ranked_groups: Sequence[Sequence[K]],
        limit: Optional[int] = None
    ) -> List[Tuple[K, float]]:
        """Fuse ranked groups of keys using RRF.

        Args:
            ranked_groups: Groups of keys, each sorted best first. A key
                          repeated inside one group only counts at its best rank.
            limit: Maximum number of results to return (None = all)

        Returns:
            List of (key, rrf_score) tuples sorted by RRF score descending
        """
        rrf_scores: Dict[K, float] = {}

        for group in ranked_groups:
            seen_in_group = set()
            for rank, key in enumerate(group, start=1):
                if key in seen_in_group:
                    continue
                seen_in_group.add(key)
                rrf_scores[key] = rrf_scores.get(key, 0.0) + 1.0 / (self.k + rank)

        # sorted() is stable: ties keep first-seen order
        fused = sorted(rrf_scores.items(), key=lambda item: item[1], reverse=True)
        if limit is not None:
            return fused[:limit]
        return fused
