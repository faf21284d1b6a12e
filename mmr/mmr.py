"""Maximal Marginal Relevance (MMR) selection over resolved candidates.

Reference:
    "The Use of MMR, Diversity-Based Reranking for Reordering Documents
     and Producing Summaries" by Carbonell and Goldstein (1998)
    https://www.cs.cmu.edu/~jgc/publication/The_Use_of_MMR_Diversity_Based_Latent_Semantic_Indexing_for_Information_Retrieval.pdf

MMR Formula:
    MMR = λ * Rel(query, doc) - (1-λ) * max(Sim(doc, selected_docs))

Where:
    - λ (lambda) is the relevance/diversity trade-off parameter (0-1)
    - Rel(query, doc) is the candidate's relevance score in [0, 1]
    - Sim(doc, selected_docs) is the cosine similarity to the closest
      already selected candidate (the novelty penalty)

The algorithm greedily selects candidates that balance:
    1. High relevance to the query
    2. Low similarity to already selected candidates (diversity)
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from candidates.pool import Candidate
from content.errors import ConfigurationError

logger = logging.getLogger(__name__)


def cosine_similarity(vec1: Sequence[float], vec2: Sequence[float]) -> float:
    """Calculate cosine similarity between two vectors.

    The same function scores query-to-candidate relevance and
    candidate-to-candidate novelty.

    Args:
        vec1: First vector
        vec2: Second vector

    Returns:
        Cosine similarity in range [-1, 1], or 0.0 if either vector has
        zero norm

    Raises:
        ValueError: If the vectors are empty, not 1-D, or their dimensions
            differ
    """
    a = np.asarray(vec1, dtype=np.float64)
    b = np.asarray(vec2, dtype=np.float64)

    if a.ndim != 1 or b.ndim != 1:
        raise ValueError(f"Embeddings must be 1-D, got shapes {a.shape} and {b.shape}")
    if a.size == 0 or b.size == 0:
        raise ValueError("Embeddings must not be empty")
    if a.size != b.size:
        raise ValueError(
            f"Embedding dimension mismatch: {a.size} vs {b.size}"
        )

    norm1 = np.linalg.norm(a)
    norm2 = np.linalg.norm(b)

    if norm1 == 0 or norm2 == 0:
        return 0.0

    return float(np.dot(a, b) / (norm1 * norm2))


def clamped_cosine_relevance(similarity: float) -> float:
    """Relevance equal to the cosine similarity, floored at 0 and capped at 1."""
    return min(1.0, max(0.0, similarity))


def normalized_cosine_relevance(similarity: float) -> float:
    """Relevance mapping cosine similarity [-1, 1] linearly onto [0, 1]."""
    return min(1.0, max(0.0, (similarity + 1.0) / 2.0))


def calculate_diversity_penalty(
    doc_embedding: Sequence[float],
    selected_embeddings: Sequence[Sequence[float]],
    clamp_negative: bool = False
) -> float:
    """Calculate the novelty penalty of a candidate against the selected set.

    This is the maximum cosine similarity to any already selected candidate.
    Higher values mean the candidate is more redundant.

    Args:
        doc_embedding: Embedding of the candidate
        selected_embeddings: Embeddings of already selected candidates
        clamp_negative: If True, negative similarities count as 0 so that
            anti-correlated candidates are no more novel than orthogonal ones

    Returns:
        Maximum similarity to any selected candidate, 0.0 if none selected
    """
    if len(selected_embeddings) == 0:
        return 0.0

    max_sim = max(
        cosine_similarity(doc_embedding, selected_emb)
        for selected_emb in selected_embeddings
    )
    if clamp_negative:
        max_sim = max(0.0, max_sim)
    return max_sim


class MMRSelector:
    """Greedy Maximal Marginal Relevance selector.

    MMR addresses result redundancy by explicitly trading off relevance
    against novelty. Candidates scoring below ``min_score`` are discarded
    before selection starts, so an irrelevant candidate is never picked just
    because it is diverse.

    Selection is deterministic: an exact MMR tie goes to the candidate that
    appears earliest in the filtered pool. While nothing is selected the
    novelty term is 0 for everyone, so the first pick is the most relevant
    candidate (earliest on equal relevance), whatever lambda is.

    Example:
        >>> selector = MMRSelector(lambda_param=0.5, min_score=0.3)
        >>> selected = selector.select(resolved_candidates, max_results=5)
        >>>
        >>> # Higher lambda = more relevance-focused
        >>> # Lower lambda = more diversity-focused
        >>> diverse_selector = MMRSelector(lambda_param=0.3)
    """

    def __init__(
        self,
        lambda_param: float = 0.5,
        min_score: float = 0.0,
        clamp_negative_similarity: bool = False
    ):
        """Initialize the MMR selector.

        Args:
            lambda_param: Trade-off parameter between relevance and diversity (0-1).
                         - 1.0 = Pure relevance (top-k by relevance score)
                         - 0.5 = Balanced relevance and diversity (default)
                         - 0.0 = Pure diversity after the first pick
            min_score: Minimum relevance score (0-1) a candidate needs to be
                      considered at all
            clamp_negative_similarity: Floor candidate-to-candidate
                      similarities at 0 in the novelty penalty

        Raises:
            ConfigurationError: If lambda_param or min_score is not in [0, 1]
        """
        if not 0.0 <= lambda_param <= 1.0:
            raise ConfigurationError(f"lambda_param must be in [0, 1], got {lambda_param}")
        if not 0.0 <= min_score <= 1.0:
            raise ConfigurationError(f"min_score must be in [0, 1], got {min_score}")

        self.lambda_param = lambda_param
        self.min_score = min_score
        self.clamp_negative_similarity = clamp_negative_similarity

        logger.debug(
            "Initialized MMRSelector (lambda=%.2f, min_score=%.2f, clamp_negative=%s)",
            lambda_param, min_score, clamp_negative_similarity
        )

    def select(
        self,
        candidates: Sequence[Candidate],
        max_results: Optional[int] = None
    ) -> List[Candidate]:
        """Select up to ``max_results`` candidates using MMR.

        Args:
            candidates: Resolved candidates (embedding and relevance score
                       set), in pool order
            max_results: Maximum number of candidates to select.
                        None means no limit.

        Returns:
            Selected candidates in selection order

        Raises:
            ConfigurationError: If max_results is negative
            ValueError: If a candidate has not been resolved
        """
        if max_results is not None and max_results < 0:
            raise ConfigurationError(f"max_results must be non-negative, got {max_results}")

        for candidate in candidates:
            if not candidate.is_resolved:
                raise ValueError(f"Candidate {candidate.identity} has no embedding or relevance score")

        pool = [c for c in candidates if c.relevance_score >= self.min_score]
        if len(pool) < len(candidates):
            logger.debug(
                "MMR min_score filter dropped %d of %d candidates (min_score=%.3f)",
                len(candidates) - len(pool), len(candidates), self.min_score
            )

        if not pool or max_results == 0:
            return []

        # Bounded by the pool size, whatever the configured maximum
        bound = len(pool) if max_results is None else min(max_results, len(pool))

        remaining: List[int] = list(range(len(pool)))
        selected: List[int] = []
        # Highest similarity of each pool entry to the selected set
        novelty = [0.0] * len(pool)

        while len(selected) < bound and remaining:
            best_idx = -1
            best_key = float("-inf")
            best_mmr = float("-inf")

            # remaining is in ascending pool order; strict > keeps the earliest on ties
            for idx in remaining:
                relevance = pool[idx].relevance_score
                mmr_score = (
                    self.lambda_param * relevance -
                    (1 - self.lambda_param) * novelty[idx]
                )
                # First pick: every novelty is 0, rank by relevance
                key = mmr_score if selected else relevance
                if key > best_key:
                    best_idx = idx
                    best_key = key
                    best_mmr = mmr_score

            selected.append(best_idx)
            remaining.remove(best_idx)

            chosen = pool[best_idx]
            logger.debug(
                "MMR selected %s (relevance=%.3f, novelty=%.3f, mmr=%.3f)",
                chosen.identity, chosen.relevance_score, novelty[best_idx], best_mmr
            )

            for idx in remaining:
                sim = calculate_diversity_penalty(
                    pool[idx].embedding, [chosen.embedding], self.clamp_negative_similarity
                )
                if len(selected) == 1:
                    novelty[idx] = sim
                else:
                    novelty[idx] = max(novelty[idx], sim)

        logger.debug(
            "MMR selection complete: selected %d of %d candidates",
            len(selected), len(pool)
        )

        return [pool[idx] for idx in selected]
