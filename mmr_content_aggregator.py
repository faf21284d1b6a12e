"""MMR content aggregator.

Selects a bounded, ordered subset of retrieved content that is relevant to
the query and not redundant with what has already been chosen, using
Maximal Marginal Relevance.

Pipeline of one ``aggregate`` call:
    1. Select the query whose content is aggregated
    2. Build the de-duplicated candidate pool from that query's groups
    3. Resolve query and document embeddings with the embedding strategy
    4. Score each candidate's relevance against the query
    5. Run greedy MMR selection and return the original content objects

Example:
    >>> from embeddings import OllamaEmbeddingProvider
    >>> from mmr_config import MMRConfig
    >>> aggregator = MMRContentAggregator(
    ...     embedding_provider=OllamaEmbeddingProvider(),
    ...     config=MMRConfig(lambda_param=0.7, max_results=5),
    ... )
    >>> results = aggregator.aggregate({query: [retriever_a_results, retriever_b_results]})
"""

import logging
from typing import Callable, Dict, List, Mapping, Optional, Sequence

import numpy as np

from candidates.pool import Candidate, build_candidate_pool
from content.errors import ConfigurationError, EmbeddingStateError
from content.types import AggregationRequest, Content, Query
from embeddings.provider import EmbeddingProvider
from embeddings.strategies import (
    EmbeddingStrategy,
    choose_embedding_strategy,
    create_embedding_strategy,
)
from mmr import MMRSelector, clamped_cosine_relevance, cosine_similarity
from mmr_config import MMRConfig

logger = logging.getLogger(__name__)

QuerySelector = Callable[[AggregationRequest], Query]
RelevanceScoreFn = Callable[[float], float]

STRATEGY_NAMES = ("generate", "use_existing", "hybrid", "auto")

# Recommended candidate pool size relative to max_results
MIN_POOL_FACTOR = 5


def first_query(request: AggregationRequest) -> Query:
    """Query selector returning the first query of the request."""
    return next(iter(request))


def query_with_text(text: str) -> QuerySelector:
    """Build a query selector returning the query whose text equals ``text``.

    Example:
        >>> aggregator = MMRContentAggregator(
        ...     provider, query_selector=query_with_text("how do I reset my password?")
        ... )
    """
    def select(request: AggregationRequest) -> Query:
        for query in request:
            if query.text == text:
                return query
        raise ConfigurationError(f"No query with text '{text}' in the aggregation request")

    return select


class MMRContentAggregator:
    """Aggregates retrieved content with Maximal Marginal Relevance.

    The aggregator holds only immutable configuration and creates all
    per-call state inside ``aggregate``, so one instance can be shared.

    Attributes:
        embedding_provider: Provider used when embeddings must be generated
        config: MMR configuration
        query_selector: Picks the query when several carry content
        relevance_score_fn: Maps cosine similarity to a relevance score in [0, 1]
        strategy: Explicit embedding strategy, overriding the configuration
        selector: The MMR selector built from the configuration
    """

    def __init__(
        self,
        embedding_provider: Optional[EmbeddingProvider] = None,
        config: Optional[MMRConfig] = None,
        query_selector: Optional[QuerySelector] = None,
        relevance_score_fn: Optional[RelevanceScoreFn] = None,
        strategy: Optional[EmbeddingStrategy] = None
    ):
        """Initialize the aggregator.

        Args:
            embedding_provider: Embedding provider. Required unless every
                embedding comes from content metadata ("use_existing")
            config: MMR configuration (defaults to ``MMRConfig()``)
            query_selector: Called with the request when more than one query
                has content; must return one of the request's queries
            relevance_score_fn: Relevance score function (defaults to
                cosine similarity clamped to [0, 1])
            strategy: Embedding strategy instance taking precedence over
                ``config.strategy`` and ``config.force_embedding_generation``

        Raises:
            ConfigurationError: If the configuration is invalid or the chosen
                strategy needs a provider and none was given
        """
        self.embedding_provider = embedding_provider
        self.config = config if config is not None else MMRConfig()
        self.query_selector = query_selector
        self.relevance_score_fn = relevance_score_fn or clamped_cosine_relevance
        self.strategy = strategy

        self._validate_config()

        self.selector = MMRSelector(
            lambda_param=self.config.lambda_param,
            min_score=self.config.min_score,
            clamp_negative_similarity=self.config.clamp_negative_similarity
        )

        logger.info(
            "Initialized MMRContentAggregator (lambda=%.2f, min_score=%.2f, max_results=%s, strategy=%s)",
            self.config.lambda_param,
            self.config.min_score,
            self.config.max_results,
            type(strategy).__name__ if strategy is not None else self.config.strategy
        )

    def _validate_config(self) -> None:
        config = self.config

        if not 0.0 <= config.lambda_param <= 1.0:
            raise ConfigurationError(f"lambda_param must be in [0, 1], got {config.lambda_param}")
        if not 0.0 <= config.min_score <= 1.0:
            raise ConfigurationError(f"min_score must be in [0, 1], got {config.min_score}")
        if config.max_results is not None and config.max_results < 0:
            raise ConfigurationError(f"max_results must be non-negative, got {config.max_results}")
        if config.strategy not in STRATEGY_NAMES:
            raise ConfigurationError(
                f"Unknown embedding strategy: '{config.strategy}'. "
                f"Available options: {', '.join(repr(n) for n in STRATEGY_NAMES)}"
            )
        if config.fusion not in ("concat", "rrf"):
            raise ConfigurationError(
                f"Unknown fusion mode: '{config.fusion}'. Available options: 'concat', 'rrf'"
            )
        if config.rrf_k < 0:
            raise ConfigurationError(f"rrf_k must be non-negative, got {config.rrf_k}")

        if self.strategy is not None and config.force_embedding_generation:
            logger.warning(
                "Both an explicit strategy (%s) and force_embedding_generation were given; "
                "the explicit strategy is used",
                type(self.strategy).__name__
            )

        if self.embedding_provider is None and self._needs_provider():
            raise ConfigurationError(
                "An embedding provider is required unless all embeddings come from "
                "content metadata (strategy='use_existing')"
            )

    def _needs_provider(self) -> bool:
        if self.strategy is not None:
            return self.strategy.name != "use_existing"
        if self.config.force_embedding_generation:
            return True
        return self.config.strategy != "use_existing"

    def aggregate(self, query_to_contents: AggregationRequest) -> List[Content]:
        """Select diverse, relevant content for a query.

        Args:
            query_to_contents: Mapping of each query to the groups of content
                retrieved for it (one group per retriever, best first)

        Returns:
            Selected content in selection order. Empty if there is nothing
            to aggregate.

        Raises:
            ConfigurationError: If several queries carry content and no usable
                query selector is configured
            EmbeddingStateError: If embeddings cannot be resolved
            ValueError: If embedding dimensions do not match
        """
        query = self._select_query(query_to_contents)
        if query is None:
            return []

        candidates = build_candidate_pool(
            query_to_contents[query],
            keys=self.config.metadata_keys,
            fusion=self.config.fusion,
            rrf_k=self.config.rrf_k
        )
        if not candidates:
            logger.debug("No candidates to aggregate for query: %s", query.text[:50])
            return []

        max_results = self.config.max_results
        if max_results and len(candidates) < MIN_POOL_FACTOR * max_results:
            logger.warning(
                "Candidate pool (%d) is smaller than %dx max_results (%d); "
                "retrieve 5-10x more candidates than max_results for effective diversity",
                len(candidates), MIN_POOL_FACTOR, max_results
            )

        strategy = self._resolve_strategy(candidates)
        logger.debug("Using %s for %d candidates", type(strategy).__name__, len(candidates))

        query_embedding = strategy.resolve_query_embedding(query, candidates, self.embedding_provider)
        document_embeddings = strategy.resolve_document_embeddings(candidates, self.embedding_provider)

        resolved = self._score(candidates, query_embedding, document_embeddings)
        selected = self.selector.select(resolved, max_results=max_results)

        logger.debug(
            "Aggregated %d of %d candidates for query: %s",
            len(selected), len(candidates), query.text[:50]
        )
        return [candidate.content for candidate in selected]

    def _select_query(self, query_to_contents: AggregationRequest) -> Optional[Query]:
        if not query_to_contents:
            return None

        non_empty = [
            query for query, groups in query_to_contents.items()
            if any(len(group) > 0 for group in groups)
        ]

        if not non_empty:
            return None
        if len(non_empty) == 1:
            return non_empty[0]

        if self.query_selector is None:
            raise ConfigurationError(
                f"Received {len(non_empty)} queries with content but no query_selector; "
                "configure a query_selector to choose the query to aggregate for"
            )

        query = self.query_selector(query_to_contents)
        if query not in query_to_contents:
            raise ConfigurationError(
                f"query_selector returned a query that is not part of the request: {query!r}"
            )
        return query

    def _resolve_strategy(self, candidates: Sequence[Candidate]) -> EmbeddingStrategy:
        keys = self.config.metadata_keys

        if self.strategy is not None:
            return self.strategy
        if self.config.force_embedding_generation:
            return create_embedding_strategy("generate", keys)
        if self.config.strategy == "auto":
            return choose_embedding_strategy(candidates, keys=keys)
        return create_embedding_strategy(self.config.strategy, keys)

    def _score(
        self,
        candidates: Sequence[Candidate],
        query_embedding: np.ndarray,
        document_embeddings: Mapping[str, np.ndarray]
    ) -> List[Candidate]:
        resolved: List[Candidate] = []
        scores: Dict[str, float] = {}

        for candidate in candidates:
            embedding = document_embeddings.get(candidate.identity)
            if embedding is None:
                raise EmbeddingStateError(
                    f"No document embedding resolved for candidate {candidate.identity}"
                )
            score = self.relevance_score_fn(cosine_similarity(query_embedding, embedding))
            scores[candidate.identity] = score
            resolved.append(candidate.with_resolution(embedding, score))

        logger.debug("Relevance scores: %s", scores)
        return resolved
