"""Embedding acquisition strategies.

A strategy decides where the vectors needed by MMR come from:

- ``GenerateEmbeddings``: always ask the embedding provider
- ``UseExistingEmbeddings``: only read vectors stored in content metadata
- ``HybridEmbeddings``: read stored vectors, generate the missing ones

Each strategy calls the provider at most twice per aggregation: once for the
query and once (batched) for all documents that need an embedding.
Strategies never fall back silently: a caller who chose
``UseExistingEmbeddings`` gets an ``EmbeddingStateError`` instead of
generated vectors when something is missing.
"""

import logging
from typing import Dict, List, Literal, Optional, Sequence

import numpy as np

from candidates.pool import Candidate
from content.errors import EmbeddingStateError
from content.metadata import (
    DEFAULT_METADATA_KEYS,
    EmbeddingMetadataKeys,
    extract_document_embedding,
    extract_query_embedding,
)
from content.types import Query
from embeddings.provider import EmbeddingProvider, as_vector, embed_batch_checked

logger = logging.getLogger(__name__)

# Names accepted by create_embedding_strategy
StrategyName = Literal[
    "generate",      # Always call the embedding provider
    "use_existing",  # Only use embeddings stored in content metadata
    "hybrid",        # Stored embeddings first, generate the missing ones
]


class EmbeddingStrategy:
    """Base class of the three embedding acquisition strategies.

    Attributes:
        name: Strategy name as used in configuration
        keys: Reserved metadata keys to read stored embeddings from
    """

    name: str = ""

    def __init__(self, keys: EmbeddingMetadataKeys = DEFAULT_METADATA_KEYS):
        self.keys = keys

    def resolve_query_embedding(
        self,
        query: Query,
        candidates: Sequence[Candidate],
        provider: Optional[EmbeddingProvider]
    ) -> np.ndarray:
        """Return the embedding of ``query``."""
        raise NotImplementedError

    def resolve_document_embeddings(
        self,
        candidates: Sequence[Candidate],
        provider: Optional[EmbeddingProvider]
    ) -> Dict[str, np.ndarray]:
        """Return one embedding per candidate identity, in candidate order."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


def _require_provider(provider: Optional[EmbeddingProvider], strategy: str) -> EmbeddingProvider:
    if provider is None:
        raise EmbeddingStateError(f"Strategy '{strategy}' needs an embedding provider, got None")
    return provider


def _preview(text: str, length: int = 50) -> str:
    return text[:length]


class GenerateEmbeddings(EmbeddingStrategy):
    """Generate every embedding, ignoring anything stored in metadata."""

    name = "generate"

    def resolve_query_embedding(
        self,
        query: Query,
        candidates: Sequence[Candidate],
        provider: Optional[EmbeddingProvider]
    ) -> np.ndarray:
        provider = _require_provider(provider, self.name)
        logger.debug("Generating query embedding for: %s", _preview(query.text))
        return as_vector(provider.embed(query.text))

    def resolve_document_embeddings(
        self,
        candidates: Sequence[Candidate],
        provider: Optional[EmbeddingProvider]
    ) -> Dict[str, np.ndarray]:
        if not candidates:
            return {}
        provider = _require_provider(provider, self.name)

        logger.debug("Generating embeddings for %d contents in one batch", len(candidates))
        embeddings = embed_batch_checked(provider, [c.text for c in candidates])
        return {c.identity: e for c, e in zip(candidates, embeddings)}


class UseExistingEmbeddings(EmbeddingStrategy):
    """Use only embeddings stored in content metadata; never call the provider."""

    name = "use_existing"

    def resolve_query_embedding(
        self,
        query: Query,
        candidates: Sequence[Candidate],
        provider: Optional[EmbeddingProvider]
    ) -> np.ndarray:
        if not candidates:
            raise EmbeddingStateError("Cannot extract query embedding from empty content list")

        for candidate in candidates:
            embedding = extract_query_embedding(candidate.content, self.keys)
            if embedding is not None:
                logger.debug("Using existing query embedding from %s", candidate.identity)
                return embedding

        raise EmbeddingStateError(
            "Query embedding not found in content metadata. "
            f"Ensure the retriever stores it under the '{self.keys.query_embedding}' key "
            "(see content.enrich_content_with_embeddings)."
        )

    def resolve_document_embeddings(
        self,
        candidates: Sequence[Candidate],
        provider: Optional[EmbeddingProvider]
    ) -> Dict[str, np.ndarray]:
        logger.debug("Processing %d contents with existing embeddings", len(candidates))

        resolved: Dict[str, np.ndarray] = {}
        for candidate in candidates:
            embedding = extract_document_embedding(candidate.content, self.keys)
            if embedding is None:
                raise EmbeddingStateError(
                    "Content must have document embedding for MMR processing. "
                    f"Ensure the retriever stores it under the '{self.keys.document_embedding}' key. "
                    f"Content: {candidate.text[:100]}"
                )
            resolved[candidate.identity] = embedding
        return resolved


class HybridEmbeddings(EmbeddingStrategy):
    """Prefer stored embeddings, generate only the missing ones."""

    name = "hybrid"

    def resolve_query_embedding(
        self,
        query: Query,
        candidates: Sequence[Candidate],
        provider: Optional[EmbeddingProvider]
    ) -> np.ndarray:
        for candidate in candidates:
            embedding = extract_query_embedding(candidate.content, self.keys)
            if embedding is not None:
                logger.debug("Using existing query embedding from content metadata")
                return embedding

        provider = _require_provider(provider, self.name)
        logger.debug("Generating query embedding as not found in content metadata")
        return as_vector(provider.embed(query.text))

    def resolve_document_embeddings(
        self,
        candidates: Sequence[Candidate],
        provider: Optional[EmbeddingProvider]
    ) -> Dict[str, np.ndarray]:
        existing: Dict[str, np.ndarray] = {}
        missing: List[Candidate] = []
        for candidate in candidates:
            embedding = extract_document_embedding(candidate.content, self.keys)
            if embedding is None:
                missing.append(candidate)
            else:
                existing[candidate.identity] = embedding

        generated: Dict[str, np.ndarray] = {}
        if missing:
            provider = _require_provider(provider, self.name)
            embeddings = embed_batch_checked(provider, [c.text for c in missing])
            generated = {c.identity: e for c, e in zip(missing, embeddings)}

        logger.debug(
            "Processed %d total contents (%d existing, %d generated)",
            len(candidates), len(existing), len(generated)
        )

        # Merge back into candidate order
        return {
            c.identity: existing[c.identity] if c.identity in existing else generated[c.identity]
            for c in candidates
        }


def create_embedding_strategy(
    name: str = "hybrid",
    keys: EmbeddingMetadataKeys = DEFAULT_METADATA_KEYS
) -> EmbeddingStrategy:
    """Create an embedding strategy from its configuration name.

    Args:
        name: Strategy to use. Options:
            - "generate": always call the embedding provider
            - "use_existing": only read embeddings from content metadata
            - "hybrid": read stored embeddings, generate the missing ones
        keys: Reserved metadata keys the strategy reads from

    Returns:
        Strategy instance

    Raises:
        ValueError: If the strategy name is not recognized

    Example:
        >>> strategy = create_embedding_strategy("use_existing")
    """
    name = name.lower().strip()

    if name == "generate":
        return GenerateEmbeddings(keys)
    elif name == "use_existing":
        return UseExistingEmbeddings(keys)
    elif name == "hybrid":
        return HybridEmbeddings(keys)
    else:
        raise ValueError(
            f"Unknown embedding strategy: '{name}'. "
            f"Available options: 'generate', 'use_existing', 'hybrid'"
        )


def choose_embedding_strategy(
    candidates: Sequence[Candidate],
    force_generation: bool = False,
    keys: EmbeddingMetadataKeys = DEFAULT_METADATA_KEYS
) -> EmbeddingStrategy:
    """Pick the cheapest strategy able to serve ``candidates``.

    - forced generation, or no candidate with a stored document embedding:
      ``GenerateEmbeddings``
    - every candidate has a stored document embedding and at least one
      carries the query embedding: ``UseExistingEmbeddings``
    - anything in between: ``HybridEmbeddings``
    """
    if force_generation:
        strategy: EmbeddingStrategy = GenerateEmbeddings(keys)
    else:
        with_document = sum(
            1 for c in candidates if extract_document_embedding(c.content, keys) is not None
        )
        with_query = any(
            extract_query_embedding(c.content, keys) is not None for c in candidates
        )

        if with_document == 0:
            strategy = GenerateEmbeddings(keys)
        elif with_document == len(candidates) and with_query:
            strategy = UseExistingEmbeddings(keys)
        else:
            strategy = HybridEmbeddings(keys)

    logger.debug(
        "Auto-selected %s for %d candidates (force_generation=%s)",
        type(strategy).__name__, len(candidates), force_generation
    )
    return strategy
