"""Embedding acquisition for MMR aggregation.

This package provides the embedding provider contract, the three
strategies that decide where query and document vectors come from, and an
Ollama-backed provider.

Example:
    >>> from embeddings import OllamaEmbeddingProvider, create_embedding_strategy
    >>> provider = OllamaEmbeddingProvider(model_name="nomic-embed-text")
    >>> strategy = create_embedding_strategy("hybrid")
    >>> query_vector = strategy.resolve_query_embedding(query, candidates, provider)
"""

from embeddings.ollama import OllamaEmbeddingProvider
from embeddings.provider import EmbeddingProvider, as_vector, embed_batch_checked
from embeddings.strategies import (
    EmbeddingStrategy,
    GenerateEmbeddings,
    HybridEmbeddings,
    StrategyName,
    UseExistingEmbeddings,
    choose_embedding_strategy,
    create_embedding_strategy,
)

__all__ = [
    # Provider contract
    "EmbeddingProvider",
    "as_vector",
    "embed_batch_checked",
    # Strategies
    "EmbeddingStrategy",
    "GenerateEmbeddings",
    "HybridEmbeddings",
    "UseExistingEmbeddings",
    "StrategyName",
    "choose_embedding_strategy",
    "create_embedding_strategy",
    # Providers
    "OllamaEmbeddingProvider",
]
