"""Data model of the MMR aggregator.

This package holds the read-only inputs (``Query``, ``Content``), the
reserved metadata keys through which retrievers pass pre-computed
embeddings, and the error types raised during aggregation.

Example:
    >>> from content import Content, Query, enrich_content_with_embeddings
    >>> query = Query("what is MMR?")
    >>> content = enrich_content_with_embeddings(
    ...     Content("MMR balances relevance and diversity"),
    ...     query_embedding=[1.0, 0.0],
    ...     document_embedding=[0.9, 0.1],
    ... )
"""

from content.errors import AggregationError, ConfigurationError, EmbeddingStateError
from content.metadata import (
    DEFAULT_METADATA_KEYS,
    DOCUMENT_EMBEDDING_KEY,
    EMBEDDING_ID_KEY,
    QUERY_EMBEDDING_KEY,
    EmbeddingMetadataKeys,
    base64_to_embedding,
    embedding_to_base64,
    enrich_content_with_embeddings,
    extract_document_embedding,
    extract_query_embedding,
    get_embedding_id,
    has_document_embedding,
    has_query_embedding,
)
from content.types import AggregationRequest, Content, Query, content_from

__all__ = [
    # Data model
    "AggregationRequest",
    "Content",
    "Query",
    "content_from",
    # Errors
    "AggregationError",
    "ConfigurationError",
    "EmbeddingStateError",
    # Reserved metadata keys
    "DEFAULT_METADATA_KEYS",
    "DOCUMENT_EMBEDDING_KEY",
    "EMBEDDING_ID_KEY",
    "QUERY_EMBEDDING_KEY",
    "EmbeddingMetadataKeys",
    # Codec
    "base64_to_embedding",
    "embedding_to_base64",
    "enrich_content_with_embeddings",
    "extract_document_embedding",
    "extract_query_embedding",
    "get_embedding_id",
    "has_document_embedding",
    "has_query_embedding",
]
