"""Reserved metadata keys and the embedding-in-metadata codec.

Retrievers that already hold vectors can hand them to the aggregator inside
``Content.metadata``, which saves a round-trip to the embedding provider:

    - the document embedding under ``DOCUMENT_EMBEDDING_KEY``
    - the query embedding under ``QUERY_EMBEDDING_KEY``
    - a stable id under ``EMBEDDING_ID_KEY`` (used for de-duplication)

Embeddings are stored as base64 strings of big-endian float32 values so the
metadata stays a flat map of primitives. Plain lists of floats and numpy
arrays are accepted on read as well.
"""

import base64
import logging
from dataclasses import dataclass
from typing import Any, Optional, Sequence, Union

import numpy as np

from content.types import Content

logger = logging.getLogger(__name__)

DOCUMENT_EMBEDDING_KEY = "embedding"
QUERY_EMBEDDING_KEY = "queryEmbedding"
EMBEDDING_ID_KEY = "embedding_id"

# Wire format of stored vectors
_STORED_DTYPE = np.dtype(">f4")

EmbeddingLike = Union[str, Sequence[float], np.ndarray]


@dataclass(frozen=True)
class EmbeddingMetadataKeys:
    """Names of the reserved metadata keys.

    Attributes:
        document_embedding: Key holding the content's own embedding
        query_embedding: Key holding the embedding of the query that
            retrieved the content
        embedding_id: Key holding the content's stable embedding id
    """
    document_embedding: str = DOCUMENT_EMBEDDING_KEY
    query_embedding: str = QUERY_EMBEDDING_KEY
    embedding_id: str = EMBEDDING_ID_KEY


DEFAULT_METADATA_KEYS = EmbeddingMetadataKeys()


def embedding_to_base64(embedding: Sequence[float]) -> str:
    """Encode a vector as base64 of big-endian float32 values."""
    vector = np.asarray(embedding, dtype=_STORED_DTYPE)
    return base64.b64encode(vector.tobytes()).decode("ascii")


def base64_to_embedding(encoded: str) -> np.ndarray:
    """Decode a vector produced by ``embedding_to_base64``.

    Raises:
        ValueError: If the payload is not valid base64 or its length is not
            a multiple of four bytes
    """
    raw = base64.b64decode(encoded, validate=True)
    if len(raw) % _STORED_DTYPE.itemsize:
        raise ValueError(
            f"Stored embedding has {len(raw)} bytes, expected a multiple of "
            f"{_STORED_DTYPE.itemsize}"
        )
    return np.frombuffer(raw, dtype=_STORED_DTYPE).astype(np.float64)


def _coerce_embedding(value: Any) -> Optional[np.ndarray]:
    if value is None:
        return None
    if isinstance(value, str):
        if not value.strip():
            return None
        vector = base64_to_embedding(value.strip())
    else:
        vector = np.asarray(value, dtype=np.float64)
    if vector.ndim != 1 or vector.size == 0:
        return None
    return vector


def extract_document_embedding(
    content: Content,
    keys: EmbeddingMetadataKeys = DEFAULT_METADATA_KEYS
) -> Optional[np.ndarray]:
    """Return the document embedding stored in the content metadata, if any."""
    return _coerce_embedding(content.metadata.get(keys.document_embedding))


def extract_query_embedding(
    content: Content,
    keys: EmbeddingMetadataKeys = DEFAULT_METADATA_KEYS
) -> Optional[np.ndarray]:
    """Return the query embedding stored in the content metadata, if any."""
    return _coerce_embedding(content.metadata.get(keys.query_embedding))


def has_document_embedding(
    content: Content,
    keys: EmbeddingMetadataKeys = DEFAULT_METADATA_KEYS
) -> bool:
    return extract_document_embedding(content, keys) is not None


def has_query_embedding(
    content: Content,
    keys: EmbeddingMetadataKeys = DEFAULT_METADATA_KEYS
) -> bool:
    return extract_query_embedding(content, keys) is not None


def get_embedding_id(
    content: Content,
    keys: EmbeddingMetadataKeys = DEFAULT_METADATA_KEYS
) -> Optional[str]:
    """Return the explicit embedding id, or None if it is missing or blank."""
    embedding_id = content.metadata.get(keys.embedding_id)
    if isinstance(embedding_id, str) and embedding_id.strip():
        return embedding_id
    return None


def enrich_content_with_embeddings(
    content: Content,
    query_embedding: Optional[EmbeddingLike] = None,
    document_embedding: Optional[EmbeddingLike] = None,
    keys: EmbeddingMetadataKeys = DEFAULT_METADATA_KEYS
) -> Content:
    """Return a copy of ``content`` carrying the given embeddings.

    This is the retriever-side counterpart of the ``extract_*`` helpers.
    The original content is left untouched; embeddings that are None are
    not written.

    Example:
        >>> enriched = enrich_content_with_embeddings(
        ...     content, query_embedding=[1.0, 0.0], document_embedding=[0.9, 0.1]
        ... )
        >>> has_document_embedding(enriched), has_query_embedding(content)
        (True, False)
    """
    metadata = dict(content.metadata)
    if document_embedding is not None:
        metadata[keys.document_embedding] = _encode(document_embedding)
    if query_embedding is not None:
        metadata[keys.query_embedding] = _encode(query_embedding)

    logger.debug(
        "Enriched content with embeddings (query=%s, document=%s)",
        query_embedding is not None,
        document_embedding is not None
    )
    return Content(text=content.text, metadata=metadata)


def _encode(embedding: EmbeddingLike) -> str:
    if isinstance(embedding, str):
        return embedding
    return embedding_to_base64(embedding)
