"""Embedding provider contract.

Any object with ``embed`` and ``embed_batch`` methods can serve as the
embedding provider of the aggregator; ``OllamaEmbeddingProvider`` is the
bundled implementation.
"""

from typing import List, Protocol, Sequence, runtime_checkable

import numpy as np

from content.errors import EmbeddingStateError


@runtime_checkable
class EmbeddingProvider(Protocol):
    def embed(self, text: str) -> Sequence[float]: ...

    def embed_batch(self, texts: Sequence[str]) -> Sequence[Sequence[float]]: ...


def as_vector(embedding: Sequence[float]) -> np.ndarray:
    """Convert a provider embedding to a float64 vector."""
    return np.asarray(embedding, dtype=np.float64)


def embed_batch_checked(provider: EmbeddingProvider, texts: Sequence[str]) -> List[np.ndarray]:
    """Call ``provider.embed_batch`` once and check the response is one-to-one.

    Raises:
        EmbeddingStateError: If the provider returned a different number of
            embeddings than texts submitted
    """
    embeddings = list(provider.embed_batch(list(texts)))
    if len(embeddings) != len(texts):
        raise EmbeddingStateError(
            f"Embedding provider returned {len(embeddings)} embeddings for {len(texts)} texts"
        )
    return [as_vector(embedding) for embedding in embeddings]
