"""Shared fixtures for the MMR aggregator tests."""

import sys
from pathlib import Path
from typing import Dict, List, Sequence

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import pytest

from content import Content, enrich_content_with_embeddings


class RecordingEmbeddingProvider:
    """Embedding provider backed by a text -> vector table that records calls."""

    def __init__(self, vectors: Dict[str, Sequence[float]]):
        self.vectors = dict(vectors)
        self.embed_calls: List[str] = []
        self.embed_batch_calls: List[List[str]] = []

    def embed(self, text: str) -> List[float]:
        self.embed_calls.append(text)
        return list(self.vectors[text])

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        self.embed_batch_calls.append(list(texts))
        return [list(self.vectors[text]) for text in texts]

    @property
    def call_count(self) -> int:
        return len(self.embed_calls) + len(self.embed_batch_calls)


@pytest.fixture
def make_provider():
    """Factory fixture building a RecordingEmbeddingProvider."""
    return RecordingEmbeddingProvider


@pytest.fixture
def diversity_vectors():
    """Query [1,0,0] and three documents used by the pure-diversity scenario."""
    return {
        "query": [1.0, 0.0, 0.0],
        "doc-a": [0.9, 0.1, 0.0],
        "doc-b": [0.5, 0.5, 0.0],
        "doc-c": [0.1, 0.1, 0.8],
    }


def stored(text: str, document=None, query=None, **metadata) -> Content:
    """Content carrying pre-computed embeddings in its metadata."""
    return enrich_content_with_embeddings(
        Content(text=text, metadata=metadata),
        query_embedding=query,
        document_embedding=document,
    )
