"""Ollama embedding provider.

This module provides an embedding provider backed by the Ollama ``/api/embed``
endpoint. Large batches are split into chunks that are sent concurrently
using asyncio and httpx; the result is always one embedding per input text,
in input order.

The provider is also a ChromaDB embedding function, so the same instance can
embed documents at indexing time and queries/documents at aggregation time.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

import httpx
from chromadb.utils.embedding_functions import EmbeddingFunction

from content.errors import EmbeddingStateError
from mmr_config import MODELS, OLLAMA_BASE_URL, OllamaEmbeddingConfig

logger = logging.getLogger(__name__)


class OllamaEmbeddingProvider(EmbeddingFunction):
    """Ollama embedding provider with concurrent batch processing.

    Features:
        - One ``embed`` call per query, one ``embed_batch`` call per
          document batch, matching what the aggregator expects
        - Concurrent chunked requests (configurable concurrency limit)
        - Synchronous fallback when called from a running event loop
        - Errors are raised, never replaced by placeholder vectors

    Example:
        >>> provider = OllamaEmbeddingProvider(
        ...     model_name="nomic-embed-text",
        ...     url="http://localhost:11434",
        ...     max_concurrent=10,
        ...     batch_size=32
        ... )
        >>> query_vector = provider.embed("what is MMR?")
        >>> doc_vectors = provider.embed_batch(["text1", "text2", "text3"])
    """

    def __init__(
        self,
        model_name: str = MODELS["embeddings"]["name"],
        url: str = OLLAMA_BASE_URL,
        max_concurrent: int = 10,
        batch_size: int = 32,
        timeout: float = 120.0
    ):
        """Initialize the Ollama embedding provider.

        Args:
            model_name: Name of the Ollama embedding model
            url: Base URL for Ollama API
            max_concurrent: Maximum number of concurrent embedding requests
            batch_size: Number of texts to embed in a single API call
            timeout: HTTP request timeout in seconds

        Raises:
            ValueError: If model_name is empty or batch_size/max_concurrent
                are not positive
        """
        if not model_name or not model_name.strip():
            raise ValueError("model_name cannot be empty")
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if max_concurrent <= 0:
            raise ValueError(f"max_concurrent must be positive, got {max_concurrent}")

        self.model_name = model_name
        self.url = url.rstrip("/")
        self.max_concurrent = max_concurrent
        self.batch_size = batch_size
        self.timeout = timeout
        self.api_url = f"{self.url}/api/embed"

        logger.info(
            "Initialized OllamaEmbeddingProvider (model=%s, url=%s, batch_size=%d, max_concurrent=%d)",
            model_name, self.url, batch_size, max_concurrent
        )

    @classmethod
    def from_config(cls, config: OllamaEmbeddingConfig) -> "OllamaEmbeddingProvider":
        """Create a provider from an ``OllamaEmbeddingConfig``."""
        return cls(
            model_name=config.model_name,
            url=config.base_url,
            max_concurrent=config.max_concurrent,
            batch_size=config.batch_size,
            timeout=config.timeout
        )

    def __call__(self, input: List[str]) -> List[List[float]]:
        """Embed documents (ChromaDB embedding function interface)."""
        return self.embed_batch(input)

    def embed(self, text: str) -> List[float]:
        """Generate the embedding of a single text."""
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: Sequence[str]) -> List[List[float]]:
        """Generate embeddings for a list of texts.

        Args:
            texts: List of text strings to embed

        Returns:
            List of embedding vectors (one per input text, same order)

        Raises:
            httpx.HTTPError: If a request fails
            EmbeddingStateError: If Ollama returns a wrong number of vectors
        """
        texts = list(texts)
        if not texts:
            return []

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            return asyncio.run(self._embed_async(texts))

        logger.debug("Event loop already running, using sync batch processing")
        return self._embed_sync(texts)

    def _batches(self, texts: List[str]) -> List[List[str]]:
        return [
            texts[i:i + self.batch_size]
            for i in range(0, len(texts), self.batch_size)
        ]

    async def _embed_async(self, texts: List[str]) -> List[List[float]]:
        """Async embedding with concurrent batch processing."""
        batches = self._batches(texts)
        semaphore = asyncio.Semaphore(self.max_concurrent)

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            tasks = [
                self._embed_batch_with_semaphore(client, batch, i, semaphore)
                for i, batch in enumerate(batches)
            ]
            batch_results = await asyncio.gather(*tasks)

        all_embeddings: List[List[float]] = []
        for result in batch_results:
            all_embeddings.extend(result)
        return all_embeddings

    async def _embed_batch_with_semaphore(
        self,
        client: httpx.AsyncClient,
        batch: List[str],
        batch_idx: int,
        semaphore: asyncio.Semaphore
    ) -> List[List[float]]:
        """Embed a batch with semaphore-controlled concurrency."""
        async with semaphore:
            return await self._embed_batch_async(client, batch, batch_idx)

    async def _embed_batch_async(
        self,
        client: httpx.AsyncClient,
        batch: List[str],
        batch_idx: int
    ) -> List[List[float]]:
        """Embed a single batch of texts."""
        try:
            response = await client.post(
                self.api_url,
                json={
                    "model": self.model_name,
                    "input": batch
                }
            )
            response.raise_for_status()
            return self._parse_embeddings(response.json(), len(batch))
        except Exception as e:
            logger.error("Error embedding batch %d: %s", batch_idx, e)
            raise

    def _embed_sync(self, texts: List[str]) -> List[List[float]]:
        """Synchronous batch processing with httpx."""
        all_embeddings: List[List[float]] = []

        with httpx.Client(timeout=self.timeout) as client:
            for i, batch in enumerate(self._batches(texts)):
                try:
                    response = client.post(
                        self.api_url,
                        json={
                            "model": self.model_name,
                            "input": batch
                        }
                    )
                    response.raise_for_status()
                    all_embeddings.extend(self._parse_embeddings(response.json(), len(batch)))
                except Exception as e:
                    logger.error("Error embedding batch %d: %s", i, e)
                    raise

        return all_embeddings

    @staticmethod
    def _parse_embeddings(data: Dict[str, Any], expected: int) -> List[List[float]]:
        """Extract embeddings from an Ollama response.

        Accepts both the ``/api/embed`` shape (``{"embeddings": [[...]]}``)
        and the legacy single-vector shape (``{"embedding": [...]}``).
        """
        if "embeddings" in data:
            embeddings = data["embeddings"]
            if embeddings and not isinstance(embeddings[0], list):
                embeddings = [embeddings]
        elif data.get("embedding"):
            embeddings = [data["embedding"]]
        else:
            embeddings = []

        if len(embeddings) != expected:
            raise EmbeddingStateError(
                f"Ollama returned {len(embeddings)} embeddings for {expected} texts"
            )
        return [[float(x) for x in embedding] for embedding in embeddings]

    def check_model_available(self) -> Tuple[bool, Optional[str]]:
        """Check if the configured model is available in Ollama.

        Returns:
            Tuple of (is_available, error_message)
        """
        try:
            with httpx.Client(timeout=10.0) as client:
                response = client.get(f"{self.url}/api/tags")
                response.raise_for_status()
                data = response.json()

                model_names = [m.get("name", "") for m in data.get("models", [])]

                if self.model_name in model_names:
                    return True, None

                # Check without tag
                base_name = self.model_name.split(":")[0]
                if any(m.startswith(base_name) for m in model_names):
                    return True, None

                return False, f"Model '{self.model_name}' not found. Available: {model_names}"

        except Exception as e:
            return False, f"Failed to check model availability: {e}"
