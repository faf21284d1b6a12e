from dataclasses import dataclass, field
from typing import Literal, Optional

from candidates.pool import FusionMode
from content.metadata import DEFAULT_METADATA_KEYS, EmbeddingMetadataKeys

OLLAMA_BASE_URL = "http://localhost:11434"

MODELS = {
    "embeddings": {
        "name": "nomic-embed-text",
    },
}

# Embedding acquisition strategies selectable from configuration
StrategyName = Literal[
    "generate",      # Always call the embedding provider
    "use_existing",  # Only use embeddings stored in content metadata
    "hybrid",        # Stored embeddings first, generate the missing ones
    "auto",          # Pick one of the above per call from the content
]


@dataclass(frozen=True)
class MMRConfig:
    """MMR aggregation configuration.

    Attributes:
        lambda_param: Relevance/diversity trade-off (0-1).
                     1.0 = pure relevance, 0.0 = pure diversity
        min_score: Minimum relevance score (0-1) a candidate needs before
                  MMR selection starts. 0.0 disables filtering.
        max_results: Maximum number of results. None means unbounded.
        strategy: Embedding strategy name.
            Options: "generate", "use_existing", "hybrid", "auto"
        force_embedding_generation: Always generate embeddings, whatever
            ``strategy`` says
        clamp_negative_similarity: Count negative candidate-to-candidate
            similarities as 0 in the novelty penalty
        fusion: How groups from several retrievers are merged.
            Options: "concat", "rrf"
        rrf_k: RRF constant used with fusion="rrf"
        metadata_keys: Reserved metadata keys holding stored embeddings and
            embedding ids

    Example:
        >>> config = MMRConfig(
        ...     lambda_param=0.7,
        ...     min_score=0.3,
        ...     max_results=5,
        ...     strategy="auto",
        ... )
    """
    lambda_param: float = field(default=0.5)
    min_score: float = field(default=0.0)
    max_results: Optional[int] = field(default=None)
    strategy: StrategyName = field(default="hybrid")
    force_embedding_generation: bool = field(default=False)
    clamp_negative_similarity: bool = field(default=False)
    fusion: FusionMode = field(default="concat")
    rrf_k: int = field(default=60)
    metadata_keys: EmbeddingMetadataKeys = field(default=DEFAULT_METADATA_KEYS)


MMR_CONFIG_DEFAULT = MMRConfig()

# Presets for different use cases
MMR_CONFIG_RELEVANCE = MMRConfig(
    lambda_param=0.8,            # Mostly relevance, light de-duplication
    min_score=0.0,
    max_results=10,
)

MMR_CONFIG_DIVERSITY = MMRConfig(
    lambda_param=0.3,            # Spread results across topics
    min_score=0.2,               # Keep diversity from pulling in noise
    max_results=10,
)


@dataclass(frozen=True)
class OllamaEmbeddingConfig:
    """Ollama embedding provider configuration.

    Attributes:
        model_name: Name of the Ollama embedding model to use
        base_url: Base URL of the Ollama server
        max_concurrent: Number of concurrent embedding requests
        batch_size: Number of texts per embedding API call
        timeout: HTTP request timeout in seconds
    """
    model_name: str = field(default=MODELS["embeddings"]["name"])
    base_url: str = field(default=OLLAMA_BASE_URL)
    max_concurrent: int = field(default=10)
    batch_size: int = field(default=32)
    timeout: float = field(default=120.0)


OLLAMA_EMBEDDING_CONFIG_DEFAULT = OllamaEmbeddingConfig()
