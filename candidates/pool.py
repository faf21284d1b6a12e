"""Candidate pool construction.

The pool builder flattens the groups of content returned for the selected
query into one ordered list of candidates, each with a stable identity used
for de-duplication and tie-breaking.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Literal, Optional, Sequence, Set

import numpy as np

from content.metadata import DEFAULT_METADATA_KEYS, EmbeddingMetadataKeys, get_embedding_id
from content.types import Content
from rrf import ReciprocalRankFusion

logger = logging.getLogger(__name__)

TEMP_EMBEDDING_ID_PREFIX = "mmr-content-"

# How groups from several retrievers are merged
FusionMode = Literal[
    "concat",  # Group order, then within-group order
    "rrf",     # Reciprocal Rank Fusion across groups
]


@dataclass(frozen=True, eq=False)
class Candidate:
    """A content fragment taking part in one aggregation call.

    Candidates are created by ``build_candidate_pool`` without an embedding
    and resolved once the embedding strategy has run.

    Attributes:
        content: The original content, returned unchanged if selected
        identity: De-duplication key (explicit embedding id, or an
            engine-assigned ``mmr-content-<n>``)
        position: Index of the candidate in the pool. The selector scans
            candidates in this order, so it decides exact MMR ties
        embedding: Resolved document embedding
        relevance_score: Relevance to the query in [0, 1]
    """
    content: Content
    identity: str
    position: int
    embedding: Optional[np.ndarray] = None
    relevance_score: Optional[float] = None

    @property
    def text(self) -> str:
        return self.content.text

    @property
    def is_resolved(self) -> bool:
        return self.embedding is not None and self.relevance_score is not None

    def with_resolution(self, embedding: np.ndarray, relevance_score: float) -> "Candidate":
        """Return a copy carrying the resolved embedding and relevance score."""
        return replace(self, embedding=embedding, relevance_score=float(relevance_score))


def build_candidate_pool(
    groups: Iterable[Sequence[Content]],
    keys: EmbeddingMetadataKeys = DEFAULT_METADATA_KEYS,
    fusion: FusionMode = "concat",
    rrf_k: int = 60
) -> List[Candidate]:
    """Flatten content groups into an ordered, de-duplicated candidate list.

    Identities come from the explicit embedding id when it is non-blank;
    otherwise each distinct ``Content`` object gets a sequential id in
    first-seen order, skipping any number whose id is already taken by an
    explicit embedding id in the same call. When two entries share an
    identity, the first one wins.

    Args:
        groups: One group of content per retriever, each ordered best first
        keys: Reserved metadata keys (for the embedding id)
        fusion: "concat" keeps group order then within-group order;
               "rrf" orders candidates by their Reciprocal Rank Fusion score
        rrf_k: RRF constant, only used with fusion="rrf"

    Returns:
        Candidates with ``position`` set to their index in the list

    Raises:
        ValueError: If the fusion mode is not recognized
    """
    if fusion not in ("concat", "rrf"):
        raise ValueError(f"Unknown fusion mode: '{fusion}'. Available options: 'concat', 'rrf'")

    groups = [list(group) for group in groups]
    explicit_ids = {get_embedding_id(content, keys) for group in groups for content in group}
    explicit_ids.discard(None)

    assigned_ids: Dict[int, str] = {}
    first_by_identity: Dict[str, Content] = {}
    identity_groups: List[List[str]] = []
    total = 0
    duplicates = 0

    for group in groups:
        identities: List[str] = []
        for content in group:
            total += 1
            identity = _identity_of(content, keys, assigned_ids, explicit_ids)
            if identity in first_by_identity:
                duplicates += 1
            else:
                first_by_identity[identity] = content
            identities.append(identity)
        identity_groups.append(identities)

    if fusion == "rrf":
        ordered = [identity for identity, _ in ReciprocalRankFusion(k=rrf_k).fuse(identity_groups)]
    else:
        ordered = list(first_by_identity)

    pool = [
        Candidate(content=first_by_identity[identity], identity=identity, position=position)
        for position, identity in enumerate(ordered)
    ]

    if duplicates:
        logger.debug("Dropped %d duplicate content entries from the candidate pool", duplicates)
    logger.debug(
        "Built candidate pool: %d candidates from %d entries in %d groups (fusion=%s)",
        len(pool), total, len(identity_groups), fusion
    )
    return pool


def _identity_of(
    content: Content,
    keys: EmbeddingMetadataKeys,
    assigned_ids: Dict[int, str],
    explicit_ids: Set[str]
) -> str:
    embedding_id = get_embedding_id(content, keys)
    if embedding_id is not None:
        return embedding_id

    # Same object seen again gets the same id
    key = id(content)
    if key not in assigned_ids:
        taken = explicit_ids | set(assigned_ids.values())
        n = len(assigned_ids)
        while f"{TEMP_EMBEDDING_ID_PREFIX}{n}" in taken:
            n += 1
        assigned_ids[key] = f"{TEMP_EMBEDDING_ID_PREFIX}{n}"
    return assigned_ids[key]
