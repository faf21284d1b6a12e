"""Query and content value types consumed by the MMR aggregator.

Both types are produced upstream (by retrievers) and treated as read-only
inputs: the aggregator never mutates them and returns the very same
``Content`` objects it was given.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Sequence


@dataclass(frozen=True)
class Query:
    """A user query.

    Queries are used as keys of the aggregation request, so they hash on
    their text only. Equality still takes the metadata into account.

    Attributes:
        text: The query text that gets embedded
        metadata: Optional opaque metadata (chat memory id, user, ...)
    """
    text: str
    metadata: Mapping[str, Any] = field(default_factory=dict, hash=False)


@dataclass(frozen=True, eq=False)
class Content:
    """A retrieved content fragment.

    Equality is identity: two fragments with the same text are still two
    candidates unless they carry the same embedding id.

    Attributes:
        text: Fragment text
        metadata: Opaque key/value metadata. Pre-computed embeddings and the
            embedding id live here under reserved keys
            (see ``content.metadata``).
    """
    text: str
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def __repr__(self) -> str:
        preview = self.text if len(self.text) <= 40 else self.text[:37] + "..."
        return f"Content(text={preview!r}, metadata_keys={sorted(self.metadata)})"


# Query -> one group of contents per retriever that answered the query
AggregationRequest = Mapping[Query, Sequence[Sequence[Content]]]


def content_from(text: str, **metadata: Any) -> Content:
    """Shortcut for ``Content(text, metadata)`` with keyword metadata."""
    data: Dict[str, Any] = dict(metadata)
    return Content(text=text, metadata=data)
