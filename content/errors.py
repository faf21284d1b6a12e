"""Error types raised by the MMR aggregator.

Configuration errors are raised before any embedding provider call; state
errors are raised while an embedding strategy resolves vectors. Neither is
retried, and no partial result is ever returned.
"""


class AggregationError(Exception):
    """Base class for aggregation failures."""


class ConfigurationError(AggregationError, ValueError):
    """Invalid aggregator options or an ambiguous aggregation request."""


class EmbeddingStateError(AggregationError, RuntimeError):
    """An embedding strategy could not resolve the vectors it needs."""
