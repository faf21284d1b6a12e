"""Tests for reserved metadata keys and the stored-embedding codec."""

import numpy as np
import pytest

from content import (
    DEFAULT_METADATA_KEYS,
    Content,
    EmbeddingMetadataKeys,
    Query,
    base64_to_embedding,
    content_from,
    embedding_to_base64,
    enrich_content_with_embeddings,
    extract_document_embedding,
    extract_query_embedding,
    get_embedding_id,
    has_document_embedding,
    has_query_embedding,
)


class TestCodec:
    """Tests for base64 float32 encoding."""

    def test_known_encoding(self):
        """1.0 as big-endian float32 is 3F 80 00 00."""
        assert embedding_to_base64([1.0]) == "P4AAAA=="

    def test_decode_known_value(self):
        vector = base64_to_embedding("P4AAAA==")
        assert vector.dtype == np.float64
        assert vector.tolist() == [1.0]

    def test_decode_preserves_float32_precision(self):
        values = [0.1, -2.5, 3.14159]
        decoded = base64_to_embedding(embedding_to_base64(values))
        assert decoded.tolist() == pytest.approx(values, abs=1e-6)

    def test_decode_rejects_partial_floats(self):
        with pytest.raises(ValueError, match="multiple of 4"):
            base64_to_embedding("AAA=")

    def test_decode_rejects_invalid_base64(self):
        with pytest.raises(ValueError):
            base64_to_embedding("not base64!")


class TestExtract:
    """Tests for reading embeddings and ids from content metadata."""

    def test_missing_embeddings(self):
        content = Content(text="plain")

        assert extract_document_embedding(content) is None
        assert extract_query_embedding(content) is None
        assert not has_document_embedding(content)
        assert not has_query_embedding(content)

    def test_blank_string_counts_as_missing(self):
        content = content_from("blank", embedding="   ", queryEmbedding="")

        assert not has_document_embedding(content)
        assert not has_query_embedding(content)

    def test_empty_list_counts_as_missing(self):
        assert not has_document_embedding(content_from("empty", embedding=[]))

    def test_list_and_array_values_accepted(self):
        content = content_from("raw", embedding=[0.5, 0.5], queryEmbedding=np.array([1.0, 0.0]))

        assert extract_document_embedding(content).tolist() == [0.5, 0.5]
        assert extract_query_embedding(content).tolist() == [1.0, 0.0]

    def test_base64_value_decoded(self):
        content = content_from("encoded", embedding=embedding_to_base64([0.25, 0.75]))
        assert extract_document_embedding(content).tolist() == [0.25, 0.75]

    def test_custom_keys(self):
        keys = EmbeddingMetadataKeys(document_embedding="vec", query_embedding="qvec", embedding_id="uid")
        content = content_from("custom", vec=[1.0, 2.0], qvec=[3.0, 4.0], uid="chunk-7")

        assert extract_document_embedding(content, keys).tolist() == [1.0, 2.0]
        assert extract_query_embedding(content, keys).tolist() == [3.0, 4.0]
        assert get_embedding_id(content, keys) == "chunk-7"
        assert extract_document_embedding(content, DEFAULT_METADATA_KEYS) is None

    def test_embedding_id(self):
        assert get_embedding_id(content_from("a", embedding_id="chunk-1")) == "chunk-1"
        assert get_embedding_id(content_from("b", embedding_id="  ")) is None
        assert get_embedding_id(content_from("c", embedding_id=42)) is None
        assert get_embedding_id(Content(text="d")) is None


class TestEnrich:
    """Tests for enrich_content_with_embeddings."""

    def test_stores_both_embeddings(self):
        original = content_from("fragment", source="wiki")
        enriched = enrich_content_with_embeddings(
            original, query_embedding=[1.0, 0.0], document_embedding=[0.6, 0.8]
        )

        assert enriched is not original
        assert enriched.text == "fragment"
        assert enriched.metadata["source"] == "wiki"
        assert isinstance(enriched.metadata["embedding"], str)
        assert extract_document_embedding(enriched).tolist() == pytest.approx([0.6, 0.8], abs=1e-6)
        assert extract_query_embedding(enriched).tolist() == pytest.approx([1.0, 0.0], abs=1e-6)

    def test_original_left_untouched(self):
        original = content_from("fragment")
        enrich_content_with_embeddings(original, document_embedding=[1.0])

        assert dict(original.metadata) == {}

    def test_none_embeddings_not_written(self):
        enriched = enrich_content_with_embeddings(content_from("x"), document_embedding=[1.0])

        assert has_document_embedding(enriched)
        assert "queryEmbedding" not in enriched.metadata

    def test_base64_strings_stored_as_is(self):
        encoded = embedding_to_base64([0.5])
        enriched = enrich_content_with_embeddings(content_from("x"), query_embedding=encoded)
        assert enriched.metadata["queryEmbedding"] == encoded


class TestTypes:
    """Tests for Query and Content value semantics."""

    def test_query_usable_as_key(self):
        request = {Query("what is mmr"): []}
        assert Query("what is mmr") in request

    def test_query_with_metadata_is_hashable(self):
        query = Query("q", metadata={"user": "u1"})
        assert hash(query) == hash(Query("q"))

    def test_content_equality_is_identity(self):
        first = Content(text="same")
        second = Content(text="same")

        assert first == first
        assert first != second

    def test_content_repr_truncates(self):
        content = Content(text="x" * 100, metadata={"b": 1, "a": 2})
        text = repr(content)

        assert "..." in text
        assert "['a', 'b']" in text
