"""Tests for the Ollama embedding provider."""

from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from content import EmbeddingStateError
from embeddings import EmbeddingProvider, OllamaEmbeddingProvider
from mmr_config import OllamaEmbeddingConfig


def make_response(payload):
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status = Mock()
    return response


def fake_embeddings(url, json):
    """Return one 2-d embedding per input text: [len(text), index]."""
    return make_response({
        "embeddings": [[float(len(text)), float(i)] for i, text in enumerate(json["input"])]
    })


def sync_client(mock_client_class, mock_client):
    mock_client_class.return_value.__enter__ = Mock(return_value=mock_client)
    mock_client_class.return_value.__exit__ = Mock(return_value=False)


def async_client(mock_client_class, mock_client):
    mock_client_class.return_value.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client_class.return_value.__aexit__ = AsyncMock(return_value=False)


class TestOllamaEmbeddingProviderInit:
    """Test cases for provider construction."""

    def test_init_default(self):
        """Test default initialization."""
        provider = OllamaEmbeddingProvider()

        assert provider.model_name == "nomic-embed-text"
        assert provider.url == "http://localhost:11434"
        assert provider.api_url == "http://localhost:11434/api/embed"
        assert provider.max_concurrent == 10
        assert provider.batch_size == 32
        assert provider.timeout == 120.0

    def test_init_strips_trailing_slash(self):
        provider = OllamaEmbeddingProvider(url="http://ollama:11434/")
        assert provider.api_url == "http://ollama:11434/api/embed"

    def test_from_config(self):
        config = OllamaEmbeddingConfig(
            model_name="mxbai-embed-large",
            base_url="http://ollama:11434",
            max_concurrent=3,
            batch_size=8,
            timeout=30.0
        )
        provider = OllamaEmbeddingProvider.from_config(config)

        assert provider.model_name == "mxbai-embed-large"
        assert provider.url == "http://ollama:11434"
        assert provider.max_concurrent == 3
        assert provider.batch_size == 8
        assert provider.timeout == 30.0

    def test_init_empty_model_raises(self):
        """Test that empty model name raises ValueError."""
        with pytest.raises(ValueError, match="model_name cannot be empty"):
            OllamaEmbeddingProvider(model_name="")

        with pytest.raises(ValueError, match="model_name cannot be empty"):
            OllamaEmbeddingProvider(model_name="   ")

    def test_init_invalid_sizes_raise(self):
        with pytest.raises(ValueError, match="batch_size"):
            OllamaEmbeddingProvider(batch_size=0)

        with pytest.raises(ValueError, match="max_concurrent"):
            OllamaEmbeddingProvider(max_concurrent=0)

    def test_satisfies_provider_protocol(self):
        assert isinstance(OllamaEmbeddingProvider(), EmbeddingProvider)


class TestEmbedBatch:
    """Test cases for embedding requests."""

    @patch("httpx.AsyncClient")
    def test_embed_batch_splits_into_chunks(self, mock_client_class):
        """Texts are sent in batch_size chunks and merged in input order."""
        mock_client = Mock()
        mock_client.post = AsyncMock(side_effect=fake_embeddings)
        async_client(mock_client_class, mock_client)

        provider = OllamaEmbeddingProvider(batch_size=2)
        result = provider.embed_batch(["a", "bb", "ccc", "dddd", "eeeee"])

        assert mock_client.post.call_count == 3
        assert [e[0] for e in result] == [1.0, 2.0, 3.0, 4.0, 5.0]

        sent = [c.kwargs["json"] for c in mock_client.post.call_args_list]
        assert all(body["model"] == "nomic-embed-text" for body in sent)
        assert sorted(len(body["input"]) for body in sent) == [1, 2, 2]
        assert mock_client.post.call_args_list[0].args[0] == "http://localhost:11434/api/embed"

    def test_embed_batch_empty(self):
        """Empty input returns no embeddings without any request."""
        with patch("httpx.AsyncClient") as mock_client_class:
            assert OllamaEmbeddingProvider().embed_batch([]) == []
            mock_client_class.assert_not_called()

    @patch("httpx.AsyncClient")
    def test_embed_single_text(self, mock_client_class):
        mock_client = Mock()
        mock_client.post = AsyncMock(return_value=make_response({"embeddings": [[0.1, 0.2, 0.3]]}))
        async_client(mock_client_class, mock_client)

        assert OllamaEmbeddingProvider().embed("what is mmr") == [0.1, 0.2, 0.3]
        assert mock_client.post.call_args.kwargs["json"]["input"] == ["what is mmr"]

    @patch("httpx.AsyncClient")
    def test_http_error_propagates(self, mock_client_class):
        """Failures are raised, never replaced by placeholder vectors."""
        mock_client = Mock()
        mock_client.post = AsyncMock(side_effect=httpx.ConnectError("Connection refused"))
        async_client(mock_client_class, mock_client)

        with pytest.raises(httpx.ConnectError):
            OllamaEmbeddingProvider().embed_batch(["a", "b"])

    @patch("httpx.AsyncClient")
    def test_wrong_vector_count_raises(self, mock_client_class):
        mock_client = Mock()
        mock_client.post = AsyncMock(return_value=make_response({"embeddings": [[1.0]]}))
        async_client(mock_client_class, mock_client)

        with pytest.raises(EmbeddingStateError, match="returned 1 embeddings for 2 texts"):
            OllamaEmbeddingProvider().embed_batch(["a", "b"])

    @patch("httpx.AsyncClient")
    def test_call_delegates_to_embed_batch(self, mock_client_class):
        mock_client = Mock()
        mock_client.post = AsyncMock(side_effect=fake_embeddings)
        async_client(mock_client_class, mock_client)

        result = OllamaEmbeddingProvider()(["doc one", "doc two!"])

        assert len(result) == 2
        assert [float(e[0]) for e in result] == [7.0, 8.0]


class TestRunningEventLoop:
    """Test cases for calls made from inside an event loop."""

    @pytest.mark.asyncio
    @patch("httpx.Client")
    async def test_sync_fallback_inside_event_loop(self, mock_client_class):
        """embed_batch uses the synchronous client when a loop is running."""
        mock_client = Mock()
        mock_client.post.side_effect = fake_embeddings
        sync_client(mock_client_class, mock_client)

        provider = OllamaEmbeddingProvider(batch_size=2)
        result = provider.embed_batch(["a", "bb", "ccc"])

        assert mock_client.post.call_count == 2
        assert [e[0] for e in result] == [1.0, 2.0, 3.0]

    @pytest.mark.asyncio
    async def test_embed_async_with_semaphore(self):
        """The async path can be awaited directly."""
        provider = OllamaEmbeddingProvider(batch_size=1, max_concurrent=2)

        with patch("httpx.AsyncClient") as mock_client_class:
            mock_client = Mock()
            mock_client.post = AsyncMock(side_effect=fake_embeddings)
            async_client(mock_client_class, mock_client)

            result = await provider._embed_async(["x", "yy", "zzz"])

        assert mock_client.post.call_count == 3
        assert [e[0] for e in result] == [1.0, 2.0, 3.0]


class TestParseEmbeddings:
    """Test cases for Ollama response parsing."""

    def test_parse_batch_response(self):
        data = {"embeddings": [[1, 2], [3, 4]]}
        assert OllamaEmbeddingProvider._parse_embeddings(data, 2) == [[1.0, 2.0], [3.0, 4.0]]

    def test_parse_flat_embeddings(self):
        """A single flat vector under "embeddings" counts as one embedding."""
        assert OllamaEmbeddingProvider._parse_embeddings({"embeddings": [0.5, 0.25]}, 1) == [[0.5, 0.25]]

    def test_parse_legacy_response(self):
        assert OllamaEmbeddingProvider._parse_embeddings({"embedding": [0.5]}, 1) == [[0.5]]

    def test_parse_missing_embeddings_raises(self):
        with pytest.raises(EmbeddingStateError, match="returned 0 embeddings for 1 texts"):
            OllamaEmbeddingProvider._parse_embeddings({}, 1)


class TestCheckModelAvailable:
    """Test cases for model availability checks."""

    @patch("httpx.Client")
    def test_check_model_available_success(self, mock_client_class):
        """Test model availability check when model exists."""
        mock_client = Mock()
        mock_client.get.return_value = make_response({
            "models": [
                {"name": "qwen3:0.6b"},
                {"name": "nomic-embed-text:latest"}
            ]
        })
        sync_client(mock_client_class, mock_client)

        is_available, error_msg = OllamaEmbeddingProvider().check_model_available()

        assert is_available is True
        assert error_msg is None
        mock_client.get.assert_called_once_with("http://localhost:11434/api/tags")

    @patch("httpx.Client")
    def test_check_model_available_not_found(self, mock_client_class):
        """Test model availability check when model doesn't exist."""
        mock_client = Mock()
        mock_client.get.return_value = make_response({"models": [{"name": "qwen3:0.6b"}]})
        sync_client(mock_client_class, mock_client)

        is_available, error_msg = OllamaEmbeddingProvider().check_model_available()

        assert is_available is False
        assert "not found" in error_msg

    @patch("httpx.Client")
    def test_check_model_available_connection_error(self, mock_client_class):
        """Test model availability check with connection error."""
        mock_client = Mock()
        mock_client.get.side_effect = httpx.ConnectError("Connection refused")
        sync_client(mock_client_class, mock_client)

        is_available, error_msg = OllamaEmbeddingProvider().check_model_available()

        assert is_available is False
        assert "Failed to check" in error_msg
