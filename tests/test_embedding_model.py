"""Unit tests for EmbeddingModel class."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import Mock, patch, MagicMock
import httpx
from services.embedding_model import EmbeddingModel
from services.errors import ProviderAuthError, ProviderResponseInvalid, ProviderUnavailable


def _mock_client(mock_client_class, response=None, side_effect=None):
    mock_client = MagicMock()
    post = mock_client.__enter__.return_value.post
    if side_effect is not None:
        post.side_effect = side_effect
    else:
        post.return_value = response
    mock_client_class.return_value = mock_client
    return post


def _response(status_code=200, body=None, text=""):
    response = Mock()
    response.status_code = status_code
    response.json.return_value = body
    response.text = text
    return response


class TestEmbeddingModel:
    """Test suite for EmbeddingModel."""

    def test_initialization_success(self):
        """Test successful initialization with API key."""
        model = EmbeddingModel(api_key="test_key")
        assert model.api_key == "test_key"
        assert model.model_name == "text-embedding-3-small"
        assert model.dimension == 1536

    def test_initialization_without_api_key(self):
        """Test initialization fails without API key."""
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            EmbeddingModel(api_key=None)

    def test_embed_text_empty_string(self):
        """Test embed_text raises error for empty string."""
        model = EmbeddingModel(api_key="test_key")

        with pytest.raises(ValueError, match="Text cannot be empty"):
            model.embed_text("")

        with pytest.raises(ValueError, match="Text cannot be empty"):
            model.embed_text("   ")

    @patch('httpx.Client')
    def test_embed_text_success(self, mock_client_class):
        """Test successful embedding request and payload."""
        post = _mock_client(
            mock_client_class,
            _response(body={"data": [{"embedding": [0.1, 0.2, 0.3]}]})
        )

        model = EmbeddingModel(api_key="test_key", dimension=3)
        result = model.embed_text("반품은 어떻게 하나요")

        assert result == [0.1, 0.2, 0.3]
        kwargs = post.call_args.kwargs
        assert kwargs["json"] == {"model": "text-embedding-3-small", "input": "반품은 어떻게 하나요"}
        assert kwargs["headers"]["Authorization"] == "Bearer test_key"

    @patch('httpx.Client')
    def test_integer_components_are_converted(self, mock_client_class):
        _mock_client(mock_client_class, _response(body={"data": [{"embedding": [1, 0, -1]}]}))

        result = EmbeddingModel(api_key="test_key", dimension=3).embed_text("query")

        assert result == [1.0, 0.0, -1.0]
        assert all(isinstance(value, float) for value in result)

    @patch('httpx.Client')
    def test_no_retry_on_failure(self, mock_client_class):
        """A single failing call is reported immediately."""
        post = _mock_client(mock_client_class, _response(status_code=503))

        model = EmbeddingModel(api_key="test_key")
        with pytest.raises(ProviderUnavailable):
            model.embed_text("test text")

        assert post.call_count == 1

    @pytest.mark.parametrize("status", [401, 403])
    @patch('httpx.Client')
    def test_auth_errors(self, mock_client_class, status):
        _mock_client(mock_client_class, _response(status_code=status, text="invalid key sk-..."))

        with pytest.raises(ProviderAuthError) as exc_info:
            EmbeddingModel(api_key="test_key").embed_text("test text")

        assert "sk-" not in exc_info.value.message

    @pytest.mark.parametrize("status", [429, 500, 502])
    @patch('httpx.Client')
    def test_rate_limit_and_server_errors_are_unavailable(self, mock_client_class, status):
        _mock_client(mock_client_class, _response(status_code=status))

        with pytest.raises(ProviderUnavailable, match=str(status)):
            EmbeddingModel(api_key="test_key").embed_text("test text")

    @patch('httpx.Client')
    def test_other_status_is_invalid_response(self, mock_client_class):
        _mock_client(mock_client_class, _response(status_code=400, text="bad request body"))

        with pytest.raises(ProviderResponseInvalid) as exc_info:
            EmbeddingModel(api_key="test_key").embed_text("test text")

        assert "bad request body" not in exc_info.value.message

    @patch('httpx.Client')
    def test_timeout(self, mock_client_class):
        """Timeouts are reported as the provider being unavailable."""
        _mock_client(mock_client_class, side_effect=httpx.TimeoutException("Request timeout"))

        model = EmbeddingModel(api_key="test_key", timeout=1.0)
        with pytest.raises(ProviderUnavailable, match="timed out"):
            model.embed_text("test text")

    @patch('httpx.Client')
    def test_network_error(self, mock_client_class):
        _mock_client(mock_client_class, side_effect=httpx.ConnectError("Connection failed"))

        with pytest.raises(ProviderUnavailable, match="unreachable"):
            EmbeddingModel(api_key="test_key").embed_text("test text")

    @pytest.mark.parametrize("body", [
        {"data": []},
        {"data": [{"embedding": []}]},
        {"data": [{"embedding": ["a", "b"]}]},
        {"data": [{}]},
        {"unexpected": True},
        [],
    ])
    @patch('httpx.Client')
    def test_malformed_payloads(self, mock_client_class, body):
        _mock_client(mock_client_class, _response(body=body))

        with pytest.raises(ProviderResponseInvalid):
            EmbeddingModel(api_key="test_key").embed_text("test text")

    @patch('httpx.Client')
    def test_wrong_dimension_is_invalid_response(self, mock_client_class):
        """A vector that does not match the stored embeddings never reaches retrieval."""
        _mock_client(mock_client_class, _response(body={"data": [{"embedding": [0.1, 0.2, 0.3]}]}))

        with pytest.raises(ProviderResponseInvalid, match="expected 1536") as exc_info:
            EmbeddingModel(api_key="test_key").embed_text("반품은 어떻게 하나요")

        assert exc_info.value.details["dimension"] == 3
        assert exc_info.value.details["expected_dimension"] == 1536

    @patch('httpx.Client')
    def test_full_dimension_vector(self, mock_client_class):
        _mock_client(mock_client_class, _response(body={"data": [{"embedding": [0.01] * 1536}]}))

        result = EmbeddingModel(api_key="test_key").embed_text("반품은 어떻게 하나요")

        assert len(result) == 1536

    @patch('httpx.Client')
    def test_non_json_body(self, mock_client_class):
        response = _response()
        response.json.side_effect = ValueError("Expecting value")
        _mock_client(mock_client_class, response)

        with pytest.raises(ProviderResponseInvalid, match="not valid JSON"):
            EmbeddingModel(api_key="test_key").embed_text("test text")
