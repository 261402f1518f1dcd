"""Unit tests for KnowledgeStore class."""
import sys
from pathlib import Path

# Add backend to path
sys.path.insert(0, str(Path(__file__).parent.parent / "backend"))

import pytest
from unittest.mock import patch, MagicMock
from models.knowledge import QAPair
from services.knowledge_store import KnowledgeStore
from services.errors import StoreUnavailable


@pytest.fixture
def mock_client():
    return MagicMock()


@pytest.fixture
def store(mock_client):
    return KnowledgeStore(client=mock_client)


class TestKnowledgeStore:
    """Test suite for KnowledgeStore."""

    @patch('services.knowledge_store.create_client')
    def test_initialization_success(self, mock_create_client):
        """Test successful initialization with credentials."""
        mock_create_client.return_value = MagicMock()

        store = KnowledgeStore(
            supabase_url="https://test.supabase.co",
            supabase_key="test_key"
        )

        assert store.table_name == "qna"
        assert store.match_function == "match_qna"
        args = mock_create_client.call_args
        assert args.args == ("https://test.supabase.co", "test_key")

    def test_initialization_without_credentials(self):
        """Test initialization fails without Supabase credentials."""
        with pytest.raises(ValueError, match="SUPABASE_URL and SUPABASE_KEY"):
            KnowledgeStore(supabase_url=None, supabase_key="test_key")

        with pytest.raises(ValueError, match="SUPABASE_URL and SUPABASE_KEY"):
            KnowledgeStore(supabase_url="https://test.supabase.co", supabase_key=None)

    def test_vector_search_calls_rpc(self, store, mock_client):
        mock_client.rpc.return_value.execute.return_value.data = [
            {"question": "반품 신청 방법", "answer": "판매자센터에서 신청합니다.", "distance": 0.2},
            {"question": "반품 배송비", "answer": "구매자 부담입니다.", "distance": 0.6},
        ]

        result = store.vector_search([0.1, 0.2], max_distance=1.0, limit=5)

        assert result == [
            QAPair("반품 신청 방법", "판매자센터에서 신청합니다."),
            QAPair("반품 배송비", "구매자 부담입니다."),
        ]
        mock_client.rpc.assert_called_once_with(
            "match_qna",
            {"query_embedding": [0.1, 0.2], "max_distance": 1.0, "match_count": 5}
        )

    def test_vector_search_drops_rows_at_threshold(self, store, mock_client):
        mock_client.rpc.return_value.execute.return_value.data = [
            {"question": "q1", "answer": "a1", "distance": 0.99},
            {"question": "q2", "answer": "a2", "distance": 1.0},
            {"question": "q3", "answer": "a3", "distance": 1.7},
        ]

        result = store.vector_search([0.1], max_distance=1.0, limit=5)

        assert [pair.question for pair in result] == ["q1"]

    def test_vector_search_caps_at_limit(self, store, mock_client):
        mock_client.rpc.return_value.execute.return_value.data = [
            {"question": f"q{i}", "answer": f"a{i}", "distance": 0.1 * i} for i in range(8)
        ]

        result = store.vector_search([0.1], max_distance=1.0, limit=5)

        assert len(result) == 5
        assert result[0].question == "q0"

    def test_vector_search_empty_result(self, store, mock_client):
        mock_client.rpc.return_value.execute.return_value.data = None

        assert store.vector_search([0.1], max_distance=1.0, limit=5) == []

    def test_vector_search_rejects_bad_arguments(self, store):
        with pytest.raises(ValueError, match="Query vector cannot be empty"):
            store.vector_search([], max_distance=1.0, limit=5)

        with pytest.raises(ValueError, match="limit must be positive"):
            store.vector_search([0.1], max_distance=1.0, limit=0)

    def test_vector_search_error(self, store, mock_client):
        mock_client.rpc.return_value.execute.side_effect = Exception("connection reset")

        with pytest.raises(StoreUnavailable) as exc_info:
            store.vector_search([0.1], max_distance=1.0, limit=5)

        assert exc_info.value.details["operation"] == "vector_search"

    def test_lexical_search_uses_case_insensitive_regex(self, store, mock_client):
        query = mock_client.table.return_value.select.return_value.filter.return_value.limit.return_value
        query.execute.return_value.data = [{"question": "반품은 어떻게 신청하나요", "answer": "a"}]

        result = store.lexical_search(".*반품은 어떻게.*", 3)

        assert result == [QAPair("반품은 어떻게 신청하나요", "a")]
        mock_client.table.assert_called_once_with("qna")
        mock_client.table.return_value.select.assert_called_once_with("question, answer")
        mock_client.table.return_value.select.return_value.filter.assert_called_once_with(
            "question", "imatch", ".*반품은 어떻게.*"
        )
        mock_client.table.return_value.select.return_value.filter.return_value.limit.assert_called_once_with(3)

    def test_lexical_search_non_positive_limit(self, store, mock_client):
        assert store.lexical_search(".*x.*", 0) == []
        mock_client.table.assert_not_called()

    def test_lexical_search_error(self, store, mock_client):
        mock_client.table.side_effect = Exception("timeout")

        with pytest.raises(StoreUnavailable) as exc_info:
            store.lexical_search(".*x.*", 3)

        assert exc_info.value.details["operation"] == "lexical_search"

    @pytest.mark.parametrize("row", [
        {"answer": "a", "distance": 0.2},
        {"question": "q", "distance": 0.2},
        None,
    ])
    def test_vector_search_malformed_row(self, store, mock_client, row):
        mock_client.rpc.return_value.execute.return_value.data = [row]

        with pytest.raises(StoreUnavailable, match="malformed row") as exc_info:
            store.vector_search([0.1], max_distance=1.0, limit=5)

        assert exc_info.value.details["operation"] == "vector_search"

    def test_lexical_search_malformed_row(self, store, mock_client):
        query = mock_client.table.return_value.select.return_value.filter.return_value.limit.return_value
        query.execute.return_value.data = [{"question": "반품은 어떻게 신청하나요"}]

        with pytest.raises(StoreUnavailable, match="malformed row") as exc_info:
            store.lexical_search(".*반품은 어떻게.*", 3)

        assert exc_info.value.details["operation"] == "lexical_search"
