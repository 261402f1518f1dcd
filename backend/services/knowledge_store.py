"""Knowledge store over Supabase pgvector holding the FAQ question/answer pairs."""
import logging
from typing import Any, Callable, Dict, List, Optional
from supabase import create_client, Client, ClientOptions
from models.knowledge import QAPair
from services.errors import StoreUnavailable
from config import (
    SUPABASE_URL,
    SUPABASE_KEY,
    STORE_TIMEOUT,
    KNOWLEDGE_TABLE,
    KNOWLEDGE_MATCH_RPC,
)

logger = logging.getLogger(__name__)


class KnowledgeStore:
    """Vector and lexical search over the indexed FAQ entries."""

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        table_name: str = KNOWLEDGE_TABLE,
        match_function: str = KNOWLEDGE_MATCH_RPC,
        timeout: int = STORE_TIMEOUT,
        client: Optional[Client] = None
    ):
        """
        Initialize the knowledge store.

        Args:
            supabase_url: Supabase project URL
            supabase_key: Supabase API key
            table_name: Table holding question, answer and embedding columns
            match_function: RPC performing the distance-ordered vector search
            timeout: Per-query timeout in seconds
            client: Pre-built Supabase client to share with other stores

        Raises:
            ValueError: If Supabase credentials are missing
        """
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY environment variables are required")
            client = create_client(
                supabase_url,
                supabase_key,
                options=ClientOptions(postgrest_client_timeout=timeout)
            )

        self.client: Client = client
        self.table_name = table_name
        self.match_function = match_function

        logger.info(f"Initialized KnowledgeStore with table: {table_name}")

    def vector_search(
        self,
        vector: List[float],
        max_distance: float,
        limit: int
    ) -> List[QAPair]:
        """
        Return entries ordered by ascending distance to ``vector``.

        The RPC function is expected to exist in Supabase as:

            CREATE OR REPLACE FUNCTION match_qna(
              query_embedding vector(1536),
              max_distance float,
              match_count int
            )
            RETURNS TABLE (question text, answer text, distance float)
            LANGUAGE sql STABLE
            AS $$
              SELECT question, answer, embedding <-> query_embedding AS distance
              FROM qna
              WHERE embedding <-> query_embedding < max_distance
              ORDER BY embedding <-> query_embedding
              LIMIT match_count;
            $$;

        Args:
            vector: Query embedding
            max_distance: Exclusive upper bound on Euclidean distance
            limit: Maximum number of entries

        Returns:
            Matching pairs, nearest first

        Raises:
            ValueError: If vector is empty or limit is not positive
            StoreUnavailable: If the query fails or returns malformed rows
        """
        if not vector:
            raise ValueError("Query vector cannot be empty")

        if limit <= 0:
            raise ValueError("limit must be positive")

        try:
            response = self.client.rpc(
                self.match_function,
                {
                    "query_embedding": vector,
                    "max_distance": max_distance,
                    "match_count": limit
                }
            ).execute()
        except Exception as e:
            logger.error(f"Vector search failed: {e}", exc_info=True)
            raise StoreUnavailable(
                "Knowledge store vector search failed",
                details={"store": "knowledge", "operation": "vector_search",
                         "error_type": type(e).__name__}
            ) from e

        # Rows at or past max_distance are dropped even if the RPC returns them
        pairs = self._to_pairs(
            response.data or [],
            "vector_search",
            keep=lambda row: row.get("distance") is None or row["distance"] < max_distance
        )[:limit]

        logger.debug(f"Vector search returned {len(pairs)} entries")
        return pairs

    def lexical_search(self, pattern: str, limit: int) -> List[QAPair]:
        """
        Case-insensitive regular-expression match against stored questions.

        Args:
            pattern: POSIX regular expression (PostgreSQL ``~*``)
            limit: Maximum number of entries

        Returns:
            Matching pairs in store order

        Raises:
            StoreUnavailable: If the query fails or returns malformed rows
        """
        if limit <= 0:
            return []

        try:
            response = (
                self.client.table(self.table_name)
                .select("question, answer")
                .filter("question", "imatch", pattern)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            logger.error(f"Lexical search failed: {e}", exc_info=True)
            raise StoreUnavailable(
                "Knowledge store lexical search failed",
                details={"store": "knowledge", "operation": "lexical_search",
                         "error_type": type(e).__name__}
            ) from e

        pairs = self._to_pairs(response.data or [], "lexical_search")
        logger.debug(f"Lexical search returned {len(pairs)} entries for pattern {pattern!r}")
        return pairs

    @staticmethod
    def _to_pairs(
        rows: List[Dict[str, Any]],
        operation: str,
        keep: Callable[[Dict[str, Any]], bool] = lambda row: True
    ) -> List[QAPair]:
        """Map result rows to pairs; a row missing its columns is a store failure."""
        try:
            return [
                QAPair(question=row["question"], answer=row["answer"])
                for row in rows
                if keep(row)
            ]
        except (KeyError, TypeError, AttributeError) as e:
            logger.error(f"Malformed row returned by {operation}: {e!r}")
            raise StoreUnavailable(
                "Knowledge store returned a malformed row",
                details={"store": "knowledge", "operation": operation,
                         "error_type": type(e).__name__}
            ) from e
