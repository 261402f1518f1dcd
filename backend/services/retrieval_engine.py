"""Retrieval engine: vector search over the FAQ with a lexical fallback."""
import logging
import re
from typing import List, Optional
from models.knowledge import QAPair, RetrievalResult
from services.errors import RetrievalFailed, StoreUnavailable
from services.interfaces import KnowledgeSearch
from config import RETRIEVAL_LIMIT, MAX_VECTOR_DISTANCE

logger = logging.getLogger(__name__)

# POSIX ERE metacharacters understood by PostgreSQL's ~* operator
_REGEX_META_RE = re.compile(r"([.^$*+?()\[\]{}|\\])")


class RetrievalEngine:
    """Hybrid retrieval: distance-bounded vector search, topped up lexically."""

    def __init__(
        self,
        knowledge_store: KnowledgeSearch,
        max_distance: float = MAX_VECTOR_DISTANCE
    ):
        """
        Initialize the retrieval engine.

        Args:
            knowledge_store: Store offering vector_search and lexical_search
            max_distance: Exclusive distance threshold for vector matches
        """
        self.knowledge_store = knowledge_store
        self.max_distance = max_distance
        logger.info("Initialized RetrievalEngine")

    def retrieve(
        self,
        query_vector: List[float],
        query_text: str,
        limit: int = RETRIEVAL_LIMIT
    ) -> RetrievalResult:
        """
        Retrieve up to ``limit`` FAQ entries for a query.

        Strategy:
        1. Vector search: entries nearer than ``max_distance``, nearest first
        2. If that returns fewer than ``limit`` entries, drop the last word of
           the query and match the remaining phrase case-insensitively against
           stored questions, appending up to ``limit - found`` entries
        3. Single-word queries never fall back

        Dropping the last word loosens an overly specific question. It misses
        queries whose key term is the last word.

        Args:
            query_vector: Embedding of the query
            query_text: Raw query text, used for the lexical pass
            limit: Maximum number of entries (default: 5)

        Returns:
            Vector results followed by lexical results; duplicates are possible

        Raises:
            RetrievalFailed: If either pass fails. Nothing is returned from a
                vector pass whose fallback failed.
        """
        try:
            results: List[QAPair] = list(
                self.knowledge_store.vector_search(query_vector, self.max_distance, limit)
            )[:limit]
            logger.info(f"Vector search found {len(results)} entries (limit {limit})")

            if len(results) < limit:
                phrase = self.fallback_phrase(query_text)
                if phrase is None:
                    logger.debug("Single-word query, skipping lexical fallback")
                else:
                    remaining = limit - len(results)
                    logger.info(
                        f"Running lexical fallback with phrase {phrase!r} for up to {remaining} entries"
                    )
                    extra = self.knowledge_store.lexical_search(
                        self.fallback_pattern(phrase), remaining
                    )
                    results.extend(list(extra)[:remaining])

        except StoreUnavailable as e:
            logger.error(f"Retrieval aborted: {e.message}")
            raise RetrievalFailed(
                f"Failed to retrieve entries for query: {e.message}",
                details=dict(e.details)
            ) from e

        logger.debug(f"Retrieved {len(results)} entries in total")
        return results

    @staticmethod
    def fallback_phrase(query_text: str) -> Optional[str]:
        """
        Phrase used by the lexical pass, or None when there is none.

        The query is split on whitespace and its last word dropped; queries
        of a single word have no fallback.
        """
        words = query_text.split()
        if len(words) <= 1:
            return None
        return " ".join(words[:-1])

    @staticmethod
    def fallback_pattern(phrase: str) -> str:
        """
        Case-insensitive regex matching ``phrase`` anywhere in a question.

        Metacharacters in the phrase are backslash-escaped so they match
        literally. Whitespace is left as is.
        """
        escaped = _REGEX_META_RE.sub(r"\\\1", phrase)
        return f".*{escaped}.*"
