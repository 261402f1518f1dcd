"""Per-session turn history stored in Supabase PostgreSQL."""
import logging
import re
from datetime import datetime
from typing import List, Optional
from supabase import create_client, Client, ClientOptions

from models.conversation import Turn
from services.errors import StoreUnavailable
from config import SUPABASE_URL, SUPABASE_KEY, STORE_TIMEOUT, CONVERSATION_TABLE

logger = logging.getLogger(__name__)

_FRACTION_RE = re.compile(r"\.(\d+)")


class ConversationStore:
    """Append-only turn log partitioned by session id."""

    def __init__(
        self,
        supabase_url: Optional[str] = SUPABASE_URL,
        supabase_key: Optional[str] = SUPABASE_KEY,
        table_name: str = CONVERSATION_TABLE,
        timeout: int = STORE_TIMEOUT,
        client: Optional[Client] = None
    ):
        if client is None:
            if not supabase_url or not supabase_key:
                raise ValueError("SUPABASE_URL and SUPABASE_KEY must be set in environment variables")
            client = create_client(
                supabase_url,
                supabase_key,
                options=ClientOptions(postgrest_client_timeout=timeout)
            )

        self.client: Client = client
        self.table_name = table_name
        logger.info(f"ConversationStore initialized with table: {table_name}")

    def recent_turns(self, session_id: str, limit: int) -> List[Turn]:
        """
        Fetch the most recent turns of a session, newest first.

        Args:
            session_id: Session partition key
            limit: Maximum number of turns

        Returns:
            Turns ordered by ``created_at`` descending

        Raises:
            StoreUnavailable: If the query fails or returns malformed rows
        """
        if limit <= 0:
            return []

        try:
            result = (
                self.client.table(self.table_name)
                .select("question, answer, created_at")
                .eq("session_id", session_id)
                .order("created_at", desc=True)
                .limit(limit)
                .execute()
            )
        except Exception as e:
            logger.error(f"Error retrieving turns for session {session_id}: {e}", exc_info=True)
            raise StoreUnavailable(
                "Conversation store query failed",
                details={"store": "conversation", "operation": "recent_turns",
                         "error_type": type(e).__name__}
            ) from e

        try:
            return [
                Turn(
                    session_id=session_id,
                    question=row["question"],
                    answer=row["answer"],
                    created_at=self._parse_timestamp(row["created_at"])
                )
                for row in (result.data or [])
            ]
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            logger.error(f"Malformed turn row for session {session_id}: {e!r}")
            raise StoreUnavailable(
                "Conversation store returned a malformed row",
                details={"store": "conversation", "operation": "recent_turns",
                         "error_type": type(e).__name__}
            ) from e

    def append_turn(
        self,
        session_id: str,
        question: str,
        answer: str,
        timestamp: datetime
    ) -> None:
        """
        Persist one question/answer exchange.

        Raises:
            StoreUnavailable: If the insert fails
        """
        try:
            self.client.table(self.table_name).insert({
                "session_id": session_id,
                "question": question,
                "answer": answer,
                "created_at": timestamp.isoformat()
            }).execute()
        except Exception as e:
            logger.error(f"Error adding turn to session {session_id}: {e}", exc_info=True)
            raise StoreUnavailable(
                "Conversation store insert failed",
                details={"store": "conversation", "operation": "append_turn",
                         "error_type": type(e).__name__}
            ) from e

        logger.info(f"Added turn to session {session_id}")

    @staticmethod
    def _parse_timestamp(timestamp_str: str) -> datetime:
        """
        Parse a timestamp returned by Supabase.

        PostgreSQL may return fractional seconds with fewer or more than six
        digits and a trailing ``Z``; both are normalized before parsing.
        """
        timestamp_str = timestamp_str.replace("Z", "+00:00")
        timestamp_str = _FRACTION_RE.sub(
            lambda m: "." + m.group(1)[:6].ljust(6, "0"), timestamp_str, count=1
        )
        return datetime.fromisoformat(timestamp_str)
