"""History assembler: the bounded recent-turn window of a session."""
import logging
from models.conversation import HistoryWindow
from services.interfaces import TurnStore
from config import HISTORY_LIMIT

logger = logging.getLogger(__name__)


class HistoryAssembler:
    """Fetches recent turns newest-first and presents them oldest-first."""

    def __init__(self, conversation_store: TurnStore):
        self.conversation_store = conversation_store

    def fetch_history(self, session_id: str, limit: int = HISTORY_LIMIT) -> HistoryWindow:
        """
        Return at most ``limit`` most recent turns, chronologically ascending.

        An unknown or new session yields an empty window. Store errors
        (StoreUnavailable) propagate unchanged.
        """
        if limit <= 0:
            return []

        turns = self.conversation_store.recent_turns(session_id, limit)

        # Keep the newest `limit` whatever order the store used, then present oldest first
        newest = sorted(turns, key=lambda turn: turn.created_at, reverse=True)[:limit]
        window = sorted(newest, key=lambda turn: turn.created_at)

        logger.debug(f"History for session {session_id}: {len(window)} turns")
        return window
