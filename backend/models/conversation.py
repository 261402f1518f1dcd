"""Conversation data models."""
from dataclasses import dataclass
from datetime import datetime
from typing import List

from models.knowledge import QAPair


@dataclass(frozen=True)
class Turn:
    """One persisted question/answer exchange of a session."""
    session_id: str
    question: str
    answer: str
    created_at: datetime

    def as_pair(self) -> QAPair:
        return QAPair(question=self.question, answer=self.answer)


@dataclass(frozen=True)
class RequestContext:
    """Per-request state handed to every pipeline stage."""
    session_id: str
    query: str


# Chronologically ascending, at most HISTORY_LIMIT turns
HistoryWindow = List[Turn]
