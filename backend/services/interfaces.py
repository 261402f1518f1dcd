"""
Contracts for every external collaborator of the pipeline.

Each external call sits behind one of these protocols so a wrapper (for
example a bounded-retry decorator) can be slotted in without touching the
pipeline itself.
"""
from datetime import datetime
from typing import List, Protocol, runtime_checkable

from models.api import GenerationReply
from models.conversation import Turn
from models.knowledge import QAPair
from services.prompt_composer import GenerationRequest


@runtime_checkable
class Embedder(Protocol):
    def embed_text(self, text: str) -> List[float]:
        ...


@runtime_checkable
class KnowledgeSearch(Protocol):
    def vector_search(
        self, vector: List[float], max_distance: float, limit: int
    ) -> List[QAPair]:
        ...

    def lexical_search(self, pattern: str, limit: int) -> List[QAPair]:
        ...


@runtime_checkable
class TurnStore(Protocol):
    def recent_turns(self, session_id: str, limit: int) -> List[Turn]:
        ...

    def append_turn(
        self, session_id: str, question: str, answer: str, timestamp: datetime
    ) -> None:
        ...


@runtime_checkable
class Generator(Protocol):
    def generate(self, request: GenerationRequest) -> GenerationReply:
        ...
