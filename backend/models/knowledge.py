"""Knowledge base data models."""
from dataclasses import dataclass
from typing import List


@dataclass(frozen=True)
class QAPair:
    """A question/answer pair as it flows through retrieval, history and prompts."""
    question: str
    answer: str


# Ordered, at most RETRIEVAL_LIMIT entries, duplicates possible
RetrievalResult = List[QAPair]
