"""Prompt composer: merges retrieved FAQ entries, history and the query."""
import json
import logging
from dataclasses import asdict, dataclass, replace
from typing import Dict, List, Optional, Sequence

import tiktoken

from models.knowledge import QAPair
from models.conversation import Turn
from config import MAX_PROMPT_TOKENS

logger = logging.getLogger(__name__)

PROMPT_ENCODING = "o200k_base"

REPLY_FORMAT = (
    '{"answer": "<answer to the question, in Korean>", '
    '"recommend1": "<follow-up question the user may ask next>", '
    '"recommend2": "<another follow-up question>"}'
)

SYSTEM_PROMPT = f"""You are the FAQ chatbot for Naver Smart Store sellers.

Your job:
1. Understand the user's question (user_query).
2. Answer it accurately from the supplied data (relevant_information and user_context).

Rules:
1. When the question relates to relevant_information, base the answer on that data.
2. When the data does not contain the answer directly, combine and compare the entries to give the best answer you can.
3. When the question is clearly unrelated to Naver Smart Store, answer exactly:
   "저는 네이버 스마트스토어 FAQ를 위한 챗봇입니다. 관련된 질문을 부탁드립니다."
4. Prefer entries from relevant_information or user_context that share words or meaning with the question.
5. recommend1 and recommend2 are short questions the user is likely to ask after reading the answer.

Always answer in Korean and reply with exactly one JSON object of this shape:
{REPLY_FORMAT}"""


@dataclass(frozen=True)
class GenerationRequest:
    """Structured payload handed to the generation client."""
    query: str
    relevant_information: str  # JSON array of {"question", "answer"}
    user_context: str  # JSON array of {"question", "answer"}, oldest first
    prompt_tokens: int = 0

    def user_message(self) -> str:
        return (
            f"user_query: {self.query}\n"
            f"relevant_information: {self.relevant_information}\n"
            f"user_context: {self.user_context}\n\n"
            f"Reply with a JSON object of this shape: {REPLY_FORMAT}"
        )

    def to_messages(self) -> List[Dict[str, str]]:
        return [
            {"role": "system", "content": SYSTEM_PROMPT},
            {"role": "user", "content": self.user_message()},
        ]


def serialize_pairs(pairs: Sequence[QAPair]) -> str:
    """Stable JSON form of question/answer pairs, order preserved."""
    return json.dumps([asdict(pair) for pair in pairs], ensure_ascii=False)


class PromptComposer:
    """Builds bounded generation requests. Pure apart from token counting."""

    def __init__(
        self,
        max_prompt_tokens: int = MAX_PROMPT_TOKENS,
        encoder: Optional["tiktoken.Encoding"] = None
    ):
        """
        Args:
            max_prompt_tokens: Budget for the user message
            encoder: Tokenizer exposing ``encode``; defaults to tiktoken o200k_base
        """
        self.max_prompt_tokens = max_prompt_tokens
        self.encoder = encoder if encoder is not None else tiktoken.get_encoding(PROMPT_ENCODING)

    def compose(
        self,
        query: str,
        retrieval: Sequence[QAPair],
        history: Sequence[Turn]
    ) -> GenerationRequest:
        """
        Compose the generation request.

        When the user message exceeds the token budget the oldest history
        turns are dropped first, then the lowest-ranked retrieval entries.
        What remains keeps its order.

        Args:
            query: Raw user question
            retrieval: Retrieved entries, best first
            history: Recent turns, oldest first

        Returns:
            GenerationRequest with serialized retrieval and history

        Raises:
            TypeError: If an entry cannot be serialized
        """
        retrieval = list(retrieval)
        history_pairs = [turn.as_pair() for turn in history]

        request = self._build(query, retrieval, history_pairs)
        dropped_history = dropped_retrieval = 0

        while request.prompt_tokens > self.max_prompt_tokens and (history_pairs or retrieval):
            if history_pairs:
                history_pairs.pop(0)
                dropped_history += 1
            else:
                retrieval.pop()
                dropped_retrieval += 1
            request = self._build(query, retrieval, history_pairs)

        if dropped_history or dropped_retrieval:
            logger.warning(
                f"Prompt over budget ({self.max_prompt_tokens} tokens): dropped "
                f"{dropped_history} history turns and {dropped_retrieval} retrieved entries"
            )

        logger.debug(f"Composed prompt with {request.prompt_tokens} tokens")
        return request

    def _build(
        self,
        query: str,
        retrieval: List[QAPair],
        history: List[QAPair]
    ) -> GenerationRequest:
        draft = GenerationRequest(
            query=query,
            relevant_information=serialize_pairs(retrieval),
            user_context=serialize_pairs(history),
        )
        tokens = len(self.encoder.encode(draft.user_message()))
        return replace(draft, prompt_tokens=tokens)
