"""
Pipeline orchestrator for the retrieval-augmented chat relay.

A request moves through these stages:

    RECEIVED -> EMBEDDING -> RETRIEVING -> ASSEMBLING_HISTORY -> COMPOSING
             -> GENERATING -> PERSISTING -> COMPLETED

and ends in FAILED when any stage raises. Nothing is retried. Every
RelayError leaving a stage carries that stage's name in ``error.stage``.

A turn is written only after generation succeeded. If that write fails the
reply is still returned, paired with a PersistenceFailed error, so the
user sees the answer even when the history could not be stored.
"""
import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Iterator, List, Optional

from pydantic import ValidationError

from models.api import ChatPayload, GenerationReply
from models.conversation import RequestContext
from services.errors import (
    EmptyGenerationResult,
    GenerationParseError,
    MalformedInput,
    PersistenceFailed,
    ProviderAuthError,
    ProviderResponseInvalid,
    ProviderUnavailable,
    RelayError,
    RetrievalFailed,
    StoreUnavailable,
)
from services.history_assembler import HistoryAssembler
from services.interfaces import Embedder, Generator, TurnStore
from services.prompt_composer import PromptComposer
from services.retrieval_engine import RetrievalEngine
from config import RETRIEVAL_LIMIT, HISTORY_LIMIT, SERIALIZE_SESSIONS

logger = logging.getLogger(__name__)


class Stage(str, Enum):
    RECEIVED = "received"
    EMBEDDING = "embedding"
    RETRIEVING = "retrieving"
    ASSEMBLING_HISTORY = "assembling_history"
    COMPOSING = "composing"
    GENERATING = "generating"
    PERSISTING = "persisting"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class PipelineResult:
    """Outcome of a request that produced a reply."""
    reply: GenerationReply
    stage: Stage = Stage.COMPLETED
    persistence_error: Optional[PersistenceFailed] = None

    @property
    def persisted(self) -> bool:
        return self.persistence_error is None


# Messages shown to the client. Provider bodies and credentials never reach it.
USER_MESSAGES: Dict[type, str] = {
    MalformedInput: "Invalid message: a JSON object with a non-empty \"query\" field is required.",
    ProviderAuthError: "The assistant is misconfigured. Please contact the administrator.",
    ProviderUnavailable: "The assistant is temporarily unavailable. Please try again shortly.",
    ProviderResponseInvalid: "The assistant could not understand your question. Please try again.",
    GenerationParseError: "The assistant produced an unreadable answer. Please ask again.",
    EmptyGenerationResult: "The assistant did not produce an answer. Please ask again.",
    RetrievalFailed: "The FAQ knowledge base is unavailable. Please try again shortly.",
    StoreUnavailable: "Conversation history is unavailable. Please try again shortly.",
}
DEFAULT_USER_MESSAGE = "Error processing your query"


def user_message(error: BaseException) -> str:
    """Single client-facing message for any pipeline failure."""
    for error_type, message in USER_MESSAGES.items():
        if isinstance(error, error_type):
            return message
    return DEFAULT_USER_MESSAGE


def parse_chat_payload(raw: str) -> str:
    """
    Extract the query text from a raw chat message.

    Args:
        raw: Message text as received from the client, e.g. ``{"query": "..."}``

    Returns:
        The query string

    Raises:
        MalformedInput: Not JSON, not an object, or no non-empty ``query``
    """
    try:
        payload = ChatPayload.model_validate_json(raw)
    except ValidationError as e:
        raise MalformedInput(
            "Chat payload must be a JSON object with a non-empty 'query' field",
            details={"errors": e.error_count()},
            stage=Stage.RECEIVED.value
        ) from e

    if not payload.query.strip():
        raise MalformedInput(
            "Chat payload 'query' field is blank",
            stage=Stage.RECEIVED.value
        )
    return payload.query


class ChatPipeline:
    """Sequences embedding, retrieval, history, prompt, generation and persistence."""

    def __init__(
        self,
        embedding_model: Embedder,
        retrieval_engine: RetrievalEngine,
        history_assembler: HistoryAssembler,
        prompt_composer: PromptComposer,
        llm_client: Generator,
        conversation_store: TurnStore,
        retrieval_limit: int = RETRIEVAL_LIMIT,
        history_limit: int = HISTORY_LIMIT,
        serialize_sessions: bool = SERIALIZE_SESSIONS,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc)
    ):
        """
        Args:
            embedding_model: Embedding provider client
            retrieval_engine: Hybrid retrieval over the knowledge store
            history_assembler: Recent-turn window for a session
            prompt_composer: Builds the generation request
            llm_client: Generation provider client
            conversation_store: Where completed turns are appended
            retrieval_limit: Maximum retrieved entries per request
            history_limit: Maximum history turns per request
            serialize_sessions: Run requests of one session one at a time.
                When off, concurrent requests of a session may miss each
                other's turns and their writes land in completion order.
            clock: Source of turn timestamps
        """
        self.embedding_model = embedding_model
        self.retrieval_engine = retrieval_engine
        self.history_assembler = history_assembler
        self.prompt_composer = prompt_composer
        self.llm_client = llm_client
        self.conversation_store = conversation_store
        self.retrieval_limit = retrieval_limit
        self.history_limit = history_limit
        self.serialize_sessions = serialize_sessions
        self.clock = clock

        self._locks_guard = threading.Lock()
        self._session_locks: Dict[str, List] = {}

        logger.info(f"Initialized ChatPipeline (serialize_sessions={serialize_sessions})")

    def handle_message(self, session_id: str, raw: str) -> PipelineResult:
        """Validate a raw chat message and run the pipeline for it."""
        query = parse_chat_payload(raw)
        return self.run(RequestContext(session_id=session_id, query=query))

    def run(self, context: RequestContext) -> PipelineResult:
        """
        Run one request to a terminal stage.

        Returns:
            PipelineResult in stage COMPLETED; ``persistence_error`` is set
            when the turn could not be stored

        Raises:
            RelayError: Tagged with the stage it came from
        """
        with self._session_guard(context.session_id):
            return self._run(context)

    def _run(self, context: RequestContext) -> PipelineResult:
        session_id = context.session_id
        logger.info(f"[{session_id}] Received query: {context.query[:100]}")

        with self._stage(context, Stage.EMBEDDING):
            query_vector = self.embedding_model.embed_text(context.query)

        with self._stage(context, Stage.RETRIEVING):
            retrieved = self.retrieval_engine.retrieve(
                query_vector, context.query, limit=self.retrieval_limit
            )

        with self._stage(context, Stage.ASSEMBLING_HISTORY):
            history = self.history_assembler.fetch_history(session_id, limit=self.history_limit)

        with self._stage(context, Stage.COMPOSING):
            request = self.prompt_composer.compose(context.query, retrieved, history)

        with self._stage(context, Stage.GENERATING):
            reply = self.llm_client.generate(request)

        result = PipelineResult(reply=reply)
        self._persist(context, reply, result)

        logger.info(
            f"[{session_id}] Completed: retrieved={len(retrieved)}, history={len(history)}, "
            f"prompt_tokens={request.prompt_tokens}, persisted={result.persisted}"
        )
        return result

    def _persist(self, context: RequestContext, reply: GenerationReply, result: PipelineResult) -> None:
        logger.debug(f"[{context.session_id}] Stage -> {Stage.PERSISTING.value}")
        try:
            self.conversation_store.append_turn(
                context.session_id, context.query, reply.answer, self.clock()
            )
        except RelayError as e:
            result.persistence_error = PersistenceFailed(
                f"Failed to persist turn: {e.message}",
                details=dict(e.details),
                stage=Stage.PERSISTING.value
            )
            logger.error(
                f"[{context.session_id}] Turn not persisted, returning reply anyway: {e.message}",
                extra={"extra": {"session_id": context.session_id,
                                 "error": result.persistence_error.to_dict()}}
            )

    @contextmanager
    def _stage(self, context: RequestContext, stage: Stage) -> Iterator[None]:
        logger.debug(f"[{context.session_id}] Stage -> {stage.value}")
        try:
            yield
        except RelayError as e:
            if e.stage is None:
                e.stage = stage.value
            logger.error(
                f"[{context.session_id}] {Stage.FAILED.value} at {e.stage}: {e.code}: {e.message}",
                extra={"extra": {"session_id": context.session_id, "error": e.to_dict()}}
            )
            raise
        except Exception:
            logger.exception(f"[{context.session_id}] {Stage.FAILED.value} at {stage.value}")
            raise

    @contextmanager
    def _session_guard(self, session_id: str) -> Iterator[None]:
        if not self.serialize_sessions:
            yield
            return

        with self._locks_guard:
            entry = self._session_locks.setdefault(session_id, [threading.Lock(), 0])
            entry[1] += 1
        try:
            with entry[0]:
                yield
        finally:
            with self._locks_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._session_locks[session_id]
