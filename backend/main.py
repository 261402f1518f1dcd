"""Main entry point for the Smart Store FAQ chat relay."""
import logging
from fastapi import FastAPI, Request, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from config import PORT, LOG_LEVEL, LOG_FORMAT, CORS_ORIGINS, SESSION_COOKIE_NAME, HISTORY_LIMIT
from logger import setup_logging
from models.api import ErrorDetail, ErrorResponse, HistoryResponse, PreviousChat
from services.conversation_store import ConversationStore
from services.embedding_model import EmbeddingModel
from services.errors import RelayError
from services.history_assembler import HistoryAssembler
from services.knowledge_store import KnowledgeStore
from services.llm_client import LLMClient
from services.pipeline import ChatPipeline, user_message
from services.prompt_composer import PromptComposer
from services.retrieval_engine import RetrievalEngine
from services.session import resolve_session_id, session_cookie_header, set_session_cookie

if LOG_FORMAT == "json":
    setup_logging(LOG_LEVEL)

logger = logging.getLogger(__name__)

# Initialize FastAPI app
app = FastAPI(
    title="Smart Store FAQ Chat Relay",
    description="Session-aware retrieval-augmented FAQ chatbot",
    version="1.0.0"
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def build_pipeline() -> ChatPipeline:
    """Construct every client once; they are shared by all in-flight requests."""
    embedding_model = EmbeddingModel()
    knowledge_store = KnowledgeStore()
    # One Supabase client (and connection pool) for both stores
    conversation_store = ConversationStore(client=knowledge_store.client)

    return ChatPipeline(
        embedding_model=embedding_model,
        retrieval_engine=RetrievalEngine(knowledge_store),
        history_assembler=HistoryAssembler(conversation_store),
        prompt_composer=PromptComposer(),
        llm_client=LLMClient(),
        conversation_store=conversation_store,
    )


@app.on_event("startup")
async def startup_event():
    """Initialize services on startup."""
    logger.info("Initializing chat relay services...")

    try:
        app.state.pipeline = build_pipeline()
        logger.info("All services initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize services: {e}", exc_info=True)
        raise


@app.middleware("http")
async def session_middleware(request: Request, call_next):
    """Attach the caller's session id, issuing a cookie when there is none."""
    session_id, is_new = resolve_session_id(request.cookies.get(SESSION_COOKIE_NAME))
    request.state.session_id = session_id

    response = await call_next(request)
    if is_new:
        set_session_cookie(response, session_id)
    return response


def _error_body(error: BaseException) -> ErrorResponse:
    code = error.code if isinstance(error, RelayError) else "INTERNAL_ERROR"
    return ErrorResponse(
        error=ErrorDetail(code=code, message=user_message(error))
    )


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Smart Store FAQ Chat Relay"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "faq-chat-relay",
        "version": "1.0.0"
    }


@app.get("/ping", response_class=PlainTextResponse)
async def ping():
    return "PING"


@app.get("/history", response_model=HistoryResponse)
async def history_endpoint(request: Request):
    """Most recent turns of the caller's session, oldest first."""
    session_id = request.state.session_id
    pipeline: ChatPipeline = request.app.state.pipeline

    try:
        turns = await run_in_threadpool(
            pipeline.history_assembler.fetch_history, session_id, HISTORY_LIMIT
        )
    except RelayError as e:
        logger.error(f"History lookup failed for session {session_id}: {e.message}")
        return JSONResponse(status_code=503, content=_error_body(e).model_dump())

    return HistoryResponse(
        previous_chats=[PreviousChat(question=t.question, answer=t.answer) for t in turns]
    )


@app.websocket("/chat")
async def chat_endpoint(websocket: WebSocket):
    """
    Chat socket. Each text frame is a JSON object ``{"query": "..."}``; each
    reply is ``{"answer", "recommend1", "recommend2"}`` or ``{"error": {...}}``.

    Frames are handled one after another on this connection. The pipeline
    runs on a worker thread so other connections are never blocked.
    """
    session_id, is_new = resolve_session_id(websocket.cookies.get(SESSION_COOKIE_NAME))
    headers = [session_cookie_header(session_id)] if is_new else None
    await websocket.accept(headers=headers)
    logger.info(f"WebSocket connection established for session {session_id}")

    pipeline: ChatPipeline = websocket.app.state.pipeline

    try:
        while True:
            raw = await websocket.receive_text()
            logger.debug(f"Received frame for session {session_id}: {raw[:200]}")

            try:
                result = await run_in_threadpool(pipeline.handle_message, session_id, raw)
            except RelayError as e:
                logger.warning(f"Request failed at {e.stage} ({e.code}) for session {session_id}")
                await websocket.send_text(_error_body(e).model_dump_json())
                continue
            except Exception as e:
                logger.error(f"Unexpected error processing query: {e}", exc_info=True)
                await websocket.send_text(_error_body(e).model_dump_json())
                continue

            if not result.persisted:
                logger.warning(f"Reply for session {session_id} sent without a stored turn")

            await websocket.send_text(result.reply.model_dump_json())

    except WebSocketDisconnect:
        logger.info(f"WebSocket closed for session {session_id}")


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting chat relay on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
