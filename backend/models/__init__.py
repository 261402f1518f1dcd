"""Data models for the chat relay."""
from .knowledge import QAPair, RetrievalResult
from .conversation import Turn, RequestContext, HistoryWindow
from .api import (
    ChatPayload,
    GenerationReply,
    PreviousChat,
    HistoryResponse,
    ErrorDetail,
    ErrorResponse,
)

__all__ = [
    "QAPair",
    "RetrievalResult",
    "Turn",
    "RequestContext",
    "HistoryWindow",
    "ChatPayload",
    "GenerationReply",
    "PreviousChat",
    "HistoryResponse",
    "ErrorDetail",
    "ErrorResponse",
]
