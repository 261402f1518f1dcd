"""API request/response schemas."""
from typing import List

from pydantic import BaseModel, Field


class ChatPayload(BaseModel):
    """Message sent by the client over the chat socket."""
    query: str = Field(..., min_length=1)


class GenerationReply(BaseModel):
    """Structured reply the completion provider must return."""
    answer: str
    recommend1: str
    recommend2: str


class PreviousChat(BaseModel):
    question: str
    answer: str


class HistoryResponse(BaseModel):
    """Response body of GET /history."""
    previous_chats: List[PreviousChat]


class ErrorDetail(BaseModel):
    code: str
    message: str


class ErrorResponse(BaseModel):
    """Error frame sent to the client when a request fails."""
    error: ErrorDetail
