"""Services for the Smart Store FAQ chat relay."""
from .errors import (
    RelayError,
    ProviderUnavailable,
    ProviderAuthError,
    ProviderResponseInvalid,
    GenerationParseError,
    EmptyGenerationResult,
    StoreUnavailable,
    RetrievalFailed,
    PersistenceFailed,
    MalformedInput,
)
from .embedding_model import EmbeddingModel
from .knowledge_store import KnowledgeStore
from .conversation_store import ConversationStore
from .retrieval_engine import RetrievalEngine
from .history_assembler import HistoryAssembler
from .prompt_composer import PromptComposer, GenerationRequest
from .llm_client import LLMClient
from .pipeline import ChatPipeline, PipelineResult, Stage, parse_chat_payload, user_message

__all__ = [
    'RelayError', 'ProviderUnavailable', 'ProviderAuthError', 'ProviderResponseInvalid',
    'GenerationParseError', 'EmptyGenerationResult', 'StoreUnavailable', 'RetrievalFailed',
    'PersistenceFailed', 'MalformedInput', 'EmbeddingModel', 'KnowledgeStore',
    'ConversationStore', 'RetrievalEngine', 'HistoryAssembler', 'PromptComposer',
    'GenerationRequest', 'LLMClient', 'ChatPipeline', 'PipelineResult', 'Stage',
    'parse_chat_payload', 'user_message'
]
