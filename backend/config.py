"""Configuration management for the Smart Store FAQ chat relay."""
import os
import logging
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# API Keys
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
GROQ_API_KEY = os.getenv("GROQ_API_KEY")
SUPABASE_URL = os.getenv("SUPABASE_URL")
SUPABASE_KEY = os.getenv("SUPABASE_KEY")

# Server Configuration
PORT = int(os.getenv("PORT", "8000"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"

# CORS Configuration
CORS_ORIGINS = os.getenv(
    "CORS_ORIGINS",
    "http://localhost:3000,http://localhost:3001"
).split(",")

# Session Configuration
SESSION_COOKIE_NAME = "session_id"
SESSION_TTL_SECONDS = 3600
SESSION_COOKIE_SECURE = os.getenv("SESSION_COOKIE_SECURE", "true").lower() == "true"
SERIALIZE_SESSIONS = os.getenv("SERIALIZE_SESSIONS", "true").lower() == "true"

# Model Configuration
EMBEDDING_MODEL = "text-embedding-3-small"
EMBEDDING_DIMENSION = 1536
EMBEDDING_API_URL = "https://api.openai.com/v1/embeddings"
GENERATION_MODEL = os.getenv("GENERATION_MODEL", "llama-3.3-70b-versatile")
GENERATION_MAX_TOKENS = 2000
GENERATION_TEMPERATURE = 0.7

# Retrieval Configuration
RETRIEVAL_LIMIT = 5
MAX_VECTOR_DISTANCE = 1.0
HISTORY_LIMIT = 3

# Prompt Configuration
MAX_PROMPT_TOKENS = 6000  # tokens, user message only

# Timeouts (seconds)
PROVIDER_TIMEOUT = float(os.getenv("PROVIDER_TIMEOUT", "30"))
STORE_TIMEOUT = int(os.getenv("STORE_TIMEOUT", "10"))

# Supabase tables / RPC
KNOWLEDGE_TABLE = "qna"
KNOWLEDGE_MATCH_RPC = "match_qna"
CONVERSATION_TABLE = "context"

# Logging Configuration
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
