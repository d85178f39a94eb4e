import os
from dotenv import load_dotenv
from pathlib import Path

# Load environment variables from .env file with explicit path
load_dotenv(dotenv_path=Path(__file__).parent.parent / '.env')

# OpenAI Configuration
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY")
OPENAI_BASE_URL = os.getenv("OPENAI_BASE_URL")  # Optional, any OpenAI-compatible server
COMPLETION_MODEL = os.getenv("COMPLETION_MODEL", "gpt-4o-mini")

# Embedding Configuration
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "text-embedding-3-small")
EMBEDDING_DIMENSIONS = int(os.getenv("EMBEDDING_DIMENSIONS")) if os.getenv("EMBEDDING_DIMENSIONS") else None
EMBED_BATCH_SIZE = int(os.getenv("EMBED_BATCH_SIZE", "16"))
EMBED_MAX_CHARS = int(os.getenv("EMBED_MAX_CHARS", "2000"))  # per chunk, before embedding
QUERY_MAX_CHARS = int(os.getenv("QUERY_MAX_CHARS", "1000"))  # semantic path only

# Retrieval Configuration
RAG_TOP_K = int(os.getenv("RAG_TOP_K", "4"))
MAX_CONTEXT_CHARS = int(os.getenv("MAX_CONTEXT_CHARS", "20000"))

# Storage Configuration
KB_DB_PATH = os.getenv("KB_DB_PATH", "dragon_kb.db")
KB_STORAGE_KEY = os.getenv("KB_STORAGE_KEY", "chatKB")

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
