"""Application configuration with sensible defaults."""
import os
from pathlib import Path

# Paths
DATA_DIR = Path(os.getenv("MINIRAG_DATA_DIR", "data"))
DATABASE_PATH = Path(os.getenv("MINIRAG_DATABASE_PATH", str(DATA_DIR / "minirag")))
DEFAULT_COLLECTION = os.getenv("MINIRAG_COLLECTION", "vectors")

# Ollama configuration
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "all-minilm:latest")
EMBEDDING_BATCH_SIZE = int(os.getenv("EMBEDDING_BATCH_SIZE", "0"))  # 0 = one request
EMBEDDING_TIMEOUT = float(os.getenv("EMBEDDING_TIMEOUT", "60.0"))
EMBEDDING_RETRIES = int(os.getenv("EMBEDDING_RETRIES", "3"))
HASH_EMBEDDING_DIMENSION = int(os.getenv("HASH_EMBEDDING_DIMENSION", "64"))

# RAG parameters (character-based to avoid tokenizer inconsistencies)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "250"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "0"))
RETRIEVAL_TOP_K = int(os.getenv("RETRIEVAL_TOP_K", "8"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "WARNING")
