"""Embedding backends: text in, fixed-length float vectors out.

Every embedder exposes ``async embed(batch) -> list of vectors`` with the
output aligned to the input. The pipeline never looks behind that call.
"""
import hashlib
from typing import List, Optional, Protocol, Sequence

import httpx
import numpy as np
import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential_jitter,
)

from minirag import config
from minirag.errors import EmbeddingFailure, InvalidConfiguration

logger = structlog.get_logger()


class Embedder(Protocol):
    """Converts a batch of texts into equally sized vectors."""

    async def embed(self, batch: Sequence[str]) -> List[List[float]]:
        ...


def check_embeddings(
    texts: Sequence[str],
    embeddings: Sequence[Sequence[float]],
    expected_dimension: Optional[int] = None,
) -> List[List[float]]:
    """Validate an embedder response against its input batch.

    Raises:
        EmbeddingFailure: On a count mismatch, an empty vector or
            vectors of differing dimension
    """
    if len(embeddings) != len(texts):
        raise EmbeddingFailure(
            f"Embedder returned {len(embeddings)} vectors for {len(texts)} texts"
        )

    vectors = []
    dimension = expected_dimension
    for embedding in embeddings:
        try:
            vector = [float(x) for x in embedding]
        except (TypeError, ValueError) as e:
            raise EmbeddingFailure(f"Embedder returned a non-numeric vector: {e}") from e
        if not vector:
            raise EmbeddingFailure("Embedder returned an empty vector")
        if not np.isfinite(vector).all():
            raise EmbeddingFailure("Embedder returned non-finite values")
        if dimension is None:
            dimension = len(vector)
        elif len(vector) != dimension:
            raise EmbeddingFailure(
                f"Embedder returned vectors of dimension {len(vector)} and {dimension}"
            )
        vectors.append(vector)

    return vectors


class OllamaEmbedder:
    """Embeddings from an Ollama server.

    The HTTP client is created on first use and kept for the lifetime of
    the embedder; close it with ``aclose()`` or ``async with``.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        batch_size: Optional[int] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the Ollama embedder.

        Args:
            base_url: Ollama API base URL (defaults to config.OLLAMA_BASE_URL)
            model: Embedding model (defaults to config.EMBEDDING_MODEL)
            timeout: Request timeout in seconds
            batch_size: Max texts per request; falsy sends each batch whole
            transport: Custom httpx transport (used by tests)
        """
        self.base_url = base_url or config.OLLAMA_BASE_URL
        self.model = model or config.EMBEDDING_MODEL
        self.timeout = timeout or config.EMBEDDING_TIMEOUT
        self.batch_size = batch_size or config.EMBEDDING_BATCH_SIZE or None
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None
        self.dimension: Optional[int] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                timeout=self.timeout,
                transport=self._transport,
            )
            logger.info("ollama_embedder_client_created", base_url=self.base_url, model=self.model)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "OllamaEmbedder":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def embed(self, batch: Sequence[str]) -> List[List[float]]:
        """Generate embeddings for a batch of texts.

        Args:
            batch: Texts to embed

        Returns:
            One vector per text, in input order

        Raises:
            EmbeddingFailure: If the server fails or returns a malformed batch
        """
        texts = list(batch)
        if not texts:
            return []

        step = self.batch_size or len(texts)
        embeddings: List[List[float]] = []
        for i in range(0, len(texts), step):
            embeddings.extend(await self._request(texts[i : i + step]))

        vectors = check_embeddings(texts, embeddings, expected_dimension=self.dimension)
        self.dimension = len(vectors[0])

        logger.debug(
            "ollama_embeddings_generated",
            model=self.model,
            count=len(vectors),
            dimension=self.dimension,
        )

        return vectors

    async def _request(self, texts: List[str]) -> List[List[float]]:
        payload = {"model": self.model, "input": texts}

        try:
            response = await self._get_client().post("/api/embed", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as e:
            logger.error(
                "ollama_embedding_error",
                error=str(e),
                error_type=type(e).__name__,
                base_url=self.base_url,
            )
            raise EmbeddingFailure(f"Ollama embedding request failed: {e}") from e
        except ValueError as e:
            logger.error("ollama_embedding_invalid_json", error=str(e))
            raise EmbeddingFailure(f"Ollama returned invalid JSON: {e}") from e

        embeddings = data.get("embeddings") if isinstance(data, dict) else None
        if not isinstance(embeddings, list):
            raise EmbeddingFailure("Ollama response has no 'embeddings' list")

        return embeddings

    async def list_models(self) -> List[str]:
        """List all available Ollama models.

        Raises:
            EmbeddingFailure: If the server cannot be reached
        """
        try:
            response = await self._get_client().get("/api/tags")
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.error("ollama_list_models_error", error=str(e))
            raise EmbeddingFailure(f"Failed to list Ollama models: {e}") from e
        try:
            return [m["name"] for m in data.get("models", [])]
        except (AttributeError, KeyError, TypeError) as e:
            logger.error("ollama_list_models_malformed", error=str(e))
            raise EmbeddingFailure(f"Malformed Ollama model list: {e}") from e


class HashEmbedder:
    """Deterministic offline embedder based on hashed character trigrams.

    Texts sharing many trigrams end up close together, which is enough
    for tests and for trying the pipeline without a model server.
    """

    def __init__(self, dimension: Optional[int] = None):
        self.dimension = dimension or config.HASH_EMBEDDING_DIMENSION
        if self.dimension < 1:
            raise InvalidConfiguration(f"Embedding dimension must be at least 1, got {self.dimension}")

    async def embed(self, batch: Sequence[str]) -> List[List[float]]:
        return [self.embed_one(text) for text in batch]

    def embed_one(self, text: str) -> List[float]:
        if not isinstance(text, str):
            raise EmbeddingFailure(f"Cannot embed {type(text).__name__}, expected str")

        vector = np.zeros(self.dimension, dtype=np.float64)
        padded = f" {text.lower()} "
        for i in range(len(padded) - 2):
            digest = hashlib.blake2b(padded[i : i + 3].encode("utf-8"), digest_size=8).digest()
            value = int.from_bytes(digest, "little")
            sign = -1.0 if value >> 63 else 1.0
            vector[value % self.dimension] += sign

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.tolist()


class RetryingEmbedder:
    """Retry transient embedding failures of another embedder."""

    def __init__(
        self,
        inner: Embedder,
        attempts: Optional[int] = None,
        initial_wait: float = 0.5,
        max_wait: float = 10.0,
    ):
        self.inner = inner
        self.attempts = config.EMBEDDING_RETRIES if attempts is None else attempts
        if self.attempts < 1:
            raise InvalidConfiguration(f"Retry attempts must be at least 1, got {self.attempts}")
        self.initial_wait = initial_wait
        self.max_wait = max_wait

    @property
    def dimension(self) -> Optional[int]:
        return getattr(self.inner, "dimension", None)

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "embedding_retry",
            attempt=retry_state.attempt_number,
            error=str(error),
        )

    async def embed(self, batch: Sequence[str]) -> List[List[float]]:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.attempts),
            wait=wait_exponential_jitter(
                initial=self.initial_wait, max=self.max_wait, jitter=self.initial_wait
            ),
            retry=retry_if_exception_type(EmbeddingFailure),
            before_sleep=self._log_retry,
            reraise=True,
        ):
            with attempt:
                return await self.inner.embed(batch)
