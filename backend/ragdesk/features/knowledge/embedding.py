"""
Knowledge feature: Embedder.
Wraps the provider's embedding model with bounded retry and failure
classification.
"""

import logging

import httpx
from langchain_core.embeddings import Embeddings
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)
from tenacity.wait import wait_base

from ragdesk.config import get_settings
from ragdesk.core.exceptions import (
    EmbeddingAuthError,
    EmbeddingError,
    EmbeddingInputError,
    EmbeddingRateLimitedError,
    EmbeddingUnavailableError,
)
from ragdesk.core.llm_provider import create_embeddings

logger = logging.getLogger(__name__)

RETRYABLE_ERRORS = (EmbeddingRateLimitedError, EmbeddingUnavailableError)


def _status_of(exc: Exception) -> int | None:
    for attr in ("status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return int(value)
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def classify_embedding_error(exc: Exception) -> EmbeddingError:
    """Map a provider SDK exception onto the embedding failure classes.

    Works off HTTP status codes where the SDK exposes one, and off the
    exception type otherwise, so no provider SDK has to be imported here.
    """
    if isinstance(exc, EmbeddingError):
        return exc

    status = _status_of(exc)
    name = type(exc).__name__
    detail = f"{name}: {exc}"

    if status == 429 or "RateLimit" in name or "ResourceExhausted" in name:
        return EmbeddingRateLimitedError("Embedding provider rate limit hit", detail)
    if status in (401, 403) or "Authentication" in name or "PermissionDenied" in name:
        return EmbeddingAuthError("Embedding provider rejected credentials", detail)
    if status in (400, 413, 422) or "BadRequest" in name or "InvalidArgument" in name:
        return EmbeddingInputError("Embedding provider rejected the input", detail)
    if status is not None and status >= 500:
        return EmbeddingUnavailableError("Embedding provider unavailable", detail)
    if isinstance(exc, (TimeoutError, ConnectionError, httpx.TransportError)) or any(
        marker in name for marker in ("Timeout", "Connection", "Unavailable")
    ):
        return EmbeddingUnavailableError("Embedding provider unreachable", detail)
    return EmbeddingError("Embedding call failed", detail)


class Embedder:
    """Maps text to a fixed-length vector via a remote embedding model."""

    def __init__(
        self,
        model: Embeddings,
        dimensions: int,
        max_attempts: int = 4,
        wait: wait_base | None = None,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.model = model
        self.dimensions = dimensions
        self.max_attempts = max_attempts
        self.wait = wait if wait is not None else wait_exponential(multiplier=1, min=1, max=10)

    async def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Rate-limit and availability failures are retried up to
        `max_attempts` times; anything else fails immediately.

        Raises:
            EmbeddingError: Or one of its subclasses.
        """
        if not text or not text.strip():
            raise EmbeddingInputError("Cannot embed empty text")

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self.wait,
            retry=retry_if_exception_type(RETRYABLE_ERRORS),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                vector = await self._embed_once(text)
        return vector

    async def _embed_once(self, text: str) -> list[float]:
        try:
            vector = await self.model.aembed_query(text)
        except Exception as e:
            raise classify_embedding_error(e) from e

        if len(vector) < self.dimensions:
            raise EmbeddingError(
                "Embedding has wrong dimensionality",
                f"expected {self.dimensions}, got {len(vector)}",
            )
        # Truncate to the corpus dimensionality (e.g. 3072 -> 1536)
        return [float(v) for v in vector[: self.dimensions]]


def create_embedder() -> Embedder:
    """Build the Embedder from env configuration."""
    settings = get_settings()
    return Embedder(
        model=create_embeddings(),
        dimensions=settings.EMBEDDING_DIMENSIONS,
        max_attempts=settings.EMBEDDING_MAX_ATTEMPTS,
    )
