"""
Chat feature: retrieval-augmented answer generation.

embed query -> top-k search -> grounded system prompt -> chat model.

Each stage raises its own error class (EmbeddingError, VectorIndexError,
GenerationError) so logs show which remote call failed, even though the
HTTP layer reports all of them as a generic 500.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

from langchain_core.language_models import BaseChatModel
from langchain_core.messages import HumanMessage, SystemMessage

from ragdesk.config import get_settings
from ragdesk.core.exceptions import BadRequestError, GenerationError
from ragdesk.features.chat.prompts import build_context, build_system_prompt
from ragdesk.features.knowledge.embedding import Embedder
from ragdesk.features.knowledge.vector_index import VectorIndex

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetrievedChunk:
    id: str
    text: str
    score: float
    metadata: dict[str, Any] = field(default_factory=dict)


def extract_text(content) -> str:
    """Flatten a chat model's message content (str or list of parts) to text."""
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, dict) and "text" in item:
                parts.append(item["text"])
            elif isinstance(item, str):
                parts.append(item)
        return "\n".join(parts)
    return str(content)


class RagService:
    """Answers questions from the indexed knowledge base."""

    def __init__(
        self,
        embedder: Embedder,
        index: VectorIndex,
        llm: BaseChatModel,
        fallback_answer: str,
        top_k: int = 4,
    ):
        self.embedder = embedder
        self.index = index
        self.llm = llm
        self.fallback_answer = fallback_answer
        self.top_k = top_k

    async def retrieve(self, query: str, k: int) -> list[RetrievedChunk]:
        """Nearest chunks to the query, most similar first."""
        if k <= 0:
            return []
        await self.index.ensure_collection()
        vector = await self.embedder.embed(query)
        points = await self.index.search(vector, k)
        chunks = []
        for point in points:
            payload = point.payload or {}
            chunks.append(
                RetrievedChunk(
                    id=str(point.id),
                    text=payload.get("text") or "",
                    score=point.score,
                    metadata=payload.get("metadata") or {},
                )
            )
        return chunks

    async def answer(self, query: str, k: int | None = None) -> str:
        """Answer strictly from retrieved context.

        With nothing retrieved (e.g. an empty index) the model still runs,
        with empty context, and is expected to reply with the fallback.

        Raises:
            BadRequestError: Blank query.
            EmbeddingError, VectorIndexError, GenerationError: Upstream failure.
        """
        if not query or not query.strip():
            raise BadRequestError("Message is required")

        k = self.top_k if k is None else k
        chunks = await self.retrieve(query, k)
        logger.info("Retrieved %d chunks (k=%d) for query of %d chars", len(chunks), k, len(query))

        context = build_context([chunk.text for chunk in chunks if chunk.text])
        messages = [
            SystemMessage(content=build_system_prompt(context, self.fallback_answer)),
            HumanMessage(content=query),
        ]
        try:
            response = await self.llm.ainvoke(messages)
        except Exception as e:
            raise GenerationError("Generative model call failed", f"{type(e).__name__}: {e}") from e

        text = extract_text(response.content).strip()
        if not text:
            raise GenerationError("Generative model returned an empty answer")
        return text


def create_rag_service(embedder: Embedder, index: VectorIndex, llm: BaseChatModel) -> RagService:
    settings = get_settings()
    return RagService(
        embedder=embedder,
        index=index,
        llm=llm,
        fallback_answer=settings.FALLBACK_ANSWER,
        top_k=settings.RETRIEVAL_TOP_K,
    )
