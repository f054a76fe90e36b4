"""
Knowledge feature: ingestion pipeline.

chunk -> embed -> upsert, one point per chunk.

Chunks are stored one at a time and there is no rollback: if a document
fails partway, the chunks stored before the failure stay in the index and
are searchable. Re-uploading the document adds a fresh set of points next
to them; nothing is deduplicated.
"""

import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from starlette.concurrency import run_in_threadpool

from ragdesk.config import get_settings
from ragdesk.core.exceptions import BadRequestError, UpstreamError
from ragdesk.features.knowledge.chunker import split_text
from ragdesk.features.knowledge.embedding import Embedder
from ragdesk.features.knowledge.pdf import extract_text_from_pdf
from ragdesk.features.knowledge.vector_index import IndexedPoint, VectorIndex

logger = logging.getLogger(__name__)


def new_point_id() -> str:
    """122 random bits per id; safe across concurrent uploads without coordination."""
    return str(uuid.uuid4())


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class IngestionResult:
    filename: str
    point_ids: tuple[str, ...]

    @property
    def chunks_stored(self) -> int:
        return len(self.point_ids)


class IngestionService:
    """Turns raw document text into indexed, searchable points."""

    def __init__(
        self,
        embedder: Embedder,
        index: VectorIndex,
        chunk_size: int = 1000,
        chunk_overlap: int = 200,
    ):
        if chunk_overlap >= chunk_size:
            raise ValueError("chunk_overlap must be smaller than chunk_size")
        self.embedder = embedder
        self.index = index
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap

    async def ingest(self, raw_text: str, metadata: Mapping[str, Any]) -> IngestionResult:
        """Chunk, embed and store a document.

        Args:
            raw_text: Full document text.
            metadata: Must contain `filename` and `uploader`; `uploadedAt` is
                filled in when absent. Any other keys are stored as given.

        Raises:
            BadRequestError: If the text is blank or metadata is incomplete.
            EmbeddingError, VectorIndexError: On upstream failure. Chunks
                stored before the failure are kept.
        """
        missing = [key for key in ("filename", "uploader") if not metadata.get(key)]
        if missing:
            raise BadRequestError(f"Missing document metadata: {', '.join(missing)}")
        if not raw_text or not raw_text.strip():
            raise BadRequestError("Document contains no text")

        doc_metadata = {"uploadedAt": utc_timestamp(), **metadata}
        filename = doc_metadata["filename"]

        await self.index.ensure_collection()

        chunks = split_text(raw_text, size=self.chunk_size, overlap=self.chunk_overlap)
        logger.info("Ingesting %s: %d chars, %d chunks", filename, len(raw_text), len(chunks))

        stored: list[str] = []
        for chunk in chunks:
            point_id = new_point_id()
            try:
                vector = await self.embedder.embed(chunk.text)
                await self.index.upsert([
                    IndexedPoint(
                        id=point_id,
                        vector=vector,
                        payload={
                            "text": chunk.text,
                            "metadata": {**doc_metadata, "chunkIndex": chunk.index},
                        },
                    )
                ])
            except UpstreamError as e:
                logger.error(
                    "Ingestion of %s failed at chunk %d: %s. %d of %d chunks stay indexed.",
                    filename, chunk.index, type(e).__name__, len(stored), len(chunks),
                )
                raise
            stored.append(point_id)

        logger.info("Stored %d chunks for %s", len(stored), filename)
        return IngestionResult(filename=filename, point_ids=tuple(stored))

    async def ingest_pdf(self, file_bytes: bytes, filename: str, uploader: str) -> IngestionResult:
        """Extract text from a PDF upload and ingest it.

        Raises:
            DocumentParseError: If the PDF cannot be read.
            BadRequestError: If the PDF holds no extractable text.
        """
        text = await run_in_threadpool(extract_text_from_pdf, file_bytes, filename)
        if not text:
            raise BadRequestError("No text could be extracted from the document")
        return await self.ingest(
            text,
            {"filename": filename, "uploader": uploader, "uploadedAt": utc_timestamp()},
        )


def create_ingestion_service(embedder: Embedder, index: VectorIndex) -> IngestionService:
    settings = get_settings()
    return IngestionService(
        embedder=embedder,
        index=index,
        chunk_size=settings.CHUNK_SIZE,
        chunk_overlap=settings.CHUNK_OVERLAP,
    )
