"""
Knowledge feature: read-side views over the vector index.

Documents are not stored as records of their own; they are rebuilt here by
grouping points on their `metadata.filename`.
"""

import logging
from collections.abc import Iterable

from qdrant_client import models

from ragdesk.features.knowledge.schemas import (
    ChunkView,
    CollectionView,
    DocumentView,
    DocumentsResponse,
)
from ragdesk.features.knowledge.vector_index import VectorIndex

logger = logging.getLogger(__name__)

UNKNOWN = "Unknown"


def group_points_by_document(records: Iterable[models.Record]) -> list[DocumentView]:
    """Group points into documents by filename, keeping first-seen order.

    Chunks inside a document are ordered by their ingestion position.
    """
    documents: dict[str, DocumentView] = {}
    positions: dict[str, int] = {}

    for record in records:
        payload = record.payload or {}
        metadata = payload.get("metadata") or {}
        text = payload.get("text") or ""
        filename = metadata.get("filename") or UNKNOWN

        doc = documents.get(filename)
        if doc is None:
            doc = DocumentView(
                filename=filename,
                uploaded_by=metadata.get("uploader") or metadata.get("uploadedBy") or UNKNOWN,
                uploaded_at=metadata.get("uploadedAt") or UNKNOWN,
            )
            documents[filename] = doc

        point_id = str(record.id)
        positions[point_id] = metadata.get("chunkIndex", 0)
        doc.chunks.append(ChunkView(id=point_id, text=text, text_length=len(text)))
        doc.total_chunks += 1

    for doc in documents.values():
        doc.chunks.sort(key=lambda chunk: positions[chunk.id])
    return list(documents.values())


async def list_documents(index: VectorIndex) -> DocumentsResponse:
    """Collection summary plus every stored document with its chunks."""
    await index.ensure_collection()
    summary = await index.describe()
    records = [record async for record in index.scroll_all()]
    documents = group_points_by_document(records)
    logger.info("Listed %d documents (%d points)", len(documents), len(records))
    return DocumentsResponse(
        collection=CollectionView(
            name=summary.name,
            points_count=summary.points_count,
            status=summary.status,
        ),
        documents=documents,
    )
