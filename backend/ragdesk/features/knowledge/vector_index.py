"""
Knowledge feature: Qdrant vector index client.

The corpus is append-only: there is no update or delete path here.
"""

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator

from qdrant_client import AsyncQdrantClient, models

from ragdesk.config import get_settings
from ragdesk.core.exceptions import VectorIndexError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IndexedPoint:
    id: str
    vector: list[float]
    payload: dict[str, Any]


@dataclass(frozen=True)
class CollectionSummary:
    name: str
    points_count: int
    status: str


class VectorIndex:
    """Thin async wrapper over one Qdrant collection."""

    def __init__(
        self,
        client: AsyncQdrantClient,
        collection_name: str,
        dimensions: int,
        distance: models.Distance = models.Distance.COSINE,
    ):
        self.client = client
        self.collection_name = collection_name
        self.dimensions = dimensions
        self.distance = distance

    async def ensure_collection(
        self,
        name: str | None = None,
        dim: int | None = None,
        metric: models.Distance | None = None,
    ) -> bool:
        """Create the collection if it does not exist yet.

        Returns:
            bool: True if this call created it.
        """
        name = name or self.collection_name
        try:
            if await self.client.collection_exists(name):
                return False
            await self.client.create_collection(
                collection_name=name,
                vectors_config=models.VectorParams(
                    size=dim or self.dimensions,
                    distance=metric or self.distance,
                ),
            )
        except Exception as e:
            # A concurrent request may have created it between the two calls.
            if await self._exists_quietly(name):
                return False
            raise VectorIndexError("Could not create vector collection", f"{name}: {e}") from e

        logger.info("Created vector collection %s (dim=%s, distance=%s)", name, dim or self.dimensions, (metric or self.distance).value)
        return True

    async def _exists_quietly(self, name: str) -> bool:
        try:
            return await self.client.collection_exists(name)
        except Exception:
            logger.warning("Existence re-check for %s failed", name, exc_info=True)
            return False

    async def upsert(self, points: list[IndexedPoint]) -> None:
        """Store points in one request; it succeeds or fails as a whole."""
        if not points:
            return
        for point in points:
            if len(point.vector) != self.dimensions:
                raise VectorIndexError(
                    "Vector dimensionality mismatch",
                    f"point {point.id}: expected {self.dimensions}, got {len(point.vector)}",
                )
        try:
            await self.client.upsert(
                collection_name=self.collection_name,
                points=[
                    models.PointStruct(id=p.id, vector=p.vector, payload=p.payload)
                    for p in points
                ],
                wait=True,
            )
        except Exception as e:
            raise VectorIndexError("Vector upsert failed", str(e)) from e

    async def search(self, vector: list[float], k: int) -> list[models.ScoredPoint]:
        """Return the k nearest points, most similar first, with payloads."""
        if k <= 0:
            return []
        try:
            response = await self.client.query_points(
                collection_name=self.collection_name,
                query=vector,
                limit=k,
                with_payload=True,
                with_vectors=False,
            )
        except Exception as e:
            raise VectorIndexError("Vector search failed", str(e)) from e
        return response.points

    async def describe(self) -> CollectionSummary:
        try:
            info = await self.client.get_collection(self.collection_name)
        except Exception as e:
            raise VectorIndexError("Could not read collection info", str(e)) from e
        status = getattr(info.status, "value", info.status)
        return CollectionSummary(
            name=self.collection_name,
            points_count=info.points_count or 0,
            status=str(status),
        )

    async def scroll_all(self, page_size: int = 256) -> AsyncIterator[models.Record]:
        """Walk every point (payload only), following Qdrant's page cursor."""
        offset = None
        page = 1
        while True:
            try:
                records, offset = await self.client.scroll(
                    collection_name=self.collection_name,
                    limit=page_size,
                    offset=offset,
                    with_payload=True,
                    with_vectors=False,
                )
            except Exception as e:
                raise VectorIndexError("Vector scroll failed", str(e)) from e
            logger.debug("Fetched page %d (%d points) from %s", page, len(records), self.collection_name)
            for record in records:
                yield record
            if offset is None:
                break
            page += 1

    async def close(self) -> None:
        await self.client.close()


def create_vector_index() -> VectorIndex:
    """Build the index client from env configuration."""
    settings = get_settings()
    client = AsyncQdrantClient(
        url=settings.QDRANT_URL,
        api_key=settings.QDRANT_API_KEY or None,
    )
    return VectorIndex(
        client=client,
        collection_name=settings.QDRANT_COLLECTION,
        dimensions=settings.EMBEDDING_DIMENSIONS,
    )
