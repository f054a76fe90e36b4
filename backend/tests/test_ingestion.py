"""Tests for the ingestion pipeline."""

import asyncio

import pytest
from tenacity import wait_none

from conftest import DIM, CountingEmbeddings, ProviderError
from ragdesk.core.exceptions import BadRequestError, DocumentParseError, EmbeddingAuthError
from ragdesk.features.knowledge.embedding import Embedder
from ragdesk.features.knowledge.ingestion import IngestionService

# chunk_size=100, chunk_overlap=20 in the fixture: step 80
def _text_with_chunks(m: int, seed: str = "doc") -> str:
    length = 100 + 80 * (m - 1)
    base = f"{seed} lorem ipsum dolor sit amet "
    return (base * (length // len(base) + 1))[:length]


def _all_records(index):
    async def collect():
        return [r async for r in index.scroll_all()]

    return asyncio.run(collect())


class TestIngest:
    def test_stores_one_point_per_chunk(self, ingestion, vector_index):
        result = asyncio.run(
            ingestion.ingest(_text_with_chunks(3), {"filename": "a.pdf", "uploader": "a@x.com"})
        )
        assert result.chunks_stored == 3
        assert result.filename == "a.pdf"
        assert len(_all_records(vector_index)) == 3

    def test_payload_shape(self, ingestion, vector_index):
        asyncio.run(
            ingestion.ingest(
                "short text",
                {"filename": "a.pdf", "uploader": "a@x.com", "uploadedAt": "2024-01-01T00:00:00+00:00", "team": "ops"},
            )
        )
        [record] = _all_records(vector_index)
        assert record.payload["text"] == "short text"
        assert record.payload["metadata"] == {
            "filename": "a.pdf",
            "uploader": "a@x.com",
            "uploadedAt": "2024-01-01T00:00:00+00:00",
            "team": "ops",
            "chunkIndex": 0,
        }

    def test_fills_uploaded_at(self, ingestion, vector_index):
        asyncio.run(ingestion.ingest("short text", {"filename": "a.pdf", "uploader": "a@x.com"}))
        [record] = _all_records(vector_index)
        assert record.payload["metadata"]["uploadedAt"]

    def test_creates_collection_on_first_use(self, ingestion, vector_index):
        asyncio.run(ingestion.ingest("hello", {"filename": "a.pdf", "uploader": "a@x.com"}))
        assert asyncio.run(vector_index.client.collection_exists(vector_index.collection_name))

    def test_self_retrieval(self, ingestion, embedder, vector_index):
        text = "To reset your password, go to settings"
        asyncio.run(ingestion.ingest(text, {"filename": "faq.pdf", "uploader": "a@x.com"}))
        asyncio.run(ingestion.ingest("Invoices are emailed monthly", {"filename": "billing.pdf", "uploader": "a@x.com"}))

        async def search():
            return await vector_index.search(await embedder.embed(text), k=2)

        hits = asyncio.run(search())
        assert hits[0].payload["text"] == text

    def test_reingest_is_not_deduplicated(self, ingestion, vector_index):
        meta = {"filename": "a.pdf", "uploader": "a@x.com"}
        first = asyncio.run(ingestion.ingest("same text", meta))
        second = asyncio.run(ingestion.ingest("same text", meta))
        assert set(first.point_ids).isdisjoint(second.point_ids)
        assert len(_all_records(vector_index)) == 2

    @pytest.mark.parametrize("text", ["", "   \n\t "])
    def test_blank_text_is_rejected(self, ingestion, text):
        with pytest.raises(BadRequestError):
            asyncio.run(ingestion.ingest(text, {"filename": "a.pdf", "uploader": "a@x.com"}))

    def test_metadata_must_name_file_and_uploader(self, ingestion):
        with pytest.raises(BadRequestError):
            asyncio.run(ingestion.ingest("text", {"filename": "a.pdf"}))

    def test_overlap_must_be_smaller_than_size(self, embedder, vector_index):
        with pytest.raises(ValueError):
            IngestionService(embedder, vector_index, chunk_size=100, chunk_overlap=100)


class TestPartialFailure:
    def test_chunks_stored_before_failure_remain(self, vector_index):
        model = CountingEmbeddings(fail_from_call=3, error=ProviderError(401))
        ingestion = IngestionService(
            Embedder(model, dimensions=DIM, max_attempts=3, wait=wait_none()),
            vector_index,
            chunk_size=100,
            chunk_overlap=20,
        )
        with pytest.raises(EmbeddingAuthError):
            asyncio.run(ingestion.ingest(_text_with_chunks(5), {"filename": "a.pdf", "uploader": "a@x.com"}))

        records = _all_records(vector_index)
        assert len(records) == 2
        assert sorted(r.payload["metadata"]["chunkIndex"] for r in records) == [0, 1]


class TestConcurrentIngestion:
    def test_ids_are_distinct_across_concurrent_documents(self, ingestion, vector_index):
        n_docs, m_chunks = 6, 4

        async def scenario():
            return await asyncio.gather(*(
                ingestion.ingest(
                    _text_with_chunks(m_chunks, seed=f"doc{i}"),
                    {"filename": f"doc{i}.pdf", "uploader": "a@x.com"},
                )
                for i in range(n_docs)
            ))

        results = asyncio.run(scenario())
        ids = [pid for result in results for pid in result.point_ids]
        assert len(ids) == n_docs * m_chunks
        assert len(set(ids)) == n_docs * m_chunks
        assert len(_all_records(vector_index)) == n_docs * m_chunks


class TestIngestPdf:
    def test_extracts_and_indexes(self, ingestion, vector_index, pdf_factory):
        result = asyncio.run(
            ingestion.ingest_pdf(pdf_factory("To reset your password, go to settings"), "faq.pdf", "a@x.com")
        )
        assert result.chunks_stored == 1
        [record] = _all_records(vector_index)
        assert "go to settings" in record.payload["text"]
        assert record.payload["metadata"]["uploader"] == "a@x.com"

    def test_unreadable_pdf(self, ingestion):
        with pytest.raises(DocumentParseError):
            asyncio.run(ingestion.ingest_pdf(b"not a pdf at all", "bad.pdf", "a@x.com"))
