"""Tests for PDF excerpt extraction, fetching and caching."""

import uuid
from datetime import UTC, datetime

import httpx
import pytest

from backend.app.db.repositories import DocumentRecord, UploadStatus
from backend.app.docs.cache import ExcerptCache
from backend.app.docs.excerpts import ExcerptService
from backend.app.docs.extractor import PdfExcerptExtractor
from backend.app.docs.fetcher import HttpByteFetcher
from backend.app.errors import ExtractionError


class TestPdfExcerptExtractor:
    def test_extract_returns_text(self, sample_pdf_bytes: bytes) -> None:
        result = PdfExcerptExtractor().extract(sample_pdf_bytes)
        assert "A widget is a small device." in result

    def test_extract_multi_page_in_order(self, multi_page_pdf_bytes: bytes) -> None:
        result = PdfExcerptExtractor().extract(multi_page_pdf_bytes)
        assert result.index("Page one content") < result.index("Page two content")

    def test_extract_empty_pdf_returns_empty_string(self, empty_pdf_bytes: bytes) -> None:
        assert PdfExcerptExtractor().extract(empty_pdf_bytes) == ""

    def test_extract_truncates_to_max_chars(self, long_pdf_bytes: bytes) -> None:
        extractor = PdfExcerptExtractor(max_chars=2000)
        result = extractor.extract(long_pdf_bytes)

        assert len(result) == 2000
        assert result.startswith("Page 00")

    def test_extract_is_deterministic(self, long_pdf_bytes: bytes) -> None:
        extractor = PdfExcerptExtractor()
        assert extractor.extract(long_pdf_bytes) == extractor.extract(long_pdf_bytes)

    def test_extract_raises_on_invalid_bytes(self) -> None:
        with pytest.raises(ExtractionError):
            PdfExcerptExtractor().extract(b"not a pdf")

    def test_extract_raises_on_empty_bytes(self) -> None:
        with pytest.raises(ExtractionError):
            PdfExcerptExtractor().extract(b"")

    def test_rejects_non_positive_limit(self) -> None:
        with pytest.raises(ValueError):
            PdfExcerptExtractor(max_chars=0)


class TestExcerptCache:
    def test_get_returns_fresh_entry(self) -> None:
        now = [100.0]
        cache = ExcerptCache(ttl_seconds=60, clock=lambda: now[0])
        doc_id = uuid.uuid4()

        cache.set(doc_id, "text")
        now[0] = 159.0

        assert cache.get(doc_id) == "text"

    def test_get_expires_entry(self) -> None:
        now = [100.0]
        cache = ExcerptCache(ttl_seconds=60, clock=lambda: now[0])
        doc_id = uuid.uuid4()

        cache.set(doc_id, "text")
        now[0] = 160.0

        assert cache.get(doc_id) is None

    def test_zero_ttl_disables_cache(self) -> None:
        cache = ExcerptCache(ttl_seconds=0)
        doc_id = uuid.uuid4()

        cache.set(doc_id, "text")

        assert cache.enabled is False
        assert cache.get(doc_id) is None

    def test_store_sweeps_expired_entries_never_read_again(self) -> None:
        now = [100.0]
        cache = ExcerptCache(ttl_seconds=60, clock=lambda: now[0])
        cache.set(uuid.uuid4(), "stale one")
        cache.set(uuid.uuid4(), "stale two")

        now[0] = 200.0
        fresh_id = uuid.uuid4()
        cache.set(fresh_id, "fresh")

        assert len(cache) == 1
        assert cache.get(fresh_id) == "fresh"

    def test_oldest_entry_is_evicted_past_max_entries(self) -> None:
        cache = ExcerptCache(ttl_seconds=60, max_entries=2, clock=lambda: 100.0)
        first, second, third = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()

        cache.set(first, "1")
        cache.set(second, "2")
        cache.set(first, "1 again")
        cache.set(third, "3")

        assert len(cache) == 2
        assert cache.get(second) is None
        assert cache.get(first) == "1 again"
        assert cache.get(third) == "3"


def _document(url: str) -> DocumentRecord:
    return DocumentRecord(
        id=uuid.uuid4(),
        user_id="u1",
        name="manual.pdf",
        key="k1",
        url=url,
        upload_status=UploadStatus.SUCCESS,
        created_at=datetime.now(UTC),
    )


@pytest.mark.asyncio
async def test_fetcher_raises_extraction_error_on_404() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(404)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(ExtractionError):
            await HttpByteFetcher(client).fetch_bytes("https://files.test/missing.pdf")


@pytest.mark.asyncio
async def test_fetcher_raises_extraction_error_on_transport_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        with pytest.raises(ExtractionError):
            await HttpByteFetcher(client).fetch_bytes("https://files.test/a.pdf")


@pytest.mark.asyncio
async def test_excerpt_service_fetches_once_when_cached(sample_pdf_bytes: bytes) -> None:
    calls: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(str(request.url))
        return httpx.Response(200, content=sample_pdf_bytes)

    document = _document("https://files.test/manual.pdf")
    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        service = ExcerptService(
            HttpByteFetcher(client), PdfExcerptExtractor(), ExcerptCache(ttl_seconds=3600)
        )
        first = await service.excerpt_for(document)
        second = await service.excerpt_for(document)

    assert first == second
    assert "A widget" in first
    assert calls == ["https://files.test/manual.pdf"]
