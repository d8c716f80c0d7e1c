"""Document excerpt lookup: cache, then fetch and extract."""

import asyncio
import logging

from backend.app.db.repositories import DocumentRecord
from backend.app.docs.cache import ExcerptCache
from backend.app.docs.extractor import PdfExcerptExtractor
from backend.app.docs.fetcher import HttpByteFetcher
from backend.app.utils.metrics import excerpt_cache_hits_total

logger = logging.getLogger(__name__)


class ExcerptService:
    """Produces the grounding excerpt for a document."""

    def __init__(
        self,
        fetcher: HttpByteFetcher,
        extractor: PdfExcerptExtractor,
        cache: ExcerptCache,
    ) -> None:
        self._fetcher = fetcher
        self._extractor = extractor
        self._cache = cache

    async def excerpt_for(self, document: DocumentRecord) -> str:
        """Return the excerpt for `document`.

        Raises:
            ExtractionError: If the bytes cannot be fetched or parsed
        """
        cached = self._cache.get(document.id)
        if cached is not None:
            excerpt_cache_hits_total.inc()
            return cached

        file_bytes = await self._fetcher.fetch_bytes(document.url)
        # pdfplumber is synchronous and CPU bound
        excerpt = await asyncio.to_thread(self._extractor.extract, file_bytes)
        logger.info(f"Extracted {len(excerpt)} chars from file {document.id}")

        self._cache.set(document.id, excerpt)
        return excerpt
