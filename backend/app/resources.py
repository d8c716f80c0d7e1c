"""Process-wide resources shared by all requests.

Built once at startup and closed at shutdown: the database engine, the HTTP
client used for document fetches and completion calls, and the services
assembled on top of them.
"""

import logging

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine

from backend.app.config import Settings
from backend.app.db.engine import create_async_engine_from_settings, create_session_factory
from backend.app.db.repositories import ConversationStore, DocumentRegistry
from backend.app.db.sql_repositories import SqlConversationStore, SqlDocumentRegistry
from backend.app.docs.cache import ExcerptCache
from backend.app.docs.excerpts import ExcerptService
from backend.app.docs.extractor import PdfExcerptExtractor
from backend.app.docs.fetcher import HttpByteFetcher
from backend.app.llm.client import (
    CompletionGateway,
    completion_options_from_settings,
    create_completion_gateway,
)
from backend.app.orchestration.turn import TurnOrchestrator
from backend.app.utils.logging import StructuredCompletionLogger, TurnLogger
from backend.app.utils.metrics import PrometheusCompletionMetrics

logger = logging.getLogger(__name__)


class AppResources:
    """Container for the long-lived collaborators of the chat service."""

    def __init__(
        self,
        *,
        settings: Settings,
        conversations: ConversationStore,
        documents: DocumentRegistry,
        gateway: CompletionGateway,
        http_client: httpx.AsyncClient,
        engine: AsyncEngine | None = None,
        excerpts: ExcerptService | None = None,
    ) -> None:
        self.settings = settings
        self.conversations = conversations
        self.documents = documents
        self.gateway = gateway
        self.http_client = http_client
        self.engine = engine
        self.excerpts = excerpts or ExcerptService(
            HttpByteFetcher(http_client, timeout_seconds=settings.fetch_timeout_seconds),
            PdfExcerptExtractor(max_chars=settings.excerpt_max_chars),
            ExcerptCache(
                ttl_seconds=settings.excerpt_cache_ttl_seconds,
                max_entries=settings.excerpt_cache_max_entries,
            ),
        )
        self.orchestrator = TurnOrchestrator(
            conversations,
            documents,
            self.excerpts,
            gateway,
            options=completion_options_from_settings(settings),
            context_window_size=settings.context_window_size,
            turn_logger=TurnLogger(),
        )

    @classmethod
    def create(cls, settings: Settings) -> "AppResources":
        """Build SQL-backed resources from settings."""
        engine = create_async_engine_from_settings(settings)
        session_factory = create_session_factory(engine)
        http_client = httpx.AsyncClient(timeout=settings.completion_timeout_seconds)
        gateway = create_completion_gateway(
            settings,
            http_client,
            metrics=PrometheusCompletionMetrics(),
            completion_logger=StructuredCompletionLogger(),
        )

        return cls(
            settings=settings,
            conversations=SqlConversationStore(session_factory),
            documents=SqlDocumentRegistry(session_factory),
            gateway=gateway,
            http_client=http_client,
            engine=engine,
        )

    async def aclose(self) -> None:
        """Release network and database resources."""
        await self.http_client.aclose()
        if self.engine is not None:
            await self.engine.dispose()
        logger.info("Application resources closed")
