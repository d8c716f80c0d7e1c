"""Shared pytest fixtures for all test suites."""

import io
import json
import os
from collections.abc import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from reportlab.lib.pagesizes import letter
from reportlab.pdfgen import canvas
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool, StaticPool

from backend.app.config import Settings
from backend.app.db.models import Base

PROVIDER_BASE_URL = "https://llm.test/v1"


def make_pdf(*pages: str) -> bytes:
    """Build a PDF with one line of text per page (a blank page for "")."""
    buf = io.BytesIO()
    c = canvas.Canvas(buf, pagesize=letter)
    for text in pages:
        if text:
            c.drawString(72, 720, text)
        c.showPage()
    c.save()
    return buf.getvalue()


def completion_json(content: str | None) -> dict:
    """Non-streaming provider response body."""
    return {
        "id": "cmpl-1",
        "object": "chat.completion",
        "choices": [{"index": 0, "message": {"role": "assistant", "content": content}}],
    }


def sse_body(*fragments: str, done: bool = True) -> bytes:
    """Streaming provider body carrying `fragments` as delta frames."""
    frames = [
        f"data: {json.dumps({'choices': [{'delta': {'content': f}}]})}\n\n" for f in fragments
    ]
    if done:
        frames.append("data: [DONE]\n\n")
    return "".join(frames).encode()


def make_settings(**overrides: object) -> Settings:
    """Settings pointing at the fake provider."""
    values: dict[str, object] = {
        "completion_api_base_url": PROVIDER_BASE_URL,
        "completion_api_key": "test-key",
        "completion_model": "test-model",
    }
    values.update(overrides)
    return Settings(**values)  # type: ignore[arg-type]


class RecordingSleep:
    """Injectable sleep that records requested delays without waiting."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture()
def sample_pdf_bytes() -> bytes:
    """Single-page PDF with known text content."""
    return make_pdf("A widget is a small device.")


@pytest.fixture()
def multi_page_pdf_bytes() -> bytes:
    """Two-page PDF with known text on each page."""
    return make_pdf("Page one content", "Page two content")


@pytest.fixture()
def empty_pdf_bytes() -> bytes:
    """Valid PDF with no text content (blank page)."""
    return make_pdf("")


@pytest.fixture()
def long_pdf_bytes() -> bytes:
    """Forty pages of 70-character lines, well over 2000 characters in total."""
    return make_pdf(*[f"Page {i:02d} " + "x" * 62 for i in range(40)])


@pytest.fixture()
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest_asyncio.fixture
async def sqlite_engine() -> AsyncGenerator[AsyncEngine, None]:
    """In-memory SQLite engine with the schema created.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(sqlite_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(sqlite_engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def postgres_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Create async engine for PostgreSQL integration tests.

    Requires DATABASE_URL to be set to a real PostgreSQL connection string.
    Tests using this fixture should be marked with @pytest.mark.postgres.
    """
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        pytest.skip("DATABASE_URL not set - skipping postgres test")

    if not database_url.startswith(("postgresql://", "postgresql+asyncpg://")):
        pytest.skip(f"DATABASE_URL is not PostgreSQL: {database_url}")

    if database_url.startswith("postgresql://"):
        database_url = database_url.replace("postgresql://", "postgresql+asyncpg://", 1)

    engine = create_async_engine(database_url, poolclass=NullPool, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture()
def settings_factory() -> Callable[..., Settings]:
    """Build Settings for the fake provider, with keyword overrides."""
    return make_settings


@pytest.fixture()
def sse_factory() -> Callable[..., bytes]:
    return sse_body


@pytest.fixture()
def completion_factory() -> Callable[[str | None], dict]:
    return completion_json
