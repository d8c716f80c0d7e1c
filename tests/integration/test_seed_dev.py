"""Integration tests for dev seeding helper."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.db.seed_dev import DEV_USER_ID, seed_dev_file
from backend.app.db.sql_repositories import SqlDocumentRegistry


@pytest.mark.asyncio
async def test_seed_registers_dev_file(session_factory: async_sessionmaker[AsyncSession]) -> None:
    file_id = await seed_dev_file(session_factory)

    registry = SqlDocumentRegistry(session_factory)
    record = await registry.find_owned_document(file_id, DEV_USER_ID)

    assert record is not None
    assert record.name == "sample.pdf"


@pytest.mark.asyncio
async def test_seed_is_idempotent(session_factory: async_sessionmaker[AsyncSession]) -> None:
    first = await seed_dev_file(session_factory)
    second = await seed_dev_file(session_factory)

    assert first == second
    assert len(await SqlDocumentRegistry(session_factory).list_documents(DEV_USER_ID)) == 1
