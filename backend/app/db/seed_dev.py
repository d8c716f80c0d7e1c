"""Dev seeding helper for stub authentication."""

import asyncio
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.db.engine import create_session_factory, get_async_engine
from backend.app.db.models import File
from backend.app.db.sql_repositories import SqlDocumentRegistry

# Matches the bearer token accepted by the stub auth in backend/app/api/auth.py
DEV_USER_ID = "dev-user"
DEV_FILE_KEY = "dev/sample.pdf"
DEV_FILE_URL = "https://www.w3.org/WAI/ER/tests/xhtml/testfiles/resources/pdf/dummy.pdf"


async def seed_dev_file(
    session_factory: async_sessionmaker[AsyncSession] | None = None,
) -> uuid.UUID:
    """Register a sample file for the dev user.

    Idempotent: the file is looked up by its storage key first.

    Returns:
        Id of the dev file
    """
    if session_factory is None:
        session_factory = create_session_factory(get_async_engine())

    async with session_factory() as session:
        result = await session.execute(select(File).where(File.key == DEV_FILE_KEY))
        existing = result.scalar_one_or_none()

    if existing:
        print(f"Dev file already exists: {existing.id}")
        return existing.id

    registry = SqlDocumentRegistry(session_factory)
    record = await registry.register_document(
        user_id=DEV_USER_ID,
        name="sample.pdf",
        key=DEV_FILE_KEY,
        url=DEV_FILE_URL,
    )
    print(f"Created dev file {record.id} for user {DEV_USER_ID}")
    return record.id


if __name__ == "__main__":
    asyncio.run(seed_dev_file())
