"""SQL implementations of repository interfaces.

Each call opens its own short-lived session and commits a single statement, so
no transaction is ever held open across a completion call.
"""

import logging
import uuid
from datetime import UTC, datetime

from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.app.db.models import File, Message
from backend.app.db.repositories import (
    DocumentRecord,
    MessagePage,
    MessageRecord,
    MonotonicClock,
    UploadStatus,
)
from backend.app.errors import StorageError

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    """SQLite drops tzinfo on the way back; values are always stored as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


def _to_message_record(row: Message) -> MessageRecord:
    return MessageRecord(
        id=row.id,
        document_id=row.file_id,
        user_id=row.user_id,
        is_user_message=row.is_user_message,
        text=row.text,
        created_at=_as_utc(row.created_at),
    )


def _to_document_record(row: File) -> DocumentRecord:
    return DocumentRecord(
        id=row.id,
        user_id=row.user_id,
        name=row.name,
        key=row.key,
        url=row.url,
        upload_status=UploadStatus(row.upload_status),
        created_at=_as_utc(row.created_at),
    )


class SqlConversationStore:
    """SQL implementation of ConversationStore."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: MonotonicClock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or MonotonicClock()

    async def append(
        self,
        document_id: uuid.UUID,
        user_id: str,
        is_user_message: bool,
        text: str,
    ) -> MessageRecord:
        """Insert a new message."""
        row = Message(
            id=uuid.uuid4(),
            file_id=document_id,
            user_id=user_id,
            is_user_message=is_user_message,
            text=text,
            created_at=self._clock.now(),
        )
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Message insert failed for file {document_id}: {type(e).__name__}")
            raise StorageError() from e

        return _to_message_record(row)

    async def recent_window(self, document_id: uuid.UUID, limit: int) -> list[MessageRecord]:
        """Return up to `limit` most recent messages, oldest first."""
        if limit <= 0:
            return []

        query = (
            select(Message)
            .where(Message.file_id == document_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        )
        rows = await self._fetch(query)
        return [_to_message_record(row) for row in reversed(rows)]

    async def page(
        self, document_id: uuid.UUID, limit: int, cursor: uuid.UUID | None = None
    ) -> MessagePage:
        """Return a newest-first page of messages older than `cursor`."""
        query = select(Message).where(Message.file_id == document_id)

        if cursor is not None:
            anchor_rows = await self._fetch(
                select(Message).where(Message.id == cursor, Message.file_id == document_id)
            )
            if not anchor_rows:
                return MessagePage(messages=[], next_cursor=None)
            anchor = anchor_rows[0]
            query = query.where(
                or_(
                    Message.created_at < anchor.created_at,
                    and_(Message.created_at == anchor.created_at, Message.id < anchor.id),
                )
            )

        query = query.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit + 1)
        rows = await self._fetch(query)

        next_cursor = None
        if len(rows) > limit:
            rows = rows[:limit]
            next_cursor = rows[-1].id

        return MessagePage(
            messages=[_to_message_record(row) for row in rows],
            next_cursor=next_cursor,
        )

    async def all_messages(self, document_id: uuid.UUID) -> list[MessageRecord]:
        """Return the full conversation, oldest first."""
        query = (
            select(Message)
            .where(Message.file_id == document_id)
            .order_by(Message.created_at, Message.id)
        )
        rows = await self._fetch(query)
        return [_to_message_record(row) for row in rows]

    async def _fetch(self, query) -> list[Message]:  # type: ignore[no-untyped-def]
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"Message query failed: {type(e).__name__}")
            raise StorageError() from e


class SqlDocumentRegistry:
    """SQL implementation of DocumentRegistry."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: MonotonicClock | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or MonotonicClock()

    async def find_owned_document(
        self, document_id: uuid.UUID, user_id: str
    ) -> DocumentRecord | None:
        """Get a document if it exists and belongs to `user_id`."""
        query = select(File).where(File.id == document_id, File.user_id == user_id)
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                row = result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"File lookup failed for {document_id}: {type(e).__name__}")
            raise StorageError() from e

        return _to_document_record(row) if row else None

    async def list_documents(self, user_id: str) -> list[DocumentRecord]:
        """List the user's documents, newest first."""
        query = select(File).where(File.user_id == user_id).order_by(File.created_at.desc())
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                rows = list(result.scalars().all())
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"File listing failed: {type(e).__name__}")
            raise StorageError() from e

        return [_to_document_record(row) for row in rows]

    async def register_document(
        self,
        *,
        user_id: str,
        name: str,
        key: str,
        url: str,
        upload_status: UploadStatus = UploadStatus.SUCCESS,
    ) -> DocumentRecord:
        """Register an already-uploaded document."""
        now = self._clock.now()
        row = File(
            id=uuid.uuid4(),
            user_id=user_id,
            name=name,
            key=key,
            url=url,
            upload_status=upload_status.value,
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._session_factory() as session:
                session.add(row)
                await session.commit()
        except (SQLAlchemyError, OSError) as e:
            logger.error(f"File insert failed: {type(e).__name__}")
            raise StorageError() from e

        return _to_document_record(row)
