"""In-memory implementations of repository interfaces."""

import uuid

from backend.app.db.repositories import (
    DocumentRecord,
    MessagePage,
    MessageRecord,
    MonotonicClock,
    UploadStatus,
)


class InMemoryConversationStore:
    """In-memory implementation of ConversationStore."""

    def __init__(self, clock: MonotonicClock | None = None) -> None:
        self._messages: dict[uuid.UUID, list[MessageRecord]] = {}
        self._clock = clock or MonotonicClock()

    async def append(
        self,
        document_id: uuid.UUID,
        user_id: str,
        is_user_message: bool,
        text: str,
    ) -> MessageRecord:
        """Insert a new message."""
        record = MessageRecord(
            id=uuid.uuid4(),
            document_id=document_id,
            user_id=user_id,
            is_user_message=is_user_message,
            text=text,
            created_at=self._clock.now(),
        )
        self._messages.setdefault(document_id, []).append(record)
        return record

    async def recent_window(self, document_id: uuid.UUID, limit: int) -> list[MessageRecord]:
        """Return up to `limit` most recent messages, oldest first."""
        if limit <= 0:
            return []
        return self._ordered(document_id)[-limit:]

    async def page(
        self, document_id: uuid.UUID, limit: int, cursor: uuid.UUID | None = None
    ) -> MessagePage:
        """Return a newest-first page of messages older than `cursor`."""
        newest_first = list(reversed(self._ordered(document_id)))

        if cursor is not None:
            ids = [m.id for m in newest_first]
            if cursor not in ids:
                return MessagePage(messages=[], next_cursor=None)
            newest_first = newest_first[ids.index(cursor) + 1 :]

        messages = newest_first[:limit]
        next_cursor = messages[-1].id if len(newest_first) > limit else None
        return MessagePage(messages=messages, next_cursor=next_cursor)

    async def all_messages(self, document_id: uuid.UUID) -> list[MessageRecord]:
        """Return the full conversation, oldest first."""
        return self._ordered(document_id)

    def _ordered(self, document_id: uuid.UUID) -> list[MessageRecord]:
        return sorted(
            self._messages.get(document_id, []),
            key=lambda m: (m.created_at, m.id),
        )


class InMemoryDocumentRegistry:
    """In-memory implementation of DocumentRegistry."""

    def __init__(self) -> None:
        self._documents: dict[uuid.UUID, DocumentRecord] = {}
        self._clock = MonotonicClock()

    async def find_owned_document(
        self, document_id: uuid.UUID, user_id: str
    ) -> DocumentRecord | None:
        """Get a document if it exists and belongs to `user_id`."""
        record = self._documents.get(document_id)
        if record is None or record.user_id != user_id:
            return None
        return record

    async def list_documents(self, user_id: str) -> list[DocumentRecord]:
        """List the user's documents, newest first."""
        owned = [d for d in self._documents.values() if d.user_id == user_id]
        return sorted(owned, key=lambda d: d.created_at, reverse=True)

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
        record = DocumentRecord(
            id=uuid.uuid4(),
            user_id=user_id,
            name=name,
            key=key,
            url=url,
            upload_status=upload_status,
            created_at=self._clock.now(),
        )
        self._documents[record.id] = record
        return record
