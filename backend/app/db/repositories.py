"""Repository protocol interfaces for data access."""

import threading
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Protocol
from uuid import UUID


class UploadStatus(str, Enum):
    """Processing status of an uploaded file."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


@dataclass(frozen=True)
class DocumentRecord:
    """Uploaded document metadata."""

    id: UUID
    user_id: str
    name: str
    key: str
    url: str
    upload_status: UploadStatus
    created_at: datetime


@dataclass(frozen=True)
class MessageRecord:
    """Persisted chat message."""

    id: UUID
    document_id: UUID
    user_id: str
    is_user_message: bool
    text: str
    created_at: datetime


@dataclass
class MessagePage:
    """One newest-first page of conversation history."""

    messages: list[MessageRecord]
    next_cursor: UUID | None


class MonotonicClock:
    """Issues UTC timestamps that never go backwards within a process.

    Two appends in a row always get strictly increasing timestamps, so the
    (created_at, id) order of a turn is the order in which it was written.
    """

    def __init__(self) -> None:
        self._last: datetime | None = None
        self._lock = threading.Lock()

    def now(self) -> datetime:
        """Return the next timestamp."""
        with self._lock:
            current = datetime.now(UTC)
            if self._last is not None and current <= self._last:
                current = self._last + timedelta(microseconds=1)
            self._last = current
            return current


class ConversationStore(Protocol):
    """Durable ordered log of messages per document."""

    async def append(
        self,
        document_id: UUID,
        user_id: str,
        is_user_message: bool,
        text: str,
    ) -> MessageRecord:
        """Insert a new message with a server-assigned id and timestamp.

        Raises:
            StorageError: If the underlying storage is unavailable
        """
        ...

    async def recent_window(self, document_id: UUID, limit: int) -> list[MessageRecord]:
        """Return up to `limit` most recent messages, oldest first.

        Raises:
            StorageError: If the underlying storage is unavailable
        """
        ...

    async def page(
        self, document_id: UUID, limit: int, cursor: UUID | None = None
    ) -> MessagePage:
        """Return a newest-first page of messages older than `cursor`.

        Raises:
            StorageError: If the underlying storage is unavailable
        """
        ...

    async def all_messages(self, document_id: UUID) -> list[MessageRecord]:
        """Return the full conversation, oldest first.

        Raises:
            StorageError: If the underlying storage is unavailable
        """
        ...


class DocumentRegistry(Protocol):
    """Read access to uploaded documents."""

    async def find_owned_document(self, document_id: UUID, user_id: str) -> DocumentRecord | None:
        """Get a document if it exists and belongs to `user_id`."""
        ...

    async def list_documents(self, user_id: str) -> list[DocumentRecord]:
        """List the user's documents, newest first."""
        ...

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
        ...
