"""Chat message API models."""

from datetime import datetime
from uuid import UUID

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from backend.app.db.repositories import MessagePage, MessageRecord


class SendMessageRequest(BaseModel):
    """Body of POST /message."""

    model_config = ConfigDict(populate_by_name=True)

    document_id: UUID = Field(
        ...,
        validation_alias=AliasChoices("documentId", "fileId", "document_id"),
        description="Id of a file owned by the caller",
    )
    message: str = Field(..., min_length=1, description="The user's question")

    @field_validator("message")
    @classmethod
    def message_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("message must not be blank")
        return v


class MessageOut(BaseModel):
    """A persisted message as returned to clients."""

    id: UUID
    text: str
    is_user_message: bool
    created_at: datetime

    @classmethod
    def from_record(cls, record: MessageRecord) -> "MessageOut":
        return cls(
            id=record.id,
            text=record.text,
            is_user_message=record.is_user_message,
            created_at=record.created_at,
        )


class MessagePageOut(BaseModel):
    """Newest-first page of history for infinite scroll."""

    messages: list[MessageOut]
    next_cursor: UUID | None = None

    @classmethod
    def from_page(cls, page: MessagePage) -> "MessagePageOut":
        return cls(
            messages=[MessageOut.from_record(m) for m in page.messages],
            next_cursor=page.next_cursor,
        )
