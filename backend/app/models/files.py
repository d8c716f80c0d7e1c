"""File API models."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel

from backend.app.db.repositories import DocumentRecord, UploadStatus


class FileOut(BaseModel):
    """Uploaded file metadata."""

    id: UUID
    name: str
    upload_status: UploadStatus
    created_at: datetime

    @classmethod
    def from_record(cls, record: DocumentRecord) -> "FileOut":
        return cls(
            id=record.id,
            name=record.name,
            upload_status=record.upload_status,
            created_at=record.created_at,
        )


class UploadStatusOut(BaseModel):
    status: UploadStatus
