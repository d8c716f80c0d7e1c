"""File endpoints - listing, lookup and upload status."""

import uuid
from typing import Annotated

from fastapi import APIRouter, Depends

from backend.app.api.auth import get_current_context
from backend.app.api.deps import get_documents
from backend.app.db.context import RequestContext
from backend.app.db.repositories import DocumentRegistry, UploadStatus
from backend.app.errors import NotFound
from backend.app.models.files import FileOut, UploadStatusOut

router = APIRouter(prefix="/files", tags=["files"])


@router.get("", response_model=list[FileOut])
async def list_files(
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    documents: Annotated[DocumentRegistry, Depends(get_documents)],
) -> list[FileOut]:
    """List the caller's files, newest first."""
    records = await documents.list_documents(ctx.user_id)
    return [FileOut.from_record(r) for r in records]


@router.get("/{file_id}", response_model=FileOut)
async def get_file(
    file_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    documents: Annotated[DocumentRegistry, Depends(get_documents)],
) -> FileOut:
    """Get one file owned by the caller.

    Raises:
        NotFound: If the file does not exist or belongs to someone else
    """
    record = await documents.find_owned_document(file_id, ctx.user_id)
    if record is None:
        raise NotFound("File not found")
    return FileOut.from_record(record)


@router.get("/{file_id}/status", response_model=UploadStatusOut)
async def get_upload_status(
    file_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    documents: Annotated[DocumentRegistry, Depends(get_documents)],
) -> UploadStatusOut:
    """Poll upload processing status.

    A file the caller cannot see yet reports PENDING, since the upload service
    may not have registered it.
    """
    record = await documents.find_owned_document(file_id, ctx.user_id)
    if record is None:
        return UploadStatusOut(status=UploadStatus.PENDING)
    return UploadStatusOut(status=record.upload_status)
