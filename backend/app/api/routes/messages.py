"""Chat endpoints - POST /message (streamed or single-shot) and history paging."""

import json
import logging
import uuid
from collections.abc import AsyncGenerator
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse, Response, StreamingResponse

from backend.app.api.auth import get_current_context, get_optional_context
from backend.app.api.deps import get_conversations, get_documents, get_orchestrator, get_resources
from backend.app.db.context import RequestContext
from backend.app.db.repositories import ConversationStore, DocumentRecord, DocumentRegistry
from backend.app.errors import InputValidationError, NotFound
from backend.app.export.transcript import TranscriptPdfWriter, render_markdown
from backend.app.models.events import DONE_FRAME, ContentFrame
from backend.app.models.messages import MessagePageOut
from backend.app.orchestration.turn import TurnFinished, TurnFragment, TurnOrchestrator, TurnStream
from backend.app.resources import AppResources

logger = logging.getLogger(__name__)

router = APIRouter(tags=["messages"])

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Disable nginx buffering
}


async def _read_json(request: Request) -> Any:
    """Decode the body, None if it is empty or not JSON."""
    body = await request.body()
    if not body:
        return None
    try:
        return json.loads(body)
    except ValueError:
        return None


def _wants_stream(request: Request) -> bool:
    return "text/event-stream" in request.headers.get("accept", "")


@router.post("/message", response_model=None)
async def send_message(
    request: Request,
    ctx: Annotated[RequestContext | None, Depends(get_optional_context)],
    orchestrator: Annotated[TurnOrchestrator, Depends(get_orchestrator)],
) -> Response:
    """Run one chat turn about a file.

    Body: {"documentId": <uuid>, "message": <text>} ("fileId" is accepted too).

    Returns:
        SSE stream of {"content": ...} frames ending in [DONE] when the client
        accepts text/event-stream, otherwise the full reply as text/plain
    """
    payload = await _read_json(request)
    streaming = _wants_stream(request)
    turn = await orchestrator.prepare(ctx, payload, mode="stream" if streaming else "complete")

    if not streaming:
        reply = await orchestrator.reply(turn)
        return PlainTextResponse(reply.text)

    turn_stream = await orchestrator.open_stream(turn)
    return StreamingResponse(
        _event_generator(turn_stream),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )


async def _event_generator(turn_stream: TurnStream) -> AsyncGenerator[str, None]:
    """Forward turn events as SSE frames.

    [DONE] is only sent once the reply is stored. A failed turn ends the stream
    without it.
    """
    async for event in turn_stream.events():
        if isinstance(event, TurnFragment):
            yield ContentFrame(content=event.text).to_sse()
        elif isinstance(event, TurnFinished):
            yield DONE_FRAME
        else:
            logger.warning(f"Turn {turn_stream.state.trace_id} ended early: {type(event.error).__name__}")


async def _owned_document(
    documents: DocumentRegistry, file_id: uuid.UUID, ctx: RequestContext
) -> DocumentRecord:
    document = await documents.find_owned_document(file_id, ctx.user_id)
    if document is None:
        raise NotFound("File not found")
    return document


@router.get("/files/{file_id}/messages", response_model=MessagePageOut)
async def list_messages(
    file_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    documents: Annotated[DocumentRegistry, Depends(get_documents)],
    conversations: Annotated[ConversationStore, Depends(get_conversations)],
    resources: Annotated[AppResources, Depends(get_resources)],
    limit: Annotated[int | None, Query(ge=1)] = None,
    cursor: Annotated[uuid.UUID | None, Query()] = None,
) -> MessagePageOut:
    """Page through a file's conversation, newest first.

    Args:
        file_id: File ID
        limit: Page size (default and maximum from settings)
        cursor: next_cursor of the previous page

    Returns:
        Messages and the cursor for the next (older) page
    """
    max_limit = resources.settings.messages_page_max
    if limit is not None and limit > max_limit:
        raise InputValidationError(f"Invalid request: limit must be at most {max_limit}")

    await _owned_document(documents, file_id, ctx)
    page_size = limit or resources.settings.messages_page_limit
    page = await conversations.page(file_id, page_size, cursor)
    return MessagePageOut.from_page(page)


@router.get("/files/{file_id}/messages/export", response_model=None)
async def export_messages(
    file_id: uuid.UUID,
    ctx: Annotated[RequestContext, Depends(get_current_context)],
    documents: Annotated[DocumentRegistry, Depends(get_documents)],
    conversations: Annotated[ConversationStore, Depends(get_conversations)],
    resources: Annotated[AppResources, Depends(get_resources)],
    format: Annotated[Literal["md", "pdf"], Query()] = "md",
) -> Response:
    """Download the whole conversation as Markdown or PDF."""
    document = await _owned_document(documents, file_id, ctx)
    messages = await conversations.all_messages(file_id)
    site_name = resources.settings.export_site_name
    filename = f"chat-{file_id}.{format}"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}

    if format == "pdf":
        content = TranscriptPdfWriter(site_name).render(document, messages)
        return Response(content=content, media_type="application/pdf", headers=headers)

    return Response(
        content=render_markdown(document, messages, site_name),
        media_type="text/markdown; charset=utf-8",
        headers=headers,
    )
