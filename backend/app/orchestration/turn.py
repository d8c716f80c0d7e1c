"""Turn orchestrator: runs one chat turn from request to persisted reply.

A turn writes the user message, grounds the prompt in the document excerpt and
recent history, calls the completion gateway and writes the assistant reply.
Happens-before: user message write -> completion call -> assistant message write.

Streaming turns hand the upstream stream to a background pump task. The pump
runs to completion even if the client goes away, so the assistant message is
persisted whenever the provider finishes the reply.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any
from uuid import UUID

from pydantic import ValidationError

from backend.app.db.context import RequestContext
from backend.app.db.repositories import (
    ConversationStore,
    DocumentRecord,
    DocumentRegistry,
    MessageRecord,
)
from backend.app.docs.excerpts import ExcerptService
from backend.app.errors import (
    ChatError,
    InputValidationError,
    NotFound,
    StorageError,
    Unauthorized,
    UpstreamProtocolError,
)
from backend.app.llm.client import CompletionGateway, ReplyStream
from backend.app.llm.prompt import build_prompt
from backend.app.models.completion import CompletionOptions, PromptMessage
from backend.app.models.messages import SendMessageRequest
from backend.app.orchestration.state import TurnMode, TurnPhase, TurnState
from backend.app.utils.logging import TurnLogger
from backend.app.utils.metrics import record_turn

logger = logging.getLogger(__name__)


@dataclass
class PreparedTurn:
    """A turn whose user message is stored and whose prompt is ready."""

    state: TurnState
    document: DocumentRecord
    user_message: MessageRecord
    prompt: list[PromptMessage]


@dataclass
class TurnReply:
    """Result of a non-streaming turn."""

    text: str
    user_message_id: UUID
    assistant_message_id: UUID | None


@dataclass(frozen=True)
class TurnFragment:
    text: str


@dataclass(frozen=True)
class TurnFinished:
    text: str
    assistant_message_id: UUID | None


@dataclass(frozen=True)
class TurnFailed:
    error: ChatError


TurnEvent = TurnFragment | TurnFinished | TurnFailed


class TurnStream:
    """Consumer side of a streaming turn."""

    def __init__(self, state: TurnState, queue: "asyncio.Queue[TurnEvent]", task: asyncio.Task) -> None:
        self.state = state
        self._queue = queue
        self._task = task

    async def events(self) -> AsyncIterator[TurnEvent]:
        """Yield fragments, then exactly one TurnFinished or TurnFailed."""
        while True:
            event = await self._queue.get()
            yield event
            if not isinstance(event, TurnFragment):
                return

    async def wait_closed(self) -> None:
        """Wait until the reply is persisted (or the turn has failed)."""
        await asyncio.shield(self._task)


def _validation_summary(error: ValidationError) -> str:
    fields = sorted({".".join(str(p) for p in err["loc"]) or "body" for err in error.errors()})
    return f"Invalid request: {', '.join(fields)}"


class TurnOrchestrator:
    """Runs chat turns against the store, the excerpt service and the gateway."""

    def __init__(
        self,
        conversations: ConversationStore,
        documents: DocumentRegistry,
        excerpts: ExcerptService,
        gateway: CompletionGateway,
        *,
        options: CompletionOptions,
        context_window_size: int = 6,
        turn_logger: TurnLogger | None = None,
    ) -> None:
        self._conversations = conversations
        self._documents = documents
        self._excerpts = excerpts
        self._gateway = gateway
        self._options = options
        self._window_size = context_window_size
        self._turn_logger = turn_logger or TurnLogger()
        self._pumps: set[asyncio.Task] = set()

    async def prepare(
        self, ctx: RequestContext | None, payload: Any, *, mode: TurnMode
    ) -> PreparedTurn:
        """Run the turn up to a ready prompt.

        Args:
            ctx: Authenticated caller, None if the request carried no valid session
            payload: Decoded JSON body (None if the body was not valid JSON)
            mode: "stream" or "complete"

        Returns:
            PreparedTurn with the stored user message and the prompt

        Raises:
            Unauthorized: No caller
            InputValidationError: Body is missing fields or has a blank message
            NotFound: Document missing or owned by someone else
            StorageError: User message could not be written
            ExtractionError: Document could not be fetched or parsed
        """
        state = TurnState(mode=mode)
        try:
            if ctx is None:
                raise Unauthorized()
            state.user_id = ctx.user_id

            self._enter(state, TurnPhase.VALIDATING_INPUT)
            try:
                request = SendMessageRequest.model_validate(payload)
            except ValidationError as e:
                raise InputValidationError(_validation_summary(e)) from e
            state.document_id = request.document_id

            self._enter(state, TurnPhase.AUTHORIZING)
            document = await self._documents.find_owned_document(request.document_id, ctx.user_id)
            if document is None:
                raise NotFound("File not found")

            self._enter(state, TurnPhase.PERSISTING_USER_MESSAGE)
            user_message = await self._conversations.append(
                document.id, ctx.user_id, True, request.message
            )
            state.user_message_id = user_message.id

            self._enter(state, TurnPhase.BUILDING_CONTEXT)
            excerpt = await self._excerpts.excerpt_for(document)
            prior = await self._prior_messages(document.id, user_message.id)
            prompt = build_prompt(excerpt, prior, request.message)
        except ChatError as e:
            self._finish_failed(state, e)
            raise

        return PreparedTurn(state=state, document=document, user_message=user_message, prompt=prompt)

    async def reply(self, turn: PreparedTurn) -> TurnReply:
        """Complete the turn without streaming.

        Raises:
            UpstreamError: Provider failed after all retries
            UpstreamProtocolError: Provider reply had an unexpected shape
        """
        state = turn.state
        try:
            self._enter(state, TurnPhase.CALLING_COMPLETION)
            result = await self._gateway.complete(turn.prompt, self._options, state.trace_id)
        except ChatError as e:
            self._finish_failed(state, e)
            raise

        self._enter(state, TurnPhase.RECEIVING_REPLY)
        state.reply_text = result.text
        assistant_id = await self._persist_reply(turn, result.text)
        self._finish_ok(state)

        return TurnReply(
            text=result.text,
            user_message_id=turn.user_message.id,
            assistant_message_id=assistant_id,
        )

    async def open_stream(self, turn: PreparedTurn) -> TurnStream:
        """Open the upstream stream and start forwarding it.

        Raises:
            UpstreamError: The stream could not be opened after all retries
        """
        state = turn.state
        try:
            self._enter(state, TurnPhase.CALLING_COMPLETION)
            upstream = await self._gateway.stream(turn.prompt, self._options, state.trace_id)
        except ChatError as e:
            self._finish_failed(state, e)
            raise

        self._enter(state, TurnPhase.STREAMING_REPLY)
        queue: asyncio.Queue[TurnEvent] = asyncio.Queue()
        task = asyncio.create_task(self._pump(turn, upstream, queue))
        self._pumps.add(task)
        task.add_done_callback(self._pumps.discard)
        return TurnStream(state, queue, task)

    async def _pump(
        self, turn: PreparedTurn, upstream: ReplyStream, queue: "asyncio.Queue[TurnEvent]"
    ) -> None:
        state = turn.state
        try:
            async for fragment in upstream.fragments():
                queue.put_nowait(TurnFragment(fragment))
            state.reply_text = upstream.text
            if not state.reply_text.strip():
                raise UpstreamProtocolError("Completion provider streamed an empty reply")
        except ChatError as e:
            self._finish_failed(state, e)
            queue.put_nowait(TurnFailed(e))
            return
        except Exception as e:
            logger.exception(f"Turn {state.trace_id} stream pump crashed")
            error = ChatError()
            self._finish_failed(state, error, reason=type(e).__name__)
            queue.put_nowait(TurnFailed(error))
            return

        assistant_id = await self._persist_reply(turn, state.reply_text)
        self._finish_ok(state)
        queue.put_nowait(TurnFinished(text=state.reply_text, assistant_message_id=assistant_id))

    async def _prior_messages(self, document_id: UUID, current_id: UUID) -> list[MessageRecord]:
        """Most recent messages before the one just written, oldest first."""
        window = await self._conversations.recent_window(document_id, self._window_size + 1)
        prior = [m for m in window if m.id != current_id]
        return prior[-self._window_size :] if self._window_size > 0 else []

    async def _persist_reply(self, turn: PreparedTurn, text: str) -> UUID | None:
        state = turn.state
        self._enter(state, TurnPhase.PERSISTING_REPLY)
        try:
            record = await self._conversations.append(turn.document.id, turn.user_message.user_id, False, text)
        except StorageError:
            # Reply already delivered; the turn still counts as answered
            logger.error(f"Turn {state.trace_id}: assistant message was not stored")
            return None
        state.assistant_message_id = record.id
        return record.id

    def _enter(self, state: TurnState, phase: TurnPhase) -> None:
        state.advance(phase)
        self._turn_logger.log_phase(
            state.trace_id,
            phase.value,
            document_id=str(state.document_id) if state.document_id else None,
        )

    def _finish_ok(self, state: TurnState) -> None:
        self._enter(state, TurnPhase.DONE)
        record_turn(state.mode, "success")
        self._turn_logger.log_outcome(state.trace_id, state.mode, "success")

    def _finish_failed(self, state: TurnState, error: ChatError, reason: str | None = None) -> None:
        reason = reason or type(error).__name__
        state.fail(reason)
        record_turn(state.mode, reason)
        self._turn_logger.log_outcome(state.trace_id, state.mode, "error", error_reason=reason)
