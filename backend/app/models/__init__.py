"""Models package - re-exports for convenience."""

from backend.app.models.completion import (
    CompletionOptions,
    CompletionRequest,
    CompletionResponse,
    PromptMessage,
    StreamChunk,
)
from backend.app.models.events import DONE_FRAME, ContentFrame
from backend.app.models.files import FileOut, UploadStatusOut
from backend.app.models.messages import MessageOut, MessagePageOut, SendMessageRequest

__all__ = [
    # Completion provider
    "PromptMessage",
    "CompletionOptions",
    "CompletionRequest",
    "CompletionResponse",
    "StreamChunk",
    # Streaming
    "ContentFrame",
    "DONE_FRAME",
    # API
    "SendMessageRequest",
    "MessageOut",
    "MessagePageOut",
    "FileOut",
    "UploadStatusOut",
]
