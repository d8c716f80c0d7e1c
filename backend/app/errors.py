"""Error taxonomy for chat turns.

Every error carries the HTTP status the API surface reports for it, so routes
can render any ChatError without a per-type mapping.
"""

from fastapi import status


class ChatError(Exception):
    """Base class for all chat turn failures."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message: str = "internal error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message


class Unauthorized(ChatError):
    """No authenticated caller."""

    status_code = status.HTTP_401_UNAUTHORIZED
    public_message = "Unauthorized"


class InputValidationError(ChatError):
    """Request body failed validation."""

    status_code = status.HTTP_400_BAD_REQUEST
    public_message = "Invalid request"


class NotFound(ChatError):
    """Document does not exist or is not owned by the caller."""

    status_code = status.HTTP_404_NOT_FOUND
    public_message = "Not found"


class ExtractionError(ChatError):
    """Document bytes could not be fetched or parsed into text."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message = "Failed to process PDF"


class StorageError(ChatError):
    """Conversation store is unavailable."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    public_message = "Failed to store message"


class UpstreamError(ChatError):
    """Completion provider transport failure (retryable class)."""

    status_code = status.HTTP_502_BAD_GATEWAY
    public_message = "Failed to generate response"


class UpstreamProtocolError(ChatError):
    """Completion provider answered with an unexpected shape. Never retried."""

    status_code = status.HTTP_502_BAD_GATEWAY
    public_message = "Invalid response from completion provider"
