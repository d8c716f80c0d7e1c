"""Session dependencies.

Stub for the external identity provider: a bearer token is the opaque user id
("Bearer <user_id>"). Ownership checks downstream only ever compare user ids.
"""

from typing import Annotated

from fastapi import Depends, Header

from backend.app.db.context import RequestContext
from backend.app.errors import Unauthorized


async def get_optional_context(
    authorization: Annotated[str | None, Header()] = None,
) -> RequestContext | None:
    """Extract request context from the authorization header.

    Args:
        authorization: Authorization header (e.g., "Bearer <user_id>")

    Returns:
        RequestContext, or None when the header is missing or malformed
    """
    if not authorization or not authorization.startswith("Bearer "):
        return None

    user_id = authorization[7:].strip()  # Strip "Bearer "
    if not user_id or any(ch.isspace() for ch in user_id):
        return None

    return RequestContext(user_id=user_id)


async def get_current_context(
    ctx: Annotated[RequestContext | None, Depends(get_optional_context)],
) -> RequestContext:
    """Require an authenticated caller.

    Raises:
        Unauthorized: If no valid session is present
    """
    if ctx is None:
        raise Unauthorized()
    return ctx
