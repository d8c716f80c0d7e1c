"""Request context for ownership enforcement."""

from dataclasses import dataclass


@dataclass(frozen=True)
class RequestContext:
    """Request context containing the caller's identity.

    Used to enforce ownership boundaries in all database operations. The user
    id is an opaque string issued by the identity provider.
    """

    user_id: str
