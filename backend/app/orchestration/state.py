"""Turn state model for orchestration."""

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum
from typing import Literal
from uuid import UUID, uuid4

TurnMode = Literal["stream", "complete"]


class TurnPhase(str, Enum):
    """Phases of a chat turn, in the order they are entered."""

    AUTHENTICATING = "authenticating"
    VALIDATING_INPUT = "validating_input"
    AUTHORIZING = "authorizing"
    PERSISTING_USER_MESSAGE = "persisting_user_message"
    BUILDING_CONTEXT = "building_context"
    CALLING_COMPLETION = "calling_completion"
    STREAMING_REPLY = "streaming_reply"
    RECEIVING_REPLY = "receiving_reply"
    PERSISTING_REPLY = "persisting_reply"
    DONE = "done"
    ERRORED = "errored"


_NEXT: dict[TurnPhase, set[TurnPhase]] = {
    TurnPhase.AUTHENTICATING: {TurnPhase.VALIDATING_INPUT},
    TurnPhase.VALIDATING_INPUT: {TurnPhase.AUTHORIZING},
    TurnPhase.AUTHORIZING: {TurnPhase.PERSISTING_USER_MESSAGE},
    TurnPhase.PERSISTING_USER_MESSAGE: {TurnPhase.BUILDING_CONTEXT},
    TurnPhase.BUILDING_CONTEXT: {TurnPhase.CALLING_COMPLETION},
    TurnPhase.CALLING_COMPLETION: {TurnPhase.STREAMING_REPLY, TurnPhase.RECEIVING_REPLY},
    TurnPhase.STREAMING_REPLY: {TurnPhase.PERSISTING_REPLY},
    TurnPhase.RECEIVING_REPLY: {TurnPhase.PERSISTING_REPLY},
    TurnPhase.PERSISTING_REPLY: {TurnPhase.DONE},
    TurnPhase.DONE: set(),
    TurnPhase.ERRORED: set(),
}

TERMINAL_PHASES = frozenset({TurnPhase.DONE, TurnPhase.ERRORED})


class InvalidTransition(Exception):
    """Turn was asked to move to a phase it cannot reach from its current one."""

    pass


@dataclass
class TurnState:
    """State of one chat turn.

    Moves forward through TurnPhase; ERRORED is reachable from any
    non-terminal phase and is absorbing.
    """

    mode: TurnMode
    trace_id: str = field(default_factory=lambda: f"turn-{uuid4()}")
    phase: TurnPhase = TurnPhase.AUTHENTICATING
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    user_id: str | None = None
    document_id: UUID | None = None
    user_message_id: UUID | None = None
    assistant_message_id: UUID | None = None
    reply_text: str = ""
    error_reason: str | None = None

    @property
    def finished(self) -> bool:
        return self.phase in TERMINAL_PHASES

    def advance(self, phase: TurnPhase) -> None:
        """Move to `phase`.

        Raises:
            InvalidTransition: If `phase` does not follow the current phase
        """
        if phase not in _NEXT[self.phase]:
            raise InvalidTransition(f"{self.phase.value} -> {phase.value}")
        self.phase = phase
        self.updated_at = datetime.now(UTC)

    def fail(self, reason: str) -> None:
        """Move to ERRORED. A no-op once the turn is finished."""
        if self.finished:
            return
        self.phase = TurnPhase.ERRORED
        self.error_reason = reason
        self.updated_at = datetime.now(UTC)
