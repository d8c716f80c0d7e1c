"""Logging setup and structured loggers for completion calls and chat turns."""

import logging
from typing import Any

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger once at startup.

    Args:
        level: Log level name (DEBUG, INFO, WARNING, ...)
    """
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT)
    # httpx logs every request at INFO, including the provider URL
    logging.getLogger("httpx").setLevel(logging.WARNING)


class StructuredCompletionLogger:
    """Structured logger for completion provider calls."""

    def log_attempt(
        self,
        trace_id: str,
        mode: str,
        attempt: int,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log a completion attempt with structured data."""
        log_data: dict[str, Any] = {
            "trace_id": trace_id,
            "mode": mode,
            "attempt": attempt,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
        }

        if error_reason:
            log_data["error_reason"] = error_reason

        log_msg = f"Completion {mode} attempt {attempt} - {outcome}"

        if outcome == "success":
            logger.info(log_msg, extra={"structured": log_data})
        else:
            logger.warning(log_msg, extra={"structured": log_data})


class TurnLogger:
    """Structured logger for chat turn phase transitions."""

    def log_phase(self, trace_id: str, phase: str, **fields: Any) -> None:
        """Log entry into a turn phase.

        Args:
            trace_id: Turn trace id
            phase: Phase name
            **fields: Extra ids or counters (never message text)
        """
        log_data: dict[str, Any] = {"trace_id": trace_id, "phase": phase, **fields}
        logger.debug(f"Turn {trace_id} -> {phase}", extra={"structured": log_data})

    def log_outcome(self, trace_id: str, mode: str, outcome: str, error_reason: str | None = None) -> None:
        """Log the final outcome of a turn."""
        log_data: dict[str, Any] = {"trace_id": trace_id, "mode": mode, "outcome": outcome}
        if error_reason:
            log_data["error_reason"] = error_reason

        if outcome == "success":
            logger.info(f"Turn {trace_id} finished", extra={"structured": log_data})
        else:
            logger.warning(f"Turn {trace_id} failed: {error_reason}", extra={"structured": log_data})
