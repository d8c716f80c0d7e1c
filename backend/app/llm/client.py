"""Completion gateway for an OpenAI-compatible chat completions API.

Security: the API key comes from settings (environment) only and is never
logged. When no key is configured a deterministic stub gateway is used.

Retry policy: transport errors, timeouts, HTTP 429 and HTTP 5xx are retried up
to `max_attempts` times in total with exponential backoff. Each attempt gets
its own `timeout_seconds` budget; an attempt that runs over it counts as a
timeout and is retried. Streaming calls are only retried while opening the
stream; once the first byte has arrived a failure ends the stream.
"""

import asyncio
import logging
import time
from collections.abc import AsyncIterator, Awaitable, Callable
from dataclasses import dataclass
from typing import Protocol

import httpx
from pydantic import ValidationError

from backend.app.config import Settings
from backend.app.errors import UpstreamError, UpstreamProtocolError
from backend.app.llm.sse import SSEParser
from backend.app.models.completion import (
    CompletionOptions,
    CompletionRequest,
    CompletionResponse,
    PromptMessage,
    StreamChunk,
)

logger = logging.getLogger(__name__)

DONE_SENTINEL = "[DONE]"


# Metrics interface (Prometheus implementation lives in utils.metrics)
class CompletionMetrics:
    """Interface for completion call metrics."""

    def record_latency(self, mode: str, outcome: str, latency_ms: float) -> None:
        """Record completion call latency."""
        pass

    def inc_error(self, reason: str) -> None:
        """Increment error counter."""
        pass

    def inc_skipped_frame(self, reason: str) -> None:
        """Increment skipped SSE frame counter."""
        pass


# Logging interface (structured implementation lives in utils.logging)
class CompletionLogger:
    """Interface for structured logging."""

    def log_attempt(
        self,
        trace_id: str,
        mode: str,
        attempt: int,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log completion attempt."""
        pass


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff between attempts."""

    max_attempts: int = 3
    base_delay_seconds: float = 3.0

    def delay_after(self, attempt: int) -> float:
        """Seconds to wait after failed attempt number `attempt` (1-based)."""
        return self.base_delay_seconds * 2 ** (attempt - 1)


@dataclass
class CompletionResult:
    """Final text of a non-streaming completion."""

    text: str
    attempts: int
    latency_ms: float


class ReplyStream(Protocol):
    """A streamed reply that accumulates what it has yielded."""

    text: str

    def fragments(self) -> AsyncIterator[str]:
        """Yield reply fragments in arrival order."""
        ...


class CompletionGateway(Protocol):
    """Protocol for completion gateway implementations."""

    async def complete(
        self, prompt: list[PromptMessage], options: CompletionOptions, trace_id: str = ""
    ) -> CompletionResult:
        """Run a non-streaming completion.

        Raises:
            UpstreamError: Provider unreachable or failing after all retries
            UpstreamProtocolError: Provider answered with an unexpected shape
        """
        ...

    async def stream(
        self, prompt: list[PromptMessage], options: CompletionOptions, trace_id: str = ""
    ) -> ReplyStream:
        """Open a streaming completion.

        Raises:
            UpstreamError: The stream could not be opened after all retries
        """
        ...


class _TransientFailure(Exception):
    """Attempt failed in a way worth retrying."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class CompletionStream:
    """Streaming reply read incrementally from an open SSE response."""

    def __init__(
        self,
        response: httpx.Response,
        *,
        deadline: float,
        trace_id: str,
        metrics: CompletionMetrics,
        completion_logger: CompletionLogger,
        clock: Callable[[], float],
        attempts: int,
    ) -> None:
        self._response = response
        self._deadline = deadline
        self._trace_id = trace_id
        self._metrics = metrics
        self._logger = completion_logger
        self._clock = clock
        self._attempts = attempts
        self._parser = SSEParser()
        self._started_at = clock()
        self.text = ""
        self.done = False

    async def fragments(self) -> AsyncIterator[str]:
        """Yield content fragments until the provider sends [DONE].

        Raises:
            UpstreamError: Transport failure or timeout mid-stream
            UpstreamProtocolError: The body ended without [DONE]
        """
        outcome = "error"
        try:
            chunks = self._response.aiter_text().__aiter__()
            while not self.done:
                chunk = await self._next_chunk(chunks)
                if chunk is None:
                    for payload in self._parser.close():
                        for fragment in self._handle_payload(payload):
                            yield fragment
                    break

                for payload in self._parser.feed(chunk):
                    for fragment in self._handle_payload(payload):
                        yield fragment
                    if self.done:
                        break

            if not self.done:
                self._metrics.inc_error("missing_done")
                raise UpstreamProtocolError("Completion stream ended without [DONE]")
            outcome = "success"
        finally:
            await self._response.aclose()
            latency_ms = (self._clock() - self._started_at) * 1000
            self._metrics.record_latency("stream", outcome, latency_ms)
            self._logger.log_attempt(
                self._trace_id,
                "stream",
                self._attempts,
                outcome,
                latency_ms,
                error_reason=None if outcome == "success" else "stream_failed",
            )

    async def _next_chunk(self, chunks: AsyncIterator[str]) -> str | None:
        remaining = self._deadline - self._clock()
        if remaining <= 0:
            self._metrics.inc_error("timeout")
            raise UpstreamError("Completion stream timed out")
        try:
            return await asyncio.wait_for(chunks.__anext__(), timeout=remaining)
        except StopAsyncIteration:
            return None
        except TimeoutError as e:
            self._metrics.inc_error("timeout")
            raise UpstreamError("Completion stream timed out") from e
        except httpx.HTTPError as e:
            self._metrics.inc_error("stream_transport")
            logger.warning(f"Completion stream broke: {type(e).__name__}")
            raise UpstreamError("Completion stream interrupted") from e

    def _handle_payload(self, payload: str) -> list[str]:
        if payload.strip() == DONE_SENTINEL:
            self.done = True
            return []

        try:
            chunk = StreamChunk.model_validate_json(payload)
        except ValidationError as e:
            reason = (
                "invalid_json"
                if any(err["type"] == "json_invalid" for err in e.errors())
                else "unexpected_shape"
            )
            self._metrics.inc_skipped_frame(reason)
            logger.warning(f"Skipping malformed SSE frame ({reason}), trace {self._trace_id}")
            return []

        fragment = chunk.fragment
        if not fragment:
            return []
        self.text += fragment
        return [fragment]


class HttpCompletionGateway:
    """Completion gateway over a shared httpx client."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        base_url: str,
        api_key: str,
        *,
        retry: RetryPolicy | None = None,
        timeout_seconds: float = 240.0,
        metrics: CompletionMetrics | None = None,
        completion_logger: CompletionLogger | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize gateway.

        Args:
            client: Shared async HTTP client
            base_url: Provider base URL (".../v1")
            api_key: Bearer token for the provider
            retry: Retry policy (default: 3 attempts, 3 s base delay)
            timeout_seconds: Upper bound on each attempt, and on reading an open stream
            metrics: Metrics recorder (optional, defaults to no-op)
            completion_logger: Structured logger (optional, defaults to no-op)
            sleep_fn: Injectable sleep function (default: asyncio.sleep)
            clock: Injectable monotonic clock (default: time.monotonic)
        """
        self._client = client
        self._url = f"{base_url.rstrip('/')}/chat/completions"
        self._api_key = api_key
        self._retry = retry or RetryPolicy()
        self._timeout = timeout_seconds
        self._metrics = metrics or CompletionMetrics()
        self._logger = completion_logger or CompletionLogger()
        self._sleep = sleep_fn or asyncio.sleep
        self._clock = clock or time.monotonic

    async def complete(
        self, prompt: list[PromptMessage], options: CompletionOptions, trace_id: str = ""
    ) -> CompletionResult:
        """Run a non-streaming completion and return the reply text."""
        body = CompletionRequest.build(prompt, options, stream=False)
        started = self._clock()

        response, attempts = await self._send_with_retries(
            mode="complete",
            trace_id=trace_id,
            send=lambda: self._client.send(self._build_request(body)),
        )

        try:
            parsed = CompletionResponse.model_validate(response.json())
        except (ValueError, ValidationError) as e:
            self._metrics.inc_error("protocol")
            logger.error(f"Completion response has unexpected shape, trace {trace_id}")
            raise UpstreamProtocolError() from e

        reply = parsed.reply
        if not reply or not reply.strip():
            self._metrics.inc_error("empty_reply")
            logger.error(f"Completion response has empty content, trace {trace_id}")
            raise UpstreamProtocolError("Completion provider returned an empty reply")

        return CompletionResult(
            text=reply,
            attempts=attempts,
            latency_ms=(self._clock() - started) * 1000,
        )

    async def stream(
        self, prompt: list[PromptMessage], options: CompletionOptions, trace_id: str = ""
    ) -> CompletionStream:
        """Open a streaming completion. Retries apply until the response opens."""
        body = CompletionRequest.build(prompt, options, stream=True)

        response, attempts = await self._send_with_retries(
            mode="stream",
            trace_id=trace_id,
            send=lambda: self._client.send(self._build_request(body), stream=True),
        )

        return CompletionStream(
            response,
            deadline=self._clock() + self._timeout,
            trace_id=trace_id,
            metrics=self._metrics,
            completion_logger=self._logger,
            clock=self._clock,
            attempts=attempts,
        )

    def _build_request(self, body: CompletionRequest) -> httpx.Request:
        headers = {"Authorization": f"Bearer {self._api_key}"}
        if body.stream:
            headers["Accept"] = "text/event-stream"
        return self._client.build_request(
            "POST", self._url, json=body.model_dump(mode="json"), headers=headers
        )

    async def _send_with_retries(
        self,
        *,
        mode: str,
        trace_id: str,
        send: Callable[[], Awaitable[httpx.Response]],
    ) -> tuple[httpx.Response, int]:
        """Send until a 2xx response arrives or attempts run out.

        Returns:
            The successful response and the attempt number that produced it

        Raises:
            UpstreamError: Non-retryable status, or all attempts failed
        """
        last_reason = "unknown"

        for attempt in range(1, self._retry.max_attempts + 1):
            attempt_start = self._clock()
            try:
                response = await self._attempt(send, self._timeout)
            except _TransientFailure as failure:
                elapsed_ms = (self._clock() - attempt_start) * 1000
                last_reason = failure.reason
                self._metrics.inc_error(failure.reason)
                self._metrics.record_latency(mode, "retryable_error", elapsed_ms)
                self._logger.log_attempt(
                    trace_id, mode, attempt, "retryable_error", elapsed_ms, error_reason=failure.reason
                )

                if attempt < self._retry.max_attempts:
                    await self._sleep(self._retry.delay_after(attempt))
                    continue
                break

            elapsed_ms = (self._clock() - attempt_start) * 1000
            if response.is_success:
                if mode == "complete":
                    self._metrics.record_latency(mode, "success", elapsed_ms)
                    self._logger.log_attempt(trace_id, mode, attempt, "success", elapsed_ms)
                return response, attempt

            # 4xx other than 429: the request itself is wrong, retrying cannot help
            await response.aclose()
            reason = f"http_{response.status_code}"
            self._metrics.inc_error(reason)
            self._metrics.record_latency(mode, "rejected", elapsed_ms)
            self._logger.log_attempt(trace_id, mode, attempt, "rejected", elapsed_ms, error_reason=reason)
            raise UpstreamError(f"Completion provider rejected the request ({response.status_code})")

        logger.error(f"Completion {mode} failed after all retries ({last_reason}), trace {trace_id}")
        raise UpstreamError()

    async def _attempt(
        self, send: Callable[[], Awaitable[httpx.Response]], timeout: float
    ) -> httpx.Response:
        try:
            response = await asyncio.wait_for(send(), timeout=timeout)
        except (TimeoutError, httpx.TimeoutException) as e:
            raise _TransientFailure("timeout") from e
        except httpx.HTTPError as e:
            raise _TransientFailure("transport") from e

        if response.status_code == 429 or response.status_code >= 500:
            await response.aclose()
            raise _TransientFailure(f"http_{response.status_code}")
        return response


class StubCompletionStream:
    """Streams a fixed reply word by word."""

    def __init__(self, reply: str) -> None:
        self._reply = reply
        self.text = ""

    async def fragments(self) -> AsyncIterator[str]:
        words = self._reply.split(" ")
        for i, word in enumerate(words):
            fragment = word if i == len(words) - 1 else f"{word} "
            self.text += fragment
            yield fragment
            await asyncio.sleep(0)


class StubCompletionGateway:
    """Deterministic offline gateway (no API key required)."""

    REPLY = (
        "This is a stub reply generated without a completion provider. "
        "Set COMPLETION_API_KEY to get real answers about your document."
    )

    async def complete(
        self, prompt: list[PromptMessage], options: CompletionOptions, trace_id: str = ""
    ) -> CompletionResult:
        """Return the stub reply."""
        return CompletionResult(text=self.REPLY, attempts=1, latency_ms=0.0)

    async def stream(
        self, prompt: list[PromptMessage], options: CompletionOptions, trace_id: str = ""
    ) -> StubCompletionStream:
        """Stream the stub reply."""
        return StubCompletionStream(self.REPLY)


def completion_options_from_settings(settings: Settings) -> CompletionOptions:
    """Build sampling options from settings."""
    return CompletionOptions(
        model=settings.completion_model,
        temperature=settings.completion_temperature,
        top_p=settings.completion_top_p,
        max_tokens=settings.completion_max_tokens,
    )


def create_completion_gateway(
    settings: Settings,
    client: httpx.AsyncClient,
    *,
    metrics: CompletionMetrics | None = None,
    completion_logger: CompletionLogger | None = None,
) -> CompletionGateway:
    """Factory function to get appropriate gateway based on config.

    Returns:
        HttpCompletionGateway if an API key is configured, StubCompletionGateway otherwise
    """
    api_key = settings.completion_api_key.get_secret_value()

    if api_key:
        logger.info(f"Using completion provider at {settings.completion_api_base_url}")
        return HttpCompletionGateway(
            client,
            settings.completion_api_base_url,
            api_key,
            retry=RetryPolicy(
                max_attempts=settings.completion_max_attempts,
                base_delay_seconds=settings.completion_retry_base_delay_ms / 1000,
            ),
            timeout_seconds=settings.completion_timeout_seconds,
            metrics=metrics,
            completion_logger=completion_logger,
        )
    else:
        logger.warning("No completion API key configured, using deterministic stub gateway")
        return StubCompletionGateway()
