"""Streamed reply assembly.

A StreamingSession sends a history snapshot plus one new user turn and hands
back a ReplyStream: an async iterator of Fragment objects with one terminal
outcome, either ``completed`` (the transport closed normally and the full
text is available) or ``failed`` (everything received is discarded and the
failure is classified).
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import AsyncIterator, Callable, Sequence

from vidya.core.transport import GenerationRequest, ModelTransport
from vidya.errors.classifier import ErrorClassifier
from vidya.errors.exceptions import (
    ContractViolationError,
    MalformedResponseError,
    SendFailedError,
)
from vidya.errors.types import ClassifiedError
from vidya.turns import Role, Turn

logger = logging.getLogger(__name__)

STATE_OPEN = "open"
STATE_COMPLETED = "completed"
STATE_FAILED = "failed"


@dataclass(frozen=True)
class Fragment:
    """One incremental piece of assistant text."""

    delta: str


def validate_turn(turn: Turn) -> None:
    """Reject turns that cannot be sent.

    Raises:
        ContractViolationError: Empty turn or non-user turn

    """
    if turn.role != Role.USER:
        raise ContractViolationError("Only user turns can be sent to the model.")
    if turn.is_empty:
        raise ContractViolationError("Cannot send an empty message.")


class ReplyStream:
    """Ordered fragments of one reply, ending in exactly one terminal outcome.

    Iterate it to receive fragments; after iteration ends normally
    ``completed`` is True and ``text`` is the concatenation of every fragment
    in arrival order. If the transport fails, iteration raises
    SendFailedError, ``text`` is empty and ``error`` holds the classification.

    Usage:
        stream = session.send(snapshot, Turn.user("Hi"))
        async for fragment in stream:
            print(fragment.delta, end="")
        reply = stream.text

    """

    def __init__(
        self,
        request: GenerationRequest,
        chunks: AsyncIterator[str],
        classifier: ErrorClassifier,
        context: str | None = None,
        release: Callable[[], None] | None = None,
    ):
        self.request = request
        self._chunks = chunks
        self._classifier = classifier
        self._context = context
        self._release = release
        self._parts: list[str] = []
        self._state = STATE_OPEN
        self.error: ClassifiedError | None = None
        self._on_complete: list[Callable[[str], None]] = []
        self._on_failure: list[Callable[[ClassifiedError], None]] = []

    @property
    def state(self) -> str:
        return self._state

    @property
    def completed(self) -> bool:
        return self._state == STATE_COMPLETED

    @property
    def failed(self) -> bool:
        return self._state == STATE_FAILED

    @property
    def partial_text(self) -> str:
        """Text received so far; a draft until the stream completes."""
        return "".join(self._parts)

    @property
    def text(self) -> str:
        """Full reply text; empty unless the stream completed."""
        return self.partial_text if self.completed else ""

    def add_callbacks(
        self,
        on_complete: Callable[[str], None] | None = None,
        on_failure: Callable[[ClassifiedError], None] | None = None,
    ) -> None:
        """Register callbacks fired once on the terminal outcome."""
        if on_complete:
            self._on_complete.append(on_complete)
        if on_failure:
            self._on_failure.append(on_failure)

    def __aiter__(self) -> "ReplyStream":
        return self

    async def __anext__(self) -> Fragment:
        if self._state != STATE_OPEN:
            raise StopAsyncIteration

        while True:
            try:
                chunk = await self._chunks.__anext__()
            except StopAsyncIteration:
                if not self._parts:
                    self._fail(MalformedResponseError("Model closed the stream without any text"))
                self._complete()
                raise
            except asyncio.CancelledError:
                self._fail_quietly(RuntimeError("Reply stream was cancelled"))
                raise
            except Exception as e:
                self._fail(e)

            if not isinstance(chunk, str):
                await self._close_chunks()
                self._fail(
                    MalformedResponseError(f"Expected text fragment, got {type(chunk).__name__}")
                )
            if chunk:
                self._parts.append(chunk)
                logger.debug("Fragment %d (%d chars)", len(self._parts), len(chunk))
                return Fragment(delta=chunk)

    async def collect(self) -> str:
        """Drain the stream and return the full reply text."""
        async for _ in self:
            pass
        return self.text

    async def aclose(self) -> None:
        """Abandon an open stream without committing anything."""
        if self._state != STATE_OPEN:
            return
        self._fail_quietly(RuntimeError("Reply stream was closed before completion"))
        await self._close_chunks()

    async def _close_chunks(self) -> None:
        aclose = getattr(self._chunks, "aclose", None)
        if aclose is not None:
            await aclose()

    def _complete(self) -> None:
        self._state = STATE_COMPLETED
        self._finish()
        text = self.partial_text
        logger.info("Reply completed (%d fragments, %d chars)", len(self._parts), len(text))
        for callback in self._on_complete:
            callback(text)

    def _fail(self, error: BaseException) -> None:
        """Discard received text, classify, notify and raise SendFailedError."""
        classified = self._fail_quietly(error)
        raise SendFailedError(classified) from error

    def _fail_quietly(self, error: BaseException) -> ClassifiedError:
        received = len(self._parts)
        self._parts.clear()
        self._state = STATE_FAILED
        self.error = self._classifier.classify(error, context=self._context)
        self._finish()
        logger.warning("Reply failed after %d fragments: %s", received, self.error.kind.name)
        for callback in self._on_failure:
            callback(self.error)
        return self.error

    def _finish(self) -> None:
        if self._release is not None:
            self._release()
            self._release = None


class StreamingSession:
    """Single-flight streamed sends for one conversation.

    Example:
        session = StreamingSession(transport, system_prompt="You are a tutor.")
        stream = session.send(buffer.snapshot(), Turn.user("What is torque?"))
        reply = await stream.collect()

    """

    def __init__(
        self,
        transport: ModelTransport,
        system_prompt: str | None = None,
        temperature: float | None = None,
        model_name: str | None = None,
        classifier: ErrorClassifier | None = None,
        context: str | None = "chat",
    ):
        self.transport = transport
        self.system_prompt = system_prompt
        self.temperature = temperature
        self.model_name = model_name
        self.classifier = classifier or ErrorClassifier()
        self.context = context
        self._in_flight = False

    @property
    def busy(self) -> bool:
        """True while a reply stream is open."""
        return self._in_flight

    def build_request(self, snapshot: Sequence[Turn], new_turn: Turn) -> GenerationRequest:
        return GenerationRequest(
            history=tuple(snapshot),
            new_turn=new_turn,
            system_prompt=self.system_prompt,
            temperature=self.temperature,
            model_name=self.model_name,
        )

    def send(self, snapshot: Sequence[Turn], new_turn: Turn) -> ReplyStream:
        """Start streaming a reply to ``new_turn`` given ``snapshot`` as history.

        Raises:
            ContractViolationError: Empty turn, or a stream is already open
            SendFailedError: The transport refused to start the stream

        """
        validate_turn(new_turn)
        if self._in_flight:
            raise ContractViolationError("A reply is already streaming for this conversation.")

        request = self.build_request(snapshot, new_turn)
        self._in_flight = True
        try:
            chunks = self.transport.stream(request)
        except Exception as e:
            self._release()
            raise SendFailedError(self.classifier.classify(e, context=self.context)) from e

        logger.info("Sending turn (history=%d turns)", len(request.history))
        return ReplyStream(request, chunks, self.classifier, self.context, release=self._release)

    def _release(self) -> None:
        self._in_flight = False
