"""Single-slot retry of the last failed send."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from vidya.core.streaming import ReplyStream, StreamingSession
from vidya.errors.exceptions import ContractViolationError
from vidya.errors.types import ClassifiedError
from vidya.turns import Turn

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PendingRequest:
    """Exact inputs of an in-flight or failed send.

    Attributes:
        snapshot: History sent with the turn (already compacted)
        new_turn: The user turn being answered

    """

    snapshot: tuple[Turn, ...]
    new_turn: Turn


class RetryCoordinator:
    """Holds at most one PendingRequest and replays it unchanged.

    The request is held from the moment it is sent. It is released when the
    reply commits or when the failure is terminal; a retryable failure keeps
    it for ``retry()``.

    Example:
        coordinator.hold(PendingRequest(snapshot, turn))
        ...
        stream = coordinator.retry(session)

    """

    def __init__(self):
        self._pending: PendingRequest | None = None

    @property
    def pending(self) -> PendingRequest | None:
        return self._pending

    @property
    def can_retry(self) -> bool:
        return self._pending is not None

    def hold(self, request: PendingRequest) -> None:
        if self._pending is not None:
            logger.debug("Replacing pending request with a newer send")
        self._pending = request

    def release(self) -> None:
        self._pending = None

    def settle(self, classified: ClassifiedError) -> bool:
        """Keep the pending request only if the failure is retryable.

        Returns:
            True if the request is still available for retry

        """
        if not classified.retryable:
            logger.info("Dropping pending request after terminal %s", classified.kind.name)
            self.release()
            return False
        return self._pending is not None

    def retry(self, session: StreamingSession) -> ReplyStream:
        """Resend the pending request through ``session`` exactly as first sent.

        Raises:
            ContractViolationError: Nothing to retry, or a stream is already open

        """
        if self._pending is None:
            raise ContractViolationError("There is no failed message to retry.")
        request = self._pending
        logger.info("Retrying last request (history=%d turns)", len(request.snapshot))
        return session.send(request.snapshot, request.new_turn)
