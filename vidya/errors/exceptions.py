"""Exceptions raised by the chat core."""

from __future__ import annotations

from vidya.errors.types import ClassifiedError, ErrorKind


class VidyaError(Exception):
    """Base class for chat core errors."""


class MalformedResponseError(VidyaError):
    """The model endpoint answered, but not in the expected shape."""


class SendFailedError(VidyaError):
    """A chat send or retry failed; carries the classified error."""

    def __init__(self, classified: ClassifiedError):
        super().__init__(classified.user_message or classified.message)
        self.classified = classified

    @property
    def retryable(self) -> bool:
        return self.classified.retryable


class ContractViolationError(SendFailedError):
    """The caller broke the send contract (empty turn, concurrent send, nothing to retry).

    Raised before any network call; never retryable.
    """

    def __init__(self, message: str):
        classified = ClassifiedError(
            kind=ErrorKind.CONTRACT_VIOLATION,
            message=message,
            retryable=False,
            user_message=message,
        )
        super().__init__(classified)
        classified.original_error = self


class OperationFailedError(VidyaError):
    """A one-shot model operation (study plan, quiz, ...) failed."""

    def __init__(self, classified: ClassifiedError, operation: str):
        super().__init__(classified.user_message or classified.message)
        self.classified = classified
        self.operation = operation
