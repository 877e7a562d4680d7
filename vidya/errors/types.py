"""Error taxonomy shared by every model-backed operation."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any


class ErrorKind(Enum):
    """Closed set of failure categories."""

    OFFLINE = auto()  # No connectivity - retry when back online
    AUTH_CONFIG = auto()  # Bad/missing API key or permission - cannot retry
    RATE_LIMITED = auto()  # 429 / quota - wait and retry
    SERVER_ERROR = auto()  # 5xx, timeouts, dropped streams - retry
    SAFETY_BLOCKED = auto()  # Prompt or reply rejected by safety filters - cannot retry
    MALFORMED_RESPONSE = auto()  # Reply did not parse into the expected shape - retry
    UNKNOWN = auto()  # Anything else, treated as retryable
    CONTRACT_VIOLATION = auto()  # Caller misuse (empty send, double send) - cannot retry


RETRYABLE_KINDS = frozenset(
    {
        ErrorKind.OFFLINE,
        ErrorKind.RATE_LIMITED,
        ErrorKind.SERVER_ERROR,
        ErrorKind.MALFORMED_RESPONSE,
        ErrorKind.UNKNOWN,
    }
)


@dataclass
class ClassifiedError:
    """Normalized failure with a retry decision.

    Attributes:
        kind: Failure category
        message: Raw error message
        retryable: Whether resubmitting the same request makes sense
        original_error: The exception that was classified
        user_message: Message suitable for showing in a chat UI
        metadata: Additional context (e.g. wait time for rate limits)

    """

    kind: ErrorKind
    message: str
    retryable: bool
    original_error: BaseException | None = None
    user_message: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)
