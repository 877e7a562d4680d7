"""Error classification for model-backed operations.

Maps any raw failure (transport, HTTP, SDK, parsing) into a closed taxonomy:
- OFFLINE: No connectivity, retry later
- AUTH_CONFIG: Key/permission problem, never retried
- RATE_LIMITED: Wait and retry
- SERVER_ERROR: 5xx, timeouts, dropped streams, retry
- SAFETY_BLOCKED: Rejected by safety filters, never retried
- MALFORMED_RESPONSE: Reply did not parse, retry
- UNKNOWN: Anything else, retry
"""

from __future__ import annotations

import json
import logging
import re
import socket
from typing import Callable

import httpx
from pydantic import ValidationError
from pydantic_ai.exceptions import UnexpectedModelBehavior

from vidya.errors.exceptions import ContractViolationError, MalformedResponseError
from vidya.errors.fallback import user_message_for
from vidya.errors.types import RETRYABLE_KINDS, ClassifiedError, ErrorKind

logger = logging.getLogger(__name__)

# Exception types that mean the endpoint could not be reached at all
OFFLINE_TYPES = (httpx.ConnectError, socket.gaierror, ConnectionRefusedError)

# Exception types for timeouts and connections dropped mid-response
SERVER_TYPES = (
    httpx.TimeoutException,
    httpx.ReadError,
    httpx.WriteError,
    httpx.RemoteProtocolError,
    TimeoutError,
    ConnectionResetError,
    ConnectionAbortedError,
    BrokenPipeError,
)

MALFORMED_TYPES = (
    json.JSONDecodeError,
    ValidationError,
    UnexpectedModelBehavior,
    MalformedResponseError,
)


class ErrorClassifier:
    """Classifies failures into ErrorKind with a retry decision.

    Checks run in a fixed order and the first match wins, so a message that
    mentions both a rate limit and a safety block is RATE_LIMITED.

    Example:
        classifier = ErrorClassifier()
        classified = classifier.classify(RuntimeError("429 Too Many Requests"))
        if classified.retryable:
            # offer retry

    """

    OFFLINE_PATTERNS = [
        r"failed.*to.*fetch",
        r"network.*unreachable",
        r"network.*is.*down",
        r"no.*internet",
        r"\boffline\b",
        r"connection.*refused",
        r"failed.*to.*resolve",
        r"no.*such.*host",
        r"name.*or.*service.*not.*known",
        r"temporary.*failure.*in.*name.*resolution",
        r"getaddrinfo.*failed",
    ]

    AUTH_PATTERNS = [
        r"api[_\s-]?key",
        r"permission.*denied",
        r"access.*denied",
        r"unauthori[sz]ed",
        r"unauthenticated",
        r"authentication.*fail",
        r"invalid.*credential",
        r"forbidden",
        r"\b401\b",
        r"\b403\b",
    ]

    RATE_LIMIT_PATTERNS = [
        r"rate.*limit",
        r"too.*many.*request",
        r"request.*throttl",
        r"resource.*exhausted",
        r"quota",
        r"retry.*after",
        r"requests.*per.*minute",
        r"\b429\b",
    ]

    SERVER_PATTERNS = [
        r"\b5\d\d\b",
        r"internal",
        r"server.*error",
        r"service.*unavailable",
        r"\bunavailable\b",
        r"overloaded",
        r"bad.*gateway",
        r"gateway.*timeout",
        r"timed.*out",
        r"timeout",
        r"deadline.*exceeded",
        r"connection.*reset",
        r"connection.*aborted",
        r"peer.*closed",
        r"server.*disconnected",
        r"incomplete.*chunked",
    ]

    SAFETY_PATTERNS = [
        r"safety",
        r"blocked",
        r"content.*filter",
        r"prohibited.*content",
        r"harm.*category",
    ]

    MALFORMED_PATTERNS = [
        r"unexpected.*format",
        r"invalid.*json",
        r"failed.*to.*parse",
        r"malformed",
    ]

    def __init__(self, connectivity_probe: Callable[[], bool] | None = None):
        """Initialize classifier with compiled patterns.

        Args:
            connectivity_probe: Optional callable returning False when the host
                knows it has no network; checked before anything else

        """
        self.connectivity_probe = connectivity_probe
        self._compiled_patterns: dict[ErrorKind, list[re.Pattern]] = {
            ErrorKind.OFFLINE: [re.compile(p, re.IGNORECASE) for p in self.OFFLINE_PATTERNS],
            ErrorKind.AUTH_CONFIG: [re.compile(p, re.IGNORECASE) for p in self.AUTH_PATTERNS],
            ErrorKind.RATE_LIMITED: [
                re.compile(p, re.IGNORECASE) for p in self.RATE_LIMIT_PATTERNS
            ],
            ErrorKind.SERVER_ERROR: [re.compile(p, re.IGNORECASE) for p in self.SERVER_PATTERNS],
            ErrorKind.SAFETY_BLOCKED: [re.compile(p, re.IGNORECASE) for p in self.SAFETY_PATTERNS],
            ErrorKind.MALFORMED_RESPONSE: [
                re.compile(p, re.IGNORECASE) for p in self.MALFORMED_PATTERNS
            ],
        }

    def classify(self, error: BaseException, context: str | None = None) -> ClassifiedError:
        """Classify a raw failure.

        Args:
            error: The exception to classify
            context: Operation name used to pick the user-facing message

        Returns:
            ClassifiedError with kind and retry decision

        """
        if isinstance(error, ContractViolationError):
            return error.classified

        message = self._describe(error)
        kind = self._detect_kind(error, message)
        metadata: dict = {}
        if kind == ErrorKind.RATE_LIMITED:
            metadata["wait_seconds"] = self._extract_wait_time(message)

        classified = ClassifiedError(
            kind=kind,
            message=message,
            retryable=kind in RETRYABLE_KINDS,
            original_error=error,
            user_message=user_message_for(kind, context),
            metadata=metadata,
        )
        logger.warning(
            "Classified %s as %s (retryable=%s): %s",
            type(error).__name__,
            kind.name,
            classified.retryable,
            message[:200],
        )
        return classified

    def _detect_kind(self, error: BaseException, message: str) -> ErrorKind:
        status = self._status_code(error)

        if self._is_offline() or self._any_in_chain(error, OFFLINE_TYPES):
            return ErrorKind.OFFLINE
        if self._matches_patterns(message, ErrorKind.OFFLINE):
            return ErrorKind.OFFLINE

        if status in (401, 403) or self._matches_patterns(message, ErrorKind.AUTH_CONFIG):
            return ErrorKind.AUTH_CONFIG

        if status == 429 or self._matches_patterns(message, ErrorKind.RATE_LIMITED):
            return ErrorKind.RATE_LIMITED

        if (
            (status is not None and status >= 500)
            or self._any_in_chain(error, SERVER_TYPES)
            or self._matches_patterns(message, ErrorKind.SERVER_ERROR)
        ):
            return ErrorKind.SERVER_ERROR

        if self._matches_patterns(message, ErrorKind.SAFETY_BLOCKED):
            return ErrorKind.SAFETY_BLOCKED

        if self._any_in_chain(error, MALFORMED_TYPES) or self._matches_patterns(
            message, ErrorKind.MALFORMED_RESPONSE
        ):
            return ErrorKind.MALFORMED_RESPONSE

        return ErrorKind.UNKNOWN

    def _is_offline(self) -> bool:
        if self.connectivity_probe is None:
            return False
        try:
            return not self.connectivity_probe()
        except Exception as e:
            logger.debug("Connectivity probe failed: %s", e)
            return False

    @staticmethod
    def _chain(error: BaseException) -> list[BaseException]:
        """The error followed by its causes/contexts (SDKs often wrap transport errors)."""
        chain = []
        current: BaseException | None = error
        while current is not None and current not in chain and len(chain) < 5:
            chain.append(current)
            current = current.__cause__ or current.__context__
        return chain

    def _any_in_chain(self, error: BaseException, types: tuple) -> bool:
        return any(isinstance(e, types) for e in self._chain(error))

    def _describe(self, error: BaseException) -> str:
        parts = []
        for e in self._chain(error):
            text = str(e).strip()
            if text and text not in parts:
                parts.append(text)
        return " | ".join(parts) if parts else type(error).__name__

    @staticmethod
    def _status_code(error: BaseException) -> int | None:
        """HTTP status from pydantic-ai, httpx or google-genai style exceptions."""
        status = getattr(error, "status_code", None)
        if status is None:
            response = getattr(error, "response", None)
            status = getattr(response, "status_code", None)
        if status is None:
            status = getattr(error, "code", None)
        return status if isinstance(status, int) else None

    def _matches_patterns(self, message: str, kind: ErrorKind) -> bool:
        patterns = self._compiled_patterns.get(kind, [])
        return any(pattern.search(message) for pattern in patterns)

    def _extract_wait_time(self, message: str) -> int:
        """Extract wait time from a rate limit message.

        Looks for patterns like "retry after 30 seconds" or "try again in 2 minutes".

        Returns:
            Wait time in seconds (default 30 if not found)

        """
        patterns = [
            (r"(\d+)\s*(?:seconds?|s)\b", 1),
            (r"(\d+)\s*(?:minutes?|m)\b", 60),
            (r"(\d+)\s*(?:hours?|h)\b", 3600),
        ]

        for pattern, multiplier in patterns:
            match = re.search(pattern, message, re.IGNORECASE)
            if match:
                return int(match.group(1)) * multiplier

        return 30

    def get_backoff_time(self, classified: ClassifiedError, attempt: int) -> int:
        """Seconds a host should wait before retry number ``attempt`` (0-indexed).

        Rate limits use the advertised wait; other retryable kinds back off
        exponentially. Terminal kinds return 0.
        """
        if not classified.retryable:
            return 0
        if classified.kind == ErrorKind.RATE_LIMITED:
            return classified.metadata.get("wait_seconds", 30)
        base_delay = 2
        max_delay = 60
        return min(base_delay * (2**attempt), max_delay)
