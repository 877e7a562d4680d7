"""Tests for error classification and user-facing messages."""

import json
import socket

import httpx
import pytest
from pydantic import BaseModel, ValidationError
from pydantic_ai.exceptions import UnexpectedModelBehavior

from vidya.errors import (
    ClassifiedError,
    ContractViolationError,
    ErrorClassifier,
    ErrorKind,
    MalformedResponseError,
)
from vidya.errors.fallback import CONTEXT_MESSAGES, DEFAULT_MESSAGE, MESSAGES, user_message_for


class _HTTPError(Exception):
    """Stand-in for SDK errors that carry an HTTP status."""

    def __init__(self, message: str, status_code: int):
        super().__init__(message)
        self.status_code = status_code


class _Point(BaseModel):
    x: int


def _validation_error() -> ValidationError:
    try:
        _Point.model_validate({"x": "not a number"})
    except ValidationError as e:
        return e
    raise AssertionError("validation unexpectedly passed")


# ============ Kind detection ============

def test_offline_types_and_markers():
    classifier = ErrorClassifier()
    errors = [
        httpx.ConnectError("All connection attempts failed"),
        socket.gaierror("Name or service not known"),
        ConnectionRefusedError("Connection refused"),
        RuntimeError("TypeError: Failed to fetch"),
    ]
    for error in errors:
        classified = classifier.classify(error)
        assert classified.kind == ErrorKind.OFFLINE, error
        assert classified.retryable is True


def test_connectivity_probe_wins_over_everything():
    classifier = ErrorClassifier(connectivity_probe=lambda: False)
    classified = classifier.classify(RuntimeError("API key not valid"))
    assert classified.kind == ErrorKind.OFFLINE


def test_broken_probe_is_ignored():
    def probe():
        raise OSError("no route")

    classifier = ErrorClassifier(connectivity_probe=probe)
    assert classifier.classify(RuntimeError("API key not valid")).kind == ErrorKind.AUTH_CONFIG


def test_auth_config_is_terminal():
    classifier = ErrorClassifier()
    errors = [
        RuntimeError("API key not valid. Please pass a valid API key."),
        RuntimeError("API_KEY environment variable is not set"),
        RuntimeError("Permission denied on resource project"),
        _HTTPError("Forbidden", 403),
        _HTTPError("Request rejected", 401),
    ]
    for error in errors:
        classified = classifier.classify(error)
        assert classified.kind == ErrorKind.AUTH_CONFIG, error
        assert classified.retryable is False


def test_rate_limit_with_wait_time():
    classifier = ErrorClassifier()
    classified = classifier.classify(RuntimeError("429 Too Many Requests, retry after 12 seconds"))
    assert classified.kind == ErrorKind.RATE_LIMITED
    assert classified.retryable is True
    assert classified.metadata["wait_seconds"] == 12


def test_rate_limit_wait_in_minutes_and_default():
    classifier = ErrorClassifier()
    minutes = classifier.classify(RuntimeError("Quota exceeded, try again in 2 minutes"))
    assert minutes.metadata["wait_seconds"] == 120
    default = classifier.classify(_HTTPError("Slow down", 429))
    assert default.kind == ErrorKind.RATE_LIMITED
    assert default.metadata["wait_seconds"] == 30


def test_server_errors():
    classifier = ErrorClassifier()
    errors = [
        _HTTPError("Something went wrong", 503),
        RuntimeError("500 Internal Server Error"),
        httpx.ReadTimeout("The read operation timed out"),
        httpx.RemoteProtocolError("peer closed connection without sending complete message body"),
        TimeoutError(),
    ]
    for error in errors:
        classified = classifier.classify(error)
        assert classified.kind == ErrorKind.SERVER_ERROR, error
        assert classified.retryable is True


def test_safety_blocked_is_terminal():
    classifier = ErrorClassifier()
    classified = classifier.classify(RuntimeError("Response was blocked due to SAFETY"))
    assert classified.kind == ErrorKind.SAFETY_BLOCKED
    assert classified.retryable is False


def test_malformed_response_types():
    classifier = ErrorClassifier()
    errors = [
        json.JSONDecodeError("Expecting value", "{", 1),
        _validation_error(),
        UnexpectedModelBehavior("Exceeded maximum retries (1) for output validation"),
        MalformedResponseError("Model closed the stream without any text"),
    ]
    for error in errors:
        classified = classifier.classify(error)
        assert classified.kind == ErrorKind.MALFORMED_RESPONSE, error
        assert classified.retryable is True


def test_unknown_is_retryable():
    classified = ErrorClassifier().classify(RuntimeError("something odd happened"))
    assert classified.kind == ErrorKind.UNKNOWN
    assert classified.retryable is True


def test_contract_violation_passes_through():
    error = ContractViolationError("Cannot send an empty message.")
    classified = ErrorClassifier().classify(error)
    assert classified is error.classified
    assert classified.kind == ErrorKind.CONTRACT_VIOLATION
    assert classified.retryable is False
    assert classified.original_error is error


# ============ Precedence ============

def test_overlapping_rate_limit_and_safety_markers():
    """First match wins: rate limit is checked before safety."""
    classified = ErrorClassifier().classify(
        RuntimeError("Rate limit hit while request was blocked by safety filter")
    )
    assert classified.kind == ErrorKind.RATE_LIMITED
    assert classified.retryable is True


def test_overlapping_auth_and_server_markers():
    classified = ErrorClassifier().classify(_HTTPError("internal: permission denied", 500))
    assert classified.kind == ErrorKind.AUTH_CONFIG


def test_server_marker_beats_malformed_type():
    classified = ErrorClassifier().classify(MalformedResponseError("503 Service Unavailable"))
    assert classified.kind == ErrorKind.SERVER_ERROR


def test_wrapped_transport_error_is_found_in_chain():
    """SDKs wrap transport errors; the cause chain is inspected."""
    try:
        try:
            raise httpx.ConnectError("connect failed")
        except httpx.ConnectError as inner:
            raise RuntimeError("model request failed") from inner
    except RuntimeError as outer:
        classified = ErrorClassifier().classify(outer)
    assert classified.kind == ErrorKind.OFFLINE
    assert "model request failed" in classified.message
    assert "connect failed" in classified.message


# ============ Messages & backoff ============

def test_user_message_per_kind():
    classifier = ErrorClassifier()
    classified = classifier.classify(RuntimeError("429"), context="quiz")
    assert classified.user_message == MESSAGES[ErrorKind.RATE_LIMITED]


def test_unknown_message_names_the_operation():
    classifier = ErrorClassifier()
    quiz = classifier.classify(RuntimeError("odd"), context="quiz")
    assert quiz.user_message == CONTEXT_MESSAGES["quiz"]
    tutor = classifier.classify(RuntimeError("odd"), context="tutor")
    assert tutor.user_message == "Failed to get a response from the AI tutor."
    assert user_message_for(ErrorKind.UNKNOWN, "no-such-operation") == DEFAULT_MESSAGE
    assert user_message_for(ErrorKind.UNKNOWN) == DEFAULT_MESSAGE


@pytest.mark.parametrize(
    "kind,retryable,attempt,expected",
    [
        (ErrorKind.SERVER_ERROR, True, 0, 2),
        (ErrorKind.SERVER_ERROR, True, 3, 16),
        (ErrorKind.UNKNOWN, True, 10, 60),
        (ErrorKind.AUTH_CONFIG, False, 0, 0),
    ],
)
def test_backoff_time(kind, retryable, attempt, expected):
    classified = ClassifiedError(kind=kind, message="", retryable=retryable)
    assert ErrorClassifier().get_backoff_time(classified, attempt) == expected


def test_backoff_uses_rate_limit_wait():
    classified = ErrorClassifier().classify(RuntimeError("rate limit, retry in 45 seconds"))
    assert ErrorClassifier().get_backoff_time(classified, 0) == 45


@pytest.mark.parametrize("message", ["505 HTTP Version Not Supported", "Upstream returned 599"])
def test_server_status_in_message_only(message):
    classified = ErrorClassifier().classify(RuntimeError(message))
    assert classified.kind == ErrorKind.SERVER_ERROR


def test_cause_chain_is_described_once():
    calls = []

    class CountingClassifier(ErrorClassifier):
        def _describe(self, error):
            calls.append(error)
            return super()._describe(error)

    try:
        try:
            raise httpx.ReadTimeout("read timed out")
        except httpx.ReadTimeout as inner:
            raise RuntimeError("stream dropped") from inner
    except RuntimeError as error:
        classified = CountingClassifier().classify(error)

    assert classified.kind == ErrorKind.SERVER_ERROR
    assert len(calls) == 1
