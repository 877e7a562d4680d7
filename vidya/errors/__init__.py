"""Failure handling for model-backed operations.

Architecture:
    ErrorClassifier → maps raw exceptions to ErrorKind with a retry decision
    fallback → user-facing wording per kind and operation
    exceptions → SendFailedError / OperationFailedError carry the classification
"""

from vidya.errors.classifier import ErrorClassifier
from vidya.errors.exceptions import (
    ContractViolationError,
    MalformedResponseError,
    OperationFailedError,
    SendFailedError,
    VidyaError,
)
from vidya.errors.types import RETRYABLE_KINDS, ClassifiedError, ErrorKind

__all__ = [
    "ErrorClassifier",
    "ErrorKind",
    "ClassifiedError",
    "RETRYABLE_KINDS",
    "VidyaError",
    "SendFailedError",
    "ContractViolationError",
    "OperationFailedError",
    "MalformedResponseError",
]
