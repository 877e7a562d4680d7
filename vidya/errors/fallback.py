"""User-facing wording for classified failures.

Generic kinds share one message; UNKNOWN falls back to a message that names
the operation that failed.
"""

from __future__ import annotations

from vidya.errors.types import ErrorKind

MESSAGES = {
    ErrorKind.OFFLINE: "You appear to be offline. Please check your internet connection.",
    ErrorKind.AUTH_CONFIG: "There's a configuration issue with the AI service. Unable to proceed.",
    ErrorKind.RATE_LIMITED: "The service is currently busy. Please wait a moment and try again.",
    ErrorKind.SERVER_ERROR: "The AI service is experiencing technical difficulties. Please try again later.",
    ErrorKind.SAFETY_BLOCKED: "The request was blocked for safety reasons. Please adjust your prompt and try again.",
    ErrorKind.MALFORMED_RESPONSE: "The AI returned a response in an unexpected format. Please try again.",
    ErrorKind.CONTRACT_VIOLATION: "Cannot send an empty message.",
}

DEFAULT_MESSAGE = "An unexpected error occurred. Please try again."

# Per-operation wording for UNKNOWN failures
CONTEXT_MESSAGES = {
    "chat": "Failed to get a response from the AI companion.",
    "tutor": "Failed to get a response from the AI tutor.",
    "study_plan": (
        "Failed to generate study plan. The model might be unable to create a plan "
        "for the selected options."
    ),
    "adapt_plan": "Failed to adapt the study plan.",
    "quiz": (
        "Failed to generate a quiz for this topic. The AI may not have enough information, "
        "or the topic could be too broad. Please try again or rephrase the subject."
    ),
    "solve_doubt": "Failed to generate a solution for the doubt. Please try again.",
    "simplify": "Failed to simplify the explanation. Please try again.",
    "format_code": "Failed to format the code. Please try again.",
    "motivation": "Failed to generate a motivational message.",
    "coach_insight": "Failed to generate AI coach insights. Please try again later.",
}


def user_message_for(kind: ErrorKind, context: str | None = None) -> str:
    """Return the message shown to the user for a failure of ``kind``."""
    if kind == ErrorKind.UNKNOWN:
        return CONTEXT_MESSAGES.get(context or "", DEFAULT_MESSAGE)
    return MESSAGES.get(kind, DEFAULT_MESSAGE)
