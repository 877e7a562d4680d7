"""Conversation buffering and history compaction."""

from vidya.conversation.buffer import ConversationBuffer
from vidya.conversation.compaction import (
    CompactionConfig,
    CompactionPolicy,
    CompactionResult,
    Summarizer,
)

__all__ = [
    "ConversationBuffer",
    "CompactionConfig",
    "CompactionPolicy",
    "CompactionResult",
    "Summarizer",
]
