"""History compaction by summarization.

Implements a keep-first + summarize-middle + keep-tail approach:
1. The first turn (greeting) always stays at position 0
2. The last ``retain_tail`` turns stay verbatim
3. Everything in between is replaced by one summary turn
4. If summarization fails, the middle is truncated instead
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, Sequence

from vidya.config import COMPACTION_RETAIN_TAIL, COMPACTION_THRESHOLD
from vidya.conversation.buffer import ConversationBuffer
from vidya.turns import Turn

logger = logging.getLogger(__name__)

STRATEGY_NONE = "none"
STRATEGY_SUMMARY = "summary"
STRATEGY_TRUNCATE = "truncate"
STRATEGY_SKIPPED = "skipped"


class Summarizer(Protocol):
    """Condenses a run of turns into one prose string."""

    async def summarize(self, turns: Sequence[Turn]) -> str: ...


@dataclass(frozen=True)
class CompactionConfig:
    """When and how hard to compact.

    Attributes:
        threshold: Buffer length above which compaction runs
        retain_tail: Most recent turns kept verbatim

    """

    threshold: int = COMPACTION_THRESHOLD
    retain_tail: int = COMPACTION_RETAIN_TAIL

    def __post_init__(self):
        if self.retain_tail < 1:
            raise ValueError("retain_tail must be at least 1")
        # Truncation keeps turn 0 plus 2 * retain_tail turns; it must not re-trigger
        if self.threshold < 2 * self.retain_tail + 1:
            raise ValueError(
                f"threshold ({self.threshold}) must be at least 2 * retain_tail + 1 "
                f"(retain_tail={self.retain_tail})"
            )


@dataclass
class CompactionResult:
    """Result of one compaction pass.

    Attributes:
        strategy: none, summary, truncate or skipped
        removed_count: Number of turns removed from the buffer
        summary: Summary text (summary strategy only)

    """

    strategy: str
    removed_count: int = 0
    summary: str | None = None

    @property
    def compacted(self) -> bool:
        return self.strategy in (STRATEGY_SUMMARY, STRATEGY_TRUNCATE)


class CompactionPolicy:
    """Keeps a ConversationBuffer within its turn budget.

    Example:
        policy = CompactionPolicy(summarizer, CompactionConfig(threshold=10, retain_tail=4))
        result = await policy.maybe_compact(buffer)

    """

    def __init__(self, summarizer: Summarizer, config: CompactionConfig | None = None):
        self.summarizer = summarizer
        self.config = config or CompactionConfig()

    def needs_compaction(self, buffer: ConversationBuffer) -> bool:
        return len(buffer) > self.config.threshold

    async def maybe_compact(self, buffer: ConversationBuffer) -> CompactionResult:
        """Compact the buffer in place if it is over threshold.

        Summarizer failures are absorbed: the buffer is truncated to the first
        turn plus the last ``2 * retain_tail`` turns and no error reaches the
        caller.
        """
        if not self.needs_compaction(buffer):
            return CompactionResult(strategy=STRATEGY_NONE)

        retain = self.config.retain_tail
        middle = buffer.middle(retain)
        if not middle:
            return CompactionResult(strategy=STRATEGY_NONE)

        version = buffer.version
        try:
            summary = (await self.summarizer.summarize(middle)).strip()
            if not summary:
                raise ValueError("Summarizer returned an empty summary")
        except Exception as e:
            logger.warning("Summarization failed, truncating history instead: %s", e)
            if buffer.version != version:
                return CompactionResult(strategy=STRATEGY_SKIPPED)
            removed = buffer.truncate(2 * retain)
            logger.info("Truncated %d turns from history", removed)
            return CompactionResult(strategy=STRATEGY_TRUNCATE, removed_count=removed)

        if buffer.version != version:
            logger.warning("Buffer changed during summarization; discarding summary")
            return CompactionResult(strategy=STRATEGY_SKIPPED)

        removed = buffer.replace_middle(Turn.summary(summary), retain)
        logger.info("Compacted %d turns into a summary (%d chars)", removed, len(summary))
        return CompactionResult(strategy=STRATEGY_SUMMARY, removed_count=removed, summary=summary)
