"""Ordered turn buffer for one conversation."""

from __future__ import annotations

import logging
from typing import Iterable, Iterator

from vidya.turns import Turn

logger = logging.getLogger(__name__)


class ConversationBuffer:
    """Ordered sequence of turns sent to the model as history.

    The buffer is append-only except for compaction, which swaps the run of
    turns between the first turn and the retained tail for a single summary
    turn (or drops that run entirely). The first turn is never removed.

    Every mutation bumps ``version`` so a caller that awaited something can
    tell whether the buffer moved underneath it.

    Usage:
        buffer = ConversationBuffer([Turn.assistant("Hi!")])
        buffer.append(Turn.user("Explain entropy"))
        history = buffer.snapshot()

    """

    def __init__(self, turns: Iterable[Turn] = ()):
        self._turns: list[Turn] = list(turns)
        self._version = 0

    @property
    def version(self) -> int:
        return self._version

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(tuple(self._turns))

    def __getitem__(self, index):
        return self._turns[index]

    def append(self, turn: Turn) -> None:
        self._turns.append(turn)
        self._version += 1

    def snapshot(self) -> tuple[Turn, ...]:
        """Read-only ordered copy for sending."""
        return tuple(self._turns)

    def replace_middle(self, summary_turn: Turn, keep_last: int) -> int:
        """Replace everything between turn 0 and the last ``keep_last`` turns with one turn.

        Returns:
            Number of turns removed

        """
        head, middle, tail = self._partition(keep_last)
        self._turns = head + [summary_turn] + tail
        self._version += 1
        return len(middle)

    def truncate(self, keep_last: int) -> int:
        """Drop everything between turn 0 and the last ``keep_last`` turns.

        Returns:
            Number of turns removed

        """
        head, middle, tail = self._partition(keep_last)
        if not middle:
            return 0
        self._turns = head + tail
        self._version += 1
        return len(middle)

    def middle(self, keep_last: int) -> list[Turn]:
        """Turns that compaction would replace when keeping ``keep_last`` raw."""
        return self._partition(keep_last)[1]

    def _partition(self, keep_last: int) -> tuple[list[Turn], list[Turn], list[Turn]]:
        if not self._turns:
            return [], [], []
        head = self._turns[:1]
        rest = self._turns[1:]
        split = max(len(rest) - max(keep_last, 0), 0)
        return head, rest[:split], rest[split:]
