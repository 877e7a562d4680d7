"""Model-backed summarizer used by compaction."""

from __future__ import annotations

import logging
from typing import Sequence

from vidya.config import FAST_MODEL, SUMMARY_TEMPERATURE
from vidya.core.transport import GenerationRequest, ModelTransport
from vidya.turns import Role, Turn

logger = logging.getLogger(__name__)

SUMMARY_PROMPT = """\
Briefly summarize the following chat exchange between a "user" and a "model" (an AI companion).
Capture the key topics, the general tone, and any important information mentioned.
The summary should be a concise paragraph, written as if you are recapping the memory of the conversation.

Chat History to Summarize:
{history}"""


def flatten_turns(turns: Sequence[Turn]) -> str:
    """One "role: text" line per turn; attachments are named, not inlined."""
    lines = []
    for turn in turns:
        role = "user" if turn.role == Role.USER else "model"
        text = turn.text
        if turn.attachment is not None:
            text = f"{text} [attachment: {turn.attachment.media_type}]".strip()
        lines.append(f"{role}: {text}")
    return "\n".join(lines)


class ModelSummarizer:
    """Summarizes turns with one non-streaming call to the fast model."""

    def __init__(
        self,
        transport: ModelTransport,
        model_name: str = FAST_MODEL,
        temperature: float = SUMMARY_TEMPERATURE,
    ):
        self.transport = transport
        self.model_name = model_name
        self.temperature = temperature

    async def summarize(self, turns: Sequence[Turn]) -> str:
        if not turns:
            return ""
        prompt = SUMMARY_PROMPT.format(history=flatten_turns(turns))
        request = GenerationRequest(
            history=(),
            new_turn=Turn.user(prompt),
            temperature=self.temperature,
            model_name=self.model_name,
        )
        logger.debug("Summarizing %d turns", len(turns))
        summary = await self.transport.complete(request)
        return str(summary).strip()
