"""Model endpoint boundary.

Every call is stateless: a fresh pydantic-ai Agent is built from the request
alone, so the same request can be resent byte-for-byte.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Protocol, Sequence

from pydantic_ai import Agent
from pydantic_ai.messages import (
    BinaryContent,
    ModelMessage,
    ModelRequest,
    ModelResponse,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.settings import ModelSettings

from vidya.config import CHAT_MODEL
from vidya.core.model import build_model
from vidya.turns import Role, Turn

logger = logging.getLogger(__name__)

# Summary turns are shown to the model as its own recollection
SUMMARY_FRAME = "(Here is a summary of our conversation so far, to refresh my memory: {summary})"


@dataclass(frozen=True)
class GenerationRequest:
    """Exact inputs of one model call.

    Attributes:
        history: Prior turns, oldest first
        new_turn: The user turn being answered
        system_prompt: Instructions for the model
        temperature: Sampling temperature (None = model default)
        model_name: Model identifier (None = transport default)

    """

    history: tuple[Turn, ...]
    new_turn: Turn
    system_prompt: str | None = None
    temperature: float | None = None
    model_name: str | None = None


class ModelTransport(Protocol):
    """What the core needs from a model endpoint."""

    def stream(self, request: GenerationRequest) -> AsyncIterator[str]:
        """Yield reply text fragments in order; return when the reply is complete."""
        ...

    async def complete(self, request: GenerationRequest, output_type: Any = str) -> Any:
        """Return one complete output, validated against ``output_type``."""
        ...


def user_content(turn: Turn) -> str | list[str | BinaryContent]:
    """Prompt content for a user turn: attachment first, then text."""
    if turn.attachment is None:
        return turn.text
    content: list[str | BinaryContent] = [
        BinaryContent(data=turn.attachment.data, media_type=turn.attachment.media_type)
    ]
    if turn.text:
        content.append(turn.text)
    return content


def to_model_messages(history: Sequence[Turn]) -> list[ModelMessage]:
    """Convert turns to pydantic-ai message history, skipping empty turns."""
    messages: list[ModelMessage] = []
    for turn in history:
        if turn.is_empty:
            continue
        if turn.role == Role.USER:
            messages.append(ModelRequest(parts=[UserPromptPart(content=user_content(turn))]))
        else:
            text = SUMMARY_FRAME.format(summary=turn.text) if turn.is_summary else turn.text
            messages.append(ModelResponse(parts=[TextPart(content=text)]))
    return messages


class PydanticAITransport:
    """ModelTransport backed by pydantic-ai.

    Example:
        transport = PydanticAITransport()
        async for delta in transport.stream(request):
            print(delta, end="")

    """

    def __init__(
        self,
        model_factory: Callable[[str], Any] | None = None,
        default_model: str = CHAT_MODEL,
    ):
        self.model_factory = model_factory or build_model
        self.default_model = default_model

    def _agent(self, request: GenerationRequest, output_type: Any = str) -> Agent:
        model = self.model_factory(request.model_name or self.default_model)
        return Agent(model, output_type=output_type, instructions=request.system_prompt)

    @staticmethod
    def _settings(request: GenerationRequest) -> ModelSettings | None:
        if request.temperature is None:
            return None
        return ModelSettings(temperature=request.temperature)

    async def stream(self, request: GenerationRequest) -> AsyncIterator[str]:
        agent = self._agent(request)
        history = to_model_messages(request.history) or None
        logger.debug(
            "Streaming reply (history=%d turns, model=%s)",
            len(request.history),
            request.model_name or self.default_model,
        )
        async with agent.run_stream(
            user_content(request.new_turn),
            message_history=history,
            model_settings=self._settings(request),
        ) as result:
            async for delta in result.stream_text(delta=True):
                yield delta

    async def complete(self, request: GenerationRequest, output_type: Any = str) -> Any:
        agent = self._agent(request, output_type)
        history = to_model_messages(request.history) or None
        result = await agent.run(
            user_content(request.new_turn),
            message_history=history,
            model_settings=self._settings(request),
        )
        return result.output
