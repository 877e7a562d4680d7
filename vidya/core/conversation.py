"""Per-conversation chat state.

A Conversation owns one ConversationBuffer (what the model sees), the full
transcript (what the user sees and what is persisted), one StreamingSession
and one RetryCoordinator slot.

Flow of ``send``:
1. Compact the buffer if it is over budget (awaited before anything is sent)
2. Snapshot the buffer, then append the user turn
3. Hold the (snapshot, turn) pair and start streaming
4. Commit the assistant turn when the stream completes; on failure keep the
   pair for ``retry`` unless the failure is terminal
"""

from __future__ import annotations

import logging
from typing import Callable, Sequence

from vidya.config import DEFAULT_USER
from vidya.conversation.buffer import ConversationBuffer
from vidya.conversation.compaction import CompactionPolicy, CompactionResult
from vidya.conversation.summarizer import ModelSummarizer
from vidya.core.prompts import SurfaceProfile
from vidya.core.retry import PendingRequest, RetryCoordinator
from vidya.core.streaming import ReplyStream, StreamingSession, validate_turn
from vidya.core.transport import ModelTransport, PydanticAITransport
from vidya.errors.classifier import ErrorClassifier
from vidya.errors.exceptions import ContractViolationError, SendFailedError
from vidya.errors.types import ClassifiedError
from vidya.store import TurnStore
from vidya.turns import Turn

logger = logging.getLogger(__name__)


class Conversation:
    """One chat conversation (companion or a tutor subject).

    Usage:
        conversation = await Conversation.open(store, companion_profile())
        stream = await conversation.send(Turn.user("I had a rough day"))
        async for fragment in stream:
            print(fragment.delta, end="")
        await conversation.close(store)

    """

    def __init__(
        self,
        profile: SurfaceProfile,
        session: StreamingSession,
        policy: CompactionPolicy,
        transcript: Sequence[Turn] = (),
        user_id: str = DEFAULT_USER,
    ):
        self.profile = profile
        self.session = session
        self.policy = policy
        self.user_id = user_id

        turns = list(transcript) or [Turn.assistant(profile.greeting)]
        self.transcript: list[Turn] = list(turns)
        self.buffer = ConversationBuffer(turns)
        self.retry_coordinator = RetryCoordinator()
        self.last_compaction: CompactionResult | None = None
        self._active: ReplyStream | None = None
        self._preparing = False

    @property
    def conversation_id(self) -> str:
        return self.profile.conversation_id

    @property
    def busy(self) -> bool:
        """True while a send is compacting or streaming."""
        return self._preparing or self.session.busy

    @property
    def draft(self) -> str:
        """Uncommitted text of the reply currently streaming."""
        if self._active is None:
            return ""
        return self._active.partial_text

    @property
    def can_retry(self) -> bool:
        return self.retry_coordinator.can_retry

    def append(self, turn: Turn) -> None:
        """Record a turn without contacting the model."""
        self.buffer.append(turn)
        self.transcript.append(turn)

    def snapshot(self) -> tuple[Turn, ...]:
        return self.buffer.snapshot()

    def classify(self, error: BaseException) -> ClassifiedError:
        return self.session.classifier.classify(error, context=self.profile.context)

    async def send(self, turn: Turn) -> ReplyStream:
        """Send a user turn and return the stream of the reply.

        Raises:
            ContractViolationError: Empty turn, or a send is already in progress
            SendFailedError: The transport refused to start the stream

        """
        validate_turn(turn)
        self._ensure_idle()

        self._preparing = True
        try:
            self.last_compaction = await self.policy.maybe_compact(self.buffer)
        finally:
            self._preparing = False

        snapshot = self.buffer.snapshot()
        self.append(turn)
        self.retry_coordinator.hold(PendingRequest(snapshot=snapshot, new_turn=turn))
        return self._start(lambda: self.session.send(snapshot, turn))

    async def retry(self) -> ReplyStream:
        """Resend the last failed request exactly as it was first sent.

        Raises:
            ContractViolationError: Nothing to retry, or a send is in progress

        """
        self._ensure_idle()
        return self._start(lambda: self.retry_coordinator.retry(self.session))

    async def close(self, store: TurnStore) -> None:
        """Abandon any open stream and persist the transcript."""
        if self._active is not None:
            await self._active.aclose()
        await store.save_turns(
            self.user_id,
            self.conversation_id,
            self.transcript,
            surface=self.profile.name,
        )

    @classmethod
    async def open(
        cls,
        store: TurnStore,
        profile: SurfaceProfile,
        user_id: str = DEFAULT_USER,
        transport: ModelTransport | None = None,
    ) -> "Conversation":
        """Load the stored transcript and build a ready conversation."""
        transcript = await store.load_turns(user_id, profile.conversation_id)
        logger.info(
            "Opened %s for %s (%d stored turns)",
            profile.conversation_id,
            user_id,
            len(transcript),
        )
        return build_conversation(profile, transcript, transport=transport, user_id=user_id)

    def _ensure_idle(self) -> None:
        if self.busy:
            raise ContractViolationError("A reply is already streaming for this conversation.")

    def _start(self, send: Callable[[], ReplyStream]) -> ReplyStream:
        try:
            stream = send()
        except ContractViolationError:
            raise
        except SendFailedError as e:
            self.retry_coordinator.settle(e.classified)
            raise
        stream.add_callbacks(on_complete=self._commit, on_failure=self._on_failure)
        self._active = stream
        return stream

    def _commit(self, text: str) -> None:
        self.append(Turn.assistant(text))
        self.retry_coordinator.release()
        self._active = None
        logger.info("Committed reply in %s (%d turns buffered)", self.conversation_id, len(self.buffer))

    def _on_failure(self, classified: ClassifiedError) -> None:
        self.retry_coordinator.settle(classified)
        self._active = None


def build_conversation(
    profile: SurfaceProfile,
    transcript: Sequence[Turn] = (),
    transport: ModelTransport | None = None,
    user_id: str = DEFAULT_USER,
    classifier: ErrorClassifier | None = None,
) -> Conversation:
    """Wire a Conversation for ``profile`` around one model transport."""
    transport = transport or PydanticAITransport()
    classifier = classifier or ErrorClassifier()
    session = StreamingSession(
        transport,
        system_prompt=profile.system_prompt,
        temperature=profile.temperature,
        model_name=profile.model_name,
        classifier=classifier,
        context=profile.context,
    )
    policy = CompactionPolicy(ModelSummarizer(transport), profile.compaction)
    return Conversation(profile, session, policy, transcript=transcript, user_id=user_id)
