"""Tests for the pydantic-ai transport and model builders."""

import pytest
from pydantic_ai.messages import (
    BinaryContent,
    ModelRequest,
    ModelResponse,
    TextPart,
    UserPromptPart,
)
from pydantic_ai.models.function import AgentInfo, FunctionModel

from vidya.core.model import build_model
from vidya.core.transport import (
    SUMMARY_FRAME,
    GenerationRequest,
    PydanticAITransport,
    to_model_messages,
    user_content,
)
from vidya.turns import Attachment, Turn

IMAGE = Attachment(b"\x89PNG-data", "image/png")


# ============ Message conversion ============

def test_user_content_text_only():
    assert user_content(Turn.user("hello")) == "hello"


def test_user_content_puts_attachment_first():
    content = user_content(Turn.user("what is this?", attachment=IMAGE))
    assert isinstance(content[0], BinaryContent)
    assert content[0].data == IMAGE.data
    assert content[0].media_type == "image/png"
    assert content[1] == "what is this?"


def test_user_content_attachment_only():
    content = user_content(Turn.user("", attachment=IMAGE))
    assert len(content) == 1
    assert isinstance(content[0], BinaryContent)


def test_to_model_messages_roles_and_summary_frame():
    history = [
        Turn.assistant("Hi there!"),
        Turn.summary("We talked about exams."),
        Turn.user("and now?"),
        Turn.user(""),
    ]
    messages = to_model_messages(history)

    assert len(messages) == 3
    assert isinstance(messages[0], ModelResponse)
    assert messages[0].parts[0].content == "Hi there!"
    assert isinstance(messages[1], ModelResponse)
    assert messages[1].parts[0].content == SUMMARY_FRAME.format(summary="We talked about exams.")
    assert isinstance(messages[2], ModelRequest)
    assert messages[2].parts[0].content == "and now?"


# ============ PydanticAITransport ============

def _texts(messages) -> list[str]:
    texts = []
    for message in messages:
        for part in message.parts:
            if isinstance(part, (UserPromptPart, TextPart)) and isinstance(part.content, str):
                texts.append(part.content)
    return texts


@pytest.mark.asyncio
async def test_stream_yields_deltas_and_sends_history():
    seen = {}

    async def stream_fn(messages, info: AgentInfo):
        seen["texts"] = _texts(messages)
        for chunk in ["Photo", "synthesis ", "uses light."]:
            yield chunk

    transport = PydanticAITransport(model_factory=lambda name: FunctionModel(stream_function=stream_fn))
    request = GenerationRequest(
        history=(Turn.assistant("Hello!"),),
        new_turn=Turn.user("Explain photosynthesis"),
        system_prompt="You are a tutor.",
    )

    deltas = [delta async for delta in transport.stream(request)]

    assert "".join(deltas) == "Photosynthesis uses light."
    assert seen["texts"][0] == "Hello!"
    assert seen["texts"][-1] == "Explain photosynthesis"


@pytest.mark.asyncio
async def test_complete_returns_output_and_uses_requested_model():
    built = []

    def reply(messages, info: AgentInfo):
        return ModelResponse(parts=[TextPart(content="A short recap.")])

    def factory(name):
        built.append(name)
        return FunctionModel(function=reply)

    transport = PydanticAITransport(model_factory=factory, default_model="default-model")
    request = GenerationRequest(history=(), new_turn=Turn.user("Summarize"), model_name="fast-model")

    assert await transport.complete(request) == "A short recap."
    assert built == ["fast-model"]


@pytest.mark.asyncio
async def test_each_call_builds_a_fresh_model():
    built = []

    def factory(name):
        built.append(name)
        return FunctionModel(function=lambda messages, info: ModelResponse(parts=[TextPart("ok")]))

    transport = PydanticAITransport(model_factory=factory, default_model="chat-model")
    request = GenerationRequest(history=(), new_turn=Turn.user("hi"))
    await transport.complete(request)
    await transport.complete(request)
    assert built == ["chat-model", "chat-model"]


def test_settings_only_when_temperature_given():
    assert PydanticAITransport._settings(GenerationRequest((), Turn.user("x"))) is None
    settings = PydanticAITransport._settings(GenerationRequest((), Turn.user("x"), temperature=0.1))
    assert settings["temperature"] == 0.1


# ============ Model builders ============

def test_build_model_rejects_unknown_provider():
    with pytest.raises(ValueError):
        build_model("gemini-2.5-pro", provider="carrier-pigeon")


def test_build_vllm_model_without_network():
    model = build_model("local-model", provider="vllm")
    assert model.model_name == "local-model"
