"""Tests for one-shot operations (study plans, quizzes, doubts, coaching)."""

import json

import pytest

from vidya.config import FAST_MODEL
from vidya.core import operations
from vidya.core.operations import extract_code_block
from vidya.core.schemas import DailyTask, Quiz, RawStudyPlan, Task, WeeklyPlan
from vidya.errors import ErrorKind, OperationFailedError
from vidya.errors.fallback import CONTEXT_MESSAGES, MESSAGES
from vidya.turns import Attachment


class FakeTransport:
    """Returns a fixed output from complete() and records requests."""

    def __init__(self, output):
        self.output = output
        self.requests = []
        self.output_types = []

    def stream(self, request):
        raise NotImplementedError

    async def complete(self, request, output_type=str):
        self.requests.append(request)
        self.output_types.append(output_type)
        if isinstance(self.output, BaseException):
            raise self.output
        return self.output


RAW_PLAN = {
    "plan_title": "Mechanics Mastery Sprint",
    "duration_weeks": 2,
    "weekly_plans": [
        {
            "week": 1,
            "topic_focus": "Kinematics",
            "daily_tasks": [
                {"day": "Monday", "tasks": ["Read NCERT chapter 3", "Solve 10 problems"]},
                {"day": "Tuesday", "tasks": ["Revise equations of motion"]},
            ],
        },
        {
            "week": 2,
            "topic_focus": "Laws of Motion",
            "daily_tasks": [{"day": "Monday", "tasks": ["Free body diagrams"]}],
        },
    ],
}


def _question(i: int, correct: str = "B") -> dict:
    return {
        "question": f"Question {i}: what is $2 + {i}$?",
        "options": ["A", "B", "C", "D"],
        "correct_answer": correct,
        "explanation": "Because B.",
    }


# ============ Study plans ============

@pytest.mark.asyncio
async def test_generate_study_plan_tasks_start_incomplete():
    transport = FakeTransport(RawStudyPlan.model_validate(RAW_PLAN))

    plan = await operations.generate_study_plan(
        "JEE", "Physics", "Finish mechanics", "2 weeks", transport=transport
    )

    assert plan.plan_title == "Mechanics Mastery Sprint"
    assert (plan.curriculum, plan.subject, plan.goal) == ("JEE", "Physics", "Finish mechanics")
    monday = plan.weekly_plans[0].daily_tasks[0]
    assert monday.tasks == [
        Task(text="Read NCERT chapter 3", completed=False),
        Task(text="Solve 10 problems", completed=False),
    ]
    assert transport.output_types == [RawStudyPlan]
    request = transport.requests[0]
    assert request.temperature == 0.7
    assert 'User\'s Goal: "Finish mechanics"' in request.new_turn.text


@pytest.mark.asyncio
async def test_generate_study_plan_accepts_json_text():
    transport = FakeTransport(json.dumps(RAW_PLAN))
    plan = await operations.generate_study_plan("JEE", "Physics", "goal", "2 weeks", transport=transport)
    assert plan.duration_weeks == 2


@pytest.mark.asyncio
async def test_generate_study_plan_unparseable_output():
    transport = FakeTransport("Sorry, I cannot make a plan")
    with pytest.raises(OperationFailedError) as exc_info:
        await operations.generate_study_plan("JEE", "Physics", "goal", "2 weeks", transport=transport)
    assert exc_info.value.classified.kind == ErrorKind.MALFORMED_RESPONSE
    assert exc_info.value.operation == "study_plan"
    assert str(exc_info.value) == MESSAGES[ErrorKind.MALFORMED_RESPONSE]


@pytest.mark.asyncio
async def test_adapt_study_plan_sends_task_texts():
    week = WeeklyPlan(
        week=3,
        topic_focus="Thermodynamics",
        daily_tasks=[DailyTask(day="Monday", tasks=[Task(text="Read chapter 12", completed=True)])],
    )
    transport = FakeTransport(
        {
            "week": 3,
            "topic_focus": "Thermodynamics (lighter)",
            "daily_tasks": [{"day": "Monday", "tasks": ["Read first half of chapter 12"]}],
        }
    )

    adapted = await operations.adapt_study_plan(week, "Physics", transport=transport)

    assert adapted.daily_tasks[0].tasks == [Task(text="Read first half of chapter 12")]
    prompt = transport.requests[0].new_turn.text
    assert "Week 3" in prompt
    assert '"Read chapter 12"' in prompt


# ============ Quiz ============

@pytest.mark.asyncio
async def test_generate_quiz():
    transport = FakeTransport({"questions": [_question(i) for i in range(5)]})
    quiz = await operations.generate_quiz("NCERT", "Maths (11th)", transport=transport)
    assert isinstance(quiz, Quiz)
    assert len(quiz.questions) == 5
    assert all(q.correct_answer in q.options for q in quiz.questions)


@pytest.mark.asyncio
async def test_quiz_answer_outside_options_is_malformed():
    questions = [_question(i) for i in range(4)] + [_question(4, correct="E")]
    transport = FakeTransport({"questions": questions})
    with pytest.raises(OperationFailedError) as exc_info:
        await operations.generate_quiz("NCERT", "Maths (11th)", transport=transport)
    assert exc_info.value.classified.kind == ErrorKind.MALFORMED_RESPONSE
    assert exc_info.value.classified.retryable


@pytest.mark.asyncio
async def test_quiz_with_wrong_question_count_is_malformed():
    transport = FakeTransport({"questions": [_question(i) for i in range(3)]})
    with pytest.raises(OperationFailedError) as exc_info:
        await operations.generate_quiz("NCERT", "Maths (11th)", transport=transport)
    assert exc_info.value.classified.kind == ErrorKind.MALFORMED_RESPONSE


# ============ Text operations ============

@pytest.mark.asyncio
async def test_solve_doubt_sends_attachment():
    image = Attachment(b"\x89PNG", "image/png")
    transport = FakeTransport("Step 1: ...")
    answer = await operations.solve_doubt("Find x", attachment=image, transport=transport)
    assert answer == "Step 1: ..."
    assert transport.requests[0].new_turn.attachment is image
    assert 'Problem: "Find x"' in transport.requests[0].new_turn.text


@pytest.mark.asyncio
async def test_simplify_uses_higher_temperature():
    transport = FakeTransport("Imagine a ball...")
    await operations.simplify_explanation("Momentum is p = mv", transport=transport)
    assert transport.requests[0].temperature == 0.8


@pytest.mark.asyncio
async def test_format_code_extracts_block():
    transport = FakeTransport("Here you go:\n```python\ndef f(x):\n    return x\n```\n")
    assert await operations.format_code("def f(x):return x", transport=transport) == "def f(x):\n    return x"
    assert transport.requests[0].temperature == 0.1


def test_extract_code_block_fallbacks():
    assert extract_code_block("  x = 1  ") == "x = 1"
    assert extract_code_block("```\nint main() {}\n```") == "int main() {}"


@pytest.mark.asyncio
async def test_motivation_and_insight_use_fast_model():
    transport = FakeTransport("Keep going!")
    await operations.motivational_message(80, "Chemistry", transport=transport)
    await operations.coach_insight({"current_streak": 5, "average_quiz_score": 92}, transport=transport)
    first, second = transport.requests
    assert first.model_name == FAST_MODEL
    assert first.temperature == 0.9
    assert "completed 80%" in first.new_turn.text
    assert second.model_name == FAST_MODEL
    assert "Current Study Streak: 5 days" in second.new_turn.text
    assert "Total Quizzes Taken: 0" in second.new_turn.text


# ============ Failures ============

@pytest.mark.asyncio
async def test_unknown_failure_names_the_operation():
    transport = FakeTransport(RuntimeError("odd"))
    with pytest.raises(OperationFailedError) as exc_info:
        await operations.simplify_explanation("text", transport=transport)
    assert str(exc_info.value) == CONTEXT_MESSAGES["simplify"]
    assert exc_info.value.operation == "simplify"


@pytest.mark.asyncio
async def test_empty_text_reply_is_malformed():
    transport = FakeTransport("   ")
    with pytest.raises(OperationFailedError) as exc_info:
        await operations.solve_doubt("Find x", transport=transport)
    assert exc_info.value.classified.kind == ErrorKind.MALFORMED_RESPONSE


@pytest.mark.asyncio
async def test_safety_failure_is_terminal():
    transport = FakeTransport(RuntimeError("Candidate was blocked due to SAFETY"))
    with pytest.raises(OperationFailedError) as exc_info:
        await operations.coach_insight({}, transport=transport)
    assert exc_info.value.classified.kind == ErrorKind.SAFETY_BLOCKED
    assert not exc_info.value.classified.retryable
