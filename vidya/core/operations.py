"""One-shot model operations: study plans, quizzes, doubts and coaching.

Every operation is a single non-streaming call through the same
ModelTransport as chat. Failures of any kind are classified by
ErrorClassifier and raised as OperationFailedError, whose message names the
operation that failed.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any

from pydantic import BaseModel

from vidya.config import CHAT_MODEL, FAST_MODEL
from vidya.core.prompts import COMPETITIVE_EXAMS, MATH_INSTRUCTION
from vidya.core.schemas import Quiz, RawStudyPlan, RawWeeklyPlan, StudyPlan, WeeklyPlan
from vidya.core.transport import GenerationRequest, ModelTransport, PydanticAITransport
from vidya.errors.classifier import ErrorClassifier
from vidya.errors.exceptions import MalformedResponseError, OperationFailedError
from vidya.turns import Attachment, Turn

logger = logging.getLogger(__name__)

_CODE_BLOCK_RE = re.compile(r"```(?:\w*\n)?([\s\S]*?)```")

_classifier = ErrorClassifier()


async def _call(
    context: str,
    prompt: str,
    transport: ModelTransport | None,
    output_type: Any = str,
    model_name: str = CHAT_MODEL,
    temperature: float | None = None,
    attachment: Attachment | None = None,
) -> Any:
    """Run one request and validate its output, raising OperationFailedError on any failure."""
    transport = transport or PydanticAITransport()
    request = GenerationRequest(
        history=(),
        new_turn=Turn.user(prompt, attachment=attachment),
        temperature=temperature,
        model_name=model_name,
    )
    logger.info("Running %s (model=%s)", context, model_name)
    try:
        output = await transport.complete(request, output_type=output_type)
        return _validate(output, output_type)
    except Exception as e:
        classified = _classifier.classify(e, context=context)
        raise OperationFailedError(classified, context) from e


def _validate(output: Any, output_type: Any) -> Any:
    if isinstance(output_type, type) and issubclass(output_type, BaseModel):
        if isinstance(output, output_type):
            return output
        if isinstance(output, (str, bytes)):
            return output_type.model_validate_json(output)
        return output_type.model_validate(output)
    if not isinstance(output, str):
        raise MalformedResponseError(f"Expected text, got {type(output).__name__}")
    if not output.strip():
        raise MalformedResponseError("Model returned an empty reply")
    return output


def extract_code_block(text: str) -> str:
    """Return the body of the first fenced code block, or the text itself."""
    text = text.strip()
    match = _CODE_BLOCK_RE.search(text)
    if match and match.group(1):
        return match.group(1).strip()
    return text


async def generate_study_plan(
    curriculum: str,
    subject: str,
    goal: str,
    duration: str,
    transport: ModelTransport | None = None,
) -> StudyPlan:
    """Generate a week-by-week plan; every task starts not completed."""
    exams = ", ".join(COMPETITIVE_EXAMS)
    prompt = f"""\
You are an expert academic planner. Create a detailed, week-by-week plan based on the user's request.

Category: {curriculum}
Topic: {subject}
User's Goal: "{goal}"
Desired Duration: {duration}

Generate a comprehensive plan that breaks down the learning goal into manageable weekly and daily tasks.
The plan should be practical and motivating. Ensure the daily tasks are specific and actionable.
If the topic is academic, focus on syllabus coverage.
If it's for a competitive exam like {exams}, create a rigorous, strategy-focused plan covering core concepts, practice, and revision."""

    raw: RawStudyPlan = await _call(
        "study_plan", prompt, transport, output_type=RawStudyPlan, temperature=0.7
    )
    return StudyPlan(
        curriculum=curriculum,
        subject=subject,
        goal=goal,
        plan_title=raw.plan_title,
        duration_weeks=raw.duration_weeks,
        weekly_plans=[week.to_plan() for week in raw.weekly_plans],
    )


async def adapt_study_plan(
    week: WeeklyPlan,
    subject: str,
    transport: ModelTransport | None = None,
) -> WeeklyPlan:
    """Rewrite one week of a plan into smaller, more manageable tasks."""
    original = json.dumps(
        [
            {"day": day.day, "tasks": [task.text for task in day.tasks]}
            for day in week.daily_tasks
        ],
        indent=2,
        ensure_ascii=False,
    )
    prompt = f"""\
You are an AI Study Coach. A student studying "{subject}" is feeling overwhelmed with the plan for Week {week.week}, which focuses on "{week.topic_focus}".
Your task is to revise this week's plan to make it more manageable, focusing only on the most critical concepts to help them get back on track.
Break down the larger tasks into smaller, more achievable steps. The goal is to reduce stress and build momentum.
Maintain the same structure but adjust the tasks.

Original Week's Plan:
{original}

Return the complete, revised weekly plan object in JSON format."""

    raw: RawWeeklyPlan = await _call("adapt_plan", prompt, transport, output_type=RawWeeklyPlan)
    return raw.to_plan()


async def generate_quiz(
    curriculum: str,
    subject: str,
    transport: ModelTransport | None = None,
) -> Quiz:
    """Five multiple-choice questions with four options each."""
    prompt = f"""\
You are an expert quiz creator for Indian students.
Your task is to generate a 5-question multiple-choice quiz on the following topic.
The questions should be relevant to the curriculum and test key concepts.
Each question must have exactly 4 options.
IMPORTANT: For any mathematical or scientific notation, use KaTeX-compatible LaTeX (e.g., $...$ for inline, $$...$$ for block).

Curriculum: {curriculum}
Subject: {subject}

Return the quiz in the specified JSON format."""

    return await _call("quiz", prompt, transport, output_type=Quiz)


async def solve_doubt(
    problem: str,
    attachment: Attachment | None = None,
    transport: ModelTransport | None = None,
) -> str:
    prompt = f"""\
You are an expert AI Tutor. A student needs help with the following problem.
Analyze the problem presented in the text and/or image.
Provide a detailed, step-by-step solution.
Explain the reasoning behind each step clearly and concisely.
Format your response using markdown for readability (e.g., for tables, lists, bold text).
{MATH_INSTRUCTION}

Problem: "{problem}\""""

    return await _call("solve_doubt", prompt, transport, attachment=attachment)


async def simplify_explanation(explanation: str, transport: ModelTransport | None = None) -> str:
    prompt = f"""\
You are an expert teacher with a talent for making complex topics simple.
A student has received the following technical explanation and needs it simplified.
Your task is to re-explain the concept "like they are 10 years old".
Use a simple analogy or a real-world example to make it easy to understand.
Break it down into very simple steps. Keep the tone friendly and encouraging.
If the original text contained math formulas in LaTeX, you can simplify the explanation around them, but do not attempt to simplify the formulas themselves.

Original Explanation to Simplify:
---
{explanation}
---"""

    return await _call("simplify", prompt, transport, temperature=0.8)


async def format_code(code: str, transport: ModelTransport | None = None) -> str:
    """Reformat a snippet; returns the bare code without the markdown fence."""
    prompt = f"""\
You are a code formatting tool.
Your ONLY task is to format the following code snippet according to standard conventions for its language.
Do NOT add explanations, comments, or change the logic.
Only return the formatted code inside a single markdown code block.

Code to format:
{code}"""

    text = await _call("format_code", prompt, transport, temperature=0.1)
    return extract_code_block(text)


async def motivational_message(
    progress: int,
    subject: str,
    transport: ModelTransport | None = None,
) -> str:
    """Short encouragement for a weekly completion percentage."""
    prompt = f"""\
You are an AI Study Coach. A student studying "{subject}" has completed {progress}% of their tasks for the week.
Write a short (2-3 sentences), personalized, and encouraging message based on their progress.
- If progress is high (>= 75%), praise their dedication and tell them to keep up the momentum.
- If progress is medium (40-74%), acknowledge their effort and encourage them to stay consistent.
- If progress is low (< 40%), be gentle and supportive. Remind them that it's okay to have a slow start and suggest focusing on one small task to get going.
Do not sound robotic. Be warm and empathetic."""

    return await _call(
        "motivation", prompt, transport, model_name=FAST_MODEL, temperature=0.9
    )


async def coach_insight(stats: dict, transport: ModelTransport | None = None) -> str:
    """Personalized insight from study statistics.

    Args:
        stats: current_streak, total_tasks_completed, quizzes_taken,
            average_quiz_score, plans_created (missing keys count as 0)

    """
    prompt = f"""\
You are "Vidya AI", an expert AI Study Coach. Your role is to provide a short (2-3 sentences), personalized, and encouraging insight to a student based on their recent performance. Be warm, empathetic, and provide one actionable suggestion. Do not sound robotic.

Here is the student's data:
- Current Study Streak: {stats.get("current_streak", 0)} days
- Total Tasks Completed: {stats.get("total_tasks_completed", 0)}
- Total Quizzes Taken: {stats.get("quizzes_taken", 0)}
- Average Quiz Score: {stats.get("average_quiz_score", 0)}%
- Study Plans Created: {stats.get("plans_created", 0)}

Analyze the data and generate an insightful message. For example:
- If streak is high, praise consistency.
- If quiz score is high, suggest tackling a harder topic.
- If tasks completed is high but quiz score is low, suggest reviewing fundamentals.
- If they have many plans, praise their ambition but suggest focusing on one.
- If they are just starting, give a welcoming and encouraging message.

Generate the insight now."""

    return await _call(
        "coach_insight", prompt, transport, model_name=FAST_MODEL, temperature=0.9
    )
