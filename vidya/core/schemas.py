"""Structured outputs of the one-shot operations.

The ``Raw*`` models are what the model is asked to produce (tasks as plain
strings); the public models carry per-task completion state.
"""

from __future__ import annotations

from pydantic import BaseModel, Field, model_validator


class Task(BaseModel):
    text: str
    completed: bool = False


class DailyTask(BaseModel):
    day: str
    tasks: list[Task]


class WeeklyPlan(BaseModel):
    week: int
    topic_focus: str
    daily_tasks: list[DailyTask]


class StudyPlan(BaseModel):
    """A generated plan plus the request it answers."""

    curriculum: str
    subject: str
    goal: str
    plan_title: str
    duration_weeks: int
    weekly_plans: list[WeeklyPlan]


class RawDailyTask(BaseModel):
    day: str = Field(description="The day of the week (e.g., Monday, Tuesday).")
    tasks: list[str] = Field(description="A list of specific tasks or sub-topics for the day.")


class RawWeeklyPlan(BaseModel):
    week: int = Field(description="The week number (e.g., 1, 2, 3).")
    topic_focus: str = Field(description="The main topics or chapters to focus on for the week.")
    daily_tasks: list[RawDailyTask] = Field(
        description="A breakdown of tasks for each day of the week."
    )

    def to_plan(self) -> WeeklyPlan:
        return WeeklyPlan(
            week=self.week,
            topic_focus=self.topic_focus,
            daily_tasks=[
                DailyTask(day=day.day, tasks=[Task(text=text) for text in day.tasks])
                for day in self.daily_tasks
            ],
        )


class RawStudyPlan(BaseModel):
    plan_title: str = Field(description="A creative and motivating title for the study plan.")
    duration_weeks: int = Field(description="The total number of weeks for the study plan.")
    weekly_plans: list[RawWeeklyPlan] = Field(description="An array of weekly study plans.")


class QuizQuestion(BaseModel):
    question: str = Field(
        description="The quiz question. Any math should be in KaTeX-compatible LaTeX."
    )
    options: list[str] = Field(
        description="An array of 4 possible string answers. Any math should be in "
        "KaTeX-compatible LaTeX.",
        min_length=4,
        max_length=4,
    )
    correct_answer: str = Field(description="The correct answer from the options array.")
    explanation: str = Field(
        description="A brief explanation for why the correct answer is right. Any math "
        "should be in KaTeX-compatible LaTeX."
    )

    @model_validator(mode="after")
    def _answer_in_options(self) -> "QuizQuestion":
        if self.correct_answer not in self.options:
            raise ValueError(f"correct_answer {self.correct_answer!r} is not one of the options")
        return self


class Quiz(BaseModel):
    questions: list[QuizQuestion] = Field(
        description="An array of 5 quiz questions.", min_length=5, max_length=5
    )
