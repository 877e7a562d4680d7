"""Chat surfaces: system prompts, greetings and compaction settings.

Companion chat and tutor chat share one conversation implementation and
differ only in the SurfaceProfile they are built with.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from vidya.config import CHAT_MODEL, CHAT_TEMPERATURE
from vidya.conversation.compaction import CompactionConfig

CURRICULA: dict[str, list[str]] = {
    "NCERT": [
        "Physics (11th)",
        "Physics (12th)",
        "Chemistry (11th)",
        "Chemistry (12th)",
        "Maths (11th)",
        "Maths (12th)",
        "Biology (11th)",
        "Biology (12th)",
    ],
    "JEE": ["Physics", "Chemistry", "Mathematics"],
    "NEET": ["Physics", "Chemistry", "Biology"],
    "Programming Help": [
        "Python",
        "C",
        "C++",
        "Java",
        "Full Stack Web Development",
        "Frontend Development (HTML, CSS, JS, React)",
        "Backend Development (Node.js, PHP)",
        "App Development (Android/iOS)",
    ],
    "Commerce": ["Accountancy", "Business Studies", "Economics", "Mathematics", "English"],
    "Arts": ["History", "Political Science", "Geography", "Sociology", "Psychology", "English"],
    "CAT": [
        "Quantitative Aptitude",
        "Verbal Ability & Reading Comprehension",
        "Data Interpretation & Logical Reasoning",
    ],
    "GATE": [
        "Computer Science",
        "Mechanical Engineering",
        "Electronics & Communication",
        "Civil Engineering",
    ],
    "UPSC": [
        "Indian Polity & Governance",
        "History of India & Indian National Movement",
        "Indian & World Geography",
        "Indian Economy",
        "General Science",
    ],
}

COMPETITIVE_EXAMS = ("CAT", "GATE", "UPSC")

MATH_INSTRUCTION = (
    "IMPORTANT: For all mathematical formulas, equations, and symbols, use KaTeX-compatible "
    "LaTeX. Use single dollar signs (`$...$`) for inline math and double dollar signs "
    "(`$$...$$`) for block equations. This is crucial for correct rendering."
)

COMPANION_PROMPT = """\
You are "Vidya AI" in a friendly, conversational mode.
Your role is to be a supportive and empathetic companion.
You can chat with students about their day, hobbies, real-life problems, or any general topic \
they want to discuss, including images they might share.
Your tone should be encouraging, positive, and non-judgmental.
You are not a formal tutor in this mode, so avoid academic lectures unless the user specifically \
asks for help with a concept.
Focus on being a good listener and a friendly conversational partner. Use markdown for readability."""

COMPANION_GREETING = (
    "Hi there! Feel free to chat with me about anything on your mind. How's your day going?"
)


@dataclass(frozen=True)
class SurfaceProfile:
    """Everything that distinguishes one chat surface from another.

    Attributes:
        name: Surface name ("companion", "tutor")
        conversation_id: Storage key of the conversation within a user
        system_prompt: Instructions sent with every request
        greeting: First assistant turn of a new conversation
        compaction: History budget
        temperature: Sampling temperature (None = model default)
        model_name: Model used for replies
        context: Operation name used for error messages

    """

    name: str
    conversation_id: str
    system_prompt: str
    greeting: str
    compaction: CompactionConfig = field(default_factory=CompactionConfig)
    temperature: float | None = CHAT_TEMPERATURE
    model_name: str = CHAT_MODEL
    context: str = "chat"


def companion_profile(compaction: CompactionConfig | None = None) -> SurfaceProfile:
    return SurfaceProfile(
        name="companion",
        conversation_id="companion",
        system_prompt=COMPANION_PROMPT,
        greeting=COMPANION_GREETING,
        compaction=compaction or CompactionConfig(),
    )


def validate_topic(curriculum: str, subject: str) -> None:
    """Raise ValueError unless ``subject`` belongs to ``curriculum``."""
    if curriculum not in CURRICULA:
        raise ValueError(f"Unknown curriculum {curriculum!r}; choose from {', '.join(CURRICULA)}")
    if subject not in CURRICULA[curriculum]:
        raise ValueError(
            f"Unknown subject {subject!r} for {curriculum}; "
            f"choose from {', '.join(CURRICULA[curriculum])}"
        )


def tutor_system_prompt(curriculum: str, subject: str) -> str:
    if curriculum == "Programming Help":
        return f"""\
You are "Vidya AI", an expert AI coding mentor.
Your current context is helping with: {subject}.
Adopt the persona of an expert programmer and senior developer.
Provide clear explanations for programming concepts, help debug code, suggest best practices, \
and write efficient, well-documented code examples.
When an image of code is provided, analyze it, identify errors, and suggest improvements.
Use markdown for clear formatting, especially for code blocks (```language). \
Be precise and encouraging."""
    if curriculum in COMPETITIVE_EXAMS:
        return f"""\
You are "Vidya AI", an expert AI mentor for Indian competitive exams.
Your current context is {curriculum} - {subject}.
Adopt the persona of a seasoned coach. Provide in-depth explanations of complex topics, offer \
strategic advice for exam preparation, analyze past trends, and help with time management and \
revision strategies.
If an image of a problem is provided, solve it with a detailed, step-by-step explanation \
suitable for a high-level competitive exam.
Use markdown for clear formatting of tables, lists, and key points.
{MATH_INSTRUCTION}"""
    return f"""\
You are "Vidya AI", an expert AI tutor specializing in Indian academic curricula like NCERT, \
JEE, and NEET.
Your current context is {curriculum} - {subject}.
Explain concepts clearly, provide step-by-step solutions to problems, and be encouraging and \
friendly.
If an image is provided, analyze it and answer any questions related to it.
Use markdown for formatting, especially for tables, lists, and to make your explanations easy \
to understand.
{MATH_INSTRUCTION}"""


def tutor_greeting(curriculum: str, subject: str) -> str:
    if curriculum == "Programming Help":
        return (
            f"Hi! I'm Vidya AI, your expert coding mentor for {subject}. "
            "Ask me to explain a concept, debug your code, or show you best practices!"
        )
    return (
        f"Hi! I'm Vidya AI, your personal tutor for {subject}. How can I help you today? "
        "You can ask me questions or upload an image of a problem."
    )


def tutor_profile(
    curriculum: str,
    subject: str,
    compaction: CompactionConfig | None = None,
) -> SurfaceProfile:
    """Profile for a tutor conversation on one curriculum subject.

    Raises:
        ValueError: If the curriculum or subject is unknown

    """
    validate_topic(curriculum, subject)
    return SurfaceProfile(
        name="tutor",
        conversation_id=f"tutor:{curriculum}:{subject}",
        system_prompt=tutor_system_prompt(curriculum, subject),
        greeting=tutor_greeting(curriculum, subject),
        compaction=compaction or CompactionConfig(),
        context="tutor",
    )
