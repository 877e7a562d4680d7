"""CLI interface: companion and tutor chat plus the one-shot study tools."""

import argparse
import asyncio
import logging
from datetime import datetime

from vidya.attachments import encode_attachment
from vidya.config import (
    CHAT_MODEL,
    COMPACTION_RETAIN_TAIL,
    COMPACTION_THRESHOLD,
    DB_PATH,
    DEFAULT_USER,
    FAST_MODEL,
    LOG_FILE,
    PROVIDER_DEFAULT,
    VERSION,
    setup_logging,
)
from vidya.core import operations
from vidya.core.conversation import Conversation
from vidya.core.prompts import CURRICULA, SurfaceProfile, companion_profile, tutor_profile
from vidya.core.streaming import ReplyStream
from vidya.errors.exceptions import OperationFailedError, SendFailedError
from vidya.store_globals import close_store, get_store
from vidya.turns import Attachment, Role, Turn

logger = logging.getLogger(__name__)

CHAT_HELP = "Commands: /retry (resend the last failed message), /attach <path>, /quit"


def _builtin_status() -> str:
    """Status string for the `status` sub-command; no model call is made."""
    curricula = ", ".join(CURRICULA)
    return (
        f"Vidya AI v{VERSION}\n"
        f"Provider: {PROVIDER_DEFAULT}\n"
        f"Models: chat={CHAT_MODEL}, fast={FAST_MODEL}\n"
        f"History compaction: after {COMPACTION_THRESHOLD} turns, "
        f"keeping the last {COMPACTION_RETAIN_TAIL}\n"
        f"Conversation store: SQLite ({DB_PATH})\n"
        f"Curricula: {curricula}\n\n"
        "Usage: python -m vidya chat [--surface tutor --curriculum JEE --subject Physics]"
    )


def _profile_from_args(args) -> SurfaceProfile:
    if args.surface == "tutor":
        if not args.curriculum or not args.subject:
            raise ValueError("Tutor chat needs --curriculum and --subject")
        return tutor_profile(args.curriculum, args.subject)
    return companion_profile()


def _print_turn(turn: Turn) -> None:
    role_emoji = "👤" if turn.role == Role.USER else "🤖"
    attachment = f" [📎 {turn.attachment.media_type}]" if turn.attachment else ""
    print(f"{role_emoji} {turn.text}{attachment}\n")


async def _print_stream(stream: ReplyStream) -> None:
    print("🤖 ", end="", flush=True)
    try:
        async for fragment in stream:
            print(fragment.delta, end="", flush=True)
        print("\n")
    except SendFailedError as e:
        print()
        _print_send_error(e)


def _print_send_error(error: SendFailedError) -> None:
    hint = " Type /retry to try again." if error.retryable else ""
    print(f"⚠️  {error}{hint}\n")


async def _chat(profile: SurfaceProfile, user_id: str) -> None:
    """Interactive chat; the transcript is saved when the session ends."""
    store = await get_store()
    conversation = await Conversation.open(store, profile, user_id=user_id)
    pending_attachment: Attachment | None = None

    print(f"=== {profile.name} ({profile.conversation_id}) ===")
    print(CHAT_HELP + "\n")
    for turn in conversation.transcript[-6:]:
        _print_turn(turn)

    try:
        while True:
            try:
                line = await asyncio.to_thread(input, "> ")
            except EOFError:
                break
            line = line.strip()

            if line in ("/quit", "/exit"):
                break
            if line == "/retry":
                try:
                    stream = await conversation.retry()
                except SendFailedError as e:
                    _print_send_error(e)
                    continue
                await _print_stream(stream)
                continue
            if line.startswith("/attach"):
                path = line[len("/attach"):].strip()
                try:
                    pending_attachment = encode_attachment(path)
                except (OSError, ValueError) as e:
                    print(f"⚠️  Could not attach {path!r}: {e}\n")
                    continue
                print(f"📎 Attached {path} ({pending_attachment.media_type}); it goes with your next message.\n")
                continue

            turn = Turn.user(line, attachment=pending_attachment)
            try:
                stream = await conversation.send(turn)
            except SendFailedError as e:
                _print_send_error(e)
                continue
            pending_attachment = None
            await _print_stream(stream)
    finally:
        await conversation.close(store)
        await close_store()


async def _show_history(profile: SurfaceProfile, user_id: str) -> None:
    try:
        store = await get_store()
        turns = await store.load_turns(user_id, profile.conversation_id)
        if not turns:
            print("No messages stored for this conversation.")
            return
        print(f"=== {profile.conversation_id} ({len(turns)} turns) ===\n")
        for turn in turns:
            _print_turn(turn)
    finally:
        await close_store()


async def _clear_conversation(profile: SurfaceProfile, user_id: str) -> None:
    try:
        store = await get_store()
        if await store.delete_conversation(user_id, profile.conversation_id):
            print(f"✅ Cleared {profile.conversation_id}")
        else:
            print(f"Nothing stored for {profile.conversation_id}")
    finally:
        await close_store()


async def _list_conversations(user_id: str) -> None:
    try:
        store = await get_store()
        conversations = await store.list_conversations(user_id)
        if not conversations:
            print(f"No conversations for {user_id}.")
            return
        print("TURNS  UPDATED           CONVERSATION")
        print("-" * 60)
        for c in conversations:
            updated = datetime.fromtimestamp(c["updated_at"]).strftime("%Y-%m-%d %H:%M")
            print(f"{c['turn_count']:<6} {updated:<17} {c['conversation_id']}")
    finally:
        await close_store()


async def _make_plan(curriculum: str, subject: str, goal: str, duration: str) -> None:
    plan = await operations.generate_study_plan(curriculum, subject, goal, duration)
    print(f"=== {plan.plan_title} ({plan.duration_weeks} weeks) ===")
    for week in plan.weekly_plans:
        print(f"\nWeek {week.week}: {week.topic_focus}")
        for day in week.daily_tasks:
            print(f"  {day.day}")
            for task in day.tasks:
                print(f"    [ ] {task.text}")


async def _make_quiz(curriculum: str, subject: str) -> None:
    quiz = await operations.generate_quiz(curriculum, subject)
    for i, question in enumerate(quiz.questions, 1):
        print(f"\nQ{i}. {question.question}")
        for letter, option in zip("ABCD", question.options):
            print(f"   {letter}) {option}")
        print(f"   ✅ {question.correct_answer} - {question.explanation}")


async def _ask(problem: str, image: str | None) -> None:
    attachment = encode_attachment(image) if image else None
    print(await operations.solve_doubt(problem, attachment=attachment))


def _show_logs(n: int) -> None:
    try:
        with open(LOG_FILE, encoding="utf-8") as f:
            lines = f.readlines()
    except FileNotFoundError:
        print(f"Log file not found: {LOG_FILE}")
        return
    tail = lines[-n:] if len(lines) > n else lines
    print(f"--- last {len(tail)} of {len(lines)} log entries ---")
    print("".join(tail), end="")


def _add_conversation_args(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--surface", choices=["companion", "tutor"], default="companion")
    parser.add_argument("--curriculum", help="Tutor curriculum (e.g. JEE)")
    parser.add_argument("--subject", help="Tutor subject (e.g. Physics)")
    parser.add_argument("--user", default=DEFAULT_USER, help="User id the conversation belongs to")


def main():
    parser = argparse.ArgumentParser(
        prog="python -m vidya",
        description=f"Vidya AI v{VERSION} - study companion and tutor chat",
    )
    sub = parser.add_subparsers(dest="command")

    _add_conversation_args(sub.add_parser("chat", help="Chat with the companion or a tutor"))
    sub.add_parser("status", help="Show configuration")
    _add_conversation_args(sub.add_parser("history", help="Show a stored conversation"))
    _add_conversation_args(sub.add_parser("clear", help="Delete a stored conversation"))

    conversations_parser = sub.add_parser("conversations", help="List stored conversations")
    conversations_parser.add_argument("--user", default=DEFAULT_USER)

    plan_parser = sub.add_parser("plan", help="Generate a study plan")
    plan_parser.add_argument("curriculum")
    plan_parser.add_argument("subject")
    plan_parser.add_argument("goal")
    plan_parser.add_argument("--duration", default="4 weeks")

    quiz_parser = sub.add_parser("quiz", help="Generate a 5-question quiz")
    quiz_parser.add_argument("curriculum")
    quiz_parser.add_argument("subject")

    ask_parser = sub.add_parser("ask", help="Get a step-by-step solution to a problem")
    ask_parser.add_argument("problem")
    ask_parser.add_argument("--image", help="Image of the problem")

    logs_parser = sub.add_parser("logs", help="Show log tail")
    logs_parser.add_argument("n", type=int, nargs="?", default=30, help="Number of lines")

    args = parser.parse_args()

    if args.command is None:
        parser.print_help()
        return

    setup_logging(console=False)

    try:
        if args.command == "chat":
            asyncio.run(_chat(_profile_from_args(args), args.user))
        elif args.command == "status":
            print(_builtin_status())
        elif args.command == "history":
            asyncio.run(_show_history(_profile_from_args(args), args.user))
        elif args.command == "clear":
            asyncio.run(_clear_conversation(_profile_from_args(args), args.user))
        elif args.command == "conversations":
            asyncio.run(_list_conversations(args.user))
        elif args.command == "plan":
            asyncio.run(_make_plan(args.curriculum, args.subject, args.goal, args.duration))
        elif args.command == "quiz":
            asyncio.run(_make_quiz(args.curriculum, args.subject))
        elif args.command == "ask":
            asyncio.run(_ask(args.problem, args.image))
        elif args.command == "logs":
            _show_logs(args.n)
        else:
            parser.print_help()
    except (ValueError, OSError) as e:
        parser.error(str(e))
    except OperationFailedError as e:
        print(f"⚠️  {e}")
        raise SystemExit(1)
    except KeyboardInterrupt:
        print()
