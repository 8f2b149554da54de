"""
Terminal quiz runner.

Generates a quiz for a user (from the syllabus or a local document), lets you
take it question by question, submits it so the user's stats are updated and
prints the review. The quiz in progress is kept in a single local state file so
it can be resumed and reviewed later; starting a new quiz clears it.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Callable, Iterable

from sqlalchemy.orm import Session

from cavision.api.dependencies import get_quiz_service
from cavision.db.session import SessionLocal, init_db
from cavision.schemas.quiz_schema import (
    QuizResultResponse,
    QuizSubmitRequest,
    SyllabusQuizRequest,
    UploadQuizRequest,
)
from cavision.services.document_service import validate_upload
from cavision.services.quiz_service import QuizAlreadySubmittedError, QuizNotFoundError, QuizService
from cavision.services.quiz_session import QuizSession, QuizSessionError, QuizStateStore
from cavision.services.review import render_review_text
from cavision.services.syllabus import DIFFICULTIES, GROUPS, LEVELS

DEFAULT_STATE_PATH = Path.home() / ".cavision" / "quiz_state.json"

HELP = "Commands: A-D select | x clear | n next | p previous | f flag | s submit | q quit"


def render_question(session: QuizSession) -> str:
    item = session.current
    flag = " [flagged]" if item.flagged else ""
    lines = [f"Question {session.index + 1} of {len(session)} ({session.progress:.0f}%){flag}", item.question.question]
    for label, text in item.question.options.model_dump().items():
        marker = "*" if label == item.user_answer else " "
        lines.append(f" {marker} {label}. {text}")
    return "\n".join(lines)


def play(
    session: QuizSession,
    store: QuizStateStore,
    read: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> bool:
    """
    Run the interactive loop. Returns True when the quiz was submitted.

    State is saved after every action.
    """
    write(HELP)
    while not session.is_completed:
        write(render_question(session))
        try:
            command = read("> ").strip()
        except EOFError:
            command = "q"

        try:
            if command.upper() in ("A", "B", "C", "D"):
                session.select_option(command.upper())
            elif command.lower() == "x":
                session.clear_answer()
            elif command.lower() == "n":
                session.next()
            elif command.lower() == "p":
                session.previous()
            elif command.lower() == "f":
                session.toggle_flag()
            elif command.lower() == "s":
                if not session.is_last:
                    write("Go to the last question to submit.")
                    continue
                score = session.submit()
                store.save(session)
                write(f"Quiz complete! {score} / {len(session)}")
                return True
            elif command.lower() == "q":
                store.save(session)
                write("Progress saved. Run with --resume to continue.")
                return False
            else:
                write(HELP)
                continue
        except QuizSessionError as exc:
            write(str(exc))
            continue
        store.save(session)
    return True


async def generate_quiz(service: QuizService, db: Session, user_id: str, args: argparse.Namespace) -> QuizSession:
    """Create a server-held quiz for the user; this also counts it in their stats."""
    if args.file:
        path = Path(args.file)
        document = validate_upload(
            path.name,
            None,
            path.read_bytes(),
            max_bytes=service.generator.settings.upload_max_bytes,
        )
        request = UploadQuizRequest(difficulty=args.difficulty, count=args.count, seed=args.seed)
        generated = await service.create_from_upload(db, user_id, request, document)
    else:
        request = SyllabusQuizRequest(
            level=args.level,
            group=args.group,
            subject=args.subject,
            difficulty=args.difficulty,
            count=args.count,
            seed=args.seed,
        )
        generated = await service.create_from_syllabus(db, user_id, request)
    return QuizSession(generated.questions, quiz_id=generated.quiz_id)


def record_result(service: QuizService, db: Session, user_id: str, session: QuizSession) -> QuizResultResponse:
    """Send the completed quiz's answers so the server scores it and updates the user's stats."""
    submission = QuizSubmitRequest(
        answers={item.question.id: item.user_answer for item in session.items},
        flagged=[item.question.id for item in session.items if item.flagged],
    )
    return service.submit(db, user_id, session.quiz_id, submission)


def run_quiz(
    args: argparse.Namespace,
    store: QuizStateStore,
    service: QuizService,
    db: Session,
    read: Callable[[str], str] = input,
    write: Callable[[str], None] = print,
) -> int:
    session = store.load() if args.resume else None
    if session is None or session.is_completed:
        store.clear()
        try:
            session = asyncio.run(generate_quiz(service, db, args.user, args))
        except Exception as exc:  # noqa: BLE001
            write(f"Failed to generate MCQs: {exc}")
            return 2
        store.save(session)

    if not play(session, store, read=read, write=write):
        return 0

    if session.quiz_id is None:
        write("This quiz was not created on the server; your stats were not updated.")
    else:
        try:
            result = record_result(service, db, args.user, session)
        except QuizNotFoundError:
            write(f"Quiz {session.quiz_id} was not found for user {args.user}; your stats were not updated.")
        except QuizAlreadySubmittedError:
            write("This quiz was already submitted; your stats were not updated again.")
        else:
            if not result.stats_saved:
                write("Your stats could not be saved. Please try again later.")
    write(render_review_text(session))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Take a CA exam MCQ quiz in the terminal.")
    parser.add_argument("--user", type=str, default="local-user", help="User id whose stats are updated")
    parser.add_argument("--level", choices=LEVELS, default="Foundation")
    parser.add_argument("--group", choices=GROUPS, default=None)
    parser.add_argument("--subject", type=str, default="Accounting", help="Paper name, e.g. 'Taxation'")
    parser.add_argument("--difficulty", choices=DIFFICULTIES, default="Medium")
    parser.add_argument("--count", type=int, default=10, help="Number of questions (5-50)")
    parser.add_argument("--seed", type=int, default=None)
    parser.add_argument("--file", type=str, default=None, help="Generate from a PDF, DOCX or TXT file instead")
    parser.add_argument("--state", type=Path, default=DEFAULT_STATE_PATH, help="Local quiz state file")
    parser.add_argument("--resume", action="store_true", help="Continue the saved quiz")
    parser.add_argument("--review", action="store_true", help="Show the review of the last submitted quiz")
    return parser


def main(argv: Iterable[str] | None = None) -> int:
    args = build_parser().parse_args(list(argv) if argv is not None else None)

    logging.basicConfig(level=logging.WARNING, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")
    store = QuizStateStore(args.state)

    if args.review:
        session = store.load()
        if session is None or not session.is_completed:
            print("No quiz data found. Please start a new quiz to review your answers.")
            return 1
        print(render_review_text(session))
        return 0

    init_db()
    db = SessionLocal()
    try:
        return run_quiz(args, store, get_quiz_service(), db)
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
