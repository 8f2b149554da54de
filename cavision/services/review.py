from __future__ import annotations

from cavision.schemas.quiz_schema import ReviewItem
from cavision.services.quiz_session import QuizSession, QuizSessionError


def build_review(session: QuizSession) -> list[ReviewItem]:
    """
    Per-question review of a submitted quiz: correct answer, user answer, explanation.
    """
    if not session.is_completed:
        raise QuizSessionError("review is only available after the quiz is submitted")

    return [
        ReviewItem(
            id=item.question.id,
            question=item.question.question,
            options=item.question.options,
            correct_answer=item.question.correct_answer,
            user_answer=item.user_answer,
            is_correct=item.is_correct,
            flagged=item.flagged,
            explanation=item.question.explanation,
        )
        for item in session.items
    ]


def score_percentage(score: int, total: int) -> float:
    return round(score / total * 100, 1) if total else 0.0


def render_review_text(session: QuizSession) -> str:
    items = build_review(session)
    score = sum(1 for item in items if item.is_correct)
    lines = [f"Score: {score} / {len(items)} ({score_percentage(score, len(items))}%)", ""]

    for number, item in enumerate(items, start=1):
        mark = "correct" if item.is_correct else "wrong"
        flag = " [flagged]" if item.flagged else ""
        lines.append(f"Q{number}. {item.question}{flag}")
        for label, text in item.options.model_dump().items():
            pointer = ">" if label == item.user_answer else " "
            lines.append(f"  {pointer} {label}. {text}")
        lines.append(
            f"  Your answer: {item.user_answer or '-'} | Correct answer: {item.correct_answer} ({mark})"
        )
        if item.explanation:
            lines.append(f"  Explanation: {item.explanation}")
        lines.append("")
    return "\n".join(lines).rstrip() + "\n"
