"""
Client-side quiz state: answers, flags, navigation and scoring.

A session starts IN_PROGRESS at index 0. `next`/`previous` are clamped to the
question range, `submit` is only allowed from the last question and moves the
session to COMPLETED, after which it is read-only.
"""

from __future__ import annotations

import enum
import logging
from pathlib import Path
from typing import Iterable, Mapping, Optional, Sequence

from pydantic import BaseModel, Field

from cavision.schemas.quiz_schema import OPTION_LABELS, OptionLabel, Question

logger = logging.getLogger(__name__)

__all__ = [
    "QuizStatus",
    "QuizItem",
    "QuizSession",
    "QuizSessionError",
    "QuizStateStore",
]


class QuizSessionError(Exception):
    """Raised for actions the current session state does not allow."""


class QuizStatus(str, enum.Enum):
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class QuizItem(BaseModel):
    question: Question
    user_answer: Optional[OptionLabel] = None
    flagged: bool = False

    @property
    def is_correct(self) -> bool:
        return self.user_answer is not None and self.user_answer == self.question.correct_answer


class QuizSnapshot(BaseModel):
    quiz_id: Optional[str] = None
    status: QuizStatus = QuizStatus.IN_PROGRESS
    index: int = 0
    items: list[QuizItem] = Field(default_factory=list)


class QuizSession:
    def __init__(
        self,
        questions: Sequence[Question],
        *,
        quiz_id: str | None = None,
    ) -> None:
        if not questions:
            raise QuizSessionError("a quiz needs at least one question")
        self.quiz_id = quiz_id
        self.items: list[QuizItem] = [QuizItem(question=q) for q in questions]
        self.index = 0
        self.status = QuizStatus.IN_PROGRESS

    def __len__(self) -> int:
        return len(self.items)

    @property
    def current(self) -> QuizItem:
        return self.items[self.index]

    @property
    def is_first(self) -> bool:
        return self.index == 0

    @property
    def is_last(self) -> bool:
        return self.index == len(self.items) - 1

    @property
    def is_completed(self) -> bool:
        return self.status is QuizStatus.COMPLETED

    @property
    def answered_count(self) -> int:
        return sum(1 for item in self.items if item.user_answer is not None)

    @property
    def score(self) -> int:
        return sum(1 for item in self.items if item.is_correct)

    @property
    def progress(self) -> float:
        """Percentage of the way through the quiz, counting the current question."""
        return (self.index + 1) / len(self.items) * 100

    def _ensure_in_progress(self) -> None:
        if self.is_completed:
            raise QuizSessionError("the quiz has already been submitted")

    def select_option(self, label: str) -> None:
        self._ensure_in_progress()
        if label not in OPTION_LABELS:
            raise QuizSessionError(f"invalid option {label!r}; expected one of {', '.join(OPTION_LABELS)}")
        self.current.user_answer = label

    def clear_answer(self) -> None:
        self._ensure_in_progress()
        self.current.user_answer = None

    def toggle_flag(self) -> bool:
        self._ensure_in_progress()
        self.current.flagged = not self.current.flagged
        return self.current.flagged

    def next(self) -> int:
        self._ensure_in_progress()
        if not self.is_last:
            self.index += 1
        return self.index

    def previous(self) -> int:
        self._ensure_in_progress()
        if not self.is_first:
            self.index -= 1
        return self.index

    def submit(self) -> int:
        self._ensure_in_progress()
        if not self.is_last:
            raise QuizSessionError("the quiz can only be submitted from the last question")
        self.status = QuizStatus.COMPLETED
        score = self.score
        logger.debug(
            "quiz submitted",
            extra={"quiz_id": self.quiz_id, "score": score, "total": len(self.items)},
        )
        return score

    def replay(
        self,
        answers: Mapping[int, Optional[str]],
        flagged: Iterable[int] = (),
    ) -> None:
        """
        Walk from the first to the last question applying recorded answers by question id.
        """
        self._ensure_in_progress()
        flagged_ids = set(flagged)
        known_ids = {item.question.id for item in self.items}
        unknown = (set(answers) | flagged_ids) - known_ids
        if unknown:
            raise QuizSessionError(f"unknown question ids: {sorted(unknown)}")

        while self.previous():
            pass
        while True:
            qid = self.current.question.id
            label = answers.get(qid)
            if label is not None:
                self.select_option(label)
            if qid in flagged_ids and not self.current.flagged:
                self.toggle_flag()
            if self.is_last:
                break
            self.next()

    def snapshot(self) -> QuizSnapshot:
        return QuizSnapshot(
            quiz_id=self.quiz_id,
            status=self.status,
            index=self.index,
            items=[item.model_copy(deep=True) for item in self.items],
        )

    @classmethod
    def restore(cls, snapshot: QuizSnapshot) -> "QuizSession":
        session = cls([item.question for item in snapshot.items], quiz_id=snapshot.quiz_id)
        session.items = [item.model_copy(deep=True) for item in snapshot.items]
        session.index = min(max(snapshot.index, 0), len(session.items) - 1)
        session.status = snapshot.status
        return session

    def to_json(self) -> str:
        return self.snapshot().model_dump_json(by_alias=True)

    @classmethod
    def from_json(cls, payload: str) -> "QuizSession":
        return cls.restore(QuizSnapshot.model_validate_json(payload))


class QuizStateStore:
    """
    Single-key local persistence for the quiz in progress (or just completed).
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def save(self, session: QuizSession) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(session.to_json(), encoding="utf-8")
        tmp.replace(self.path)

    def load(self) -> QuizSession | None:
        if not self.path.exists():
            return None
        try:
            return QuizSession.from_json(self.path.read_text(encoding="utf-8"))
        except (ValueError, QuizSessionError) as exc:
            logger.warning("discarding unreadable quiz state at %s: %s", self.path, exc)
            return None

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)
