from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Sequence

from sqlalchemy import delete, update
from sqlalchemy.orm import Session

from cavision.db.models.quiz_record import QuizRecord


class QuizRepository:
    def create(
        self,
        db: Session,
        *,
        user_id: str,
        source: str,
        difficulty: str,
        questions: Sequence[dict],
        level: str | None = None,
        subject: str | None = None,
    ) -> QuizRecord:
        record = QuizRecord(
            id=uuid.uuid4().hex,
            user_id=user_id,
            source=source,
            level=level,
            subject=subject,
            difficulty=difficulty,
            questions=list(questions),
        )
        db.add(record)
        db.commit()
        db.refresh(record)
        return record

    def get_for_user(self, db: Session, quiz_id: str, user_id: str) -> QuizRecord | None:
        record = db.get(QuizRecord, quiz_id)
        if record is None or record.user_id != user_id:
            return None
        return record

    def mark_submitted(self, db: Session, quiz_id: str, score: int) -> bool:
        """
        Record the score once. Returns False when the quiz was already submitted.
        """
        result = db.execute(
            update(QuizRecord)
            .where(QuizRecord.id == quiz_id, QuizRecord.submitted_at.is_(None))
            .values(score=score, submitted_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount == 1

    def purge_unsubmitted(self, db: Session, created_before: datetime) -> int:
        result = db.execute(
            delete(QuizRecord)
            .where(QuizRecord.submitted_at.is_(None), QuizRecord.created_at < created_before)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        return result.rowcount or 0
