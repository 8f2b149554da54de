from datetime import datetime, timedelta, timezone

from cavision.core.scheduler import purge_stale_quizzes
from cavision.db.models.quiz_record import QuizRecord


def _quiz(quiz_id: str, age_hours: int, submitted: bool = False) -> QuizRecord:
    created = datetime.now(timezone.utc) - timedelta(hours=age_hours)
    return QuizRecord(
        id=quiz_id,
        user_id="user-1",
        source="syllabus",
        difficulty="Easy",
        questions=[],
        created_at=created,
        submitted_at=created + timedelta(minutes=20) if submitted else None,
        score=3 if submitted else None,
    )


def test_purge_removes_only_old_unsubmitted_quizzes(session_factory):
    db = session_factory()
    db.add_all([
        _quiz("old-open", age_hours=100),
        _quiz("old-done", age_hours=100, submitted=True),
        _quiz("fresh-open", age_hours=1),
    ])
    db.commit()
    db.close()

    removed = purge_stale_quizzes(72, session_factory=session_factory)

    assert removed == 1
    db = session_factory()
    try:
        remaining = sorted(q.id for q in db.query(QuizRecord).all())
    finally:
        db.close()
    assert remaining == ["fresh-open", "old-done"]
