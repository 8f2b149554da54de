from sqlalchemy import JSON, Column, DateTime, Integer, String, func

from cavision.db.session import Base


class QuizRecord(Base):
    """Server-held copy of a generated quiz, used to score its submission."""

    __tablename__ = "quizzes"

    id = Column(String(32), primary_key=True)
    user_id = Column(String(128), nullable=False, index=True)
    source = Column(String(16), nullable=False)  # "syllabus" | "upload"
    level = Column(String(32), nullable=True)
    subject = Column(String(255), nullable=True)
    difficulty = Column(String(16), nullable=False)
    questions = Column(JSON, nullable=False)

    score = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), index=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)

    @property
    def is_submitted(self) -> bool:
        return self.submitted_at is not None
