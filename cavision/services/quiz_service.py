import logging
from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from cavision.db.models.quiz_record import QuizRecord
from cavision.db.repositories.quiz_repo import QuizRepository
from cavision.schemas.quiz_schema import (
    Question,
    QuizGenerateResponse,
    QuizResultResponse,
    QuizSubmitRequest,
    SyllabusQuizRequest,
    UploadQuizRequest,
)
from cavision.services.document_service import UploadedDocument
from cavision.services.profile_service import ProfileService
from cavision.services.quiz_generator_service import QuizGeneratorService
from cavision.services.quiz_session import QuizSession
from cavision.services.review import build_review, score_percentage


class QuizNotFoundError(Exception):
    """Raised when a quiz does not exist or belongs to another user."""


class QuizAlreadySubmittedError(Exception):
    """Raised when the same quiz is submitted twice."""


@dataclass
class QuizService:
    """
    Generation plus server-side scoring.

    Questions are kept server-side so that a submission is scored against what was
    actually generated; the client only sends its answers.
    """

    generator: QuizGeneratorService
    quiz_repo: QuizRepository = field(default_factory=QuizRepository)
    profile_service: ProfileService = field(default_factory=ProfileService)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    async def create_from_syllabus(
        self,
        db: Session,
        user_id: str,
        request: SyllabusQuizRequest,
    ) -> QuizGenerateResponse:
        questions = await self.generator.generate_from_syllabus(request)
        record = self.quiz_repo.create(
            db,
            user_id=user_id,
            source="syllabus",
            level=request.level,
            subject=request.subject,
            difficulty=request.difficulty,
            questions=[q.model_dump(by_alias=True) for q in questions],
        )
        return self._generated(db, user_id, record, questions)

    async def create_from_upload(
        self,
        db: Session,
        user_id: str,
        request: UploadQuizRequest,
        document: UploadedDocument,
    ) -> QuizGenerateResponse:
        questions = await self.generator.generate_from_upload(request, document)
        record = self.quiz_repo.create(
            db,
            user_id=user_id,
            source="upload",
            difficulty=request.difficulty,
            questions=[q.model_dump(by_alias=True) for q in questions],
        )
        return self._generated(db, user_id, record, questions)

    def _generated(
        self,
        db: Session,
        user_id: str,
        record: QuizRecord,
        questions: list[Question],
    ) -> QuizGenerateResponse:
        self.profile_service.record_quiz_generated(db, user_id)
        self.logger.info(
            "quiz created",
            extra={"quiz_id": record.id, "user_id": user_id, "source": record.source, "count": len(questions)},
        )
        return QuizGenerateResponse(quiz_id=record.id, questions=questions)

    def submit(
        self,
        db: Session,
        user_id: str,
        quiz_id: str,
        submission: QuizSubmitRequest,
    ) -> QuizResultResponse:
        record = self.quiz_repo.get_for_user(db, quiz_id, user_id)
        if record is None:
            raise QuizNotFoundError(quiz_id)
        if record.is_submitted:
            raise QuizAlreadySubmittedError(quiz_id)

        session = QuizSession(
            [Question.model_validate(q) for q in record.questions],
            quiz_id=record.id,
        )
        session.replay(submission.answers, submission.flagged)
        score = session.submit()

        if not self.quiz_repo.mark_submitted(db, record.id, score):
            raise QuizAlreadySubmittedError(quiz_id)

        stats_saved = self.profile_service.record_quiz_result(
            db,
            user_id,
            attempted=len(session),
            correct=score,
        )
        self.logger.info(
            "quiz submitted",
            extra={"quiz_id": record.id, "user_id": user_id, "score": score, "total": len(session)},
        )
        return QuizResultResponse(
            quiz_id=record.id,
            score=score,
            total=len(session),
            percentage=score_percentage(score, len(session)),
            stats_saved=stats_saved,
            review=build_review(session),
        )

