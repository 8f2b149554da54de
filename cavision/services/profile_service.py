import logging
from dataclasses import dataclass, field

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cavision.db.models.user_profile import UserProfileRecord
from cavision.db.repositories.profile_repo import ProfileRepository
from cavision.schemas.profile_schema import ProfileUpdate, SocialLinks, UserProfile, UserStats
from cavision.services.review import score_percentage


class ProfileNotFoundError(Exception):
    """Raised when a user has no profile document yet."""


def _to_schema(record: UserProfileRecord) -> UserProfile:
    return UserProfile(
        id=record.id,
        email=record.email,
        display_name=record.display_name,
        bio=record.bio,
        city=record.city,
        ca_level=record.ca_level,
        photo_url=record.photo_url,
        social_links=SocialLinks(**(record.social_links or {})),
        quizzes_generated=record.quizzes_generated or 0,
        total_mcqs_attempted=record.total_mcqs_attempted or 0,
        total_mcqs_correct=record.total_mcqs_correct or 0,
    )


@dataclass
class ProfileService:
    repo: ProfileRepository = field(default_factory=ProfileRepository)
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    def get_profile(self, db: Session, user_id: str) -> UserProfile:
        record = self.repo.get(db, user_id)
        if record is None:
            raise ProfileNotFoundError(user_id)
        return _to_schema(record)

    def update_profile(self, db: Session, user_id: str, update: ProfileUpdate) -> UserProfile:
        fields = update.model_dump(exclude_unset=True)
        if "social_links" in fields and fields["social_links"] is not None:
            fields["social_links"] = update.social_links.model_dump(exclude_unset=True)
        record = self.repo.upsert(db, user_id, fields)
        self.logger.info("profile updated", extra={"user_id": user_id, "fields": sorted(fields)})
        return _to_schema(record)

    def get_stats(self, db: Session, user_id: str) -> UserStats:
        profile = self.get_profile(db, user_id)
        return UserStats(
            quizzes_generated=profile.quizzes_generated,
            total_mcqs_attempted=profile.total_mcqs_attempted,
            total_mcqs_correct=profile.total_mcqs_correct,
            accuracy=score_percentage(profile.total_mcqs_correct, profile.total_mcqs_attempted),
        )

    def record_quiz_generated(self, db: Session, user_id: str) -> bool:
        return self._increment(db, user_id, generated=1)

    def record_quiz_result(self, db: Session, user_id: str, *, attempted: int, correct: int) -> bool:
        return self._increment(db, user_id, attempted=attempted, correct=correct)

    def _increment(self, db: Session, user_id: str, **deltas: int) -> bool:
        """
        Stats writes never block the quiz flow; failures are logged and reported as False.
        """
        try:
            self.repo.increment_counters(db, user_id, **deltas)
        except SQLAlchemyError as exc:
            db.rollback()
            self.logger.error(
                "could not update quiz stats user_id=%s deltas=%s",
                user_id,
                deltas,
                exc_info=exc,
            )
            return False
        return True
