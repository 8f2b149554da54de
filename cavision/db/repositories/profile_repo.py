from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from cavision.db.models.user_profile import UserProfileRecord

logger = logging.getLogger(__name__)

_COUNTERS = ("quizzes_generated", "total_mcqs_attempted", "total_mcqs_correct")
_PROFILE_FIELDS = ("email", "display_name", "bio", "city", "ca_level", "photo_url", "social_links")


class ProfileRepository:
    """
    Per-user profile documents with merge writes and atomic counter increments.
    """

    def get(self, db: Session, user_id: str) -> UserProfileRecord | None:
        return db.get(UserProfileRecord, user_id)

    def upsert(self, db: Session, user_id: str, fields: Mapping[str, Any]) -> UserProfileRecord:
        """
        Merge `fields` into the user's document, creating it when missing.

        Only keys present in `fields` are touched; `social_links` is merged key by key.
        """
        unknown = set(fields) - set(_PROFILE_FIELDS)
        if unknown:
            raise ValueError(f"unknown profile fields: {sorted(unknown)}")

        record = self._get_or_create(db, user_id)
        for key, value in fields.items():
            if key == "social_links":
                merged = dict(record.social_links or {})
                merged.update(value or {})
                record.social_links = merged
            else:
                setattr(record, key, value)

        db.commit()
        db.refresh(record)
        return record

    def increment_counters(
        self,
        db: Session,
        user_id: str,
        *,
        attempted: int = 0,
        correct: int = 0,
        generated: int = 0,
    ) -> None:
        """
        Atomically add to the user's counters (`col = col + n` in a single UPDATE).
        """
        deltas = {
            "total_mcqs_attempted": attempted,
            "total_mcqs_correct": correct,
            "quizzes_generated": generated,
        }
        values = {
            name: getattr(UserProfileRecord, name) + delta
            for name, delta in deltas.items()
            if delta
        }
        if not values:
            return

        record = self._get_or_create(db, user_id)
        db.execute(
            update(UserProfileRecord)
            .where(UserProfileRecord.id == user_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        # Counters changed in SQL; reload them on next access.
        db.expire(record)

    def _get_or_create(self, db: Session, user_id: str) -> UserProfileRecord:
        record = db.get(UserProfileRecord, user_id)
        if record is not None:
            return record

        record = UserProfileRecord(id=user_id, social_links={}, **{name: 0 for name in _COUNTERS})
        db.add(record)
        try:
            db.commit()
        except IntegrityError:
            # Another writer created the document first.
            db.rollback()
            logger.debug("profile %s created concurrently; reusing it", user_id)
            record = db.get(UserProfileRecord, user_id)
        return record
