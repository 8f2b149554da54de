import pytest
from sqlalchemy.exc import OperationalError

from cavision.db.repositories.profile_repo import ProfileRepository
from cavision.schemas.profile_schema import ProfileUpdate
from cavision.services.profile_service import ProfileNotFoundError, ProfileService


def test_missing_profile_raises(db):
    with pytest.raises(ProfileNotFoundError):
        ProfileService().get_profile(db, "nobody")


def test_first_update_creates_profile_with_zero_counters(db):
    service = ProfileService()

    profile = service.update_profile(
        db, "user-1", ProfileUpdate(email="asha@example.com", display_name="Asha", ca_level="Foundation")
    )

    assert profile.id == "user-1"
    assert profile.display_name == "Asha"
    assert profile.quizzes_generated == 0
    assert profile.total_mcqs_attempted == 0


def test_update_merges_only_provided_fields(db):
    service = ProfileService()
    service.update_profile(db, "user-1", ProfileUpdate(display_name="Asha", city="Pune", bio="CA aspirant"))

    profile = service.update_profile(db, "user-1", ProfileUpdate.model_validate({"city": "Mumbai"}))

    assert profile.city == "Mumbai"
    assert profile.display_name == "Asha"
    assert profile.bio == "CA aspirant"


def test_social_links_are_merged_per_key(db):
    service = ProfileService()
    service.update_profile(
        db,
        "user-1",
        ProfileUpdate.model_validate({"socialLinks": {"twitter": "https://x.com/asha", "linkedin": ""}}),
    )

    profile = service.update_profile(
        db, "user-1", ProfileUpdate.model_validate({"socialLinks": {"instagram": "https://instagram.com/asha"}})
    )

    assert profile.social_links.twitter == "https://x.com/asha"
    assert profile.social_links.linkedin == ""
    assert profile.social_links.instagram == "https://instagram.com/asha"


def test_profile_update_rejects_bad_values():
    with pytest.raises(ValueError):
        ProfileUpdate(bio="x" * 161)
    with pytest.raises(ValueError):
        ProfileUpdate.model_validate({"photoURL": "ftp://example.com/me.png"})
    with pytest.raises(ValueError):
        ProfileUpdate.model_validate({"socialLinks": {"twitter": "not a url"}})


def test_counters_accumulate_and_stats_report_accuracy(db):
    service = ProfileService()

    assert service.record_quiz_generated(db, "user-1")
    assert service.record_quiz_result(db, "user-1", attempted=10, correct=7)
    assert service.record_quiz_generated(db, "user-1")
    assert service.record_quiz_result(db, "user-1", attempted=5, correct=5)

    stats = service.get_stats(db, "user-1")
    assert stats.quizzes_generated == 2
    assert stats.total_mcqs_attempted == 15
    assert stats.total_mcqs_correct == 12
    assert stats.accuracy == 80.0


def test_counter_updates_from_separate_sessions_are_not_lost(session_factory):
    repo = ProfileRepository()
    first, second = session_factory(), session_factory()
    try:
        repo.increment_counters(first, "user-1", attempted=10, correct=4)
        repo.increment_counters(second, "user-1", attempted=5, correct=5)
        repo.increment_counters(first, "user-1", generated=1)

        record = repo.get(first, "user-1")
        assert record.total_mcqs_attempted == 15
        assert record.total_mcqs_correct == 9
        assert record.quizzes_generated == 1
    finally:
        first.close()
        second.close()


def test_zero_increment_does_not_create_profile(db):
    ProfileRepository().increment_counters(db, "user-1")

    assert ProfileRepository().get(db, "user-1") is None


def test_upsert_rejects_unknown_fields(db):
    with pytest.raises(ValueError):
        ProfileRepository().upsert(db, "user-1", {"total_mcqs_correct": 100})


def test_stats_write_failure_is_reported_not_raised(db):
    class BrokenRepo(ProfileRepository):
        def increment_counters(self, db, user_id, **deltas):
            raise OperationalError("UPDATE users", {}, Exception("database is locked"))

    service = ProfileService(repo=BrokenRepo())

    assert service.record_quiz_result(db, "user-1", attempted=10, correct=3) is False
