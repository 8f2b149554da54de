import pytest

from conftest import make_questions
from cavision.services.quiz_session import QuizSession, QuizSessionError, QuizStateStore, QuizStatus
from cavision.services.review import build_review, render_review_text


def test_navigation_is_clamped_at_both_ends():
    session = QuizSession(make_questions(3))

    assert session.previous() == 0
    assert session.index == 0

    session.next()
    session.next()
    assert session.is_last
    assert session.next() == 2
    assert session.index == 2

    assert session.previous() == 1


def test_select_option_is_idempotent():
    session = QuizSession(make_questions(2))
    session.select_option("B")
    before = session.to_json()

    session.select_option("B")

    assert session.to_json() == before
    assert session.current.user_answer == "B"


def test_select_option_rejects_unknown_label():
    session = QuizSession(make_questions(2))
    with pytest.raises(QuizSessionError):
        session.select_option("E")
    assert session.current.user_answer is None


def test_submit_only_from_last_question():
    session = QuizSession(make_questions(3))
    with pytest.raises(QuizSessionError):
        session.submit()
    assert session.status is QuizStatus.IN_PROGRESS

    session.next()
    session.next()
    assert session.submit() == 0
    assert session.is_completed


def test_score_all_correct_equals_question_count():
    session = QuizSession(make_questions(5, correct="C"))
    for _ in range(5):
        session.select_option("C")
        session.next()

    assert session.submit() == 5


def test_score_without_answers_is_zero():
    session = QuizSession(make_questions(4))
    while not session.is_last:
        session.next()

    assert session.submit() == 0
    assert session.answered_count == 0


def test_completed_session_is_read_only():
    session = QuizSession(make_questions(1))
    session.submit()

    with pytest.raises(QuizSessionError):
        session.select_option("A")
    with pytest.raises(QuizSessionError):
        session.next()
    with pytest.raises(QuizSessionError):
        session.submit()


def test_flag_toggles_on_current_question():
    session = QuizSession(make_questions(2))
    assert session.toggle_flag() is True
    session.next()
    assert session.current.flagged is False
    session.previous()
    assert session.toggle_flag() is False


def test_json_round_trip_keeps_order_answers_and_position():
    session = QuizSession(make_questions(4), quiz_id="quiz-1")
    session.select_option("A")
    session.next()
    session.select_option("D")
    session.toggle_flag()
    session.next()

    restored = QuizSession.from_json(session.to_json())

    assert restored.quiz_id == "quiz-1"
    assert restored.index == 2
    assert [i.question.id for i in restored.items] == [1, 2, 3, 4]
    assert [i.user_answer for i in restored.items] == ["A", "D", None, None]
    assert [i.flagged for i in restored.items] == [False, True, False, False]
    assert restored.status is QuizStatus.IN_PROGRESS


def test_replay_applies_answers_by_question_id():
    session = QuizSession(make_questions(3, correct="B"))
    session.replay({1: "B", 3: "A"}, flagged=[2])

    assert session.is_last
    assert [i.user_answer for i in session.items] == ["B", None, "A"]
    assert session.items[1].flagged is True
    assert session.submit() == 1


def test_replay_rejects_unknown_question_ids():
    session = QuizSession(make_questions(2))
    with pytest.raises(QuizSessionError):
        session.replay({7: "A"})


def test_state_store_save_load_clear(tmp_path):
    store = QuizStateStore(tmp_path / "state" / "quiz.json")
    assert store.load() is None

    session = QuizSession(make_questions(2))
    session.select_option("C")
    store.save(session)

    loaded = store.load()
    assert loaded is not None
    assert loaded.items[0].user_answer == "C"

    store.clear()
    assert store.load() is None
    store.clear()


def test_state_store_ignores_corrupt_file(tmp_path):
    path = tmp_path / "quiz.json"
    path.write_text("{not json", encoding="utf-8")

    assert QuizStateStore(path).load() is None


def test_state_store_ignores_snapshot_without_questions(tmp_path):
    path = tmp_path / "quiz.json"
    path.write_text('{"items": []}', encoding="utf-8")

    assert QuizStateStore(path).load() is None


def test_review_requires_completed_session_and_reports_answers():
    session = QuizSession(make_questions(2, correct="A"))
    with pytest.raises(QuizSessionError):
        build_review(session)

    session.select_option("A")
    session.next()
    session.select_option("B")
    session.submit()

    review = build_review(session)
    assert [r.is_correct for r in review] == [True, False]
    assert review[1].user_answer == "B"
    assert review[1].correct_answer == "A"

    text = render_review_text(session)
    assert text.startswith("Score: 1 / 2 (50.0%)")
    assert "Your answer: B | Correct answer: A (wrong)" in text
