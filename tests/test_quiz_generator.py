import asyncio
import io

import pytest
from docx import Document

from conftest import FakeGeminiClient, make_question_payload
from cavision.clients.gemini_client import GeminiClientError, GeminiUnavailableError
from cavision.schemas.quiz_schema import SyllabusQuizRequest, UploadQuizRequest
from cavision.services.document_service import DOCX, PDF, TEXT, UploadedDocument
from cavision.services.quiz_generator_service import (
    QUESTION_LIST_SCHEMA,
    QuizGenerationError,
    QuizGeneratorService,
    QuizRequestError,
)


def _service(settings, **fake_kwargs):
    fake = FakeGeminiClient(**fake_kwargs)
    return QuizGeneratorService(gemini_client=fake, settings=settings), fake


def _request(**overrides):
    data = {"level": "Foundation", "subject": "Accounting", "difficulty": "Easy", "count": 10}
    data.update(overrides)
    return SyllabusQuizRequest(**data)


def test_ten_easy_foundation_accounting_questions(settings):
    payload = [make_question_payload(i, correct="ABCD"[i % 4]) for i in range(1, 11)]
    service, fake = _service(settings, payload=payload)

    questions = asyncio.run(service.generate_from_syllabus(_request()))

    assert len(questions) == 10
    for q in questions:
        assert q.correct_answer in {"A", "B", "C", "D"}
        assert q.correct_answer in q.options.model_dump()
    assert [q.id for q in questions] == list(range(1, 11))

    call = fake.json_calls[0]
    assert call["schema"] is QUESTION_LIST_SCHEMA
    assert "Generate 10 MCQs for the Foundation level, Accounting subject with Easy difficulty" in call["prompt"]


def test_seed_is_embedded_and_fresh_when_not_given(settings):
    payload = [make_question_payload(i) for i in range(1, 6)]
    service, fake = _service(settings, payload=payload)

    asyncio.run(service.generate_from_syllabus(_request(count=5, seed=4242)))
    assert "4242" in fake.json_calls[0]["prompt"]

    asyncio.run(service.generate_from_syllabus(_request(count=5)))
    asyncio.run(service.generate_from_syllabus(_request(count=5)))
    seeds = {call["prompt"].rsplit(":", 1)[1].strip() for call in fake.json_calls[1:]}
    assert all(s.isdigit() for s in seeds)


def test_group_is_part_of_the_prompt(settings):
    payload = [make_question_payload(i) for i in range(1, 6)]
    service, fake = _service(settings, payload=payload)

    asyncio.run(
        service.generate_from_syllabus(
            _request(level="Final", group="Group II", subject="Integrated Business Solutions", count=5)
        )
    )

    assert "Final (Group II) level" in fake.json_calls[0]["prompt"]


def test_subject_outside_syllabus_is_rejected_before_calling_model(settings):
    service, fake = _service(settings, payload=[])

    with pytest.raises(QuizRequestError):
        asyncio.run(service.generate_from_syllabus(_request(subject="Taxation")))
    assert fake.json_calls == []


@pytest.mark.parametrize(
    "payload",
    [
        [],
        None,
        {"message": "sorry"},
        [{"id": 1, "question": "Q?", "options": {"A": "a", "B": "b"}, "correctAnswer": "C", "explanation": ""}],
    ],
)
def test_empty_or_invalid_output_is_a_generation_error(settings, payload):
    service, _ = _service(settings, payload=payload)

    with pytest.raises(QuizGenerationError):
        asyncio.run(service.generate_from_syllabus(_request(count=5)))


def test_fewer_questions_than_requested_is_an_error(settings):
    service, _ = _service(settings, payload=[make_question_payload(i) for i in range(1, 4)])

    with pytest.raises(QuizGenerationError):
        asyncio.run(service.generate_from_syllabus(_request(count=5)))


def test_extra_questions_are_dropped_and_ids_renumbered(settings):
    payload = [make_question_payload(7) for _ in range(8)]
    service, _ = _service(settings, payload=payload)

    questions = asyncio.run(service.generate_from_syllabus(_request(count=5)))

    assert [q.id for q in questions] == [1, 2, 3, 4, 5]


def test_wrapped_list_is_accepted(settings):
    payload = {"mcqs": [make_question_payload(i) for i in range(1, 6)]}
    service, _ = _service(settings, payload=payload)

    assert len(asyncio.run(service.generate_from_syllabus(_request(count=5)))) == 5


def test_unavailable_model_is_surfaced_as_retryable(settings):
    service, _ = _service(settings, error=GeminiUnavailableError("busy"))

    with pytest.raises(GeminiUnavailableError):
        asyncio.run(service.generate_from_syllabus(_request(count=5)))


def test_unparseable_model_output_becomes_generation_error(settings):
    service, _ = _service(settings, error=GeminiClientError("not json"))

    with pytest.raises(QuizGenerationError):
        asyncio.run(service.generate_from_syllabus(_request(count=5)))


def test_upload_attaches_pdf_as_media(settings):
    payload = [make_question_payload(i) for i in range(1, 6)]
    service, fake = _service(settings, payload=payload)
    document = UploadedDocument(filename="notes.pdf", mime_type=PDF, data=b"%PDF-1.4 fake")

    questions = asyncio.run(
        service.generate_from_upload(UploadQuizRequest(difficulty="Hard", count=5), document)
    )

    assert len(questions) == 5
    assert fake.attachments == [(b"%PDF-1.4 fake", PDF)]
    assert len(fake.json_calls[0]["attachments"]) == 1
    assert "identify the subject and exam level" in fake.json_calls[0]["prompt"]


def test_upload_converts_docx_to_text(settings):
    buffer = io.BytesIO()
    doc = Document()
    doc.add_paragraph("Depreciation is the allocation of cost over useful life.")
    doc.save(buffer)

    payload = [make_question_payload(i) for i in range(1, 6)]
    service, fake = _service(settings, payload=payload)
    document = UploadedDocument(filename="notes.docx", mime_type=DOCX, data=buffer.getvalue())

    asyncio.run(service.generate_from_upload(UploadQuizRequest(difficulty="Easy", count=5), document))

    data, mime_type = fake.attachments[0]
    assert mime_type == TEXT
    assert b"Depreciation" in data


def test_count_outside_configured_bounds_is_rejected(settings):
    narrow = settings.model_copy(update={"quiz_max_count": 20})
    service = QuizGeneratorService(gemini_client=FakeGeminiClient(payload=[]), settings=narrow)

    with pytest.raises(QuizRequestError):
        asyncio.run(service.generate_from_syllabus(_request(count=30)))


@pytest.mark.parametrize("explanation", [None, ""])
def test_question_without_explanation_is_rejected(settings, explanation):
    payload = [make_question_payload(i) for i in range(1, 6)]
    if explanation is None:
        del payload[2]["explanation"]
    else:
        payload[2]["explanation"] = explanation
    service, _ = _service(settings, payload=payload)

    with pytest.raises(QuizGenerationError):
        asyncio.run(service.generate_from_syllabus(_request(count=5)))
