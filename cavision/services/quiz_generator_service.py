import logging
import random
import time
from dataclasses import dataclass, field
from typing import Any, Optional

from pydantic import ValidationError

from cavision.clients.gemini_client import GeminiClient, GeminiClientError, GeminiUnavailableError
from cavision.core.config import Settings
from cavision.schemas.quiz_schema import Question, SyllabusQuizRequest, UploadQuizRequest
from cavision.services.document_service import UploadedDocument, prepare_for_model
from cavision.services.syllabus import SyllabusError, validate_subject


class QuizGenerationError(Exception):
    """Raised when the model output cannot be turned into the requested questions."""


class QuizRequestError(ValueError):
    """Raised when a generation request is rejected before calling the model."""


_STRING = {"type": "STRING"}

QUESTION_LIST_SCHEMA: dict[str, Any] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "id": {"type": "INTEGER"},
            "question": _STRING,
            "options": {
                "type": "OBJECT",
                "properties": {"A": _STRING, "B": _STRING, "C": _STRING, "D": _STRING},
                "required": ["A", "B", "C", "D"],
                "propertyOrdering": ["A", "B", "C", "D"],
            },
            "correctAnswer": {"type": "STRING", "enum": ["A", "B", "C", "D"]},
            "explanation": _STRING,
        },
        "required": ["id", "question", "options", "correctAnswer", "explanation"],
        "propertyOrdering": ["id", "question", "options", "correctAnswer", "explanation"],
    },
}

_FORMAT_RULES = (
    "Each MCQ must have exactly four options labelled A, B, C and D, one correct answer "
    "given as the option label in `correctAnswer`, and a brief explanation of why it is correct.\n"
    "Number the questions with `id` starting from 1.\n"
    "Return only a JSON array of MCQ objects: "
    '[{"id": int, "question": str, "options": {"A": str, "B": str, "C": str, "D": str}, '
    '"correctAnswer": "A" | "B" | "C" | "D", "explanation": str}]'
)


@dataclass
class QuizGeneratorService:
    """
    Builds MCQ prompts, calls Gemini with a JSON schema and validates the result.

    Failures are surfaced once; there is no retry here.
    """

    gemini_client: GeminiClient
    settings: Settings
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    async def generate_from_syllabus(self, request: SyllabusQuizRequest) -> list[Question]:
        self._check_count(request.count)
        try:
            validate_subject(request.level, request.group, request.subject)
        except SyllabusError as exc:
            raise QuizRequestError(str(exc)) from exc

        seed = self._seed(request.seed)
        prompt = self._build_syllabus_prompt(request, seed)
        return await self._generate(
            prompt,
            count=request.count,
            log_context={"source": "syllabus", "level": request.level, "subject": request.subject, "seed": seed},
        )

    async def generate_from_upload(
        self,
        request: UploadQuizRequest,
        document: UploadedDocument,
    ) -> list[Question]:
        self._check_count(request.count)
        prepared = prepare_for_model(document)
        attachment = await self.gemini_client.build_attachment(
            prepared.data,
            prepared.mime_type,
            display_name=prepared.filename,
        )

        seed = self._seed(request.seed)
        prompt = self._build_upload_prompt(request, seed)
        return await self._generate(
            prompt,
            count=request.count,
            attachments=[attachment],
            log_context={
                "source": "upload",
                "mime_type": prepared.mime_type,
                "bytes": prepared.size,
                "seed": seed,
            },
        )

    def _check_count(self, count: int) -> None:
        if not self.settings.quiz_min_count <= count <= self.settings.quiz_max_count:
            raise QuizRequestError(
                f"count must be between {self.settings.quiz_min_count} and {self.settings.quiz_max_count}"
            )

    @staticmethod
    def _seed(requested: Optional[int]) -> int:
        return requested if requested is not None else random.randint(1, 1_000_000_000)

    def _build_syllabus_prompt(self, request: SyllabusQuizRequest, seed: int) -> str:
        level = f"{request.level} ({request.group})" if request.group else request.level
        return (
            "You are an expert in creating multiple-choice questions (MCQs) for CA "
            "(Chartered Accountancy) exams.\n\n"
            f"Generate {request.count} MCQs for the {level} level, {request.subject} subject "
            f"with {request.difficulty} difficulty.\n\n"
            "Ensure that the questions are relevant to the current syllabus and appropriate "
            "for the specified difficulty level. Cover different topics of the paper and do not "
            "repeat questions.\n\n"
            f"{_FORMAT_RULES}\n\n"
            f"Random seed for this set (use it to vary the questions you pick): {seed}"
        )

    def _build_upload_prompt(self, request: UploadQuizRequest, seed: int) -> str:
        return (
            "You are an expert in generating multiple-choice questions (MCQs) for CA "
            "(Chartered Accountancy) exams.\n\n"
            "First, identify the subject and exam level (Foundation, Intermediate, or Final) "
            "from the content of the attached study material.\n\n"
            f"Then, generate {request.count} MCQs for the identified subject and level with "
            f"{request.difficulty} difficulty, based only on the content of the attached material. "
            "Cover its key concepts and topics.\n\n"
            f"{_FORMAT_RULES}\n\n"
            f"Random seed for this set (use it to vary the questions you pick): {seed}"
        )

    async def _generate(
        self,
        prompt: str,
        *,
        count: int,
        attachments: list | None = None,
        log_context: dict,
    ) -> list[Question]:
        start_time = time.perf_counter()
        try:
            payload = await self.gemini_client.generate_json(
                prompt,
                QUESTION_LIST_SCHEMA,
                attachments=attachments or (),
            )
        except GeminiUnavailableError:
            raise
        except GeminiClientError as exc:
            self.logger.warning("MCQ generation failed: %s", exc, extra=log_context)
            raise QuizGenerationError("No questions were generated. Please try again.") from exc

        questions = self._parse_questions(payload, count)
        self.logger.info(
            "mcqs generated",
            extra={
                **log_context,
                "count": len(questions),
                "elapsed_ms": int((time.perf_counter() - start_time) * 1000),
            },
        )
        return questions

    def _parse_questions(self, payload: Any, count: int) -> list[Question]:
        if isinstance(payload, dict):
            # Tolerate a wrapper object such as {"mcqs": [...]}.
            lists = [v for v in payload.values() if isinstance(v, list)]
            payload = lists[0] if len(lists) == 1 else None

        if not isinstance(payload, list) or not payload:
            raise QuizGenerationError("No questions were generated. Please try again.")

        try:
            questions = [Question.model_validate(item) for item in payload]
        except ValidationError as exc:
            self.logger.warning("MCQ payload failed validation: %s", exc.errors()[:3])
            raise QuizGenerationError("The generated questions were malformed. Please try again.") from exc

        if len(questions) < count:
            raise QuizGenerationError(
                f"Only {len(questions)} of {count} questions were generated. Please try again."
            )
        if len(questions) > count:
            self.logger.warning("model returned %s questions, keeping the first %s", len(questions), count)
            questions = questions[:count]

        # Model ids are not reliable; number the questions by position.
        return [q.model_copy(update={"id": i}) for i, q in enumerate(questions, start=1)]
