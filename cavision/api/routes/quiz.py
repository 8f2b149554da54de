import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import ValidationError
from sqlalchemy.orm import Session

from cavision.clients.gemini_client import GeminiUnavailableError
from cavision.core.config import Settings, get_settings
from cavision.core.security import current_user_id, require_api_key
from cavision.api.dependencies import get_quiz_service
from cavision.db.session import get_db
from cavision.schemas.quiz_schema import (
    QuizGenerateResponse,
    QuizResultResponse,
    QuizSubmitRequest,
    SyllabusQuizRequest,
    UploadQuizRequest,
)
from cavision.services.document_service import UploadValidationError, validate_upload
from cavision.services.quiz_generator_service import QuizGenerationError, QuizRequestError
from cavision.services.quiz_service import QuizAlreadySubmittedError, QuizNotFoundError, QuizService
from cavision.services.quiz_session import QuizSessionError
from cavision.services.syllabus import CA_EXAMS

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/ai/quiz",
    tags=["quiz"],
    dependencies=[Depends(require_api_key)],
)

_UPLOAD_STATUS = {
    "missing": status.HTTP_400_BAD_REQUEST,
    "too_large": status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    "unsupported_type": status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
    "unreadable": status.HTTP_400_BAD_REQUEST,
}


def _generation_error(exc: Exception) -> HTTPException:
    if isinstance(exc, (QuizRequestError, QuizSessionError)):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
    if isinstance(exc, UploadValidationError):
        return HTTPException(status_code=_UPLOAD_STATUS.get(exc.reason, 400), detail=str(exc))
    if isinstance(exc, GeminiUnavailableError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={
                "message": "The AI service is busy right now. Please try again in a moment.",
                "retryable": True,
            },
        )
    if isinstance(exc, QuizGenerationError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(exc))
    return HTTPException(status_code=500, detail="quiz generation failed")


@router.get("/subjects", summary="CA exam levels, groups and papers")
def list_subjects() -> dict:
    return CA_EXAMS


@router.post(
    "/syllabus",
    response_model=QuizGenerateResponse,
    status_code=status.HTTP_200_OK,
    summary="Generate MCQs for a syllabus paper",
)
async def generate_from_syllabus(
    body: SyllabusQuizRequest,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
    service: QuizService = Depends(get_quiz_service),
) -> QuizGenerateResponse:
    try:
        return await service.create_from_syllabus(db, user_id, body)
    except (QuizRequestError, QuizGenerationError, GeminiUnavailableError) as exc:
        raise _generation_error(exc) from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error generating syllabus quiz: %s", exc)
        raise _generation_error(exc) from exc


@router.post(
    "/upload",
    response_model=QuizGenerateResponse,
    status_code=status.HTTP_200_OK,
    summary="Generate MCQs from an uploaded study document",
)
async def generate_from_upload(
    file: UploadFile = File(...),
    difficulty: str = Form(...),
    count: int = Form(...),
    seed: Optional[int] = Form(None),
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
    service: QuizService = Depends(get_quiz_service),
    settings: Settings = Depends(get_settings),
) -> QuizGenerateResponse:
    try:
        request = UploadQuizRequest(difficulty=difficulty, count=count, seed=seed)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False),
        ) from exc

    # Read at most one byte past the limit so oversized files are rejected without buffering them.
    data = await file.read(settings.upload_max_bytes + 1)
    try:
        document = validate_upload(
            file.filename,
            file.content_type,
            data,
            max_bytes=settings.upload_max_bytes,
        )
        return await service.create_from_upload(db, user_id, request, document)
    except (
        UploadValidationError,
        QuizRequestError,
        QuizGenerationError,
        GeminiUnavailableError,
    ) as exc:
        raise _generation_error(exc) from exc
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unexpected error generating upload quiz: %s", exc)
        raise _generation_error(exc) from exc


@router.post(
    "/{quiz_id}/submit",
    response_model=QuizResultResponse,
    status_code=status.HTTP_200_OK,
    summary="Score a quiz and update the user's stats",
)
def submit_quiz(
    quiz_id: str,
    body: QuizSubmitRequest,
    user_id: str = Depends(current_user_id),
    db: Session = Depends(get_db),
    service: QuizService = Depends(get_quiz_service),
) -> QuizResultResponse:
    try:
        return service.submit(db, user_id, quiz_id, body)
    except QuizNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="quiz not found") from exc
    except QuizAlreadySubmittedError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="quiz already submitted") from exc
    except QuizSessionError as exc:
        raise _generation_error(exc) from exc
