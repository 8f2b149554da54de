from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from pydantic import TypeAdapter, ValidationError

from cavision.api.dependencies import get_chat_service
from cavision.core.config import Settings, get_settings
from cavision.core.security import require_api_key
from cavision.schemas.chat_schema import ChatMessage, ChatResponse
from cavision.services.chat_service import ChatAssistantService, ChatRequestError
from cavision.services.document_service import UploadValidationError, validate_upload

router = APIRouter(
    prefix="/ai/chat",
    tags=["chat"],
    dependencies=[Depends(require_api_key)],
)

_history_adapter = TypeAdapter(list[ChatMessage])

_UPLOAD_STATUS = {
    "too_large": status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    "unsupported_type": status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
}


@router.post(
    "",
    response_model=ChatResponse,
    status_code=status.HTTP_200_OK,
    summary="Send one turn to the study assistant",
)
async def chat(
    history: str = Form("[]"),
    message: str = Form(""),
    file: Optional[UploadFile] = File(None),
    service: ChatAssistantService = Depends(get_chat_service),
    settings: Settings = Depends(get_settings),
) -> ChatResponse:
    """
    `history` is the JSON-encoded list of previous messages kept by the browser.
    """
    try:
        messages = _history_adapter.validate_json(history or "[]")
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=exc.errors(include_url=False, include_context=False),
        ) from exc

    document = None
    if file is not None and file.filename:
        data = await file.read(settings.upload_max_bytes + 1)
        try:
            document = validate_upload(file.filename, file.content_type, data, max_bytes=settings.upload_max_bytes)
        except UploadValidationError as exc:
            raise _upload_error(exc) from exc

    try:
        return await service.reply(messages, message, document)
    except ChatRequestError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except UploadValidationError as exc:
        raise _upload_error(exc) from exc


def _upload_error(exc: UploadValidationError) -> HTTPException:
    return HTTPException(
        status_code=_UPLOAD_STATUS.get(exc.reason, status.HTTP_400_BAD_REQUEST),
        detail=str(exc),
    )
