import os

os.environ.setdefault("GEMINI_API_KEY", "test-gemini-key")
os.environ.setdefault("API_KEY", "test-api-key")
os.environ.setdefault("DB_URL", "sqlite://")
os.environ.setdefault("GEMINI_LOG_MODELS_ON_START", "false")

from types import SimpleNamespace

import pytest
from google.genai import types as genai_types
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cavision.clients.gemini_client import GeminiClientError
from cavision.core.config import get_settings
from cavision.db.models import quiz_record, user_profile  # noqa: F401
from cavision.db.session import Base
from cavision.schemas.quiz_schema import Question

API_HEADERS = {"x-api-key": "test-api-key", "x-user-id": "user-1"}
FILES_URI_PREFIX = "https://generativelanguage.googleapis.com/v1beta/"


def make_question_payload(qid: int, correct: str = "A") -> dict:
    return {
        "id": qid,
        "question": f"Question {qid}?",
        "options": {"A": f"a{qid}", "B": f"b{qid}", "C": f"c{qid}", "D": f"d{qid}"},
        "correctAnswer": correct,
        "explanation": f"Because {correct}.",
    }


def make_questions(n: int, correct: str = "A") -> list[Question]:
    return [Question.model_validate(make_question_payload(i, correct)) for i in range(1, n + 1)]


class FakeGeminiClient:
    """
    Stand-in for GeminiClient: records calls and replays canned payloads/responses.
    """

    def __init__(self, payload=None, error: Exception | None = None, responses=None):
        self.payload = payload
        self.error = error
        self.responses = list(responses or [])
        self.json_calls: list[dict] = []
        self.content_calls: list[dict] = []
        self.attachments: list[tuple[bytes, str]] = []
        self.uploads: list[tuple[bytes, str, str | None]] = []
        self.upload_error: Exception | None = None

    async def generate_json(self, prompt, response_schema, attachments=()):
        self.json_calls.append({"prompt": prompt, "schema": response_schema, "attachments": list(attachments)})
        if self.error:
            raise self.error
        return self.payload

    async def build_attachment(self, data, mime_type, display_name=None):
        self.attachments.append((data, mime_type))
        return genai_types.Part.from_bytes(data=data, mime_type=mime_type)

    async def upload_file(self, data, mime_type, display_name=None):
        if self.upload_error:
            raise self.upload_error
        self.uploads.append((data, mime_type, display_name))
        name = f"files/upload-{len(self.uploads)}"
        return SimpleNamespace(name=name, uri=f"{FILES_URI_PREFIX}{name}", mime_type=mime_type)

    async def generate_content(self, contents, *, system_instruction=None, tools=None, response_schema=None, temperature=None):
        self.content_calls.append(
            {"contents": list(contents), "system_instruction": system_instruction, "tools": tools}
        )
        if self.error:
            raise self.error
        if not self.responses:
            raise GeminiClientError("no canned response left")
        return self.responses.pop(0)

    def extract_text(self, response) -> str:
        return getattr(response, "text", None) or ""


def text_response(text: str):
    return SimpleNamespace(text=text, function_calls=None, candidates=[])


def tool_call_response(url: str, name: str = "get_youtube_transcript"):
    call = genai_types.FunctionCall(name=name, args={"url": url})
    content = genai_types.Content(role="model", parts=[genai_types.Part(function_call=call)])
    return SimpleNamespace(text=None, function_calls=[call], candidates=[SimpleNamespace(content=content)])


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    yield factory
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()
