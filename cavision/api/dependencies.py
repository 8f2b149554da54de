"""
Shared service instances for the routers.

Built lazily on first use so that importing the app does not contact Gemini;
tests replace them through `app.dependency_overrides`.
"""

from functools import lru_cache

from cavision.clients.gemini_client import GeminiClient
from cavision.clients.youtube_client import YouTubeTranscriptClient
from cavision.core.config import get_settings
from cavision.services.chat_service import ChatAssistantService
from cavision.services.profile_service import ProfileService
from cavision.services.quiz_generator_service import QuizGeneratorService
from cavision.services.quiz_service import QuizService


@lru_cache
def get_gemini_client() -> GeminiClient:
    settings = get_settings()
    return GeminiClient(
        api_key=settings.gemini_api_key,
        model_name=settings.gemini_model,
        model_preferences=settings.gemini_model_preferences,
        timeout_seconds=settings.gemini_timeout_seconds,
        max_output_tokens=settings.gemini_max_output_tokens,
        temperature=settings.gemini_temperature,
        inline_max_bytes=settings.upload_inline_max_bytes,
        file_poll_interval_seconds=settings.file_poll_interval_seconds,
        file_poll_max_attempts=settings.file_poll_max_attempts,
        log_models_on_start=settings.gemini_log_models_on_start,
    )


@lru_cache
def get_profile_service() -> ProfileService:
    return ProfileService()


@lru_cache
def get_quiz_service() -> QuizService:
    generator = QuizGeneratorService(gemini_client=get_gemini_client(), settings=get_settings())
    return QuizService(generator=generator, profile_service=get_profile_service())


@lru_cache
def get_chat_service() -> ChatAssistantService:
    settings = get_settings()
    return ChatAssistantService(
        gemini_client=get_gemini_client(),
        transcript_client=YouTubeTranscriptClient(max_chars=settings.transcript_max_chars),
        settings=settings,
    )
