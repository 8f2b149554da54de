import io
import json
import logging
import re
from typing import Any, Optional, Sequence

import httpx
from google import genai
from google.genai import errors as genai_errors
from google.genai import types as genai_types
from tenacity import AsyncRetrying, RetryError, retry_if_result, stop_after_attempt, wait_fixed

# Status codes the Gemini API uses for quota exhaustion and overload.
_UNAVAILABLE_CODES = {429, 500, 502, 503, 504}


class GeminiClientError(Exception):
    """Raised when Gemini could not return a usable response."""


class GeminiUnavailableError(GeminiClientError):
    """Gemini is overloaded, rate limited or unreachable; the caller may retry later."""


class GeminiClient:
    def __init__(
        self,
        api_key: str,
        model_name: str,
        model_preferences: list[str],
        timeout_seconds: int,
        max_output_tokens: int,
        temperature: float = 0.9,
        inline_max_bytes: int = 4 * 1024 * 1024,
        file_poll_interval_seconds: float = 2.0,
        file_poll_max_attempts: int = 15,
        log_models_on_start: bool = True,
        client: Optional[genai.Client] = None,
    ) -> None:
        self.logger = logging.getLogger(__name__)
        self.client = client or genai.Client(
            api_key=api_key,
            http_options=genai_types.HttpOptions(timeout=timeout_seconds * 1000),
        )
        self.async_client = self.client.aio
        self.model_name = model_name
        self.model_preferences = model_preferences
        self.timeout_seconds = timeout_seconds
        self.max_output_tokens = max_output_tokens
        self.temperature = temperature
        self.inline_max_bytes = inline_max_bytes
        self.file_poll_interval_seconds = file_poll_interval_seconds
        self.file_poll_max_attempts = file_poll_max_attempts
        self._resolved_model: str | None = None

        if log_models_on_start:
            self._log_available_models()

    def _log_available_models(self) -> None:
        try:
            models = self.client.models.list()
            available = [m.name for m in models]
            sample = ", ".join(available[:5])
            self.logger.info("Gemini available models (sample): %s", sample or "none")
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("Failed to list Gemini models: %s", exc)

    async def _resolve_model(self) -> str:
        if self._resolved_model:
            return self._resolved_model

        try:
            models_iter = await self.async_client.models.list()
            models = [m async for m in models_iter]
        except Exception as exc:  # noqa: BLE001
            self.logger.warning(
                "Could not list Gemini models, continuing with configured model/preferences: %s",
                exc,
            )
            self._resolved_model = self._ensure_model_path(self.model_name or self.model_preferences[0])
            return self._resolved_model

        supported = []
        for m in models:
            methods = getattr(m, "supported_actions", None) or getattr(m, "supported_generation_methods", None)
            if methods is None:
                # No capability info (e.g. limited permissions); keep as a candidate.
                supported.append(m.name)
            elif "generateContent" in methods:
                supported.append(m.name)

        if not supported:
            self.logger.warning(
                "generateContent support could not be confirmed; continuing with configured model/preferences."
            )
            self._resolved_model = self._ensure_model_path(self.model_name or self.model_preferences[0])
            return self._resolved_model

        # Preference order: explicit model name, then preference list, then first supported.
        candidates = [self.model_name] + list(self.model_preferences)
        normalized_supported = {self._normalize_model_name(n): n for n in supported}

        for cand in candidates:
            normalized = self._normalize_model_name(cand)
            exact = normalized_supported.get(normalized)
            if exact:
                self._resolved_model = self._ensure_model_path(exact)
                break
            # prefix match (e.g. "gemini-2.5-flash" matches "models/gemini-2.5-flash-001")
            for key, original in normalized_supported.items():
                if key.startswith(normalized):
                    self._resolved_model = self._ensure_model_path(original)
                    break
            if self._resolved_model:
                break

        if not self._resolved_model:
            self._resolved_model = self._ensure_model_path(supported[0])
            self.logger.warning(
                "Preferred Gemini model not found; falling back to first supported model (%s).",
                self._resolved_model,
            )
        else:
            self.logger.info("Using Gemini model: %s", self._resolved_model)

        return self._resolved_model

    def _normalize_model_name(self, name: str) -> str:
        return name.replace("models/", "").strip()

    def _ensure_model_path(self, name: str) -> str:
        return name if name.startswith("models/") else f"models/{name}"

    async def generate_content(
        self,
        contents: Any,
        *,
        system_instruction: str | None = None,
        tools: Sequence[genai_types.Tool] | None = None,
        response_schema: Any = None,
        temperature: float | None = None,
    ) -> genai_types.GenerateContentResponse:
        """
        Single generateContent call. Errors are classified, never retried here.
        """
        model_name = await self._resolve_model()
        config = genai_types.GenerateContentConfig(
            max_output_tokens=self.max_output_tokens,
            temperature=self.temperature if temperature is None else temperature,
            system_instruction=system_instruction,
            tools=list(tools) if tools else None,
        )
        if response_schema is not None:
            config.response_mime_type = "application/json"
            config.response_schema = response_schema

        try:
            return await self.async_client.models.generate_content(
                model=model_name,
                contents=contents,
                config=config,
            )
        except genai_errors.APIError as exc:
            if exc.code in _UNAVAILABLE_CODES:
                self.logger.warning("Gemini unavailable (code=%s) model=%s: %s", exc.code, model_name, exc)
                raise GeminiUnavailableError(f"Gemini is unavailable right now ({exc.code}).") from exc
            if exc.code == 404:
                # Drop the cached model so the next call resolves again.
                self.logger.error("Gemini model not found: %s", model_name)
                self._resolved_model = None
            raise GeminiClientError(f"Gemini request failed ({exc.code}): {exc.message}") from exc
        except httpx.HTTPError as exc:
            self.logger.warning("Gemini transport error model=%s: %s", model_name, exc)
            raise GeminiUnavailableError("Gemini could not be reached.") from exc

    async def generate_json(
        self,
        prompt: str,
        response_schema: Any,
        attachments: Sequence[genai_types.Part] = (),
    ) -> Any:
        """
        Ask for a JSON document matching `response_schema` and return it parsed.
        """
        contents: list[Any] = [*attachments, prompt]
        response = await self.generate_content(contents, response_schema=response_schema)
        response_text = self.extract_text(response)
        if not response_text.strip():
            raise GeminiClientError("Gemini returned an empty response.")
        return self._parse_json(response_text)

    async def build_attachment(self, data: bytes, mime_type: str, display_name: str | None = None) -> genai_types.Part:
        """
        Turn raw file bytes into a content part. Small files are sent inline,
        larger ones through the Files API.
        """
        if len(data) <= self.inline_max_bytes:
            return genai_types.Part.from_bytes(data=data, mime_type=mime_type)

        uploaded = await self.upload_file(data, mime_type, display_name)
        return genai_types.Part.from_uri(file_uri=uploaded.uri, mime_type=uploaded.mime_type or mime_type)

    async def upload_file(self, data: bytes, mime_type: str, display_name: str | None = None) -> genai_types.File:
        try:
            uploaded = await self.async_client.files.upload(
                file=io.BytesIO(data),
                config=genai_types.UploadFileConfig(mime_type=mime_type, display_name=display_name),
            )
        except genai_errors.APIError as exc:
            if exc.code in _UNAVAILABLE_CODES:
                raise GeminiUnavailableError(f"Gemini file upload is unavailable ({exc.code}).") from exc
            raise GeminiClientError(f"Gemini file upload failed ({exc.code}): {exc.message}") from exc

        self.logger.info(
            "uploaded file to Gemini",
            extra={"file": uploaded.name, "mime_type": mime_type, "bytes": len(data)},
        )
        return await self._wait_until_active(uploaded)

    async def _wait_until_active(self, uploaded: genai_types.File) -> genai_types.File:
        def _still_processing(file: genai_types.File) -> bool:
            return self._file_state(file) == "PROCESSING"

        try:
            async for attempt in AsyncRetrying(
                stop=stop_after_attempt(self.file_poll_max_attempts),
                wait=wait_fixed(self.file_poll_interval_seconds),
                retry=retry_if_result(_still_processing),
            ):
                with attempt:
                    current = await self.async_client.files.get(name=uploaded.name)
                if not attempt.retry_state.outcome.failed:
                    attempt.retry_state.set_result(current)
        except RetryError as exc:
            raise GeminiUnavailableError(
                f"Gemini did not finish processing {uploaded.name} in time."
            ) from exc
        except genai_errors.APIError as exc:
            raise GeminiClientError(f"Gemini file status check failed ({exc.code}): {exc.message}") from exc

        state = self._file_state(current)
        if state != "ACTIVE":
            raise GeminiClientError(f"Gemini could not process the uploaded file (state={state}).")
        return current

    @staticmethod
    def _file_state(file: genai_types.File) -> str | None:
        state = getattr(file, "state", None)
        return getattr(state, "name", state)

    def extract_text(self, response) -> str:
        if getattr(response, "text", None):
            return response.text
        candidates = getattr(response, "candidates", None)
        if candidates:
            parts = []
            for part in candidates[0].content.parts or []:
                text = getattr(part, "text", None)
                if text:
                    parts.append(text)
            if parts:
                return "\n".join(parts)
        return ""

    def _parse_json(self, response_text: str) -> Any:
        cleaned = self._clean_response_text(response_text)
        try:
            return json.loads(cleaned)
        except json.JSONDecodeError as exc:
            raise GeminiClientError(f"Gemini response is not JSON: {cleaned[:200]}") from exc

    def _clean_response_text(self, text: str) -> str:
        cleaned = text.strip()
        if cleaned.startswith("```"):
            cleaned = cleaned.strip("`")
            cleaned = re.sub(r"^json", "", cleaned, flags=re.IGNORECASE).strip()
        json_candidate = re.search(r"(\[.*\]|\{.*\})", cleaned, re.DOTALL)
        if json_candidate:
            return json_candidate.group(0)
        return cleaned
