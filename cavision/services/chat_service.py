import asyncio
import logging
from dataclasses import dataclass, field
from typing import Optional, Sequence

from google.genai import types as genai_types

from cavision.clients.gemini_client import GeminiClient
from cavision.clients.youtube_client import YouTubeTranscriptClient, find_youtube_urls
from cavision.core.config import Settings
from cavision.schemas.chat_schema import ChatMessage, ChatPart, ChatResponse
from cavision.services.document_service import ACCEPTED_MIME_TYPES, UploadedDocument, prepare_for_model

SYSTEM_INSTRUCTION = (
    "You are a helpful AI assistant for Chartered Accountancy (CA) students. You can answer "
    "questions, summarize materials, and chat about various topics related to CA exams. "
    "When a user provides a YouTube link, you MUST use the `get_youtube_transcript` tool to fetch "
    "the transcript and then answer their question. If the tool reports that the transcript could "
    "not be retrieved, tell the user and answer from what you know. "
    "When a user uploads a document, you can answer questions based on its content. "
    "Be friendly, encouraging, and provide clear, concise explanations.\n"
    "Formatting rules: use Markdown. Use **bold** for key terms and figures, *italics* for "
    "emphasis, and bullet lists for steps, lists and comparisons. Keep paragraphs short."
)

ATTACHMENT_INSTRUCTION = (
    "The user attached a document in their latest message. Answer using the content of that "
    "attachment, and say so when the answer is not in it."
)

FALLBACK_REPLY = "Sorry, something went wrong. Please try again."
EMPTY_REPLY = "I couldn't come up with an answer to that. Could you rephrase your question?"

TRANSCRIPT_TOOL_NAME = "get_youtube_transcript"

TRANSCRIPT_TOOL = genai_types.Tool(
    function_declarations=[
        genai_types.FunctionDeclaration(
            name=TRANSCRIPT_TOOL_NAME,
            description=(
                "Returns the transcript of a YouTube video. Use this tool whenever a user provides "
                "a YouTube link to summarize it or ask questions about it."
            ),
            parameters=genai_types.Schema(
                type=genai_types.Type.OBJECT,
                properties={
                    "url": genai_types.Schema(
                        type=genai_types.Type.STRING,
                        description="The URL of the YouTube video.",
                    )
                },
                required=["url"],
            ),
        )
    ]
)


class ChatRequestError(ValueError):
    """Raised for a chat turn with neither text nor a file, or with an unusable history."""


@dataclass
class ChatAssistantService:
    gemini_client: GeminiClient
    transcript_client: YouTubeTranscriptClient
    settings: Settings
    logger: logging.Logger = field(default_factory=lambda: logging.getLogger(__name__))

    async def reply(
        self,
        history: Sequence[ChatMessage],
        text: Optional[str],
        document: Optional[UploadedDocument] = None,
    ) -> ChatResponse:
        """
        Answer one user turn. Model failures come back as a fallback assistant
        message; this method does not raise for them.

        An attached file is uploaded to the Gemini Files API once and kept in the
        history as a link, so later turns replay the link instead of the bytes.
        """
        text = (text or "").strip()
        if not text and document is None:
            raise ChatRequestError("A message or a file is required.")
        self._check_history(history)
        prepared = prepare_for_model(document) if document is not None else None

        used_tool = False
        failed = False
        attachment: Optional[ChatPart] = None
        try:
            if prepared is not None:
                attachment = await self._upload(prepared)
            reply_text, used_tool = await self._converse(
                [*history, self._user_message(text, attachment)],
                youtube_urls=find_youtube_urls(text),
                has_attachment=attachment is not None,
            )
        except Exception as exc:  # noqa: BLE001
            self.logger.error("chat model call failed: %s", exc, exc_info=exc)
            reply_text = FALLBACK_REPLY
            failed = True

        updated = [
            *history,
            self._user_message(text, attachment, filename=document.filename if document else None),
            ChatMessage(role="assistant", parts=[ChatPart(text=reply_text)]),
        ]
        return ChatResponse(reply=reply_text, history=updated, used_transcript_tool=used_tool, failed=failed)

    @staticmethod
    def _user_message(text: str, attachment: Optional[ChatPart], filename: Optional[str] = None) -> ChatMessage:
        parts = [attachment] if attachment is not None else []
        if text:
            parts.append(ChatPart(text=text))
        if not parts and filename:
            # File-only turn whose upload failed.
            parts.append(ChatPart(text=f"[{filename}]"))
        return ChatMessage(role="user", parts=parts)

    @staticmethod
    def _check_history(history: Sequence[ChatMessage]) -> None:
        for message in history:
            for part in message.parts:
                if not part.is_media:
                    continue
                if not part.url.startswith("https://"):
                    raise ChatRequestError("Attachments in the history must be uploaded file links.")
                if part.content_type.split(";")[0].strip().lower() not in ACCEPTED_MIME_TYPES:
                    raise ChatRequestError(f"Unsupported attachment type in the history: {part.content_type}")

    async def _upload(self, document: UploadedDocument) -> ChatPart:
        uploaded = await self.gemini_client.upload_file(
            document.data,
            document.mime_type,
            display_name=document.filename,
        )
        return ChatPart(url=uploaded.uri, content_type=document.mime_type)

    async def _converse(
        self,
        messages: Sequence[ChatMessage],
        *,
        youtube_urls: list[str],
        has_attachment: bool,
    ) -> tuple[str, bool]:
        contents = [self._to_content(m) for m in messages]
        system_instruction = SYSTEM_INSTRUCTION
        if has_attachment:
            system_instruction = f"{SYSTEM_INSTRUCTION}\n\n{ATTACHMENT_INSTRUCTION}"
        # The transcript tool is only offered when the turn carries a video link.
        tools = [TRANSCRIPT_TOOL] if youtube_urls else None

        used_tool = False
        response = None
        for round_no in range(self.settings.chat_max_tool_rounds + 1):
            response = await self.gemini_client.generate_content(
                contents,
                system_instruction=system_instruction,
                tools=tools,
            )
            calls = getattr(response, "function_calls", None) or []
            if not calls or not tools:
                break
            if round_no == self.settings.chat_max_tool_rounds:
                self.logger.warning("tool round limit reached; using the last model answer")
                break

            contents.append(response.candidates[0].content)
            tool_parts = []
            for call in calls:
                result = await self._run_tool(call.name, dict(call.args or {}), youtube_urls)
                used_tool = True
                tool_parts.append(
                    genai_types.Part.from_function_response(name=call.name, response={"result": result})
                )
            contents.append(genai_types.Content(role="user", parts=tool_parts))

        reply_text = self.gemini_client.extract_text(response).strip()
        return reply_text or EMPTY_REPLY, used_tool

    async def _run_tool(self, name: str, args: dict, youtube_urls: list[str]) -> str:
        if name != TRANSCRIPT_TOOL_NAME:
            self.logger.warning("model requested unknown tool %s", name)
            return f"Unknown tool: {name}"

        url = args.get("url") or youtube_urls[0]
        transcript = await asyncio.to_thread(self.transcript_client.fetch_transcript, url)
        self.logger.info(
            "transcript tool called",
            extra={"url": url, "chars": len(transcript)},
        )
        return transcript

    def _to_content(self, message: ChatMessage) -> genai_types.Content:
        parts: list[genai_types.Part] = []
        for part in message.parts:
            if part.is_media:
                parts.append(genai_types.Part.from_uri(file_uri=part.url, mime_type=part.content_type))
            elif part.text:
                parts.append(genai_types.Part.from_text(text=part.text))
        role = "model" if message.role == "assistant" else "user"
        return genai_types.Content(role=role, parts=parts)

