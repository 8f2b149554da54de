from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class ChatPart(BaseModel):
    """One content part: either text or a media reference."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    text: Optional[str] = None
    url: Optional[str] = Field(None, description="Media URL (https or data URI)")
    content_type: Optional[str] = Field(None, description="MIME type of the media part")

    @model_validator(mode="after")
    def _text_or_media(self):
        if self.text is None and self.url is None:
            raise ValueError("a chat part needs either text or a media url")
        if self.url is not None and not self.content_type:
            raise ValueError("media parts require a contentType")
        return self

    @property
    def is_media(self) -> bool:
        return self.url is not None


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    parts: list[ChatPart] = Field(default_factory=list)

    @property
    def text(self) -> str:
        return "\n".join(p.text for p in self.parts if p.text)


class ChatResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    reply: str
    history: list[ChatMessage]
    used_transcript_tool: bool = False
    failed: bool = False
