from typing import Annotated, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

ExamLevel = Literal["Foundation", "Intermediate", "Final"]


def _url_or_empty(value: Optional[str]) -> Optional[str]:
    if value is None or value == "":
        return value
    if not value.startswith(("http://", "https://")):
        raise ValueError("must be an http(s) URL or empty")
    return value


UrlOrEmpty = Annotated[Optional[str], AfterValidator(_url_or_empty)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SocialLinks(CamelModel):
    twitter: UrlOrEmpty = None
    linkedin: UrlOrEmpty = None
    instagram: UrlOrEmpty = None


class ProfileUpdate(CamelModel):
    """Partial profile; only the fields that are set get merged."""

    email: Optional[str] = None
    display_name: Optional[str] = Field(None, min_length=1)
    bio: Optional[str] = Field(None, max_length=160)
    city: Optional[str] = None
    ca_level: Optional[ExamLevel] = None
    photo_url: UrlOrEmpty = Field(None, alias="photoURL")
    social_links: Optional[SocialLinks] = None


class UserProfile(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)

    id: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    bio: Optional[str] = None
    city: Optional[str] = None
    ca_level: Optional[ExamLevel] = None
    photo_url: Optional[str] = Field(None, alias="photoURL")
    social_links: SocialLinks = Field(default_factory=SocialLinks)
    quizzes_generated: int = 0
    total_mcqs_attempted: int = 0
    total_mcqs_correct: int = 0


class UserStats(CamelModel):
    quizzes_generated: int = 0
    total_mcqs_attempted: int = 0
    total_mcqs_correct: int = 0
    accuracy: float = 0.0
