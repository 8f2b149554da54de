import logging
import re
from dataclasses import dataclass, field
from typing import Optional

from youtube_transcript_api import CouldNotRetrieveTranscript, YouTubeTranscriptApi

YOUTUBE_URL_RE = re.compile(
    r"(?:https?://)?(?:www\.|m\.)?"
    r"(?:youtube\.com/(?:watch\?(?:[^\s#]*&)?v=|shorts/|embed/|live/)|youtu\.be/)"
    r"(?P<video_id>[A-Za-z0-9_-]{11})"
)

TRANSCRIPT_ERROR_PREFIX = "Could not get transcript"


def find_youtube_urls(text: str | None) -> list[str]:
    """Return every YouTube video link found in the text, in order."""
    if not text:
        return []
    return [m.group(0) for m in YOUTUBE_URL_RE.finditer(text)]


def extract_video_id(url: str) -> Optional[str]:
    match = YOUTUBE_URL_RE.search(url or "")
    return match.group("video_id") if match else None


@dataclass
class YouTubeTranscriptClient:
    max_chars: int = 20000
    languages: tuple[str, ...] = ("en", "en-IN", "hi")
    api: YouTubeTranscriptApi = field(default_factory=YouTubeTranscriptApi)

    def __post_init__(self):
        self.logger = logging.getLogger(__name__)

    def fetch_transcript(self, url: str) -> str:
        """
        Return the plain-text transcript of a video, truncated to `max_chars`.

        Never raises: failures come back as a "Could not get transcript: ..." string
        so the model can tell the user what went wrong.
        """
        video_id = extract_video_id(url)
        if not video_id:
            return f"{TRANSCRIPT_ERROR_PREFIX}: {url!r} is not a YouTube video link."

        try:
            fetched = self.api.fetch(video_id, languages=list(self.languages))
        except CouldNotRetrieveTranscript as exc:
            self.logger.warning("transcript unavailable video_id=%s: %s", video_id, type(exc).__name__)
            return f"{TRANSCRIPT_ERROR_PREFIX}: {type(exc).__name__}"
        except Exception as exc:  # noqa: BLE001
            self.logger.warning("transcript fetch failed video_id=%s", video_id, exc_info=exc)
            return f"{TRANSCRIPT_ERROR_PREFIX}: {exc}"

        text = " ".join(snippet.text.strip() for snippet in fetched if snippet.text and snippet.text.strip())
        if not text:
            return f"{TRANSCRIPT_ERROR_PREFIX}: the transcript is empty."
        if len(text) > self.max_chars:
            self.logger.info(
                "transcript truncated",
                extra={"video_id": video_id, "chars": len(text), "max_chars": self.max_chars},
            )
            text = text[: self.max_chars]
        return text
