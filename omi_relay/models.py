"""Webhook payload models."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TranscriptSegment(BaseModel):
    model_config = ConfigDict(extra="allow")

    text: str = ""
    start: float | None = None
    end: float | None = None
    speaker: str | None = None

    @field_validator("text", mode="before")
    @classmethod
    def _none_text_is_empty(cls, v):
        return "" if v is None else v


class WebhookPayload(BaseModel):
    """Body of ``POST /omi-webhook``: ``{"session_id": ..., "segments": [...]}``."""

    model_config = ConfigDict(extra="allow")

    session_id: str = Field(min_length=1)
    segments: list[TranscriptSegment]

    @property
    def transcript(self) -> str:
        return " ".join(s.text for s in self.segments).strip()
