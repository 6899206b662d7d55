from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from speech_coach.models.feedback import RawFeedbackFragment, parse_feedback_fragments
from speech_coach.models.transcript import RecognitionSegment, SentenceReference
from speech_coach.services.text_matching import normalize_sentence


class ReferencesRequest(BaseModel):
    transcript: str = ""
    segments: list[RecognitionSegment] = []


class FeedbackRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transcript: str = ""
    improved_text: str = Field("", alias="improvedText")
    feedback: list[RawFeedbackFragment] = []
    segments: list[RecognitionSegment] = []
    strategy: Literal["fragments", "full_text"] | None = None

    @field_validator("feedback", mode="before")
    @classmethod
    def _coerce_feedback(cls, value: object) -> list:
        return parse_feedback_fragments(value)


class TranscriptAnalysisRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transcript: str
    segments: list[RecognitionSegment] = []
    target_lang: str | None = Field(None, alias="targetLang")
    native_lang: str | None = Field(None, alias="nativeLang")
    strategy: Literal["fragments", "full_text"] | None = None


class SeekRequest(BaseModel):
    text: str
    references: list[SentenceReference] = []

    @field_validator("references", mode="before")
    @classmethod
    def _renormalize(cls, value: object) -> object:
        # "normalized" is always recomputed from "original"
        if not isinstance(value, list):
            return value
        return [
            {**item, "normalized": normalize_sentence(item.get("original"))} if isinstance(item, dict) else item
            for item in value
        ]


class SeekResponse(BaseModel):
    match: SentenceReference | None = None
