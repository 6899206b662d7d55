from pydantic import BaseModel, ConfigDict, Field, field_validator

from speech_coach.models.transcript import RecognitionSegment, SentenceReference


def _as_text(value: object) -> str:
    return value if isinstance(value, str) else ""


class RawFeedbackFragment(BaseModel):
    """A correction as returned by the language model.

    ``original`` is an approximate quote: it may be paraphrased, partial, or
    span several transcript sentences. Missing or wrong-typed fields are
    coerced to empty strings.
    """

    original: str = ""
    improved: str = ""
    explanation: str = ""

    @field_validator("original", "improved", "explanation", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> str:
        return _as_text(value)


class ResolvedFeedbackItem(BaseModel):
    original: str
    improved: str
    explanation: str = ""
    audio_start: float | None = None
    audio_end: float | None = None
    sentence_index: int | None = None  # None when no transcript sentence matched


class ConsolidatedFeedbackItem(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str
    original: str
    improved: str
    explanation: str = ""
    audio_start: float | None = Field(None, alias="audioStart")
    audio_end: float | None = Field(None, alias="audioEnd")


class OverallFeedback(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    task_response: str = Field("", alias="taskResponse")
    coherence: str = ""
    cohesion: str = ""
    vocabulary: str = ""
    grammar: str = ""

    @field_validator("task_response", "coherence", "cohesion", "vocabulary", "grammar", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> str:
        return _as_text(value)


class FeedbackResponse(BaseModel):
    """Structured output requested from the language model."""

    model_config = ConfigDict(populate_by_name=True)

    transcription: str = ""
    improved_text: str = Field("", alias="improvedText")
    feedback: list[RawFeedbackFragment] = []
    overall_feedback: OverallFeedback | None = Field(None, alias="overallFeedback")

    @field_validator("transcription", "improved_text", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> str:
        return _as_text(value)

    @field_validator("feedback", mode="before")
    @classmethod
    def _coerce_feedback(cls, value: object) -> list:
        return parse_feedback_fragments(value)

    @field_validator("overall_feedback", mode="before")
    @classmethod
    def _coerce_overall(cls, value: object) -> object:
        return value if isinstance(value, (dict, OverallFeedback)) else None


class AnalysisResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    transcription: str
    improved_text: str = Field("", alias="improvedText")
    feedback: list[ConsolidatedFeedbackItem] = []
    overall_feedback: OverallFeedback | None = Field(None, alias="overallFeedback")
    sentence_timings: list[SentenceReference] = Field([], alias="sentenceTimings")
    transcription_segments: list[RecognitionSegment] = Field([], alias="transcriptionSegments")


def parse_feedback_fragments(payload: object) -> list[RawFeedbackFragment]:
    """Validate a loosely typed ``feedback`` payload into fragments.

    Non-list payloads yield no fragments and non-object entries are skipped.
    """
    if not isinstance(payload, list):
        return []
    fragments = []
    for item in payload:
        if isinstance(item, RawFeedbackFragment):
            fragments.append(item)
        elif isinstance(item, dict):
            fragments.append(RawFeedbackFragment.model_validate(item))
    return fragments
