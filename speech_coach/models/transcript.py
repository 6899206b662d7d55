from pydantic import BaseModel, ConfigDict, field_validator


def _as_seconds(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


class RecognitionSegment(BaseModel):
    """One time-stamped piece of recognizer output, at or below sentence level."""

    text: str = ""
    start: float | None = None
    end: float | None = None

    @field_validator("text", mode="before")
    @classmethod
    def _coerce_text(cls, value: object) -> str:
        return value if isinstance(value, str) else ""

    @field_validator("start", "end", mode="before")
    @classmethod
    def _coerce_seconds(cls, value: object) -> float | None:
        return _as_seconds(value)


class SentenceReference(BaseModel):
    """A transcript sentence with its normalized form and optional audio span."""

    model_config = ConfigDict(frozen=True)

    original: str
    normalized: str
    start: float | None = None
    end: float | None = None

    @property
    def has_timing(self) -> bool:
        return self.start is not None and self.end is not None


class TranscriptionResult(BaseModel):
    text: str = ""
    segments: list[RecognitionSegment] = []
