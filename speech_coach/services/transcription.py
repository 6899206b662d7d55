import logging
import re

from openai import AsyncOpenAI

from speech_coach.config import OPENAI_API_KEY, TRANSCRIPTION_LANGUAGE, TRANSCRIPTION_MODEL
from speech_coach.models.transcript import RecognitionSegment, TranscriptionResult

logger = logging.getLogger(__name__)


class TranscriptionError(RuntimeError):
    """Raised when the speech-recognition service cannot produce a transcript."""


def _number(value: object) -> float | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return float(value)


def _clean_text(text: object) -> str:
    if not isinstance(text, str):
        return ""
    return re.sub(r"\s+", " ", text).strip()


def segments_from_result(result: object) -> list[RecognitionSegment]:
    """Read timed segments from a Whisper-style result (``segments`` or ``chunks``)."""
    if not isinstance(result, dict):
        return []
    raw_chunks = result.get("chunks")
    if not isinstance(raw_chunks, list):
        raw_chunks = result.get("segments")
    if not isinstance(raw_chunks, list):
        return []

    segments = []
    for chunk in raw_chunks:
        if not isinstance(chunk, dict):
            continue
        text = _clean_text(chunk.get("text") or chunk.get("sentence"))
        if not text:
            continue

        timestamp = chunk.get("timestamp")
        if not isinstance(timestamp, (list, tuple)):
            timestamp = chunk.get("timestamps")
        if isinstance(timestamp, (list, tuple)):
            start = _number(timestamp[0]) if len(timestamp) > 0 else None
            end = _number(timestamp[1]) if len(timestamp) > 1 else None
        else:
            start = _number(chunk.get("start"))
            end = _number(chunk.get("end"))

        duration = _number(chunk.get("duration"))
        if start is not None and end is None and duration is not None:
            end = start + duration
        if start is None:
            start = _number(chunk.get("offset"))

        segments.append(RecognitionSegment(text=text, start=start, end=end))
    return segments


def extract_transcription_result(result: object) -> TranscriptionResult:
    if not result:
        return TranscriptionResult()
    if isinstance(result, str):
        return TranscriptionResult(text=result.strip())
    if not isinstance(result, dict):
        return TranscriptionResult()

    segments = segments_from_result(result)
    text = _clean_text(result.get("text"))
    if not text:
        text = " ".join(segment.text for segment in segments).strip()
    if not text and not segments:
        logger.warning("Unexpected transcription result format: %s", str(result)[:200])
    return TranscriptionResult(text=text, segments=segments)


class TranscriptionService:
    """Batch speech-to-text through OpenAI's audio transcription endpoint."""

    def __init__(self, api_key: str = OPENAI_API_KEY, model: str = TRANSCRIPTION_MODEL):
        self.model = model
        self._client = AsyncOpenAI(api_key=api_key) if api_key else None

    def available(self) -> bool:
        return self._client is not None

    async def transcribe(
        self,
        audio: bytes,
        filename: str = "recording.webm",
        language: str | None = None,
    ) -> TranscriptionResult:
        """Transcribe a recording and return its text with segment timings."""
        if not self._client:
            raise TranscriptionError("Transcription disabled: set OPENAI_API_KEY for speech-to-text.")
        if not audio:
            raise TranscriptionError("No audio supplied")

        kwargs = {}
        language = language or TRANSCRIPTION_LANGUAGE
        if language:
            kwargs["language"] = language

        logger.info("Transcribing %s (%d bytes) with %s", filename, len(audio), self.model)
        try:
            response = await self._client.audio.transcriptions.create(
                model=self.model,
                file=(filename, audio),
                response_format="verbose_json",
                timestamp_granularities=["segment"],
                **kwargs,
            )
        except Exception as e:
            logger.error("Transcription request failed: %s", e)
            raise TranscriptionError(f"Failed to transcribe audio: {e}") from e

        payload = response.model_dump() if hasattr(response, "model_dump") else response
        result = extract_transcription_result(payload)
        logger.info("Transcript (%d segments): %s", len(result.segments), result.text[:80])
        return result


_service: TranscriptionService | None = None


def get_transcription_service() -> TranscriptionService:
    global _service
    if _service is None:
        _service = TranscriptionService()
    return _service
