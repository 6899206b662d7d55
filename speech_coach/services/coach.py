import logging

from speech_coach.config import DEFAULT_NATIVE_LANG, DEFAULT_TARGET_LANG, FEEDBACK_STRATEGY
from speech_coach.models.feedback import AnalysisResult
from speech_coach.models.transcript import RecognitionSegment
from speech_coach.services.consolidation import consolidate_feedback
from speech_coach.services.segmentation import build_sentence_references
from speech_coach.services.transcription import get_transcription_service
from speech_coach.services.tutor import request_feedback

logger = logging.getLogger(__name__)


async def analyze_transcript(
    transcript: str,
    segments: list[RecognitionSegment] | None = None,
    target_lang: str | None = None,
    native_lang: str | None = None,
    strategy: str | None = None,
) -> AnalysisResult:
    """Request corrections for a transcript and align them to its sentences."""
    segments = segments or []
    strategy = strategy or FEEDBACK_STRATEGY
    response = await request_feedback(
        transcript,
        target_lang or DEFAULT_TARGET_LANG,
        native_lang or DEFAULT_NATIVE_LANG,
    )

    # The recognizer's text is authoritative; the model only echoes it
    if response.transcription != transcript:
        logger.debug("Model transcription differs from recognizer output; using recognizer text")

    # Raw rewrite; only the full_text strategy falls back to the transcript
    feedback = consolidate_feedback(
        transcript,
        response.improved_text,
        response.feedback,
        segments=segments,
        strategy=strategy,
    )
    references = build_sentence_references(transcript, segments)

    return AnalysisResult(
        transcription=transcript,
        improved_text=response.improved_text or transcript,
        feedback=feedback,
        overall_feedback=response.overall_feedback,
        sentence_timings=references,
        transcription_segments=segments,
    )


async def analyze_recording(
    audio: bytes,
    filename: str = "recording.webm",
    target_lang: str | None = None,
    native_lang: str | None = None,
    strategy: str | None = None,
) -> AnalysisResult:
    """Transcribe a recording, then analyze the transcript."""
    result = await get_transcription_service().transcribe(audio, filename)
    return await analyze_transcript(
        result.text,
        result.segments,
        target_lang=target_lang,
        native_lang=native_lang,
        strategy=strategy,
    )
