import logging

from fastapi import APIRouter, File, Form, HTTPException, UploadFile

from speech_coach.config import FEEDBACK_STRATEGY
from speech_coach.models.analysis import (
    FeedbackRequest,
    ReferencesRequest,
    SeekRequest,
    SeekResponse,
    TranscriptAnalysisRequest,
)
from speech_coach.models.feedback import AnalysisResult, ConsolidatedFeedbackItem
from speech_coach.models.transcript import SentenceReference
from speech_coach.services.coach import analyze_recording, analyze_transcript
from speech_coach.services.consolidation import consolidate_feedback
from speech_coach.services.segmentation import build_sentence_references
from speech_coach.services.text_matching import find_sentence_timing_match
from speech_coach.services.transcription import TranscriptionError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/analysis", tags=["analysis"])


@router.post("/references", response_model=list[SentenceReference])
async def sentence_references(body: ReferencesRequest):
    """Split a transcript into sentences with best-effort audio timing."""
    return build_sentence_references(body.transcript, body.segments)


@router.post("/feedback", response_model=list[ConsolidatedFeedbackItem])
async def feedback(body: FeedbackRequest):
    """Align already-generated model feedback to the transcript."""
    return consolidate_feedback(
        body.transcript,
        body.improved_text,
        body.feedback,
        segments=body.segments,
        strategy=body.strategy or FEEDBACK_STRATEGY,
    )


@router.post("/seek", response_model=SeekResponse)
async def seek(body: SeekRequest):
    """Find the timed sentence to play for a piece of text."""
    return SeekResponse(match=find_sentence_timing_match(body.text, body.references))


@router.post("/transcript", response_model=AnalysisResult)
async def transcript_analysis(body: TranscriptAnalysisRequest):
    """Request corrections for a transcript and align them."""
    return await analyze_transcript(
        body.transcript,
        body.segments,
        target_lang=body.target_lang,
        native_lang=body.native_lang,
        strategy=body.strategy,
    )


@router.post("/audio", response_model=AnalysisResult)
async def audio_analysis(
    audio: UploadFile = File(...),
    target_lang: str | None = Form(None),
    native_lang: str | None = Form(None),
):
    """Transcribe an uploaded recording and return aligned feedback."""
    data = await audio.read()
    if not data:
        raise HTTPException(status_code=400, detail="Empty audio upload")

    try:
        return await analyze_recording(
            data,
            audio.filename or "recording.webm",
            target_lang=target_lang,
            native_lang=native_lang,
        )
    except TranscriptionError as e:
        logger.error("Audio analysis failed: %s", e)
        raise HTTPException(status_code=502, detail=str(e))
