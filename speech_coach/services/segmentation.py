"""Sentence segmentation and audio timing for transcripts.

Transcripts are split into sentences, recognizer segments are merged into
sentence-sized spans, and each transcript sentence takes the timing of the
span it matches.
"""

import logging
import re
from collections.abc import Sequence

from speech_coach.models.transcript import RecognitionSegment, SentenceReference
from speech_coach.services.text_matching import (
    TIMING_MATCH_THRESHOLD,
    find_best_sentence_match,
    normalize_sentence,
    token_overlap,
)

logger = logging.getLogger(__name__)

MAX_MERGED_SPAN_CHARS = 200

_BRACKETED_TIMESTAMP = re.compile(
    r"\[(?:\d{1,2}:){1,2}\d{1,2}(?:\.\d{1,3})?"
    r"(?:\s*-->\s*(?:\d{1,2}:){1,2}\d{1,2}(?:\.\d{1,3})?)?\]"
)
_LINE_TIMESTAMP = re.compile(r"^\s*\d{1,2}:\d{2}(?:\.\d{1,3})?\s*", re.MULTILINE)
_SENTENCE = re.compile(r"[^.!?]+[.!?]*")
_SENTENCE_END = re.compile(r"[.!?。！？…]+['\"’”)\]]*$")
_WHITESPACE = re.compile(r"\s+")


def strip_timestamp_artifacts(text: str) -> str:
    if not text:
        return ""
    text = _BRACKETED_TIMESTAMP.sub(" ", text)
    text = _LINE_TIMESTAMP.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def split_into_sentences(text: str) -> list[str]:
    """Split text into trimmed sentences, keeping a trailing unterminated one."""
    clean = strip_timestamp_artifacts(text if isinstance(text, str) else "")
    if not clean:
        return []

    pieces = _SENTENCE.findall(clean)
    if not pieces:
        return [clean]
    return [piece.strip() for piece in pieces if piece.strip()]


def _coerce_segments(segments: Sequence[RecognitionSegment | dict] | None) -> list[RecognitionSegment]:
    coerced = []
    for segment in segments or []:
        if isinstance(segment, RecognitionSegment):
            coerced.append(segment)
        elif isinstance(segment, dict):
            coerced.append(RecognitionSegment.model_validate(segment))
    return coerced


def merge_segments_into_sentences(
    segments: Sequence[RecognitionSegment | dict] | None,
) -> list[SentenceReference]:
    """Merge recognizer segments into roughly sentence-sized time spans.

    A span closes on sentence-final punctuation, once the buffer reaches
    ``MAX_MERGED_SPAN_CHARS``, or at the last segment. Missing starts carry
    forward from the previous segment's end.
    """
    segments = _coerce_segments(segments)
    merged: list[SentenceReference] = []
    buffer = ""
    buffer_start: float | None = None
    last_end: float | None = None
    end: float | None = None

    def flush() -> None:
        nonlocal buffer, buffer_start
        cleaned = buffer.strip()
        if cleaned:
            merged.append(SentenceReference(
                original=cleaned,
                normalized=normalize_sentence(cleaned),
                start=buffer_start,
                end=end,
            ))
        buffer = ""
        buffer_start = None

    for index, segment in enumerate(segments):
        text = segment.text.strip()
        if not text:
            continue

        start = segment.start if segment.start is not None else last_end
        end = segment.end if segment.end is not None else start

        if not buffer:
            buffer = text
            buffer_start = start
        else:
            buffer = _WHITESPACE.sub(" ", f"{buffer} {text}")
        last_end = end

        reached_boundary = bool(_SENTENCE_END.search(text))
        exceeded_length = len(buffer) >= MAX_MERGED_SPAN_CHARS
        is_last = index == len(segments) - 1
        if reached_boundary or exceeded_length or is_last:
            flush()

    if buffer:
        flush()

    return merged


def build_sentence_references(
    transcript: str,
    segments: Sequence[RecognitionSegment | dict] | None = None,
) -> list[SentenceReference]:
    """Split the transcript into reference sentences and attach audio timing.

    Timing comes from an exact normalized match against the merged
    recognizer spans, or a fuzzy match whose token overlap reaches
    ``TIMING_MATCH_THRESHOLD``. Anything weaker leaves the sentence untimed.
    """
    sentences = [
        SentenceReference(original=sentence, normalized=normalize_sentence(sentence))
        for sentence in split_into_sentences(transcript)
    ]
    if not sentences or not segments:
        return sentences

    spans = merge_segments_into_sentences(segments)
    if not spans:
        return sentences

    references = []
    timed = 0
    for sentence in sentences:
        span = next(
            (s for s in spans if s.normalized == sentence.normalized and s.has_timing),
            None,
        )
        if span is None:
            candidate = find_best_sentence_match(sentence.normalized, spans, TIMING_MATCH_THRESHOLD)
            if (
                candidate is not None
                and candidate.has_timing
                and token_overlap(sentence.normalized, candidate.normalized) >= TIMING_MATCH_THRESHOLD
            ):
                span = candidate

        if span is None:
            logger.debug("No timing for sentence '%s'", sentence.original[:60])
            references.append(sentence)
            continue

        references.append(sentence.model_copy(update={"start": span.start, "end": span.end}))
        timed += 1

    logger.info(
        "Built %d sentence references from %d recognizer spans (%d timed)",
        len(references), len(spans), timed,
    )
    return references
