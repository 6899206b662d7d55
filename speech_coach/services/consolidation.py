"""Reconcile model feedback with transcript sentences.

Each correction is resolved onto the sentence it quotes, then corrections
sharing a sentence are merged into one item carrying that sentence's audio span.
"""

import logging
import uuid
from collections.abc import Sequence

from speech_coach.models.feedback import (
    ConsolidatedFeedbackItem,
    RawFeedbackFragment,
    ResolvedFeedbackItem,
    parse_feedback_fragments,
)
from speech_coach.models.transcript import RecognitionSegment, SentenceReference
from speech_coach.services.reconstruction import build_improved_sentence, extract_improved_sentence
from speech_coach.services.segmentation import build_sentence_references, split_into_sentences
from speech_coach.services.text_matching import (
    EXPLANATION_ATTACH_THRESHOLD,
    FRAGMENT_MATCH_THRESHOLD,
    count_words,
    ensure_sentence_ending,
    find_best_sentence_match,
    normalize_sentence,
    token_overlap,
)

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(uuid.uuid4())


def merge_explanations(explanations: Sequence[str]) -> str:
    """Join distinct non-empty explanations, numbering them when there are several."""
    unique: list[str] = []
    for text in explanations:
        text = (text or "").strip()
        if text and text not in unique:
            unique.append(text)
    if not unique:
        return ""
    if len(unique) == 1:
        return unique[0]
    return "\n".join(f"{i}. {text}" for i, text in enumerate(unique, start=1))


def resolve_feedback_fragments(
    references: Sequence[SentenceReference],
    fragments: Sequence[RawFeedbackFragment],
    transcript: str = "",
    improved_text: str = "",
) -> list[ResolvedFeedbackItem]:
    """Map each model fragment onto the transcript sentence it most likely quotes.

    Unmatched fragments are kept with their own text as ``original`` and no
    timing. Fragments whose resolved text is blank are dropped.
    """
    use_full_texts = bool(transcript and improved_text)
    resolved: list[ResolvedFeedbackItem] = []
    unmatched = 0

    for fragment in fragments:
        match = find_best_sentence_match(
            normalize_sentence(fragment.original), references, FRAGMENT_MATCH_THRESHOLD
        )

        if match is None:
            original = fragment.original.strip()
            if not original:
                continue
            unmatched += 1
            logger.debug("Fragment '%s' matched no transcript sentence", original[:60])
            resolved.append(ResolvedFeedbackItem(
                original=original,
                improved=build_improved_sentence(fragment.original, fragment.original, fragment.improved),
                explanation=fragment.explanation,
            ))
            continue

        improved = None
        if use_full_texts:
            improved = extract_improved_sentence(match.original, transcript, improved_text)
        if not improved:
            improved = build_improved_sentence(match.original, fragment.original, fragment.improved)

        resolved.append(ResolvedFeedbackItem(
            original=match.original,
            improved=improved,
            explanation=fragment.explanation,
            audio_start=match.start if match.has_timing else None,
            audio_end=match.end if match.has_timing else None,
            sentence_index=references.index(match),
        ))

    logger.info(
        "Resolved %d feedback fragments (%d without a transcript match)",
        len(resolved), unmatched,
    )
    return resolved


def _resolve_timing(items: Sequence[ResolvedFeedbackItem]) -> ResolvedFeedbackItem | None:
    for item in items:
        if item.audio_start is not None and item.audio_end is not None and item.audio_end > item.audio_start:
            return item
    return None


def _longest_improved(items: Sequence[ResolvedFeedbackItem]) -> str:
    unique: list[str] = []
    for item in items:
        text = item.improved.strip()
        if text and text not in unique:
            unique.append(text)
    if not unique:
        return ""
    return max(unique, key=count_words)


def consolidate_feedback_by_sentence(
    items: Sequence[ResolvedFeedbackItem],
    transcript: str = "",
    improved_text: str = "",
) -> list[ConsolidatedFeedbackItem]:
    """Collapse resolved items that share a transcript sentence into one item each."""
    grouped: dict[str, list[ResolvedFeedbackItem]] = {}
    for item in items:
        key = item.original.strip()
        if key:
            grouped.setdefault(key, []).append(item)

    use_full_texts = bool(transcript and improved_text)
    unresolved_rank = float("inf")

    def _order(entry: tuple[str, list[ResolvedFeedbackItem]]) -> float:
        indexes = [item.sentence_index for item in entry[1] if item.sentence_index is not None]
        return min(indexes) if indexes else unresolved_rank

    consolidated: list[ConsolidatedFeedbackItem] = []
    for sentence, group in sorted(grouped.items(), key=_order):
        timing_source = _resolve_timing(group)

        improved = None
        if use_full_texts:
            improved = extract_improved_sentence(sentence, transcript, improved_text)
        if not improved and timing_source is not None:
            improved = timing_source.improved.strip()
        if not improved:
            improved = _longest_improved(group)

        consolidated.append(ConsolidatedFeedbackItem(
            id=_new_id(),
            original=sentence,
            improved=ensure_sentence_ending(improved, sentence),
            explanation=merge_explanations([item.explanation for item in group]),
            audio_start=timing_source.audio_start if timing_source else None,
            audio_end=timing_source.audio_end if timing_source else None,
        ))

    return consolidated


def build_sentence_feedback_from_full_texts(
    references: Sequence[SentenceReference],
    improved_text: str,
    fragments: Sequence[RawFeedbackFragment],
) -> list[ConsolidatedFeedbackItem]:
    """Pair transcript and improved sentences by position and attach explanations.

    Each fragment's explanation goes to the transcript sentence it matches
    exactly, or else best by token overlap. A sentence yields an item only
    when its text changed or it received an explanation.
    """
    if not references:
        return []

    improved_sentences = split_into_sentences(improved_text)
    explanations: list[list[str]] = [[] for _ in references]

    for fragment in fragments:
        explanation = fragment.explanation.strip()
        target = normalize_sentence(fragment.original)
        if not target or not explanation:
            continue

        best_index = -1
        best_score = 0.0
        for index, reference in enumerate(references):
            if not reference.normalized:
                continue
            if reference.normalized == target:
                best_index = index
                break
            score = token_overlap(target, reference.normalized)
            if score > best_score:
                best_score = score
                best_index = index

        if best_index >= 0 and (
            references[best_index].normalized == target or best_score >= EXPLANATION_ATTACH_THRESHOLD
        ):
            explanations[best_index].append(explanation)

    feedback: list[ConsolidatedFeedbackItem] = []
    for index, reference in enumerate(references):
        improved = improved_sentences[index] if index < len(improved_sentences) else reference.original
        explanation = merge_explanations(explanations[index])
        changed = bool(reference.normalized) and reference.normalized != normalize_sentence(improved)
        if not changed and not explanation:
            continue
        timed = reference.has_timing and reference.end > reference.start
        feedback.append(ConsolidatedFeedbackItem(
            id=_new_id(),
            original=reference.original,
            improved=ensure_sentence_ending(improved, reference.original),
            explanation=explanation,
            audio_start=reference.start if timed else None,
            audio_end=reference.end if timed else None,
        ))

    return feedback


def consolidate_feedback(
    transcript: str,
    improved_text: str,
    raw_feedback: object,
    segments: Sequence[RecognitionSegment | dict] | None = None,
    strategy: str = "fragments",
) -> list[ConsolidatedFeedbackItem]:
    """Reconcile model feedback with the transcript into sentence-level items.

    ``raw_feedback`` is validated here: non-list payloads count as empty and
    malformed fields become empty strings. An empty transcript yields no
    feedback.
    """
    transcript = transcript if isinstance(transcript, str) else ""
    improved_text = improved_text if isinstance(improved_text, str) else ""
    references = build_sentence_references(transcript, segments)
    if not references:
        return []

    fragments = parse_feedback_fragments(raw_feedback)
    if strategy == "full_text":
        feedback = build_sentence_feedback_from_full_texts(references, improved_text or transcript, fragments)
    else:
        resolved = resolve_feedback_fragments(references, fragments, transcript, improved_text)
        feedback = consolidate_feedback_by_sentence(resolved, transcript, improved_text)

    logger.info(
        "Consolidated %d feedback fragments into %d sentence items (%s)",
        len(fragments), len(feedback), strategy,
    )
    return feedback
