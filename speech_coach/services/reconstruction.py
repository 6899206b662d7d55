"""Turn model corrections into complete improved sentences.

The model's per-fragment ``improved`` text is often a short excerpt, while
the UI shows whole sentences. Two sources are used: the model's own rewrite
of the full transcript (``extract_improved_sentence``) and, failing that, a
literal substitution of the fragment inside the transcript sentence
(``build_improved_sentence``).
"""

import logging
import re

from speech_coach.services.segmentation import split_into_sentences
from speech_coach.services.text_matching import (
    BLENDED_IMPROVED_THRESHOLD,
    OVERLAP_IMPROVED_THRESHOLD,
    TRANSCRIPT_LOCATE_THRESHOLD,
    count_words,
    ensure_sentence_ending,
    has_terminal_punctuation,
    normalize_sentence,
    token_overlap,
)

logger = logging.getLogger(__name__)

FULL_SENTENCE_WORD_RATIO = 0.6
OVERLAP_WEIGHT = 0.7
PROXIMITY_WEIGHT = 0.3


def replace_fragment_within_sentence(sentence: str, fragment: str, replacement: str) -> str:
    """Replace the first case-insensitive literal occurrence of ``fragment``."""
    fragment = (fragment or "").strip()
    replacement = (replacement or "").strip()
    if not sentence or not fragment or not replacement:
        return sentence
    pattern = re.compile(re.escape(fragment), re.IGNORECASE)
    return pattern.sub(lambda _: replacement, sentence, count=1)


def is_likely_full_sentence(text: str, reference_word_count: int) -> bool:
    words = count_words(text)
    if not words:
        return False
    ratio = words / max(reference_word_count, 1)
    return ratio >= FULL_SENTENCE_WORD_RATIO and has_terminal_punctuation(text)


def build_improved_sentence(resolved_sentence: str, fragment_original: str, fragment_improved: str) -> str:
    """Produce a complete corrected sentence from a possibly partial correction."""
    resolved_sentence = (resolved_sentence or "").strip()
    fragment_improved = (fragment_improved or "").strip()

    if not resolved_sentence:
        fallback = (fragment_original or "").strip() or fragment_improved
        return ensure_sentence_ending(fragment_improved or fallback, fallback)

    if is_likely_full_sentence(fragment_improved, count_words(resolved_sentence)):
        return ensure_sentence_ending(fragment_improved, resolved_sentence)

    rebuilt = replace_fragment_within_sentence(resolved_sentence, fragment_original, fragment_improved)
    if rebuilt != resolved_sentence:
        return ensure_sentence_ending(rebuilt, rebuilt)

    return ensure_sentence_ending(fragment_improved or resolved_sentence, resolved_sentence)


def _locate_sentence(target_normalized: str, sentences: list[str]) -> int:
    best_index = -1
    best_score = 0.0
    for index, sentence in enumerate(sentences):
        normalized = normalize_sentence(sentence)
        if normalized == target_normalized:
            return index
        score = token_overlap(target_normalized, normalized)
        if score > best_score and score > TRANSCRIPT_LOCATE_THRESHOLD:
            best_score = score
            best_index = index
    return best_index


def extract_improved_sentence(original_sentence: str, transcript: str, improved_text: str) -> str | None:
    """Find the sentence of the model's full rewrite that corresponds to ``original_sentence``.

    The sentence is first located in the transcript; its counterpart in the
    improved text is then chosen by token overlap, blended with positional
    proximity when both texts have the same number of sentences.
    """
    if not original_sentence or not transcript or not improved_text:
        return None

    original_sentences = split_into_sentences(transcript)
    improved_sentences = split_into_sentences(improved_text)
    if not original_sentences or not improved_sentences:
        return None

    original_index = _locate_sentence(normalize_sentence(original_sentence), original_sentences)
    if original_index < 0:
        return None

    matched_normalized = normalize_sentence(original_sentences[original_index])
    same_length = len(original_sentences) == len(improved_sentences)

    best_index = -1
    best_score = 0.0
    for index, improved in enumerate(improved_sentences):
        score = token_overlap(matched_normalized, normalize_sentence(improved))
        if same_length:
            proximity = 1 - abs(index - original_index) / max(len(original_sentences), 1)
            score = score * OVERLAP_WEIGHT + proximity * PROXIMITY_WEIGHT
            threshold = BLENDED_IMPROVED_THRESHOLD
        else:
            threshold = OVERLAP_IMPROVED_THRESHOLD
        if score > best_score and score > threshold:
            best_score = score
            best_index = index

    if best_index < 0:
        logger.debug("No improved sentence for '%s'", original_sentence[:60])
        return None
    return improved_sentences[best_index]
