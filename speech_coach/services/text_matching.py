"""Text comparison helpers shared by the alignment engine.

Everything here is pure: strings in, strings or scores out. Sentence
identity is decided on normalized text, so every caller compares the
output of ``normalize_sentence`` rather than raw transcript text.
"""

import logging
import re
from collections.abc import Sequence
from typing import Protocol, TypeVar

from speech_coach.models.transcript import SentenceReference

logger = logging.getLogger(__name__)

# Token-overlap cutoffs, one per matching context
FRAGMENT_MATCH_THRESHOLD = 0.5  # model fragment -> transcript sentence (>=)
TIMING_MATCH_THRESHOLD = 0.6  # transcript sentence -> recognizer span (>=)
TRANSCRIPT_LOCATE_THRESHOLD = 0.5  # sentence -> its index in the transcript (>)
BLENDED_IMPROVED_THRESHOLD = 0.4  # improved sentence, overlap blended with position (>)
OVERLAP_IMPROVED_THRESHOLD = 0.3  # improved sentence, overlap only (>)
EXPLANATION_ATTACH_THRESHOLD = 0.4  # explanation -> transcript sentence (>=)
SEEK_OVERLAP_THRESHOLD = 0.8  # seek text -> timed reference (>)

TERMINAL_PUNCTUATION = '.!?…"。！？'

_QUOTE_MAP = str.maketrans({
    "‘": "'",
    "’": "'",
    "“": '"',
    "”": '"',
})
_NON_ALNUM = re.compile(r"[\W_]+")
_WORD = re.compile(r"\w+")


class _Matchable(Protocol):
    original: str
    normalized: str


M = TypeVar("M", bound=_Matchable)


def normalize_sentence(text: object) -> str:
    """Canonical form used to decide whether two strings are the same sentence."""
    if not isinstance(text, str) or not text:
        return ""
    text = text.lower().translate(_QUOTE_MAP)
    return _NON_ALNUM.sub(" ", text).strip()


def count_words(text: str) -> int:
    if not text:
        return 0
    return len(_WORD.findall(text))


def has_terminal_punctuation(text: str) -> bool:
    text = (text or "").strip()
    return bool(text) and text[-1] in TERMINAL_PUNCTUATION


def ensure_sentence_ending(text: str, fallback: str) -> str:
    """Return ``text`` trimmed and terminated, or ``fallback`` when it is blank."""
    trimmed = (text or "").strip()
    if not trimmed:
        return fallback
    if has_terminal_punctuation(trimmed):
        return trimmed
    return f"{trimmed}."


def token_overlap(a: str, b: str) -> float:
    """Shared word-set size over the larger word count of two normalized strings."""
    a_words = a.split() if a else []
    b_words = b.split() if b else []
    if not a_words or not b_words:
        return 0.0
    shared = set(a_words) & set(b_words)
    return len(shared) / max(len(a_words), len(b_words))


def find_best_sentence_match(
    fragment_normalized: str,
    candidates: Sequence[M],
    threshold: float = FRAGMENT_MATCH_THRESHOLD,
) -> M | None:
    """Find the candidate sentence a normalized fragment most likely belongs to.

    Tiers, first hit wins: exact equality, the candidate containing the
    fragment, the fragment containing the candidate, then the best token
    overlap at or above ``threshold``. Ties resolve to the earliest
    candidate.
    """
    if not fragment_normalized:
        return None

    for candidate in candidates:
        if candidate.normalized == fragment_normalized:
            return candidate

    for candidate in candidates:
        if candidate.normalized and fragment_normalized in candidate.normalized:
            return candidate

    for candidate in candidates:
        if candidate.normalized and candidate.normalized in fragment_normalized:
            return candidate

    best_match = None
    best_score = 0.0
    for candidate in candidates:
        score = token_overlap(fragment_normalized, candidate.normalized)
        if score > best_score:
            best_score = score
            best_match = candidate

    if best_match is not None and best_score >= threshold:
        return best_match
    if best_match is not None:
        logger.debug(
            "Best overlap %.2f below %.2f for fragment '%s'",
            best_score, threshold, fragment_normalized[:60],
        )
    return None


def find_sentence_timing_match(
    text: str,
    references: Sequence[SentenceReference],
) -> SentenceReference | None:
    """Pick the timed reference to seek to for an arbitrary piece of text.

    Only references with both endpoints are considered, and each is
    compared on its own ``original`` text normalized here. Priority: exact
    normalized match, then the highest overlap above
    ``SEEK_OVERLAP_THRESHOLD``, then the first containment match.
    """
    target = normalize_sentence(text)
    if not target or not references:
        return None

    overlap_match = None
    overlap_score = 0.0
    containment_match = None

    for reference in references:
        if not reference.has_timing:
            continue
        candidate = normalize_sentence(reference.original)
        if not candidate:
            continue
        if candidate == target:
            return reference

        score = token_overlap(target, candidate)
        if score > SEEK_OVERLAP_THRESHOLD and score > overlap_score:
            overlap_score = score
            overlap_match = reference

        if containment_match is None and (target in candidate or candidate in target):
            containment_match = reference

    return overlap_match or containment_match
