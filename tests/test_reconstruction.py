"""Tests for rebuilding complete improved sentences from partial corrections."""

from speech_coach.services.reconstruction import (
    build_improved_sentence,
    extract_improved_sentence,
    is_likely_full_sentence,
    replace_fragment_within_sentence,
)
from speech_coach.services.text_matching import ensure_sentence_ending

TRANSCRIPT = "I go to Paris last year. It was very good."
IMPROVED = "I went to Paris last year. It was really good."


class TestReplaceFragmentWithinSentence:
    def test_case_insensitive_replace(self):
        result = replace_fragment_within_sentence("I go to Paris last year.", "GO TO paris", "went to Paris")
        assert result == "I went to Paris last year."

    def test_fragment_not_found(self):
        assert replace_fragment_within_sentence("It was good.", "bad", "great") == "It was good."

    def test_regex_characters_are_literal(self):
        result = replace_fragment_within_sentence("Is it 3.5 (approx)?", "3.5 (approx)", "about 3.5")
        assert result == "Is it about 3.5?"

    def test_replacement_is_not_a_template(self):
        assert replace_fragment_within_sentence("I go home.", "go", r"went\1") == r"I went\1 home."

    def test_only_first_occurrence(self):
        assert replace_fragment_within_sentence("go go go", "go", "went") == "went go go"

    def test_empty_fragment_or_replacement(self):
        assert replace_fragment_within_sentence("I go home.", "", "went") == "I go home."
        assert replace_fragment_within_sentence("I go home.", "go", "  ") == "I go home."


class TestIsLikelyFullSentence:
    def test_long_enough_and_terminated(self):
        assert is_likely_full_sentence("I went to Paris.", 6) is True

    def test_too_short(self):
        assert is_likely_full_sentence("went to Paris.", 6) is False

    def test_missing_terminator(self):
        assert is_likely_full_sentence("I went to Paris last year", 6) is False

    def test_empty(self):
        assert is_likely_full_sentence("", 5) is False


class TestBuildImprovedSentence:
    def test_substitutes_partial_correction(self):
        result = build_improved_sentence("I go to Paris last year.", "go to Paris", "went to Paris last year")
        assert "went to Paris last year" in result
        assert result.startswith("I went to Paris")
        assert result.endswith(".")

    def test_full_sentence_correction_is_used_as_is(self):
        result = build_improved_sentence("I go to Paris last year.", "go to Paris", "I went to Paris last year.")
        assert result == "I went to Paris last year."

    def test_unterminated_rebuild_gets_period(self):
        assert build_improved_sentence("I go to Paris", "go", "went") == "I went to Paris."

    def test_fragment_missing_falls_back_to_improved(self):
        assert build_improved_sentence("It was very good.", "was bad", "was great") == "was great."

    def test_fragment_missing_and_no_improvement(self):
        assert build_improved_sentence("It was very good.", "xyz", "") == "It was very good."

    def test_no_resolved_sentence(self):
        assert build_improved_sentence("", "go to Paris", "went to Paris") == "went to Paris."
        assert build_improved_sentence("", "", "") == ""

    def test_identical_inputs_are_stable(self):
        for sentence in ["I go to Paris last year.", "It was very good", "Wait... what?!"]:
            assert build_improved_sentence(sentence, sentence, sentence) == ensure_sentence_ending(sentence, sentence)


class TestExtractImprovedSentence:
    def test_same_sentence_count_uses_position(self):
        assert extract_improved_sentence("I go to Paris last year.", TRANSCRIPT, IMPROVED) == "I went to Paris last year."
        assert extract_improved_sentence("It was very good.", TRANSCRIPT, IMPROVED) == "It was really good."

    def test_located_by_overlap(self):
        result = extract_improved_sentence("I go to Paris last years.", TRANSCRIPT, IMPROVED)
        assert result == "I went to Paris last year."

    def test_different_sentence_count_uses_overlap_only(self):
        improved = "I went to Paris last year and it was really good."
        assert extract_improved_sentence("I go to Paris last year.", TRANSCRIPT, improved) == improved
        assert extract_improved_sentence("It was very good.", TRANSCRIPT, improved) is None

    def test_sentence_not_in_transcript(self):
        assert extract_improved_sentence("Completely unrelated words here.", TRANSCRIPT, IMPROVED) is None

    def test_missing_inputs(self):
        assert extract_improved_sentence("It was very good.", TRANSCRIPT, "") is None
        assert extract_improved_sentence("It was very good.", "", IMPROVED) is None
        assert extract_improved_sentence("", TRANSCRIPT, IMPROVED) is None
