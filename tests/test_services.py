"""Tests for the tutor prompt service and the coach pipeline."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from speech_coach.models.feedback import FeedbackResponse
from speech_coach.models.transcript import RecognitionSegment, TranscriptionResult
from speech_coach.services import coach, tutor
from speech_coach.services.transcription import TranscriptionError


def _llm(response=None, error=None) -> MagicMock:
    client = MagicMock()
    client.provider = "openai"
    client.available.return_value = True
    client.generate_json = AsyncMock(return_value=response, side_effect=error)
    return client


class TestApplyPromptTemplate:
    def test_fills_placeholders(self):
        result = tutor.apply_prompt_template("{{ a }} and {{b}}", {"a": "x", "b": "y"})
        assert result == "x and y"

    def test_unknown_placeholders_are_blank(self):
        assert tutor.apply_prompt_template("[{{missing}}]", {}) == "[]"


class TestRequestFeedback:
    async def test_dummy_without_provider(self, paris_transcript):
        response = await tutor.request_feedback(paris_transcript, "English", "English")
        assert response.transcription == paris_transcript
        assert response.improved_text == paris_transcript
        assert response.feedback == []

    async def test_prompt_carries_transcript_and_languages(self, paris_transcript):
        client = _llm(FeedbackResponse(transcription=paris_transcript, improved_text="Better."))
        with patch.object(tutor, "get_llm_client", return_value=client):
            response = await tutor.request_feedback(paris_transcript, "French", "German")

        assert response.improved_text == "Better."
        kwargs = client.generate_json.call_args.kwargs
        assert paris_transcript in kwargs["user"]
        assert '"French"' in kwargs["user"]
        assert '"German"' in kwargs["user"]
        assert kwargs["response_model"] is FeedbackResponse

    async def test_llm_error_falls_back_to_dummy(self, paris_transcript):
        client = _llm(error=RuntimeError("rate limited"))
        with patch.object(tutor, "get_llm_client", return_value=client):
            response = await tutor.request_feedback(paris_transcript, "English", "English")
        assert response.improved_text == paris_transcript

    async def test_blank_transcript_skips_llm(self):
        client = _llm(FeedbackResponse())
        with patch.object(tutor, "get_llm_client", return_value=client):
            await tutor.request_feedback("   ", "English", "English")
        client.generate_json.assert_not_called()

    async def test_dummy_mode(self, paris_transcript):
        client = _llm(FeedbackResponse())
        with patch.object(tutor, "get_llm_client", return_value=client), patch.object(tutor, "DUMMY_MODE", True):
            await tutor.request_feedback(paris_transcript, "English", "English")
        client.generate_json.assert_not_called()


class TestAnalyzeTranscript:
    async def test_aligns_model_feedback(self, paris_transcript, paris_segments):
        response = FeedbackResponse(
            transcription="i go to paris last year it was very good",
            improved_text="I went to Paris last year. It was very good.",
            feedback=[{"original": "go to Paris", "improved": "went to Paris", "explanation": "past tense"}],
        )
        segments = [RecognitionSegment(**segment) for segment in paris_segments]
        with patch.object(coach, "request_feedback", AsyncMock(return_value=response)):
            result = await coach.analyze_transcript(paris_transcript, segments)

        assert result.transcription == paris_transcript
        assert len(result.feedback) == 1
        assert result.feedback[0].improved == "I went to Paris last year."
        assert (result.feedback[0].audio_start, result.feedback[0].audio_end) == (0.0, 2.0)
        assert [ref.has_timing for ref in result.sentence_timings] == [True, True]
        assert result.transcription_segments == segments

    async def test_missing_improved_text_uses_transcript(self, paris_transcript):
        with patch.object(coach, "request_feedback", AsyncMock(return_value=FeedbackResponse())):
            result = await coach.analyze_transcript(paris_transcript)
        assert result.improved_text == paris_transcript
        assert result.feedback == []
        assert all(not ref.has_timing for ref in result.sentence_timings)

    async def test_fragments_survive_missing_improved_text(self, paris_transcript, paris_segments):
        response = FeedbackResponse(
            improved_text="",
            feedback=[{"original": "go to Paris", "improved": "went to Paris", "explanation": "past tense"}],
        )
        segments = [RecognitionSegment(**segment) for segment in paris_segments]
        with patch.object(coach, "request_feedback", AsyncMock(return_value=response)):
            result = await coach.analyze_transcript(paris_transcript, segments, strategy="fragments")

        assert result.improved_text == paris_transcript
        assert len(result.feedback) == 1
        assert result.feedback[0].original == "I go to Paris last year."
        assert result.feedback[0].improved == "I went to Paris last year."

    async def test_full_text_strategy_falls_back_to_transcript(self, paris_transcript):
        response = FeedbackResponse(
            improved_text="",
            feedback=[{"original": "It was very good", "improved": "", "explanation": "Nice!"}],
        )
        with patch.object(coach, "request_feedback", AsyncMock(return_value=response)):
            result = await coach.analyze_transcript(paris_transcript, strategy="full_text")

        assert len(result.feedback) == 1
        assert result.feedback[0].improved == "It was very good."
        assert result.feedback[0].explanation == "Nice!"

    async def test_languages_default_from_config(self, paris_transcript):
        mock_request = AsyncMock(return_value=FeedbackResponse())
        with patch.object(coach, "request_feedback", mock_request):
            await coach.analyze_transcript(paris_transcript, native_lang="Spanish")
        mock_request.assert_called_once_with(paris_transcript, coach.DEFAULT_TARGET_LANG, "Spanish")


class TestAnalyzeRecording:
    async def test_transcribes_then_analyzes(self, paris_transcript, paris_segments):
        service = MagicMock()
        service.transcribe = AsyncMock(return_value=TranscriptionResult(
            text=paris_transcript,
            segments=[RecognitionSegment(**segment) for segment in paris_segments],
        ))
        with (
            patch.object(coach, "get_transcription_service", return_value=service),
            patch.object(coach, "request_feedback", AsyncMock(return_value=FeedbackResponse())),
        ):
            result = await coach.analyze_recording(b"audio", "clip.webm")

        service.transcribe.assert_called_once_with(b"audio", "clip.webm")
        assert result.transcription == paris_transcript
        assert len(result.transcription_segments) == 2

    async def test_transcription_error_propagates(self):
        service = MagicMock()
        service.transcribe = AsyncMock(side_effect=TranscriptionError("down"))
        with patch.object(coach, "get_transcription_service", return_value=service):
            with pytest.raises(TranscriptionError):
                await coach.analyze_recording(b"audio")
