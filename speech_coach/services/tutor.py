import logging
import re

from speech_coach.config import DUMMY_MODE
from speech_coach.models.feedback import FeedbackResponse
from speech_coach.services.llm import get_llm_client

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a JSON-speaking API for a speaking coach.
You only output valid JSON matching the requested structure. Do not include markdown fencing."""

FEEDBACK_PROMPT = """Analyze the following speech transcription from a student practicing "{{targetLang}}".

Transcription: "{{transcription}}"
The student's native language for explanations is "{{nativeLang}}".

Provide comprehensive feedback following IELTS Speaking criteria:
1. "transcription": repeat the provided transcription exactly.
2. "improvedText": a polished version of the entire speech in {{targetLang}}.
3. "feedback": array of objects { "original", "improved", "explanation" } where "original" quotes the
   student's words, "improved" is the corrected wording, and "explanation" is in {{nativeLang}}.
4. "overallFeedback": object with keys taskResponse, cohesion, coherence, vocabulary, grammar
   (all in {{nativeLang}}).

Return ONLY valid JSON with those keys. Do not wrap in markdown."""

_PLACEHOLDER = re.compile(r"\{\{\s*(.+?)\s*\}\}")


def apply_prompt_template(template: str, values: dict[str, str]) -> str:
    """Fill ``{{name}}`` placeholders; unknown names become empty strings."""
    def _replace(match: re.Match) -> str:
        value = values.get(match.group(1).strip())
        return value if isinstance(value, str) else ""

    return _PLACEHOLDER.sub(_replace, template)


def _dummy_feedback(transcript: str) -> FeedbackResponse:
    return FeedbackResponse(transcription=transcript, improved_text=transcript, feedback=[])


async def request_feedback(
    transcript: str,
    target_lang: str,
    native_lang: str,
    prompt_template: str = FEEDBACK_PROMPT,
) -> FeedbackResponse:
    """Ask the language model for corrections of a learner's transcript."""
    client = get_llm_client()
    if DUMMY_MODE or not client.available() or not transcript.strip():
        return _dummy_feedback(transcript)

    prompt = apply_prompt_template(prompt_template, {
        "targetLang": target_lang,
        "nativeLang": native_lang,
        "transcription": transcript,
    })

    try:
        response = await client.generate_json(
            system=SYSTEM_PROMPT,
            user=prompt,
            response_model=FeedbackResponse,
            tier="standard",
        )
    except Exception as e:
        logger.error("Feedback request failed: %s", e)
        return _dummy_feedback(transcript)

    logger.info("Received %d feedback fragments from %s", len(response.feedback), client.provider)
    return response
