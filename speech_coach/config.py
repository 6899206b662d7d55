import os

from dotenv import load_dotenv

load_dotenv()

OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")

# LLM configuration
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "auto")
LLM_DEFAULT_TIER = os.getenv("LLM_DEFAULT_TIER", "fast")
LLM_MODEL_FAST = os.getenv("LLM_MODEL_FAST", "")
LLM_MODEL_STANDARD = os.getenv("LLM_MODEL_STANDARD", "")
LLM_MODEL_HIGH = os.getenv("LLM_MODEL_HIGH", "")

# Speech recognition (OpenAI audio transcription endpoint)
TRANSCRIPTION_MODEL = os.getenv("TRANSCRIPTION_MODEL", "whisper-1")
TRANSCRIPTION_LANGUAGE = os.getenv("TRANSCRIPTION_LANGUAGE", "")

# Learner defaults when a request leaves them out
DEFAULT_TARGET_LANG = os.getenv("DEFAULT_TARGET_LANG", "English")
DEFAULT_NATIVE_LANG = os.getenv("DEFAULT_NATIVE_LANG", "English")

# "fragments" resolves model fragments to transcript sentences,
# "full_text" pairs transcript and improved text sentence by sentence
FEEDBACK_STRATEGY = os.getenv("FEEDBACK_STRATEGY", "fragments").lower()

# Demo/Debug mode (explicit)
DUMMY_MODE = os.getenv("DUMMY_MODE", "false").lower() in ("1", "true", "yes", "on")
