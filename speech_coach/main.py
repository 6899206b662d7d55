import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from speech_coach.routers import analysis
from speech_coach.services.llm import get_llm_client
from speech_coach.services.transcription import get_transcription_service

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting Speech Coach...")
    llm = get_llm_client()
    if not llm.available():
        logger.warning("No LLM provider configured; feedback requests return the transcript unchanged.")
    if not get_transcription_service().available():
        logger.warning("Transcription disabled: set OPENAI_API_KEY to analyze recordings.")
    yield
    logger.info("Speech Coach shut down")


app = FastAPI(
    title="Speech Coach",
    description="Sentence-level speaking feedback aligned to the learner's recording",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(analysis.router)


@app.get("/health")
async def health():
    return {
        "status": "ok",
        "llm_provider": get_llm_client().provider,
        "transcription": get_transcription_service().available(),
    }
