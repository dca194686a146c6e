"""FastAPI surface for the emma-chat function."""
from __future__ import annotations

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from emma_chat.config import get_settings
from emma_chat.orchestrator import LLMCall, handle_chat
from emma_chat.prompts import apology
from emma_chat.schemas import ChatRequest, Err

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

GENERIC_ERROR = "Failed to process message"

app = FastAPI(title=settings.app_name)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["POST", "GET", "OPTIONS"],
    allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
)


def _failure(language: str | None) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": GENERIC_ERROR, "response": apology(language)})


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s", request.url.path)
    return _failure(None)


def get_llm_call() -> LLMCall | None:
    """Model boundary for the endpoint; None means the configured OpenAI call."""
    return None


@app.post("/")
@app.post("/emma-chat")
def emma_chat(request: ChatRequest, llm_call: LLMCall | None = Depends(get_llm_call)) -> JSONResponse:
    """One chat turn. Upstream failures come back as 500 with an apology; history stays with the client."""
    result = handle_chat(request, llm_call=llm_call)
    if isinstance(result, Err):
        return _failure(request.language)
    return JSONResponse(content=result.value.to_wire())


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok", "model": settings.model}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("emma_chat.app:app", host="0.0.0.0", port=8080)
