"""Generation endpoints: chat, flashcards and video search terms."""

import math

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from studybuddy.api.deps import get_pipeline
from studybuddy.chains._generation import GenerationPipeline
from studybuddy.chains.chat_with_notes import chat_with_notes
from studybuddy.chains.generate_flashcards import generate_flashcards
from studybuddy.chains.generate_search_terms import generate_search_terms
from studybuddy.core.auth import AuthContext, require_auth
from studybuddy.core.limits import (
    MAX_CHAT_MESSAGE_LENGTH,
    MAX_FLASHCARD_SET_NAME_LENGTH,
    MAX_SUBJECT_NAME_LENGTH,
)
from studybuddy.core.llm import (
    GenerationError,
    GenerationNotConfiguredError,
    RetriesExhaustedError,
    UpstreamGenerationError,
)
from studybuddy.core.llm_output import MalformedOutputError
from studybuddy.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


class ChatRequest(BaseModel):
    """Request to chat about a subject's notes."""

    model_config = ConfigDict(populate_by_name=True)

    subject_id: str = Field(..., alias="subjectId", min_length=1)
    message: str = Field(..., min_length=1, max_length=MAX_CHAT_MESSAGE_LENGTH)


class FlashcardGenerateRequest(BaseModel):
    """Request to generate and save a flashcard set."""

    model_config = ConfigDict(populate_by_name=True)

    subject_id: str = Field(..., alias="subjectId", min_length=1)
    name: str = Field(..., min_length=1, max_length=MAX_FLASHCARD_SET_NAME_LENGTH)
    description: str | None = None


class SearchTermsRequest(BaseModel):
    """Request to generate video search terms for a subject."""

    model_config = ConfigDict(populate_by_name=True)

    subject_id: str = Field(..., alias="subjectId", min_length=1)
    subject_name: str = Field(..., alias="subjectName", min_length=1, max_length=MAX_SUBJECT_NAME_LENGTH)


def generation_http_error(e: GenerationError, default_retry_after: float) -> HTTPException:
    """
    Map a generation failure to an HTTP error.

    Malformed output and upstream failures are both 502 but are told apart
    by the body; rate-limit exhaustion is 503 with a Retry-After hint.
    """
    if isinstance(e, MalformedOutputError):
        return HTTPException(
            status_code=502,
            detail={"message": "The AI response could not be used", "step": e.step},
        )
    if isinstance(e, RetriesExhaustedError):
        retry_after = e.retry_after_seconds if e.retry_after_seconds is not None else default_retry_after
        return HTTPException(
            status_code=503,
            detail={"message": "AI service is busy, please try again shortly", "attempts": e.attempts},
            headers={"Retry-After": str(max(1, math.ceil(retry_after)))},
        )
    if isinstance(e, UpstreamGenerationError):
        return HTTPException(
            status_code=502,
            detail={"message": "AI service error", "reason": e.reason},
        )
    if isinstance(e, GenerationNotConfiguredError):
        return HTTPException(status_code=503, detail=str(e))
    return HTTPException(status_code=500, detail="Generation failed")


@router.post("/ai/chat")
async def chat(
    request: ChatRequest,
    auth: AuthContext = Depends(require_auth),
    pipeline: GenerationPipeline = Depends(get_pipeline),
) -> dict:
    """
    Answer a chat message using the subject's notes.

    Returns:
        ``{"reply": str}``; a friendly reply when no notes are usable yet

    Raises:
        HTTPException 502: Upstream failure or unusable output
        HTTPException 503: Rate limited after all retries
    """
    try:
        result = await chat_with_notes(pipeline, auth.user_id, request.subject_id, request.message)
        return {"reply": result.reply}

    except GenerationError as e:
        raise generation_http_error(e, pipeline.settings.RATE_LIMIT_FALLBACK_SECONDS) from e
    except Exception as e:
        logger.exception(f"Chat failed for subject {request.subject_id}")
        raise HTTPException(status_code=500, detail="Failed to process chat message") from e


@router.post("/flashcards/generate", status_code=201)
async def generate_flashcard_set(
    request: FlashcardGenerateRequest,
    auth: AuthContext = Depends(require_auth),
    pipeline: GenerationPipeline = Depends(get_pipeline),
) -> dict:
    """
    Generate flashcards from the subject's notes and save them as a set.

    Returns:
        The created flashcard set

    Raises:
        HTTPException 400: No notes, or no extracted text yet
        HTTPException 502: Upstream failure or unusable output
        HTTPException 503: Rate limited after all retries
    """
    try:
        result = await generate_flashcards(
            pipeline,
            auth.user_id,
            request.subject_id,
            request.name,
            request.description,
        )
        if result.flashcard_set is None:
            raise HTTPException(status_code=400, detail=result.message)
        return result.flashcard_set

    except HTTPException:
        raise
    except GenerationError as e:
        raise generation_http_error(e, pipeline.settings.RATE_LIMIT_FALLBACK_SECONDS) from e
    except Exception as e:
        logger.exception(f"Flashcard generation failed for subject {request.subject_id}")
        raise HTTPException(status_code=500, detail="Failed to generate flashcards") from e


@router.post("/youtube/generate-search-terms")
async def generate_video_search_terms(
    request: SearchTermsRequest,
    auth: AuthContext = Depends(require_auth),
    pipeline: GenerationPipeline = Depends(get_pipeline),
) -> dict:
    """
    Generate video search terms for the subject's notes.

    Returns:
        ``{"searchTerms": [...], "combinedQuery": str}``
    """
    try:
        result = await generate_search_terms(
            pipeline, auth.user_id, request.subject_id, request.subject_name
        )
        return {
            "searchTerms": result.search_terms,
            "combinedQuery": result.combined_query,
        }

    except GenerationError as e:
        raise generation_http_error(e, pipeline.settings.RATE_LIMIT_FALLBACK_SECONDS) from e
    except Exception as e:
        logger.exception(f"Search-term generation failed for subject {request.subject_id}")
        raise HTTPException(status_code=500, detail="Failed to generate search terms") from e
