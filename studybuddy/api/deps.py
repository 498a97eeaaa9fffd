"""Shared FastAPI dependencies."""

from functools import lru_cache

from fastapi import HTTPException

from studybuddy.chains._generation import GenerationPipeline, build_generation_pipeline
from studybuddy.core.config import Settings, get_settings
from studybuddy.core.llm import GenerationNotConfiguredError
from studybuddy.core.logging import get_logger
from studybuddy.db.chat_messages import ConversationStore
from studybuddy.db.supabase_client import get_supabase

logger = get_logger(__name__)


def get_app_settings() -> Settings:
    """Settings for route handlers."""
    return get_settings()


@lru_cache(maxsize=1)
def _cached_pipeline() -> GenerationPipeline:
    return build_generation_pipeline(get_settings(), get_supabase())


def get_pipeline() -> GenerationPipeline:
    """Process-wide generation pipeline. Raises 503 when generation is not configured."""
    try:
        return _cached_pipeline()
    except GenerationNotConfiguredError as e:
        logger.error(f"Generation service not configured: {e}")
        raise HTTPException(status_code=503, detail=str(e)) from e


def get_conversation_store() -> ConversationStore:
    return ConversationStore(get_supabase())
