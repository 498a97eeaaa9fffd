"""Chat history endpoints."""

import asyncio

from fastapi import APIRouter, Depends, HTTPException, Query

from studybuddy.api.deps import get_app_settings, get_conversation_store
from studybuddy.core.auth import AuthContext, require_auth
from studybuddy.core.config import Settings
from studybuddy.core.logging import get_logger
from studybuddy.core.schemas_generation import ConversationKey
from studybuddy.db.chat_messages import ConversationStore

logger = get_logger(__name__)

router = APIRouter()


@router.get("/history/{subject_id}")
async def get_chat_history(
    subject_id: str,
    limit: int | None = Query(None, description="Maximum number of turns to return", ge=1, le=500),
    auth: AuthContext = Depends(require_auth),
    store: ConversationStore = Depends(get_conversation_store),
    settings: Settings = Depends(get_app_settings),
) -> dict:
    """
    Get the most recent turns of a subject's conversation, oldest first.

    Args:
        subject_id: Subject whose conversation to read
        limit: Maximum turns (defaults to CHAT_HISTORY_PAGE_LIMIT)

    Returns:
        Dict with messages array and count
    """
    page_limit = limit or settings.CHAT_HISTORY_PAGE_LIMIT
    key = ConversationKey(user_id=auth.user_id, subject_id=subject_id)
    try:
        turns = await asyncio.to_thread(store.list, key, page_limit)
    except Exception as e:
        logger.exception(f"Failed to load chat history for subject {subject_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch chat history") from e

    return {
        "messages": [
            {
                "role": turn.role.value,
                "content": turn.content,
                "timestamp": turn.timestamp.isoformat(),
            }
            for turn in turns
        ],
        "count": len(turns),
    }


@router.delete("/history/{subject_id}")
async def clear_chat_history(
    subject_id: str,
    auth: AuthContext = Depends(require_auth),
    store: ConversationStore = Depends(get_conversation_store),
) -> dict:
    """Delete every turn of a subject's conversation."""
    key = ConversationKey(user_id=auth.user_id, subject_id=subject_id)
    try:
        deleted = await asyncio.to_thread(store.clear, key)
    except Exception as e:
        logger.exception(f"Failed to clear chat history for subject {subject_id}")
        raise HTTPException(status_code=500, detail="Failed to clear chat history") from e

    return {"message": f"Cleared {deleted} messages", "deletedCount": deleted}


@router.get("/stats")
async def get_chat_stats(
    auth: AuthContext = Depends(require_auth),
    store: ConversationStore = Depends(get_conversation_store),
) -> dict:
    """Message and conversation totals for the current user."""
    try:
        stats = await asyncio.to_thread(store.stats, auth.user_id)
    except Exception as e:
        logger.exception(f"Failed to load chat stats for user {auth.user_id}")
        raise HTTPException(status_code=500, detail="Failed to fetch chat stats") from e

    return {
        "totalMessages": stats["total_messages"],
        "totalConversations": stats["total_conversations"],
    }
