"""API router for the Study Buddy endpoints."""

from fastapi import APIRouter

from studybuddy.api import ai, chat

router = APIRouter()

# Generation routes (chat, flashcards, video search terms)
router.include_router(ai.router, tags=["ai"])

# Chat history routes
router.include_router(chat.router, prefix="/chat", tags=["chat"])
