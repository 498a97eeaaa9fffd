"""Conversational Q&A grounded in a subject's notes."""

import asyncio
from dataclasses import dataclass

from studybuddy.chains._generation import GenerationPipeline
from studybuddy.core.logging import get_logger
from studybuddy.core.schemas_generation import (
    ContextBundle,
    ConversationKey,
    ConversationTurn,
    MaterialStatus,
    Role,
)

logger = get_logger(__name__)

NO_NOTES_REPLY = (
    "You don't have any notes uploaded for this subject yet. Please upload some PDF notes "
    "first, and I'll be able to help you study!"
)
NO_TEXT_REPLY = (
    "Your notes are still being processed for text extraction. Please try triggering text "
    "extraction first, or wait a moment and try again."
)

SYSTEM_PROMPT = """You are **The Study Buddy**, a friendly AI tutor. Your job is to help the user understand their class material using the notes and PDF text provided below.

RULES TO FOLLOW:
1. Introduce yourself as The Study Buddy ONLY if you haven't already in this conversation.
2. Keep your answers short, clear, and friendly. Never ramble.
3. End your response with a question to keep the conversation going.
4. Avoid diagrams or complex visual layouts.
5. Answer from the provided notes first, quoting the exact text when it helps.
   Example: "In your notes it says, 'photosynthesis occurs in the chloroplast,' which means..."
6. Do not invent facts outside the notes unless the user explicitly asks for general knowledge.
7. Break explanations into simple steps, but stay concise.
8. If the question is unclear, ask a short clarifying question.
9. Stay encouraging and conversational. You are here to help, not lecture.

Here are the student's notes:
{context}
{truncation_note}

Now begin acting as The Study Buddy."""


@dataclass
class ChatResult:
    reply: str
    material_status: MaterialStatus
    was_truncated: bool = False


def missing_material_reply(status: MaterialStatus) -> str:
    return NO_NOTES_REPLY if status == MaterialStatus.NO_NOTES else NO_TEXT_REPLY


def build_system_prompt(bundle: ContextBundle) -> str:
    return SYSTEM_PROMPT.format(
        context=bundle.text,
        truncation_note=bundle.truncation_note,
    )


async def chat_with_notes(
    pipeline: GenerationPipeline,
    user_id: str,
    subject_id: str,
    message: str,
) -> ChatResult:
    """
    Answer one chat message using the subject's notes and recent history.

    When the subject has no usable notes a fixed reply is returned and the
    generation service is not called.

    Args:
        pipeline: Shared generation components
        user_id: Authenticated user
        subject_id: Subject whose notes ground the answer
        message: The new user message

    Returns:
        ChatResult with the reply text

    Raises:
        RetriesExhaustedError: If the service stayed rate limited
        UpstreamGenerationError: On any other generation failure
    """
    settings = pipeline.settings
    key = ConversationKey(user_id=user_id, subject_id=subject_id)
    user_turn = ConversationTurn(key=key, role=Role.USER, content=message)

    corpus, bundle = await pipeline.load_context(user_id, subject_id, settings.chat_budget)
    if bundle is None:
        logger.info(f"Chat for subject {subject_id} has no usable notes ({corpus.status.value})")
        return ChatResult(
            reply=missing_material_reply(corpus.status),
            material_status=corpus.status,
        )

    history = await asyncio.to_thread(
        pipeline.conversations.list, key, settings.CHAT_HISTORY_LIMIT
    )
    request = pipeline.assembler.assemble(build_system_prompt(bundle), history, message)
    logger.info(
        f"Chat request for subject {subject_id}: {len(history)} history turns, "
        f"{len(bundle.text)} context chars"
    )

    success = await pipeline.invoker.generate(
        request,
        max_completion_tokens=settings.CHAT_MAX_COMPLETION_TOKENS,
        workflow="chat",
    )
    reply = pipeline.extractor.reply(success)

    await _save_exchange(pipeline, user_turn, reply)

    return ChatResult(
        reply=reply,
        material_status=corpus.status,
        was_truncated=bundle.was_truncated,
    )


async def _save_exchange(pipeline: GenerationPipeline, user_turn: ConversationTurn, reply: str) -> None:
    assistant_turn = ConversationTurn(key=user_turn.key, role=Role.ASSISTANT, content=reply)
    for turn in (user_turn, assistant_turn):
        try:
            await asyncio.to_thread(pipeline.conversations.append, turn)
        except Exception as e:
            # A failed history write never fails the reply
            logger.error(f"Failed to save {turn.role.value} turn: {e}")
