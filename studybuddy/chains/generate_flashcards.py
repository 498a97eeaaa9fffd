"""Generate a flashcard set from a subject's notes."""

import asyncio
from dataclasses import dataclass, field
from typing import Any

from studybuddy.chains._generation import GenerationPipeline
from studybuddy.core.limits import MAX_FLASHCARD_BACK_LENGTH, MAX_FLASHCARD_FRONT_LENGTH
from studybuddy.core.llm_output import conforms_to
from studybuddy.core.logging import get_logger
from studybuddy.core.schemas_flashcards import Flashcard
from studybuddy.core.schemas_generation import ContextBundle, MaterialStatus

logger = get_logger(__name__)

NO_NOTES_MESSAGE = "No notes found for this subject. Please upload notes first."
NO_TEXT_MESSAGE = "No processed notes found. Please extract text from your notes first."

SYSTEM_PROMPT = "You are a helpful tutor creating study flashcards. Always respond with valid JSON only."

USER_PROMPT = """You are creating flashcards to help a student study. {focus}

Create 10-15 flashcards based on the following notes. Each flashcard should have:
- A clear, concise question or prompt on the FRONT
- A complete, helpful answer on the BACK

Return ONLY a valid JSON array in this exact format:
[
  {{"front": "Question or term", "back": "Answer or definition"}},
  {{"front": "Question or term", "back": "Answer or definition"}}
]

Here are the student's notes:
{context}
{truncation_note}

Return ONLY the JSON array, no other text."""

is_flashcard = conforms_to(Flashcard)


@dataclass
class FlashcardResult:
    material_status: MaterialStatus
    flashcard_set: dict[str, Any] | None = None
    flashcards: list[dict[str, str]] = field(default_factory=list)
    message: str = ""


def focus_instruction(description: str | None) -> str:
    if description and description.strip():
        return f"Focus specifically on: {description.strip()}"
    return "Cover the main concepts from the notes"


def build_flashcard_prompt(bundle: ContextBundle, description: str | None) -> str:
    return USER_PROMPT.format(
        focus=focus_instruction(description),
        context=bundle.text,
        truncation_note=bundle.truncation_note,
    )


def normalize_flashcard(record: dict[str, Any]) -> dict[str, str]:
    card = Flashcard.model_validate(record)
    return {
        "front": card.front[:MAX_FLASHCARD_FRONT_LENGTH],
        "back": card.back[:MAX_FLASHCARD_BACK_LENGTH],
    }


async def generate_flashcards(
    pipeline: GenerationPipeline,
    user_id: str,
    subject_id: str,
    name: str,
    description: str | None = None,
) -> FlashcardResult:
    """
    Generate flashcards from a subject's notes and save them as a named set.

    Args:
        pipeline: Shared generation components
        user_id: Authenticated user
        subject_id: Subject whose notes the cards come from
        name: Name of the new flashcard set
        description: Optional focus for the cards; stored on the set

    Returns:
        FlashcardResult; ``flashcard_set`` is None when the subject has no
        usable notes, with ``message`` explaining why

    Raises:
        MalformedOutputError: If the response holds no usable flashcards
        RetriesExhaustedError: If the service stayed rate limited
        UpstreamGenerationError: On any other generation failure
    """
    settings = pipeline.settings

    corpus, bundle = await pipeline.load_context(user_id, subject_id, settings.flashcard_budget)
    if bundle is None:
        message = (
            NO_NOTES_MESSAGE if corpus.status == MaterialStatus.NO_NOTES else NO_TEXT_MESSAGE
        )
        logger.info(f"Flashcards for subject {subject_id} skipped: {corpus.status.value}")
        return FlashcardResult(material_status=corpus.status, message=message)

    # Single-shot prompt: no conversation history
    request = pipeline.assembler.assemble(
        SYSTEM_PROMPT, [], build_flashcard_prompt(bundle, description)
    )
    success = await pipeline.invoker.generate(
        request,
        max_completion_tokens=settings.FLASHCARD_MAX_COMPLETION_TOKENS,
        workflow="flashcards",
    )
    records = pipeline.extractor.records(
        success.raw_text or success.reasoning_text,
        is_flashcard,
        min_records=settings.FLASHCARD_MIN_CARDS,
        max_records=settings.FLASHCARD_MAX_CARDS,
    )
    flashcards = [normalize_flashcard(record) for record in records]

    flashcard_set = await asyncio.to_thread(
        pipeline.flashcard_sets.create,
        user_id,
        subject_id,
        name,
        flashcards,
        description,
    )
    logger.info(f"Generated {len(flashcards)} flashcards for subject {subject_id}")

    return FlashcardResult(
        material_status=corpus.status,
        flashcard_set=flashcard_set,
        flashcards=flashcards,
    )
