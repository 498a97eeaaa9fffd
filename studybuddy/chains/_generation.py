"""Shared wiring for the generation chains.

Chat, flashcard and search-term generation all run the same stages
(aggregate -> budget -> assemble -> invoke -> extract). The components are
built once from ``Settings`` and handed to each chain as a
``GenerationPipeline``.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from supabase import Client

from studybuddy.context.budget import ContextBudgeter
from studybuddy.context.corpus import NoteCorpusAggregator
from studybuddy.context.prompt_assembler import PromptAssembler
from studybuddy.core.config import BudgetProfile, Settings
from studybuddy.core.llm import (
    GenerationService,
    OpenAIGenerationService,
    ResilientInvoker,
    create_generation_client,
)
from studybuddy.core.llm_output import ResponseExtractor, build_repair_rules
from studybuddy.core.llm_usage import UsageRecorder
from studybuddy.core.schemas_generation import ContextBundle, Corpus
from studybuddy.db.chat_messages import ConversationStore
from studybuddy.db.document_store import DocumentStore
from studybuddy.db.flashcard_sets import FlashcardSetRepository
from studybuddy.db.notes import NoteRepository


@dataclass
class GenerationPipeline:
    settings: Settings
    aggregator: NoteCorpusAggregator
    budgeter: ContextBudgeter
    assembler: PromptAssembler
    invoker: ResilientInvoker
    extractor: ResponseExtractor
    term_extractor: ResponseExtractor
    conversations: ConversationStore
    flashcard_sets: FlashcardSetRepository

    async def load_context(
        self, user_id: str, subject_id: str, profile: BudgetProfile
    ) -> tuple[Corpus, ContextBundle | None]:
        """
        Aggregate a subject's notes and fit them to ``profile``.

        Returns:
            The corpus, and the budgeted bundle or None when the subject has
            no usable material (check ``corpus.status``)
        """
        corpus = await self.aggregator.aggregate(user_id, subject_id)
        if not corpus.documents:
            return corpus, None
        return corpus, self.budgeter.budget(corpus, profile)


def build_generation_pipeline(
    settings: Settings,
    client: Client,
    service: GenerationService | None = None,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> GenerationPipeline:
    """
    Construct every pipeline component from one settings object.

    Args:
        settings: Application settings
        client: Supabase client used for notes, storage and persistence
        service: Generation service; built from settings when omitted
        sleep: Awaitable sleep used for rate-limit backoff

    Raises:
        GenerationNotConfiguredError: If no service is given and no
            credentials are configured
    """
    if service is None:
        service = OpenAIGenerationService(
            create_generation_client(settings), settings.GENERATION_MODEL
        )

    usage_recorder = UsageRecorder(
        client,
        provider="azure_openai" if settings.uses_azure else "openai",
        default_model=settings.GENERATION_MODEL,
    )

    return GenerationPipeline(
        settings=settings,
        aggregator=NoteCorpusAggregator(
            NoteRepository(client),
            DocumentStore(client, settings.NOTES_TEXT_BUCKET),
        ),
        budgeter=ContextBudgeter(),
        assembler=PromptAssembler(),
        invoker=ResilientInvoker.from_settings(
            service, settings, sleep=sleep, usage_logger=usage_recorder
        ),
        extractor=ResponseExtractor(),
        # Arrays of plain strings: only the key-independent repairs apply
        term_extractor=ResponseExtractor(build_repair_rules(keys=())),
        conversations=ConversationStore(client),
        flashcard_sets=FlashcardSetRepository(client),
    )
