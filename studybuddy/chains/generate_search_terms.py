"""Generate video search terms for a subject's notes."""

from dataclasses import dataclass

from studybuddy.chains._generation import GenerationPipeline
from studybuddy.core.llm_output import MalformedOutputError, non_empty_string
from studybuddy.core.logging import get_logger
from studybuddy.core.schemas_generation import ContextBundle, MaterialStatus

logger = get_logger(__name__)

SYSTEM_PROMPT = """You are an AI that analyzes educational content and generates YouTube search queries.

Analyze these notes and identify the {count} most important educational topics that would have good YouTube tutorials or lectures.

Rules:
- Return ONLY a JSON array with {count} search terms
- Each term should be 3-6 words and include educational keywords like "tutorial", "explained", "introduction to", "lecture"
- Make terms SPECIFIC and SEARCHABLE (e.g., "introduction to Jungian archetypes" instead of just "Jungian Archetypes")
- Focus on concepts that are commonly taught and have educational videos
- NO subject names, NO markdown, ONLY the JSON array

Good examples:
["introduction to mitosis biology", "photosynthesis explained", "cell division tutorial"]

Bad examples:
["Biology", "Science Concepts", "Chapter 3"]

Course notes:
{context}
{truncation_note}"""

USER_PROMPT = (
    "Generate {count} YouTube search terms for finding educational videos about the main "
    "topics in these {subject_name} notes. Return ONLY a JSON array of strings."
)


@dataclass
class SearchTermsResult:
    search_terms: list[str]
    material_status: MaterialStatus
    used_fallback: bool = False

    @property
    def combined_query(self) -> str:
        return self.search_terms[0] if self.search_terms else ""


def build_system_prompt(bundle: ContextBundle, count: int) -> str:
    return SYSTEM_PROMPT.format(
        count=count,
        context=bundle.text,
        truncation_note=bundle.truncation_note,
    )


async def generate_search_terms(
    pipeline: GenerationPipeline,
    user_id: str,
    subject_id: str,
    subject_name: str,
) -> SearchTermsResult:
    """
    Turn a subject's notes into a few searchable video queries.

    Never fails on missing or malformed material: without notes the subject
    name is used, and an unusable response falls back to
    ``"<subject> tutorial"``.

    Raises:
        RetriesExhaustedError: If the service stayed rate limited
        UpstreamGenerationError: On any other generation failure
    """
    settings = pipeline.settings
    count = settings.SEARCH_TERMS_MAX

    corpus, bundle = await pipeline.load_context(user_id, subject_id, settings.search_terms_budget)
    if bundle is None:
        logger.info(f"Search terms for subject {subject_id} use the subject name ({corpus.status.value})")
        return SearchTermsResult(
            search_terms=[subject_name],
            material_status=corpus.status,
            used_fallback=True,
        )

    request = pipeline.assembler.assemble(
        build_system_prompt(bundle, count),
        [],
        USER_PROMPT.format(count=count, subject_name=subject_name),
    )
    success = await pipeline.invoker.generate(
        request,
        max_completion_tokens=settings.SEARCH_TERMS_MAX_COMPLETION_TOKENS,
        workflow="search_terms",
    )

    raw_text = success.raw_text or success.reasoning_text
    if not raw_text.strip():
        logger.warning("Search-term generation returned an empty response, using subject name")
        return SearchTermsResult(
            search_terms=[subject_name],
            material_status=corpus.status,
            used_fallback=True,
        )

    try:
        terms = pipeline.term_extractor.records(raw_text, non_empty_string, max_records=count)
    except MalformedOutputError as e:
        logger.warning(f"Search-term output unusable at {e.step}, using fallback term")
        return SearchTermsResult(
            search_terms=[f"{subject_name} tutorial"],
            material_status=corpus.status,
            used_fallback=True,
        )

    return SearchTermsResult(
        search_terms=[term.strip() for term in terms],
        material_status=corpus.status,
    )
