"""Configuration management for the Study Buddy generation service."""

from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load environment variables from .env file (only if accessible)
try:
    load_dotenv()
except (PermissionError, OSError):
    # In sandboxed environments, .env might not be accessible
    pass


# Fixed text inserted around sampled middle sections when a corpus is truncated.
MIDDLE_MARKER = "\n\n[... middle sections sampled ...]\n\n"
END_MARKER = "\n\n[... continuing to end ...]\n\n"
SAMPLE_SEPARATOR = "\n...\n"


@dataclass(frozen=True)
class BudgetProfile:
    """Character budget for one kind of generation task.

    A profile whose head and tail (plus marker overhead) would not fit in
    ``max_chars`` is refused here with ``ValueError``. That rules out the
    head-meets-tail case at construction time, so budgeting never needs to
    handle it and a truncated corpus is always shorter than the original.

    Attributes:
        max_chars: Corpus length above which truncation applies
        head_chars: Characters kept verbatim from the start
        tail_chars: Characters kept verbatim from the end
        mid_sample_chars: Total characters sampled from the middle span
        sample_count: Number of fixed-size middle samples
    """

    max_chars: int
    head_chars: int
    tail_chars: int
    mid_sample_chars: int
    sample_count: int = 3

    def __post_init__(self) -> None:
        for name in ("max_chars", "head_chars", "tail_chars", "mid_sample_chars"):
            if getattr(self, name) < 0:
                raise ValueError(f"{name} must not be negative")
        if self.sample_count < 1:
            raise ValueError("sample_count must be at least 1")
        if self.head_chars + self.tail_chars + self.marker_overhead > self.max_chars:
            raise ValueError(
                "head_chars + tail_chars plus marker overhead "
                f"({self.marker_overhead}) must fit within max_chars"
            )

    @property
    def marker_overhead(self) -> int:
        """Characters added by the truncation markers and sample separators."""
        return (
            len(MIDDLE_MARKER)
            + len(END_MARKER)
            + (self.sample_count - 1) * len(SAMPLE_SEPARATOR)
        )


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    # Supabase configuration (required)
    SUPABASE_URL: str = Field(..., description="Supabase project URL")
    SUPABASE_SERVICE_ROLE_KEY: str = Field(..., description="Supabase service role key")
    NOTES_TEXT_BUCKET: str = Field(
        default="notes-text", description="Storage bucket holding extracted note text"
    )

    # Hosted generation service
    AZURE_OPENAI_ENDPOINT: str | None = Field(default=None, description="Azure OpenAI endpoint")
    AZURE_OPENAI_API_KEY: str | None = Field(default=None, description="Azure OpenAI API key")
    AZURE_OPENAI_API_VERSION: str = Field(
        default="2024-12-01-preview", description="Azure OpenAI API version"
    )
    OPENAI_API_KEY: str | None = Field(
        default=None, description="OpenAI API key (used when no Azure endpoint is set)"
    )
    GENERATION_MODEL: str = Field(
        default="gpt-4o-mini", description="Model name or Azure deployment name"
    )

    # Environment
    STUDY_BUDDY_ENV: str = Field(default="dev", description="Environment: dev, staging, prod")

    # Rate-limit retry policy
    GENERATION_MAX_RETRIES: int = Field(default=3, ge=1, description="Max generation attempts")
    RATE_LIMIT_FALLBACK_SECONDS: float = Field(
        default=60.0, ge=0, description="Wait used when the service gives no retry-after hint"
    )
    RATE_LIMIT_CAP_SECONDS: float = Field(
        default=120.0, ge=0, description="Upper bound on any single rate-limit wait"
    )

    # Conversation history
    CHAT_HISTORY_LIMIT: int = Field(default=20, ge=0, description="Turns sent with a chat request")
    CHAT_HISTORY_PAGE_LIMIT: int = Field(
        default=50, ge=1, description="Default page size for the history endpoint"
    )

    # Chat: context budget
    CHAT_MAX_CONTEXT_CHARS: int = Field(default=40_000, description="Chat context budget")
    CHAT_HEAD_CHARS: int = Field(default=15_000, description="Chat head chars kept")
    CHAT_TAIL_CHARS: int = Field(default=15_000, description="Chat tail chars kept")
    CHAT_MID_SAMPLE_CHARS: int = Field(default=10_000, description="Chat middle sample chars")
    CHAT_MAX_COMPLETION_TOKENS: int = Field(default=4_000, description="Chat response limit")

    # Flashcards: context budget and output range
    FLASHCARD_MAX_CONTEXT_CHARS: int = Field(default=40_000, description="Flashcard context budget")
    FLASHCARD_HEAD_CHARS: int = Field(default=15_000, description="Flashcard head chars kept")
    FLASHCARD_TAIL_CHARS: int = Field(default=15_000, description="Flashcard tail chars kept")
    FLASHCARD_MID_SAMPLE_CHARS: int = Field(
        default=9_000, description="Flashcard middle sample chars"
    )
    FLASHCARD_MAX_COMPLETION_TOKENS: int = Field(
        default=8_000, description="Flashcard response limit (reasoning models need headroom)"
    )
    FLASHCARD_MIN_CARDS: int = Field(default=1, ge=1, description="Fewest acceptable cards")
    FLASHCARD_MAX_CARDS: int = Field(default=15, ge=1, description="Cards kept from one response")

    # Search terms: context budget and output cap
    SEARCH_TERMS_MAX_CONTEXT_CHARS: int = Field(
        default=20_000, description="Search-term context budget"
    )
    SEARCH_TERMS_HEAD_CHARS: int = Field(default=8_000, description="Search-term head chars kept")
    SEARCH_TERMS_TAIL_CHARS: int = Field(default=6_000, description="Search-term tail chars kept")
    SEARCH_TERMS_MID_SAMPLE_CHARS: int = Field(
        default=5_000, description="Search-term middle sample chars"
    )
    SEARCH_TERMS_MAX_COMPLETION_TOKENS: int = Field(
        default=4_000, description="Search-term response limit"
    )
    SEARCH_TERMS_MAX: int = Field(default=3, ge=1, description="Search terms kept")

    @property
    def chat_budget(self) -> BudgetProfile:
        return BudgetProfile(
            max_chars=self.CHAT_MAX_CONTEXT_CHARS,
            head_chars=self.CHAT_HEAD_CHARS,
            tail_chars=self.CHAT_TAIL_CHARS,
            mid_sample_chars=self.CHAT_MID_SAMPLE_CHARS,
        )

    @property
    def flashcard_budget(self) -> BudgetProfile:
        return BudgetProfile(
            max_chars=self.FLASHCARD_MAX_CONTEXT_CHARS,
            head_chars=self.FLASHCARD_HEAD_CHARS,
            tail_chars=self.FLASHCARD_TAIL_CHARS,
            mid_sample_chars=self.FLASHCARD_MID_SAMPLE_CHARS,
        )

    @property
    def search_terms_budget(self) -> BudgetProfile:
        return BudgetProfile(
            max_chars=self.SEARCH_TERMS_MAX_CONTEXT_CHARS,
            head_chars=self.SEARCH_TERMS_HEAD_CHARS,
            tail_chars=self.SEARCH_TERMS_TAIL_CHARS,
            mid_sample_chars=self.SEARCH_TERMS_MID_SAMPLE_CHARS,
            sample_count=1,
        )

    @property
    def uses_azure(self) -> bool:
        return bool(self.AZURE_OPENAI_ENDPOINT)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings instance

    Raises:
        ValidationError: If required environment variables are missing
    """
    return Settings()
