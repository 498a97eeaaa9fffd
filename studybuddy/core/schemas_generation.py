"""Data types flowing through the context assembly and generation pipeline.

Everything here except ``ConversationTurn`` lives for a single request.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union


class MaterialStatus(str, Enum):
    """Whether a subject has anything the model can be grounded on."""

    READY = "ready"
    NO_NOTES = "no_notes"
    NO_TEXT = "no_text"


class Role(str, Enum):
    """Message author role, shared by persisted turns and outgoing messages."""

    USER = "user"
    ASSISTANT = "assistant"
    SYSTEM = "system"


@dataclass(frozen=True)
class SourceDocument:
    """One note's extracted text, fetched from the document store."""

    id: str
    display_name: str
    text: str
    byte_length: int


@dataclass(frozen=True)
class Corpus:
    """All usable note text for one subject, concatenated with provenance headers."""

    full_text: str
    documents: tuple[SourceDocument, ...] = ()
    note_count: int = 0

    @property
    def total_length(self) -> int:
        return len(self.full_text)

    @property
    def document_count(self) -> int:
        return len(self.documents)

    @property
    def document_lengths(self) -> dict[str, int]:
        return {doc.id: len(doc.text) for doc in self.documents}

    @property
    def status(self) -> MaterialStatus:
        if self.note_count == 0:
            return MaterialStatus.NO_NOTES
        if not self.documents:
            return MaterialStatus.NO_TEXT
        return MaterialStatus.READY


@dataclass(frozen=True)
class ContextBundle:
    """Corpus text after budgeting."""

    text: str
    was_truncated: bool = False
    truncation_note: str = ""
    original_length: int = 0


@dataclass(frozen=True)
class ConversationKey:
    user_id: str
    subject_id: str


@dataclass(frozen=True)
class ConversationTurn:
    """A persisted chat turn. Never edited once appended."""

    key: ConversationKey
    role: Role
    content: str
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@dataclass(frozen=True)
class Message:
    role: Role
    content: str

    def as_dict(self) -> dict[str, str]:
        return {"role": self.role.value, "content": self.content}


@dataclass(frozen=True)
class GenerationRequest:
    """Ordered messages for one generation call."""

    messages: tuple[Message, ...]

    def as_payload(self) -> list[dict[str, str]]:
        return [message.as_dict() for message in self.messages]

    def __len__(self) -> int:
        return len(self.messages)


@dataclass(frozen=True)
class TokenUsage:
    prompt_tokens: int = 0
    completion_tokens: int = 0


@dataclass(frozen=True)
class Success:
    """The service answered. Text fields are as returned, possibly empty."""

    raw_text: str
    reasoning_text: str = ""
    refusal: str = ""
    model: str = ""
    usage: TokenUsage | None = None


@dataclass(frozen=True)
class RateLimited:
    """The service asked the caller to back off."""

    retry_after_seconds: float | None = None
    reason: str = ""


@dataclass(frozen=True)
class Fatal:
    """A non-retryable failure, or retries exhausted."""

    reason: str
    error: BaseException | None = None
    attempts: int = 1
    rate_limited: bool = False
    retry_after_seconds: float | None = None


GenerationOutcome = Union[Success, RateLimited, Fatal]

# A parsed record from a structured (JSON array) model response
Record = Any
