"""Gather a subject's extracted note text into a single corpus."""

import asyncio
import logging

from studybuddy.core.logging import get_logger, log_with_context
from studybuddy.core.schemas_generation import Corpus, SourceDocument
from studybuddy.db.document_store import DocumentFetchError, DocumentStore
from studybuddy.db.notes import NoteRepository, is_usable_text_handle

logger = get_logger(__name__)

DOCUMENT_SEPARATOR = "\n\n"


def document_header(display_name: str) -> str:
    return f"\n--- From: {display_name} ---\n"


def build_corpus(documents: list[SourceDocument], note_count: int) -> Corpus:
    """Concatenate documents, each prefixed with a provenance header."""
    sections = [f"{document_header(doc.display_name)}{doc.text}" for doc in documents]
    return Corpus(
        full_text=DOCUMENT_SEPARATOR.join(sections),
        documents=tuple(documents),
        note_count=note_count,
    )


class NoteCorpusAggregator:
    """Pulls every usable extracted text for a (user, subject) pair.

    A document that fails to download is logged and skipped so one bad
    blob never fails the whole request.
    """

    def __init__(self, notes: NoteRepository, store: DocumentStore):
        self._notes = notes
        self._store = store

    async def aggregate(self, user_id: str, subject_id: str) -> Corpus:
        notes = await asyncio.to_thread(self._notes.list_for_subject, user_id, subject_id)

        documents: list[SourceDocument] = []
        for note in notes:
            handle = note.get("text_url")
            if not is_usable_text_handle(handle):
                continue

            document = await self._fetch_document(note, handle)
            if document is not None:
                documents.append(document)

        corpus = build_corpus(documents, note_count=len(notes))
        log_with_context(
            logger,
            logging.INFO,
            f"Aggregated {corpus.document_count}/{len(notes)} notes for subject {subject_id}",
            subject_id=subject_id,
            total_chars=corpus.total_length,
            status=corpus.status.value,
        )
        return corpus

    async def _fetch_document(self, note: dict, handle: str) -> SourceDocument | None:
        note_id = str(note.get("id", ""))
        display_name = note.get("file_name") or note_id or "untitled"
        try:
            raw = await asyncio.to_thread(self._store.fetch, handle)
        except DocumentFetchError as e:
            logger.warning(f"Skipping note {note_id} ({display_name}): {e.reason}")
            return None

        text = raw.decode("utf-8", errors="replace")
        if not text.strip():
            logger.debug(f"Note {note_id} ({display_name}) has no extracted text yet")
            return None

        return SourceDocument(
            id=note_id,
            display_name=display_name,
            text=text,
            byte_length=len(raw),
        )
