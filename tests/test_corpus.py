"""Tests for note aggregation, handle resolution and document fetching."""

import pytest

from studybuddy.context.corpus import NoteCorpusAggregator, build_corpus, document_header
from studybuddy.core.schemas_generation import MaterialStatus, SourceDocument
from studybuddy.db.document_store import DocumentFetchError, DocumentNotFoundError, DocumentStore
from studybuddy.db.notes import NoteRepository, is_usable_text_handle
from tests.fakes.fake_supabase import SUBJECT_ID, USER_ID


@pytest.fixture
def aggregator(fake_supabase, settings):
    return NoteCorpusAggregator(
        NoteRepository(fake_supabase),
        DocumentStore(fake_supabase, settings.NOTES_TEXT_BUCKET),
    )


@pytest.mark.parametrize(
    "handle,usable",
    [
        (None, False),
        ("", False),
        ("   ", False),
        ("placeholder://pending-blob-upload", False),
        ("https://x/PLACEHOLDER/file.txt", False),
        ("https://x.supabase.co/storage/v1/object/notes-text/u/s/f.txt", True),
        ("u/s/f.txt", True),
    ],
)
def test_is_usable_text_handle(handle, usable):
    assert is_usable_text_handle(handle) is usable


def test_object_path_resolution(fake_supabase):
    store = DocumentStore(fake_supabase, "notes-text")

    assert store.object_path("https://x.supabase.co/storage/v1/object/notes-text/u/s/f.txt") == "u/s/f.txt"
    assert store.object_path("https://acct.blob.core.windows.net/container/u/s/f%20one.txt") == "u/s/f one.txt"
    assert store.object_path("/u/s/f.txt") == "u/s/f.txt"


def test_fetch_missing_object_is_not_found(fake_supabase):
    store = DocumentStore(fake_supabase, "notes-text")

    with pytest.raises(DocumentNotFoundError):
        store.fetch("u/s/missing.txt")


def test_fetch_other_failure_is_fetch_error(fake_supabase):
    fake_supabase.put_object("notes-text", "u/s/broken.txt", ConnectionError("connection reset"))
    store = DocumentStore(fake_supabase, "notes-text")

    with pytest.raises(DocumentFetchError) as exc_info:
        store.fetch("u/s/broken.txt")
    assert not isinstance(exc_info.value, DocumentNotFoundError)
    assert "connection reset" in exc_info.value.reason


def test_build_corpus_length_invariant():
    docs = [
        SourceDocument(id="1", display_name="a.pdf", text="alpha", byte_length=5),
        SourceDocument(id="2", display_name="b.pdf", text="beta text", byte_length=9),
    ]

    corpus = build_corpus(docs, note_count=2)

    overhead = sum(len(document_header(d.display_name)) for d in docs) + len("\n\n") * (len(docs) - 1)
    assert corpus.total_length == sum(len(d.text) for d in docs) + overhead
    assert corpus.full_text == "\n--- From: a.pdf ---\nalpha\n\n\n--- From: b.pdf ---\nbeta text"
    assert corpus.document_count == 2
    assert corpus.document_lengths == {"1": 5, "2": 9}


@pytest.mark.asyncio
async def test_aggregate_concatenates_usable_notes(aggregator, seed_notes):
    seed_notes(("lecture1.pdf", "Cells are the unit of life."), ("lecture2.pdf", "Mitosis has phases."))

    corpus = await aggregator.aggregate(USER_ID, SUBJECT_ID)

    assert corpus.status == MaterialStatus.READY
    assert corpus.document_count == 2
    assert corpus.full_text.index("lecture1.pdf") < corpus.full_text.index("lecture2.pdf")
    assert "Cells are the unit of life." in corpus.full_text


@pytest.mark.asyncio
async def test_aggregate_skips_placeholders_and_failed_fetches(aggregator, seed_notes, fake_supabase):
    seed_notes(("good.pdf", "Good text."), ("pending.pdf", None))
    fake_supabase.add_note(USER_ID, SUBJECT_ID, "gone.pdf", "u/s/gone.txt")

    corpus = await aggregator.aggregate(USER_ID, SUBJECT_ID)

    assert corpus.note_count == 3
    assert [d.display_name for d in corpus.documents] == ["good.pdf"]
    assert "pending.pdf" not in corpus.full_text
    assert "gone.pdf" not in corpus.full_text


@pytest.mark.asyncio
async def test_aggregate_skips_blank_text(aggregator, seed_notes):
    seed_notes(("empty.pdf", "   \n"))

    corpus = await aggregator.aggregate(USER_ID, SUBJECT_ID)

    assert corpus.status == MaterialStatus.NO_TEXT
    assert corpus.full_text == ""


@pytest.mark.asyncio
async def test_aggregate_without_notes(aggregator):
    corpus = await aggregator.aggregate(USER_ID, SUBJECT_ID)

    assert corpus.status == MaterialStatus.NO_NOTES
    assert corpus.document_count == 0


@pytest.mark.asyncio
async def test_aggregate_is_scoped_to_subject(aggregator, seed_notes):
    seed_notes(("other.pdf", "Other subject text."), subject_id="subject-2")

    corpus = await aggregator.aggregate(USER_ID, SUBJECT_ID)

    assert corpus.status == MaterialStatus.NO_NOTES
