"""Pytest configuration and fixtures."""

import os

import pytest

from tests.fakes.fake_supabase import SUBJECT_ID, USER_ID, FakeSupabase


@pytest.fixture(scope="session", autouse=True)
def setup_test_env():
    """Set up test environment variables."""
    os.environ["SUPABASE_URL"] = "https://test.supabase.co"
    os.environ["SUPABASE_SERVICE_ROLE_KEY"] = "test-key"
    os.environ["OPENAI_API_KEY"] = "test-openai-key"
    os.environ["STUDY_BUDDY_ENV"] = "test"


@pytest.fixture
def settings():
    """Explicit settings object, independent of any .env file."""
    from studybuddy.core.config import Settings

    return Settings(
        SUPABASE_URL="https://test.supabase.co",
        SUPABASE_SERVICE_ROLE_KEY="test-key",
        OPENAI_API_KEY="test-openai-key",
        AZURE_OPENAI_ENDPOINT=None,
    )


@pytest.fixture
def fake_supabase():
    return FakeSupabase()


@pytest.fixture
def sleeps():
    """Records backoff waits instead of sleeping."""
    return []


@pytest.fixture
def fake_sleep(sleeps):
    async def _sleep(seconds: float) -> None:
        sleeps.append(seconds)

    return _sleep


@pytest.fixture
def make_pipeline(settings, fake_supabase, fake_sleep):
    """Build a pipeline over the fake Supabase with a scripted service."""
    from studybuddy.chains._generation import build_generation_pipeline

    def _make(service):
        return build_generation_pipeline(settings, fake_supabase, service=service, sleep=fake_sleep)

    return _make


@pytest.fixture
def seed_notes(fake_supabase, settings):
    """Seed notes for USER_ID/SUBJECT_ID. Each item is (file_name, text or None)."""

    def _seed(*notes, subject_id=SUBJECT_ID, user_id=USER_ID):
        for index, (file_name, text) in enumerate(notes):
            if text is None:
                fake_supabase.add_note(user_id, subject_id, file_name, "placeholder://pending-blob-upload")
                continue
            path = f"{user_id}/{subject_id}/{file_name}.txt"
            fake_supabase.add_note(
                user_id,
                subject_id,
                file_name,
                f"https://test.supabase.co/storage/v1/object/{settings.NOTES_TEXT_BUCKET}/{path}",
                uploaded_at=f"2024-01-01T00:00:{index:02d}+00:00",
            )
            fake_supabase.put_object(settings.NOTES_TEXT_BUCKET, path, text.encode("utf-8"))

    return _seed
