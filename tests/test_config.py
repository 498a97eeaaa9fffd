"""Tests for settings and budget profiles."""

import pytest
from pydantic import ValidationError

from studybuddy.core.config import BudgetProfile, Settings


def test_defaults(settings):
    assert settings.GENERATION_MAX_RETRIES == 3
    assert settings.RATE_LIMIT_FALLBACK_SECONDS == 60.0
    assert settings.RATE_LIMIT_CAP_SECONDS == 120.0
    assert settings.CHAT_HISTORY_LIMIT == 20
    assert settings.FLASHCARD_MAX_CARDS == 15
    assert settings.uses_azure is False


def test_budget_profiles_are_valid(settings):
    chat = settings.chat_budget
    assert (chat.max_chars, chat.head_chars, chat.tail_chars, chat.mid_sample_chars) == (
        40_000,
        15_000,
        15_000,
        10_000,
    )
    assert settings.flashcard_budget.mid_sample_chars == 9_000
    assert settings.search_terms_budget.sample_count == 1


def test_invalid_budget_surfaces_on_access(settings):
    broken = settings.model_copy(update={"CHAT_HEAD_CHARS": 30_000})

    with pytest.raises(ValueError):
        broken.chat_budget


def test_settings_read_environment(monkeypatch):
    monkeypatch.setenv("SUPABASE_URL", "https://env.supabase.co")
    monkeypatch.setenv("SUPABASE_SERVICE_ROLE_KEY", "env-key")
    monkeypatch.setenv("RATE_LIMIT_FALLBACK_SECONDS", "15")
    monkeypatch.setenv("AZURE_OPENAI_ENDPOINT", "https://example.openai.azure.com")

    settings = Settings()

    assert settings.RATE_LIMIT_FALLBACK_SECONDS == 15.0
    assert settings.uses_azure is True


def test_settings_reject_zero_retries():
    with pytest.raises(ValidationError):
        Settings(SUPABASE_URL="u", SUPABASE_SERVICE_ROLE_KEY="k", GENERATION_MAX_RETRIES=0)


def test_marker_overhead_counts_separators():
    one = BudgetProfile(max_chars=1_000, head_chars=0, tail_chars=0, mid_sample_chars=0, sample_count=1)
    three = BudgetProfile(max_chars=1_000, head_chars=0, tail_chars=0, mid_sample_chars=0, sample_count=3)

    assert three.marker_overhead - one.marker_overhead == 2 * len("\n...\n")
