"""Tests for usage logging."""

from unittest.mock import MagicMock

from studybuddy.core.llm_usage import UsageRecorder, estimate_cost, log_llm_usage
from studybuddy.core.schemas_generation import Success, TokenUsage


def test_estimate_cost_known_model():
    assert estimate_cost("gpt-4o-mini", 1_000_000, 1_000_000) == 0.75


def test_estimate_cost_dated_variant_uses_longest_prefix():
    assert estimate_cost("gpt-4o-mini-2024-07-18", 1_000_000, 0) == 0.15


def test_estimate_cost_unknown_model_is_zero():
    assert estimate_cost("mystery-model", 1_000, 1_000) == 0.0


def test_log_llm_usage_inserts_row(fake_supabase):
    log_llm_usage(fake_supabase, "chat", "gpt-4o-mini", "openai", 100, 50, duration_ms=12)

    rows = fake_supabase.tables["llm_usage_log"]
    assert len(rows) == 1
    assert rows[0]["workflow"] == "chat"
    assert rows[0]["tokens_input"] == 100
    assert rows[0]["tokens_output"] == 50
    assert rows[0]["duration_ms"] == 12


def test_log_llm_usage_never_raises():
    client = MagicMock()
    client.table.return_value.insert.return_value.execute.side_effect = RuntimeError("db down")

    log_llm_usage(client, "chat", "gpt-4o-mini", "openai", 1, 1)


def test_usage_recorder_falls_back_to_default_model(fake_supabase):
    recorder = UsageRecorder(fake_supabase, provider="azure_openai", default_model="my-deployment")

    recorder("flashcards", Success(raw_text="x", usage=TokenUsage(7, 3)), 40)

    row = fake_supabase.tables["llm_usage_log"][0]
    assert row["model"] == "my-deployment"
    assert row["provider"] == "azure_openai"
    assert (row["tokens_input"], row["tokens_output"]) == (7, 3)
