"""Tests for ContextBudgeter truncation policy."""

import string

import pytest

from studybuddy.context.budget import ContextBudgeter, sample_offsets, truncation_note
from studybuddy.core.config import END_MARKER, MIDDLE_MARKER, SAMPLE_SEPARATOR, BudgetProfile
from studybuddy.core.schemas_generation import Corpus

PROFILE = BudgetProfile(max_chars=1_000, head_chars=300, tail_chars=300, mid_sample_chars=150)


def _text(length: int) -> str:
    alphabet = string.ascii_letters + string.digits
    return "".join(alphabet[(i * 7) % len(alphabet)] for i in range(length))


@pytest.mark.parametrize("length", [0, 1, 999, 1_000])
def test_budget_within_limit_is_identity(length):
    corpus = Corpus(full_text=_text(length))

    bundle = ContextBudgeter().budget(corpus, PROFILE)

    assert bundle.was_truncated is False
    assert bundle.text == corpus.full_text
    assert bundle.truncation_note == ""


@pytest.mark.parametrize("length", [1_001, 5_000, 100_000])
def test_budget_over_limit_keeps_head_and_tail(length):
    corpus = Corpus(full_text=_text(length))

    bundle = ContextBudgeter().budget(corpus, PROFILE)

    assert bundle.was_truncated is True
    assert bundle.text.startswith(corpus.full_text[:300])
    assert bundle.text.endswith(corpus.full_text[-300:])
    assert len(bundle.text) < len(corpus.full_text)
    assert MIDDLE_MARKER in bundle.text
    assert END_MARKER in bundle.text
    assert bundle.truncation_note
    assert f"{length:,}" in bundle.truncation_note


def test_budget_middle_samples_come_from_middle_span():
    text = "H" * 300 + _text(4_400) + "T" * 300
    bundle = ContextBudgeter().budget(Corpus(full_text=text), PROFILE)

    middle = bundle.text[300 + len(MIDDLE_MARKER) : -(300 + len(END_MARKER))]
    samples = middle.split(SAMPLE_SEPARATOR)

    assert len(samples) == PROFILE.sample_count
    for sample in samples:
        assert sample
        assert sample in text[300:-300]


def test_budget_with_no_room_for_samples_leaves_middle_empty():
    head, tail = 50, 50
    tight = BudgetProfile(
        max_chars=head + tail + len(MIDDLE_MARKER) + len(END_MARKER),
        head_chars=head,
        tail_chars=tail,
        mid_sample_chars=500,
        sample_count=1,
    )
    corpus = Corpus(full_text=_text(tight.max_chars + 1))

    bundle = ContextBudgeter().budget(corpus, tight)

    assert bundle.was_truncated is True
    assert bundle.text == (
        corpus.full_text[:head] + MIDDLE_MARKER + END_MARKER + corpus.full_text[-tail:]
    )
    assert len(bundle.text) < len(corpus.full_text)


def test_budget_profile_rejects_head_and_tail_over_budget():
    with pytest.raises(ValueError):
        BudgetProfile(max_chars=100, head_chars=60, tail_chars=60, mid_sample_chars=10)


def test_budget_profile_rejects_negative_sizes():
    with pytest.raises(ValueError):
        BudgetProfile(max_chars=1_000, head_chars=-1, tail_chars=0, mid_sample_chars=0)


def test_sample_offsets_single_sample_is_centred():
    assert sample_offsets(0, 100, 10, 1) == [45]


def test_sample_offsets_do_not_overlap():
    offsets = sample_offsets(100, 1_000, 50, 3)

    assert len(offsets) == 3
    assert offsets == sorted(offsets)
    for first, second in zip(offsets, offsets[1:]):
        assert second - first >= 50
    assert offsets[0] >= 100
    assert offsets[-1] + 50 <= 1_000


def test_sample_offsets_empty_span():
    assert sample_offsets(10, 10, 5, 3) == []


def test_truncation_note_mentions_length():
    assert "12,345" in truncation_note(12_345)
