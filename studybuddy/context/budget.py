"""Fit a corpus into a character budget without losing its most informative regions.

Long study material front-loads definitions and back-loads summaries, so
when a corpus is over budget we keep the head and the tail verbatim and
replace the middle with evenly spaced fixed-size samples.
"""

import logging

from studybuddy.core.config import END_MARKER, MIDDLE_MARKER, SAMPLE_SEPARATOR, BudgetProfile
from studybuddy.core.logging import get_logger, log_with_context
from studybuddy.core.schemas_generation import ContextBundle, Corpus

logger = get_logger(__name__)


def truncation_note(original_length: int) -> str:
    return (
        f"NOTE: These notes are very long ({original_length:,} characters). "
        "Only the beginning, key middle sections, and ending were used. "
        "If you need information from a specific section, please ask!"
    )


def sample_offsets(start: int, end: int, size: int, count: int) -> list[int]:
    """
    Start offsets of ``count`` samples of ``size`` chars within ``[start, end)``.

    The span is split into ``count`` equal segments and each sample is
    centred in its segment, so samples never overlap and a single sample
    sits at the midpoint.
    """
    span = end - start
    if span <= 0 or size <= 0 or count <= 0:
        return []

    segment = span / count
    offsets = []
    for i in range(count):
        offset = start + int(i * segment + (segment - size) / 2)
        offsets.append(max(start, min(offset, end - size)))
    return offsets


class ContextBudgeter:
    """Applies a ``BudgetProfile`` to a corpus."""

    def budget(self, corpus: Corpus, profile: BudgetProfile) -> ContextBundle:
        text = corpus.full_text
        total = len(text)

        if total <= profile.max_chars:
            return ContextBundle(text=text, original_length=total)

        head = text[: profile.head_chars]
        tail = text[total - profile.tail_chars :] if profile.tail_chars else ""
        middle = self._sample_middle(text, profile.head_chars, total - profile.tail_chars, profile)

        budgeted = f"{head}{MIDDLE_MARKER}{middle}{END_MARKER}{tail}"

        log_with_context(
            logger,
            logging.INFO,
            f"Truncated context from {total} to {len(budgeted)} chars",
            original_chars=total,
            budgeted_chars=len(budgeted),
            middle_chars=len(middle),
        )
        return ContextBundle(
            text=budgeted,
            was_truncated=True,
            truncation_note=truncation_note(total),
            original_length=total,
        )

    def _sample_middle(self, text: str, start: int, end: int, profile: BudgetProfile) -> str:
        span = end - start
        # Markers plus samples must stay shorter than the span they replace
        available = span - profile.marker_overhead - 1
        sample_total = min(profile.mid_sample_chars, available)
        if sample_total <= 0:
            return ""

        size = sample_total // profile.sample_count
        offsets = sample_offsets(start, end, size, profile.sample_count)
        return SAMPLE_SEPARATOR.join(text[offset : offset + size] for offset in offsets)
