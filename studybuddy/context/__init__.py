"""Context assembly for generation requests.

This module provides:
- Corpus aggregation of a subject's extracted note text
- Character budgeting with head/tail preservation and middle sampling
- Ordered prompt assembly from instructions, history and the new turn
"""

from studybuddy.context.budget import ContextBudgeter, truncation_note
from studybuddy.context.corpus import NoteCorpusAggregator, build_corpus
from studybuddy.context.prompt_assembler import PromptAssembler

__all__ = [
    "ContextBudgeter",
    "NoteCorpusAggregator",
    "PromptAssembler",
    "build_corpus",
    "truncation_note",
]
