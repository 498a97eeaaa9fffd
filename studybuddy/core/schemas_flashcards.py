"""Pydantic schemas for generated flashcards."""

from pydantic import BaseModel, ConfigDict, Field


class Flashcard(BaseModel):
    """One generated flashcard as returned by the model."""

    model_config = ConfigDict(str_strip_whitespace=True)

    front: str = Field(..., min_length=1, description="Question or term")
    back: str = Field(..., min_length=1, description="Answer or definition")
