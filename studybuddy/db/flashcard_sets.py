"""Database operations for the ``flashcard_sets`` table."""

from typing import Any

from supabase import Client

from studybuddy.core.logging import get_logger

logger = get_logger(__name__)


class FlashcardSetRepository:
    def __init__(self, client: Client):
        self._client = client

    def create(
        self,
        user_id: str,
        subject_id: str,
        name: str,
        flashcards: list[dict[str, str]],
        description: str | None = None,
    ) -> dict[str, Any]:
        """
        Persist a named set of generated flashcards.

        Returns:
            The inserted row

        Raises:
            ValueError: If the insert returns no row
        """
        row = {
            "user_id": user_id,
            "subject_id": subject_id,
            "name": name,
            "description": description or "",
            "flashcards": [{**card, "studied": False} for card in flashcards],
        }
        response = self._client.table("flashcard_sets").insert(row).execute()
        if not response.data:
            raise ValueError("No data returned from flashcard set insert")

        created = response.data[0]
        logger.info(f"Created flashcard set {created.get('id')} with {len(flashcards)} cards")
        return created
