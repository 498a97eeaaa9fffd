"""Read access to note metadata (the ``notes`` table)."""

from typing import Any

from supabase import Client

from studybuddy.core.logging import get_logger

logger = get_logger(__name__)

# Default handle written for notes whose upload has not completed
PLACEHOLDER_MARKER = "placeholder"


def is_usable_text_handle(handle: str | None) -> bool:
    """True when a note's text handle points at real extracted text."""
    if not handle or not handle.strip():
        return False
    return PLACEHOLDER_MARKER not in handle.lower()


class NoteRepository:
    """Lists the notes a user has uploaded for a subject."""

    def __init__(self, client: Client):
        self._client = client

    def list_for_subject(self, user_id: str, subject_id: str) -> list[dict[str, Any]]:
        """
        List notes for one (user, subject) pair, oldest upload first.

        Args:
            user_id: Owner of the notes
            subject_id: Subject the notes belong to

        Returns:
            Note rows with at least ``id``, ``file_name`` and ``text_url``

        Raises:
            Exception: If database operation fails
        """
        try:
            response = (
                self._client.table("notes")
                .select("id, file_name, text_url, uploaded_at")
                .eq("user_id", user_id)
                .eq("subject_id", subject_id)
                .order("uploaded_at")
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to list notes for subject {subject_id}: {e}")
            raise

        return response.data or []
