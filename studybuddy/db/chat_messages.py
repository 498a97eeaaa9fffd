"""Conversation history persistence (the ``chat_messages`` table).

Turns are append-only. Two concurrent appends to the same conversation are
each atomic, but their relative order is whatever the database assigns; a
user composes one message at a time, so no cross-request locking is done.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from supabase import Client

from studybuddy.core.logging import get_logger
from studybuddy.core.schemas_generation import ConversationKey, ConversationTurn, Role

logger = get_logger(__name__)

TABLE = "chat_messages"


def _row_to_turn(key: ConversationKey, row: dict[str, Any]) -> ConversationTurn:
    timestamp = row["timestamp"]
    if isinstance(timestamp, str):
        timestamp = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    return ConversationTurn(
        key=key,
        role=Role(row["role"]),
        content=row["content"],
        timestamp=timestamp,
    )


class ConversationStore:
    """Ordered-by-time log of chat turns per (user, subject)."""

    def __init__(self, client: Client):
        self._client = client

    def _scoped(self, query: Any, key: ConversationKey) -> Any:
        return query.eq("user_id", key.user_id).eq("subject_id", key.subject_id)

    def append(self, turn: ConversationTurn) -> None:
        """
        Insert one turn.

        Raises:
            Exception: If database operation fails
        """
        row = {
            "user_id": turn.key.user_id,
            "subject_id": turn.key.subject_id,
            "role": turn.role.value,
            "content": turn.content,
            "timestamp": turn.timestamp.isoformat(),
        }
        try:
            self._client.table(TABLE).insert(row).execute()
        except Exception as e:
            logger.error(
                f"Failed to append {turn.role.value} turn for subject {turn.key.subject_id}: {e}"
            )
            raise

    def list(self, key: ConversationKey, limit: int) -> list[ConversationTurn]:
        """
        Return the newest ``limit`` turns, oldest first.

        Args:
            key: Conversation to read
            limit: Maximum number of turns

        Returns:
            Turns in ascending timestamp order
        """
        if limit <= 0:
            return []

        query = self._scoped(self._client.table(TABLE).select("id, role, content, timestamp"), key)
        response = (
            query.order("timestamp", desc=True)
            .order("id", desc=True)
            .limit(limit)
            .execute()
        )
        rows = list(reversed(response.data or []))
        return [_row_to_turn(key, row) for row in rows]

    def count(self, key: ConversationKey) -> int:
        """Number of turns stored for a conversation."""
        query = self._scoped(self._client.table(TABLE).select("id", count="exact"), key)
        response = query.execute()
        return response.count or 0

    def clear(self, key: ConversationKey) -> int:
        """
        Delete every turn of a conversation.

        Returns:
            Number of turns removed
        """
        response = self._scoped(self._client.table(TABLE).delete(), key).execute()
        deleted = len(response.data or [])
        logger.info(f"Cleared {deleted} chat turns for subject {key.subject_id}")
        return deleted

    def stats(self, user_id: str) -> dict[str, int]:
        """Total turns and distinct conversations for a user."""
        response = (
            self._client.table(TABLE)
            .select("subject_id", count="exact")
            .eq("user_id", user_id)
            .execute()
        )
        rows = response.data or []
        return {
            "total_messages": response.count or 0,
            "total_conversations": len({row["subject_id"] for row in rows}),
        }
