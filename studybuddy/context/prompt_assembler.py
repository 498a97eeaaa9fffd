"""Ordered message assembly: system instructions, history, new user turn."""

from collections.abc import Sequence

from studybuddy.core.schemas_generation import (
    ConversationTurn,
    GenerationRequest,
    Message,
    Role,
)


class PromptAssembler:
    """Builds a ``GenerationRequest`` without dropping or reordering anything.

    History must already be bounded by the caller; it is mapped 1:1 in the
    order given, roles preserved.
    """

    def assemble(
        self,
        system_instructions: str,
        history: Sequence[ConversationTurn],
        new_turn_content: str,
    ) -> GenerationRequest:
        messages = [Message(role=Role.SYSTEM, content=system_instructions)]
        messages.extend(Message(role=turn.role, content=turn.content) for turn in history)
        messages.append(Message(role=Role.USER, content=new_turn_content))
        return GenerationRequest(messages=tuple(messages))
