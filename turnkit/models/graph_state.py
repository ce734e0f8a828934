from dataclasses import dataclass, field
from typing import Self

from pydantic import Field
from typing_extensions import TypedDict

from turnkit.models.chat import UserProfile
from turnkit.models.message import Message, MessageReference, merge_message_refs
from turnkit.models.types import CompactBaseModel


class StateUpdate(TypedDict, total=False):
    """Partial state returned by a graph node.

    ``message_refs`` are appended to the running state (deduplicated by id).
    ``response_chunk`` and ``is_streaming`` replace the current value whenever
    the key is present, so an explicit ``None`` clears ``response_chunk``.
    """

    message_refs: list[MessageReference]
    response_chunk: str | None
    is_streaming: bool


class GraphState(CompactBaseModel):
    """Per-turn, in-memory state threaded through the conversation graph."""

    message_refs: list[MessageReference] = Field(default_factory=list)
    response_chunk: str | None = None
    is_streaming: bool = False

    @property
    def last_ref(self) -> MessageReference | None:
        return self.message_refs[-1] if self.message_refs else None

    def has_message(self, message_id: str) -> bool:
        return any(ref.message_id == message_id for ref in self.message_refs)

    def apply(self, update: StateUpdate | None) -> Self:
        """Return a new state with ``update`` reduced into this one."""
        if not update:
            return self.model_copy()
        changes: dict[str, object] = {}
        if "message_refs" in update:
            changes["message_refs"] = merge_message_refs(self.message_refs, update["message_refs"])
        if "response_chunk" in update:
            changes["response_chunk"] = update["response_chunk"]
        if "is_streaming" in update:
            changes["is_streaming"] = update["is_streaming"]
        return self.model_copy(update=changes)


@dataclass
class GraphContext:
    """Execution context handed to every node alongside the state."""

    user_id: str | None = None
    conversation_id: str | None = None
    user_profile: UserProfile | None = None
    # Messages written during this turn, visible to nodes before the
    # conversation index reflects them
    pending_messages: dict[str, Message] = field(default_factory=dict)

    def remember(self, message: Message) -> None:
        self.pending_messages[message.id] = message
