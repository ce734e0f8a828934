from collections.abc import Iterable
from typing import Self

import uuid_utils
from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from turnkit.models.types import CompactBaseModel, now_ms


class MessageReference(CompactBaseModel):
    """Lightweight pointer to a persisted message, held inside a checkpoint."""

    # Stored as {"messageId", "isFromUser"}
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message_id: str
    is_from_user: bool


class Message(CompactBaseModel):
    """A persisted chat message. One is written per turn half."""

    id: str
    user_id: str
    conversation_id: str
    content: str
    is_from_user: bool
    created_at: int
    last_modified: int

    @classmethod
    def create(
        cls,
        *,
        user_id: str,
        conversation_id: str,
        content: str,
        is_from_user: bool,
    ) -> Self:
        """Build a new message with a fresh time-ordered id and timestamps."""
        now = now_ms()
        return cls(
            id=str(uuid_utils.uuid7()),
            user_id=user_id,
            conversation_id=conversation_id,
            content=content,
            is_from_user=is_from_user,
            created_at=now,
            last_modified=now,
        )

    def reference(self) -> MessageReference:
        return MessageReference(message_id=self.id, is_from_user=self.is_from_user)


class MessagePage(CompactBaseModel):
    items: list[Message] = Field(default_factory=list)
    next_cursor: str | None = None


def merge_message_refs(
    existing: Iterable[MessageReference],
    incoming: Iterable[MessageReference],
) -> list[MessageReference]:
    """Append ``incoming`` refs to ``existing``, dropping any repeated message id.

    The first occurrence of an id wins, so re-submitting a ref never reorders
    or duplicates a snapshot.

    Examples:
        >>> a = MessageReference(message_id="a", is_from_user=True)
        >>> b = MessageReference(message_id="b", is_from_user=False)
        >>> [r.message_id for r in merge_message_refs([a], [b, a])]
        ['a', 'b']
    """
    merged: list[MessageReference] = []
    seen: set[str] = set()
    for ref in (*existing, *incoming):
        if ref.message_id in seen:
            continue
        seen.add(ref.message_id)
        merged.append(ref)
    return merged
