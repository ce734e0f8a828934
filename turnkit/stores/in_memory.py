import itertools
from collections import defaultdict

from turnkit.models.checkpoint import (
    Checkpoint,
    CheckpointMetadata,
    CheckpointPage,
    CheckpointState,
)
from turnkit.models.message import Message, MessagePage
from turnkit.models.types import now_ms
from turnkit.stores.base import DEFAULT_CHECKPOINT_PAGE_SIZE, CheckpointStore, MessageStore


class InMemoryMessageStore(MessageStore):
    """In-memory message store.

    Useful for testing and development. Not suitable for production
    as data is lost when the process exits.
    """

    def __init__(self) -> None:
        """Initialize an empty in-memory store."""
        self._messages: dict[tuple[str, str], Message] = {}
        # (user_id, conversation_id) -> message ids in write order
        self._index: dict[tuple[str, str], list[str]] = defaultdict(list)

    async def get(self, user_id: str, message_id: str) -> Message | None:
        message = self._messages.get((user_id, message_id))
        return message.model_copy(deep=True) if message is not None else None

    async def put(self, message: Message) -> None:
        key = (message.user_id, message.id)
        previous = self._messages.get(key)
        if previous is not None and previous.conversation_id != message.conversation_id:
            self._index[(message.user_id, previous.conversation_id)].remove(message.id)
            previous = None
        if previous is None:
            self._index[(message.user_id, message.conversation_id)].append(message.id)
        self._messages[key] = message.model_copy(deep=True)

    async def query_by_conversation(
        self,
        user_id: str,
        conversation_id: str,
        *,
        limit: int | None = None,
        cursor: str | None = None,
        ascending: bool = True,
    ) -> MessagePage:
        """Read a page of messages. The cursor is the offset of the next page."""
        ids = self._index.get((user_id, conversation_id), [])
        # sorted() is stable, so messages sharing a timestamp keep write order
        ordered = sorted((self._messages[(user_id, i)] for i in ids), key=lambda m: m.created_at)
        if not ascending:
            ordered.reverse()
        start = int(cursor) if cursor else 0
        end = len(ordered) if limit is None else start + limit
        items = [m.model_copy(deep=True) for m in ordered[start:end]]
        next_cursor = str(end) if end < len(ordered) else None
        return MessagePage(items=items, next_cursor=next_cursor)

    async def update_content(self, user_id: str, message_id: str, content: str) -> Message | None:
        message = self._messages.get((user_id, message_id))
        if message is None:
            return None
        updated = message.model_copy(update={"content": content, "last_modified": now_ms()})
        self._messages[(user_id, message_id)] = updated
        return updated.model_copy(deep=True)

    async def delete(self, user_id: str, message_id: str) -> None:
        message = self._messages.pop((user_id, message_id), None)
        if message is not None:
            self._index[(user_id, message.conversation_id)].remove(message_id)


class InMemoryCheckpointStore(CheckpointStore):
    """In-memory checkpoint store.

    Useful for testing and development. Not suitable for production
    as data is lost when the process exits.
    """

    def __init__(self) -> None:
        """Initialize an empty in-memory store."""
        self._checkpoints: dict[tuple[str, str], dict[str, tuple[int, Checkpoint]]] = defaultdict(
            dict
        )
        # Tie-breaker for checkpoints written within the same millisecond
        self._sequence = itertools.count()

    async def get(
        self, user_id: str, conversation_id: str, checkpoint_id: str
    ) -> Checkpoint | None:
        entry = self._checkpoints.get((user_id, conversation_id), {}).get(checkpoint_id)
        return entry[1].model_copy(deep=True) if entry is not None else None

    async def put(
        self,
        user_id: str,
        conversation_id: str,
        checkpoint_id: str,
        state: CheckpointState,
        metadata: CheckpointMetadata,
    ) -> None:
        checkpoint = Checkpoint(
            user_id=user_id,
            conversation_id=conversation_id,
            checkpoint_id=checkpoint_id,
            ordering_key=now_ms(),
            state=state.model_copy(deep=True),
            metadata=metadata.model_copy(deep=True),
        )
        self._checkpoints[(user_id, conversation_id)][checkpoint_id] = (
            next(self._sequence),
            checkpoint,
        )

    async def delete(self, user_id: str, conversation_id: str) -> None:
        self._checkpoints.pop((user_id, conversation_id), None)

    async def list(
        self,
        user_id: str,
        conversation_id: str,
        *,
        limit: int = DEFAULT_CHECKPOINT_PAGE_SIZE,
        start_key: str | None = None,
    ) -> CheckpointPage:
        """List checkpoints newest first. ``start_key`` is the last checkpoint id seen."""
        entries = self._checkpoints.get((user_id, conversation_id), {}).values()
        ordered = [
            checkpoint
            for _, checkpoint in sorted(
                entries, key=lambda entry: (entry[1].ordering_key, entry[0]), reverse=True
            )
        ]
        start = 0
        if start_key is not None:
            ids = [c.checkpoint_id for c in ordered]
            start = ids.index(start_key) + 1 if start_key in ids else len(ordered)
        page = ordered[start : start + limit]
        last_key = page[-1].checkpoint_id if page and start + limit < len(ordered) else None
        return CheckpointPage(
            checkpoints=[c.model_copy(deep=True) for c in page],
            last_key=last_key,
        )
