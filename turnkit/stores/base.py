from abc import ABC, abstractmethod

from turnkit.models.checkpoint import (
    LATEST_CHECKPOINT_ID,
    Checkpoint,
    CheckpointMetadata,
    CheckpointPage,
    CheckpointState,
)
from turnkit.models.message import Message, MessagePage

DEFAULT_CHECKPOINT_PAGE_SIZE = 50


class MessageStore(ABC):
    """Abstract store for individual chat messages.

    Messages are addressed by ``(user_id, message_id)`` and are also reachable
    through a time-ordered index per conversation. Every ``put`` is a single
    durable write; no multi-item transactions are assumed.

    Any operation may raise :class:`~turnkit.errors.StoreUnavailable`.
    """

    @abstractmethod
    async def get(self, user_id: str, message_id: str) -> Message | None:
        """Load one message.

        Args:
            user_id: Owner of the message.
            message_id: Id of the message.

        Returns:
            The message, or None when it does not exist.
        """
        ...

    @abstractmethod
    async def put(self, message: Message) -> None:
        """Create or overwrite a message.

        Args:
            message: The message to persist.
        """
        ...

    @abstractmethod
    async def query_by_conversation(
        self,
        user_id: str,
        conversation_id: str,
        *,
        limit: int | None = None,
        cursor: str | None = None,
        ascending: bool = True,
    ) -> MessagePage:
        """Read one page of a conversation's messages in creation order.

        Args:
            user_id: Owner of the conversation.
            conversation_id: Conversation to read.
            limit: Maximum page size. None lets the store decide.
            cursor: Opaque continuation token from a previous page.
            ascending: Oldest first when True, newest first otherwise.

        Returns:
            The page and, when more messages remain, the cursor for the next one.
        """
        ...

    async def query_all(
        self, user_id: str, conversation_id: str, *, ascending: bool = True
    ) -> list[Message]:
        """Read every message of a conversation by following cursors.

        Default implementation pages through ``query_by_conversation``.
        Override if the backend can do better.
        """
        messages: list[Message] = []
        cursor: str | None = None
        while True:
            page = await self.query_by_conversation(
                user_id, conversation_id, cursor=cursor, ascending=ascending
            )
            messages.extend(page.items)
            if page.next_cursor is None:
                return messages
            cursor = page.next_cursor

    @abstractmethod
    async def update_content(self, user_id: str, message_id: str, content: str) -> Message | None:
        """Replace a message's content and bump ``last_modified``.

        Returns:
            The updated message, or None when it does not exist.
        """
        ...

    @abstractmethod
    async def delete(self, user_id: str, message_id: str) -> None:
        """Delete one message. Deleting a missing message is not an error."""
        ...


class CheckpointStore(ABC):
    """Abstract store for conversation checkpoints.

    A checkpoint is a snapshot of the ordered message references of one
    ``(user_id, conversation_id)`` scope. The snapshot under
    :data:`~turnkit.models.checkpoint.LATEST_CHECKPOINT_ID` is the current one.
    Errors propagate unchanged; there is no retry in this layer.
    """

    @abstractmethod
    async def get(
        self, user_id: str, conversation_id: str, checkpoint_id: str
    ) -> Checkpoint | None:
        """Load one checkpoint record, or None when it does not exist."""
        ...

    async def get_latest(
        self, user_id: str, conversation_id: str
    ) -> tuple[CheckpointState, CheckpointMetadata] | None:
        """Load the current checkpoint of a scope.

        Returns:
            ``(state, metadata)``, or None when no turn ever completed for
            the scope. None is the expected initial condition, not a failure.
        """
        checkpoint = await self.get(user_id, conversation_id, LATEST_CHECKPOINT_ID)
        if checkpoint is None:
            return None
        return checkpoint.state, checkpoint.metadata

    @abstractmethod
    async def put(
        self,
        user_id: str,
        conversation_id: str,
        checkpoint_id: str,
        state: CheckpointState,
        metadata: CheckpointMetadata,
    ) -> None:
        """Create or overwrite a checkpoint, stamping a fresh ordering timestamp.

        Calling this repeatedly with the same arguments is safe.
        """
        ...

    @abstractmethod
    async def list(
        self,
        user_id: str,
        conversation_id: str,
        *,
        limit: int = DEFAULT_CHECKPOINT_PAGE_SIZE,
        start_key: str | None = None,
    ) -> CheckpointPage:
        """List a scope's checkpoints, most recent first.

        Args:
            user_id: Owner of the conversation.
            conversation_id: Conversation to list.
            limit: Maximum page size.
            start_key: ``last_key`` of a previous page.
        """
        ...

    @abstractmethod
    async def delete(self, user_id: str, conversation_id: str) -> None:
        """Delete every checkpoint of a scope."""
        ...
