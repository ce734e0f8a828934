from collections.abc import AsyncIterator, Sequence

from pydantic_ai.messages import ModelMessage

from turnkit.errors import StoreUnavailable
from turnkit.models.chat import ChatRequest, UserProfile
from turnkit.models.checkpoint import CheckpointMetadata, CheckpointState
from turnkit.models.message import Message
from turnkit.providers.base import ModelGateway, ModelReply
from turnkit.runners.conversation_engine import ConversationEngine
from turnkit.stores.in_memory import InMemoryCheckpointStore, InMemoryMessageStore


def make_request(
    content: str,
    *,
    user_id: str = "u1",
    conversation_id: str = "c1",
    user_profile: UserProfile | None = None,
) -> ChatRequest:
    return ChatRequest(
        messages=[ConversationEngine.create_message(content, "user")],
        user_id=user_id,
        conversation_id=conversation_id,
        user_profile=user_profile,
    )


class FakeModelGateway(ModelGateway):
    """Scripted gateway.

    ``replies`` are returned by ``invoke`` in order; an Exception entry is
    raised instead. ``chunks`` are yielded by ``stream``. Every history the
    gateway receives is recorded in ``histories``.
    """

    provider_name = "fake"

    def __init__(
        self,
        replies: Sequence[str | Exception] = (),
        chunks: Sequence[str] = (),
    ):
        self.replies = list(replies)
        self.chunks = list(chunks)
        self.histories: list[list[ModelMessage]] = []
        self.chunks_pulled = 0
        self.stream_closed = False

    async def invoke(self, messages: Sequence[ModelMessage]) -> ModelReply:
        self.histories.append(list(messages))
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return ModelReply(content=reply)

    async def stream(self, messages: Sequence[ModelMessage]) -> AsyncIterator[ModelReply]:
        self.histories.append(list(messages))
        try:
            for chunk in self.chunks:
                self.chunks_pulled += 1
                yield ModelReply(content=chunk)
        finally:
            self.stream_closed = True


class FailingMessageStore(InMemoryMessageStore):
    """Message store whose writes always fail."""

    async def put(self, message: Message) -> None:
        raise StoreUnavailable("message store is down")


class FailingCheckpointStore(InMemoryCheckpointStore):
    """Checkpoint store whose writes always fail."""

    async def put(
        self,
        user_id: str,
        conversation_id: str,
        checkpoint_id: str,
        state: CheckpointState,
        metadata: CheckpointMetadata,
    ) -> None:
        raise StoreUnavailable("checkpoint store is down")


class ForgetfulMessageStore(InMemoryMessageStore):
    """Message store that accepts writes but never finds a message by id."""

    async def get(self, user_id: str, message_id: str) -> Message | None:
        return None


class BlankingMessageStore(InMemoryMessageStore):
    """Message store that hands back assistant messages with their content erased."""

    async def get(self, user_id: str, message_id: str) -> Message | None:
        message = await super().get(user_id, message_id)
        if message is None or message.is_from_user:
            return message
        return message.model_copy(update={"content": ""})
