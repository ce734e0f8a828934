import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing

from turnkit.errors import EmptyModelResponse, MissingExecutionContext
from turnkit.messages.utils import to_model_messages
from turnkit.models.graph_state import GraphContext, GraphState, StateUpdate
from turnkit.models.message import Message, MessageReference
from turnkit.nodes.base_node import GraphNode
from turnkit.providers.base import ModelGateway
from turnkit.stores.base import MessageStore

logger = logging.getLogger(__name__)


def require_scope(context: GraphContext) -> tuple[str, str]:
    """Return the context's ``(user_id, conversation_id)``.

    Raises:
        MissingExecutionContext: If either id is missing.
    """
    if not context.user_id or not context.conversation_id:
        raise MissingExecutionContext(
            "invoke_model requires a user_id and conversation_id in the execution context"
        )
    return context.user_id, context.conversation_id


async def load_messages_from_refs(
    message_store: MessageStore,
    context: GraphContext,
    refs: Sequence[MessageReference],
) -> list[Message]:
    """Resolve message references into full messages, keeping ref order.

    The conversation is read once through the store's conversation index and
    overlaid with the messages written earlier in the same turn. Refs that
    resolve to nothing are dropped.
    """
    user_id, conversation_id = require_scope(context)
    if not refs:
        return []
    stored = await message_store.query_all(user_id, conversation_id)
    by_id = {message.id: message for message in stored}
    by_id.update(context.pending_messages)

    messages: list[Message] = []
    for ref in refs:
        message = by_id.get(ref.message_id)
        if message is None:
            logger.warning(
                "Dropping unresolved message ref %s in conversation %s",
                ref.message_id,
                conversation_id,
            )
            continue
        messages.append(message)
    return messages


class InvokeModelNode(GraphNode):
    """Call the model over the conversation so far and persist its reply."""

    name = "invoke_model"

    def __init__(
        self,
        message_store: MessageStore,
        model_gateway: ModelGateway,
        *,
        system_prompt: str | None = None,
    ):
        self.message_store = message_store
        self.model_gateway = model_gateway
        self.system_prompt = system_prompt

    async def execute(self, state: GraphState, context: GraphContext) -> StateUpdate:
        history = await load_messages_from_refs(self.message_store, context, state.message_refs)
        reply = await self.model_gateway.invoke(to_model_messages(history, self.system_prompt))
        text = reply.text
        if not text.strip():
            raise EmptyModelResponse(
                f"Empty response from {self.model_gateway.provider_name} model"
            )
        message = await self._persist_reply(context, text)
        update: StateUpdate = {"response_chunk": text}
        if not state.has_message(message.id):
            update["message_refs"] = [message.reference()]
        return update

    async def stream(self, state: GraphState, context: GraphContext) -> AsyncIterator[StateUpdate]:
        if not state.is_streaming:
            yield await self.execute(state, context)
            return

        history = await load_messages_from_refs(self.message_store, context, state.message_refs)
        chunks: list[str] = []
        async with aclosing(
            self.model_gateway.stream(to_model_messages(history, self.system_prompt))
        ) as replies:
            async for reply in replies:
                chunk = reply.text
                if not chunk:
                    continue
                chunks.append(chunk)
                yield {"response_chunk": chunk}

        text = "".join(chunks)
        final: StateUpdate = {"response_chunk": None}
        if text:
            message = await self._persist_reply(context, text)
            final["message_refs"] = [message.reference()]
        yield final

    async def _persist_reply(self, context: GraphContext, text: str) -> Message:
        user_id, conversation_id = require_scope(context)
        message = Message.create(
            user_id=user_id,
            conversation_id=conversation_id,
            content=text,
            is_from_user=False,
        )
        await self.message_store.put(message)
        context.remember(message)
        logger.debug("Persisted assistant message %s", message.id)
        return message
