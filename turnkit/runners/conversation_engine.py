import asyncio
import logging
from collections.abc import AsyncIterator, Sequence
from contextlib import aclosing
from typing import Literal

from turnkit.errors import AssistantResponseLost, EmptyAssistantResponse
from turnkit.graph.conversation_graph import CompiledGraph, ConversationGraph
from turnkit.models.chat import ChatMessage, ChatRequest, ChatResponse, StreamChunk
from turnkit.models.checkpoint import LATEST_CHECKPOINT_ID, CheckpointMetadata, CheckpointState
from turnkit.models.graph_state import GraphContext, GraphState
from turnkit.models.message import Message, MessageReference, merge_message_refs
from turnkit.nodes.base_node import FunctionNode, NodeFunction
from turnkit.nodes.invoke_model_node import InvokeModelNode, load_messages_from_refs
from turnkit.providers.base import ModelGateway
from turnkit.stores.base import CheckpointStore, MessageStore

logger = logging.getLogger(__name__)

LatestCheckpoint = tuple[CheckpointState, CheckpointMetadata] | None


class ConversationEngine:
    """Runs one conversation turn at a time against persistent checkpoints.

    Each turn persists the user message, loads the scope's latest checkpoint,
    runs the conversation graph (which calls the model and persists its
    reply) and writes the new checkpoint.

    Turns on the same ``(user_id, conversation_id)`` are not serialized: if
    two run concurrently, the checkpoint written last wins. Callers that need
    stronger guarantees must keep at most one turn in flight per conversation.

    Examples::

        engine = ConversationEngine(
            InMemoryMessageStore(),
            InMemoryCheckpointStore(),
            PydanticAIModelGateway(OpenAIModelClient("gpt-4o-mini")),
        )
        response = await engine.ask(
            ChatRequest(
                messages=[ConversationEngine.create_message("Hello", "user")],
                user_id="u1",
                conversation_id="c1",
            )
        )
    """

    def __init__(
        self,
        message_store: MessageStore,
        checkpoint_store: CheckpointStore,
        model_gateway: ModelGateway,
        *,
        system_prompt: str | None = None,
        keep_checkpoint_history: bool = False,
        graph: ConversationGraph | None = None,
    ):
        self.message_store = message_store
        self.checkpoint_store = checkpoint_store
        self.model_gateway = model_gateway
        self.system_prompt = system_prompt
        self.keep_checkpoint_history = keep_checkpoint_history
        self.graph = graph or ConversationGraph(
            InvokeModelNode(message_store, model_gateway, system_prompt=system_prompt)
        )

    @staticmethod
    def create_message(content: str, role: Literal["user", "assistant"]) -> ChatMessage:
        return ChatMessage(role=role, content=content)

    def add_feature_node(self, name: str, fn: NodeFunction) -> None:
        """Register a node that runs between ``prepare_turn`` and ``invoke_model``.

        Raises:
            GraphAlreadyCompiled: After the first ``ask`` or ``ask_stream``.
        """
        self.graph.add_node(FunctionNode(name, fn))

    async def ask(self, request: ChatRequest) -> ChatResponse:
        """Run one non-streaming turn and return the assistant's reply."""
        compiled = self.graph.compile()
        user_message = self._user_message(request)
        latest, _ = await asyncio.gather(
            self.checkpoint_store.get_latest(request.user_id, request.conversation_id),
            self.message_store.put(user_message),
        )
        state = self._initial_state(latest, user_message, is_streaming=False)
        context = self._context(request, user_message)

        final_state = await compiled.ainvoke(state, context)

        last_ref = final_state.last_ref
        if last_ref is None or last_ref.is_from_user:
            raise AssistantResponseLost(
                f"Turn in conversation {request.conversation_id} produced no assistant message"
            )
        assistant_message, _ = await asyncio.gather(
            self.message_store.get(request.user_id, last_ref.message_id),
            self._save_checkpoint(request, final_state.message_refs, latest),
        )
        if assistant_message is None:
            raise AssistantResponseLost(f"Assistant message {last_ref.message_id} not found")
        if not assistant_message.content:
            raise EmptyAssistantResponse("Empty response from assistant")

        logger.info(
            "Completed turn in conversation %s (%d messages)",
            request.conversation_id,
            len(final_state.message_refs),
        )
        return ChatResponse(content=assistant_message.content, role="assistant")

    def ask_stream(self, request: ChatRequest) -> AsyncIterator[StreamChunk]:
        """Start a streaming turn.

        The graph is compiled immediately; nothing else happens until the
        returned iterator is pulled. The iterator yields the reply in chunks
        and always ends with a single ``StreamChunk(content="", done=True)``.
        """
        compiled = self.graph.compile()
        return self._stream_turn(compiled, request)

    async def _stream_turn(
        self, compiled: CompiledGraph, request: ChatRequest
    ) -> AsyncIterator[StreamChunk]:
        user_message = self._user_message(request)
        latest, _ = await asyncio.gather(
            self.checkpoint_store.get_latest(request.user_id, request.conversation_id),
            self.message_store.put(user_message),
        )
        state = self._initial_state(latest, user_message, is_streaming=True)
        context = self._context(request, user_message)

        chunk_count = 0
        final_state = state
        async with aclosing(compiled.astream(state, context)) as steps:
            async for step in steps:
                final_state = step.state
                if step.node != InvokeModelNode.name:
                    continue
                chunk = step.update.get("response_chunk")
                if chunk:
                    chunk_count += 1
                    yield StreamChunk(content=chunk, done=False)

        if chunk_count == 0:
            logger.warning(
                "Streaming turn in conversation %s produced no content", request.conversation_id
            )
        last_ref = final_state.last_ref
        if last_ref is not None and not last_ref.is_from_user:
            await self._save_checkpoint(request, final_state.message_refs, latest)
            logger.info(
                "Completed streaming turn in conversation %s (%d chunks)",
                request.conversation_id,
                chunk_count,
            )
        yield StreamChunk(content="", done=True)

    async def history(self, user_id: str, conversation_id: str) -> list[Message]:
        """Return the messages of the latest checkpoint, in conversation order."""
        latest = await self.checkpoint_store.get_latest(user_id, conversation_id)
        if latest is None:
            return []
        state, _ = latest
        context = GraphContext(user_id=user_id, conversation_id=conversation_id)
        return await load_messages_from_refs(self.message_store, context, state.message_refs)

    async def edit_message(self, user_id: str, message_id: str, content: str) -> Message | None:
        """Replace the content of a stored message.

        Raises:
            ValueError: If ``content`` is empty.
        """
        if not content:
            raise ValueError("Message content must not be empty")
        return await self.message_store.update_content(user_id, message_id, content)

    async def delete_conversation(self, user_id: str, conversation_id: str) -> None:
        """Delete every message and every checkpoint of a conversation."""
        messages = await self.message_store.query_all(user_id, conversation_id)
        await asyncio.gather(
            *(self.message_store.delete(user_id, message.id) for message in messages)
        )
        await self.checkpoint_store.delete(user_id, conversation_id)
        logger.info("Deleted conversation %s (%d messages)", conversation_id, len(messages))

    async def _save_checkpoint(
        self,
        request: ChatRequest,
        refs: Sequence[MessageReference],
        previous: LatestCheckpoint,
    ) -> None:
        assistant_id = refs[-1].message_id
        previous_step = previous[1].step if previous is not None else 0
        parents: dict[str, str] = {}
        if previous is not None:
            previous_assistant = _last_assistant_id(previous[0].message_refs)
            if previous_assistant is not None:
                parents["latest"] = previous_assistant
        state = CheckpointState(message_refs=list(refs))
        metadata = CheckpointMetadata(
            source="loop",
            step=previous_step + 1,
            writes={InvokeModelNode.name: {"message_id": assistant_id}},
            parents=parents,
        )
        await self.checkpoint_store.put(
            request.user_id, request.conversation_id, LATEST_CHECKPOINT_ID, state, metadata
        )
        if self.keep_checkpoint_history:
            await self.checkpoint_store.put(
                request.user_id, request.conversation_id, assistant_id, state, metadata
            )

    @staticmethod
    def _user_message(request: ChatRequest) -> Message:
        latest = request.latest_user_message
        if latest is None:
            raise ValueError("Request must contain at least one user message")
        return Message.create(
            user_id=request.user_id,
            conversation_id=request.conversation_id,
            content=latest.content,
            is_from_user=True,
        )

    @staticmethod
    def _initial_state(
        latest: LatestCheckpoint, user_message: Message, *, is_streaming: bool
    ) -> GraphState:
        refs = latest[0].message_refs if latest is not None else []
        return GraphState(
            message_refs=merge_message_refs(refs, [user_message.reference()]),
            is_streaming=is_streaming,
        )

    @staticmethod
    def _context(request: ChatRequest, user_message: Message) -> GraphContext:
        return GraphContext(
            user_id=request.user_id,
            conversation_id=request.conversation_id,
            user_profile=request.user_profile,
            pending_messages={user_message.id: user_message},
        )


def _last_assistant_id(refs: Sequence[MessageReference]) -> str | None:
    for ref in reversed(refs):
        if not ref.is_from_user:
            return ref.message_id
    return None
