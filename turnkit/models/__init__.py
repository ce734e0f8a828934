from turnkit.models.chat import ChatMessage, ChatRequest, ChatResponse, StreamChunk, UserProfile
from turnkit.models.checkpoint import (
    LATEST_CHECKPOINT_ID,
    Checkpoint,
    CheckpointMetadata,
    CheckpointPage,
    CheckpointState,
)
from turnkit.models.graph_state import GraphContext, GraphState, StateUpdate
from turnkit.models.message import Message, MessagePage, MessageReference, merge_message_refs
from turnkit.models.types import CompactBaseModel

__all__ = [
    "LATEST_CHECKPOINT_ID",
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "Checkpoint",
    "CheckpointMetadata",
    "CheckpointPage",
    "CheckpointState",
    "CompactBaseModel",
    "GraphContext",
    "GraphState",
    "Message",
    "MessagePage",
    "MessageReference",
    "StateUpdate",
    "StreamChunk",
    "UserProfile",
    "merge_message_refs",
]
