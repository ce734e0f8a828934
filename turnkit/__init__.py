from importlib.metadata import version

from turnkit.config import Settings, get_settings
from turnkit.errors import (
    AssistantResponseLost,
    EmptyAssistantResponse,
    EmptyModelResponse,
    GraphAlreadyCompiled,
    MissingExecutionContext,
    StoreUnavailable,
    TurnkitError,
)
from turnkit.graph import CompiledGraph, ConversationGraph, GraphStep
from turnkit.messages import set_system_prompt, to_model_messages
from turnkit.models import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    Checkpoint,
    CheckpointMetadata,
    CheckpointState,
    GraphContext,
    GraphState,
    Message,
    MessageReference,
    StateUpdate,
    StreamChunk,
    UserProfile,
)
from turnkit.nodes import FunctionNode, GraphNode, InvokeModelNode, PrepareTurnNode
from turnkit.providers import (
    ModelGateway,
    ModelReply,
    OpenAIModelClient,
    OtherContent,
    PydanticAIModelGateway,
    TextContent,
    flatten_content,
)
from turnkit.runners import ConversationEngine, create_engine
from turnkit.stores import (
    CheckpointStore,
    DynamoDBCheckpointStore,
    DynamoDBMessageStore,
    InMemoryCheckpointStore,
    InMemoryMessageStore,
    MessageStore,
)

__version__ = version("turnkit")
__all__ = [
    "__version__",
    # config
    "Settings",
    "get_settings",
    # errors
    "AssistantResponseLost",
    "EmptyAssistantResponse",
    "EmptyModelResponse",
    "GraphAlreadyCompiled",
    "MissingExecutionContext",
    "StoreUnavailable",
    "TurnkitError",
    # graph
    "CompiledGraph",
    "ConversationGraph",
    "GraphStep",
    # messages
    "set_system_prompt",
    "to_model_messages",
    # models
    "ChatMessage",
    "ChatRequest",
    "ChatResponse",
    "Checkpoint",
    "CheckpointMetadata",
    "CheckpointState",
    "GraphContext",
    "GraphState",
    "Message",
    "MessageReference",
    "StateUpdate",
    "StreamChunk",
    "UserProfile",
    # nodes
    "FunctionNode",
    "GraphNode",
    "InvokeModelNode",
    "PrepareTurnNode",
    # providers
    "ModelGateway",
    "ModelReply",
    "OpenAIModelClient",
    "OtherContent",
    "PydanticAIModelGateway",
    "TextContent",
    "flatten_content",
    # runners
    "ConversationEngine",
    "create_engine",
    # stores
    "CheckpointStore",
    "DynamoDBCheckpointStore",
    "DynamoDBMessageStore",
    "InMemoryCheckpointStore",
    "InMemoryMessageStore",
    "MessageStore",
]
