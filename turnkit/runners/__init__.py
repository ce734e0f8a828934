from turnkit.runners.conversation_engine import ConversationEngine
from turnkit.runners.factory import create_engine, create_model_gateway

__all__ = ["ConversationEngine", "create_engine", "create_model_gateway"]
