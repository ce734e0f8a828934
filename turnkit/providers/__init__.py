from turnkit.providers.base import (
    ContentPart,
    ModelGateway,
    ModelReply,
    OtherContent,
    TextContent,
    flatten_content,
)
from turnkit.providers.pydantic_ai import OpenAIModelClient, PydanticAIModelGateway

__all__ = [
    "ContentPart",
    "ModelGateway",
    "ModelReply",
    "OpenAIModelClient",
    "OtherContent",
    "PydanticAIModelGateway",
    "TextContent",
    "flatten_content",
]
