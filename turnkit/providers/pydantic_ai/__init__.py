from turnkit.providers.pydantic_ai.gateway import PydanticAIModelGateway
from turnkit.providers.pydantic_ai.openai import OpenAIModelClient

__all__ = ["OpenAIModelClient", "PydanticAIModelGateway"]
