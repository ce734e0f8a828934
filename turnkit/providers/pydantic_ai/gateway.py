from collections.abc import AsyncIterator, Sequence

from pydantic_ai.direct import model_request, model_request_stream
from pydantic_ai.messages import (
    ModelMessage,
    ModelResponse,
    ModelResponseStreamEvent,
    PartDeltaEvent,
    PartStartEvent,
    TextPart,
    TextPartDelta,
)
from pydantic_ai.models import Model
from pydantic_ai.settings import ModelSettings

from turnkit.providers.base import ContentPart, ModelGateway, ModelReply, OtherContent, TextContent


def reply_from_response(response: ModelResponse) -> ModelReply:
    """Convert a pydantic-ai response into a ModelReply, keeping part order."""
    parts: list[ContentPart] = []
    for part in response.parts:
        if isinstance(part, TextPart):
            parts.append(TextContent(text=part.content))
        else:
            parts.append(OtherContent(type=getattr(part, "part_kind", type(part).__name__)))
    return ModelReply(content=parts)


def text_from_event(event: ModelResponseStreamEvent) -> str:
    """Extract the text carried by one stream event, or "" for non-text events."""
    if isinstance(event, PartStartEvent) and isinstance(event.part, TextPart):
        return event.part.content
    if isinstance(event, PartDeltaEvent) and isinstance(event.delta, TextPartDelta):
        return event.delta.content_delta
    return ""


class PydanticAIModelGateway(ModelGateway):
    """Model gateway backed by any pydantic-ai model.

    Examples::

        gateway = PydanticAIModelGateway(OpenAIModelClient("gpt-4o-mini"))
        reply = await gateway.invoke([ModelRequest.user_text_prompt("Hello")])
    """

    provider_name: str = "pydantic_ai"

    def __init__(self, model: Model | str, *, model_settings: ModelSettings | None = None):
        self.model = model
        self.model_settings = model_settings

    async def invoke(self, messages: Sequence[ModelMessage]) -> ModelReply:
        response = await model_request(
            self.model, list(messages), model_settings=self.model_settings
        )
        return reply_from_response(response)

    async def stream(self, messages: Sequence[ModelMessage]) -> AsyncIterator[ModelReply]:
        async with model_request_stream(
            self.model, list(messages), model_settings=self.model_settings
        ) as response_stream:
            async for event in response_stream:
                text = text_from_event(event)
                if text:
                    yield ModelReply(content=text)
