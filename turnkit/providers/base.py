"""Abstract ModelGateway contract for language model backends."""

from abc import ABC, abstractmethod
from collections.abc import AsyncIterator, Sequence
from typing import Any, Literal

from pydantic import Field
from pydantic_ai.messages import ModelMessage

from turnkit.models.types import CompactBaseModel


class TextContent(CompactBaseModel):
    type: Literal["text"] = "text"
    text: str


class OtherContent(CompactBaseModel):
    """Any non-text content part (images, tool calls, reasoning, ...)."""

    type: str
    data: dict[str, Any] = Field(default_factory=dict)


ContentPart = TextContent | OtherContent


def flatten_content(content: str | Sequence[ContentPart] | None) -> str:
    """Flatten model content into plain text.

    Text parts are concatenated in order; every other part is dropped.

    Examples:
        >>> flatten_content("hi")
        'hi'
        >>> flatten_content([TextContent(text="a"), OtherContent(type="image"), TextContent(text="b")])
        'ab'
    """
    if content is None:
        return ""
    if isinstance(content, str):
        return content
    return "".join(part.text for part in content if isinstance(part, TextContent))


class ModelReply(CompactBaseModel):
    """A complete model reply, or one chunk of a streamed reply."""

    content: str | list[ContentPart] = ""

    @property
    def text(self) -> str:
        return flatten_content(self.content)


class ModelGateway(ABC):
    """Opaque capability wrapping an external language model."""

    provider_name: str = "unknown"

    @abstractmethod
    async def invoke(self, messages: Sequence[ModelMessage]) -> ModelReply:
        """Run the model over an ordered history and wait for the full reply.

        Args:
            messages: Conversation history, oldest first.

        Returns:
            The complete reply.
        """
        ...

    @abstractmethod
    def stream(self, messages: Sequence[ModelMessage]) -> AsyncIterator[ModelReply]:
        """Run the model over an ordered history, yielding reply chunks as they arrive.

        The iterator is finite and not restartable. Implementations are
        expected to be async generators so callers can close them early.
        """
        ...
