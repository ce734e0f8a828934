"""Message utility functions for turnkit.

This module converts stored conversation messages into pydantic_ai
ModelMessage history and manipulates the system prompt of that history.
"""

from collections.abc import Iterable

from pydantic_ai.messages import (
    ModelMessage,
    ModelRequest,
    ModelResponse,
    SystemPromptPart,
    TextPart,
)

from turnkit.models.message import Message


def to_model_message(message: Message) -> ModelMessage:
    """Convert one stored message into a pydantic_ai message.

    User messages become a ModelRequest with a single user prompt part,
    assistant messages become a ModelResponse with a single text part.
    """
    if message.is_from_user:
        return ModelRequest.user_text_prompt(message.content)
    return ModelResponse(parts=[TextPart(content=message.content)])


def to_model_messages(
    messages: Iterable[Message],
    system_prompt: str | None = None,
) -> list[ModelMessage]:
    """Convert an ordered sequence of stored messages into model history.

    Args:
        messages: Stored messages, oldest first.
        system_prompt: Optional system instruction placed at the front.

    Returns:
        Model history in the same order, preceded by the system prompt if given.

    Examples:
        >>> from turnkit.models.message import Message
        >>> m = Message.create(user_id="u", conversation_id="c", content="hi", is_from_user=True)
        >>> history = to_model_messages([m], system_prompt="Be brief.")
        >>> len(history)
        2
        >>> history[0].parts[0].content
        'Be brief.'
    """
    history = [to_model_message(message) for message in messages]
    if system_prompt:
        history = set_system_prompt(history, system_prompt)
    return history


def set_system_prompt(messages: list[ModelMessage], prompt: str) -> list[ModelMessage]:
    """Replace every system prompt in the history with a single leading one.

    Existing SystemPromptParts are stripped from their requests (requests
    left with no parts are dropped) and one request carrying ``prompt`` is
    prepended.

    Examples:
        >>> base = [ModelRequest(parts=[SystemPromptPart("old system")])]
        >>> result = set_system_prompt(base, "new system")
        >>> len(result)
        1
        >>> result[0].parts[0].content
        'new system'
    """
    result: list[ModelMessage] = []
    for msg in messages:
        if isinstance(msg, ModelRequest):
            non_system_parts = [p for p in msg.parts if not isinstance(p, SystemPromptPart)]
            if non_system_parts:
                result.append(ModelRequest(parts=non_system_parts))
        else:
            result.append(msg)

    return [ModelRequest(parts=[SystemPromptPart(prompt)])] + result

