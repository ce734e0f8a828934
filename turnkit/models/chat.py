from typing import Literal

from pydantic import Field

from turnkit.models.types import CompactBaseModel


class ChatMessage(CompactBaseModel):
    """Outbound chat message, built before anything is persisted."""

    role: Literal["user", "assistant"]
    content: str


class UserProfile(CompactBaseModel):
    name: str | None = None
    email: str | None = None


class ChatRequest(CompactBaseModel):
    messages: list[ChatMessage] = Field(min_length=1)
    user_id: str
    conversation_id: str
    user_profile: UserProfile | None = None

    @property
    def latest_user_message(self) -> ChatMessage | None:
        for message in reversed(self.messages):
            if message.role == "user":
                return message
        return None


class ChatResponse(CompactBaseModel):
    content: str
    role: Literal["assistant"] = "assistant"


class StreamChunk(CompactBaseModel):
    content: str
    done: bool = False
