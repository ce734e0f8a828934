from turnkit.messages.utils import (
    set_system_prompt,
    to_model_message,
    to_model_messages,
)

__all__ = [
    "set_system_prompt",
    "to_model_message",
    "to_model_messages",
]
