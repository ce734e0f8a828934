"""Typed failures raised by the conversation engine and its collaborators.

Every failure aborts the current turn. Nothing in turnkit retries; retry
policy belongs to whoever calls the engine.
"""


class TurnkitError(Exception):
    """Base class for all turnkit errors."""


class StoreUnavailable(TurnkitError):
    """A message or checkpoint store operation failed."""


class EmptyModelResponse(TurnkitError):
    """The model returned no usable text for a turn."""


class EmptyAssistantResponse(TurnkitError):
    """The persisted assistant message for a turn has empty content."""


class AssistantResponseLost(TurnkitError):
    """The assistant message of a finished turn could not be found."""


class GraphAlreadyCompiled(TurnkitError):
    """A node was registered after the conversation graph was compiled."""

    def __init__(self, node_name: str):
        self.node_name = node_name
        super().__init__(
            f"Cannot add node {node_name!r} after the graph has been compiled. "
            "Register all nodes before calling 'ask' or 'ask_stream'."
        )


class MissingExecutionContext(TurnkitError):
    """A node needed user/conversation context that was not supplied."""
