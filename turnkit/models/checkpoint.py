from typing import Any, Literal

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from turnkit.models.message import MessageReference
from turnkit.models.types import CompactBaseModel

# Sentinel id of the one checkpoint per scope that is considered current
LATEST_CHECKPOINT_ID = "latest"


class CheckpointState(CompactBaseModel):
    # Stored as {"messageRefs": [...]}
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message_refs: list[MessageReference] = Field(default_factory=list)


class CheckpointMetadata(CompactBaseModel):
    """Bookkeeping stored next to a checkpoint's state."""

    source: Literal["input", "loop", "update"] = "loop"
    """What produced the checkpoint: initial input, a graph turn, or a manual update."""

    step: int = 0
    """Number of completed turns the state reflects."""

    writes: dict[str, Any] | None = None
    """Per-node writes that produced this checkpoint."""

    parents: dict[str, str] = Field(default_factory=dict)
    """Ids of the checkpoints this one was derived from."""

    def model_dump(self, **kwargs: Any) -> dict[str, Any]:
        # writes/parents are part of the stored shape even when empty
        kwargs.setdefault("exclude_unset", False)
        kwargs.setdefault("exclude_none", False)
        return super().model_dump(**kwargs)


class Checkpoint(CompactBaseModel):
    user_id: str
    conversation_id: str
    checkpoint_id: str
    ordering_key: int
    state: CheckpointState
    metadata: CheckpointMetadata


class CheckpointPage(CompactBaseModel):
    checkpoints: list[Checkpoint] = Field(default_factory=list)
    last_key: str | None = None
