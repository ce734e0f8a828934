from turnkit.stores.base import CheckpointStore, MessageStore
from turnkit.stores.dynamodb import DynamoDBCheckpointStore, DynamoDBMessageStore
from turnkit.stores.in_memory import InMemoryCheckpointStore, InMemoryMessageStore

__all__ = [
    "CheckpointStore",
    "DynamoDBCheckpointStore",
    "DynamoDBMessageStore",
    "InMemoryCheckpointStore",
    "InMemoryMessageStore",
    "MessageStore",
]
