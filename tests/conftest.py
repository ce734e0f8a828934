import pytest

from tests.utils import FakeModelGateway
from turnkit.runners.conversation_engine import ConversationEngine
from turnkit.stores.in_memory import InMemoryCheckpointStore, InMemoryMessageStore


@pytest.fixture
def message_store() -> InMemoryMessageStore:
    return InMemoryMessageStore()


@pytest.fixture
def checkpoint_store() -> InMemoryCheckpointStore:
    return InMemoryCheckpointStore()


@pytest.fixture
def make_engine(message_store, checkpoint_store):
    """Build an engine over the in-memory stores with a scripted gateway."""

    def _make(gateway: FakeModelGateway, **kwargs) -> ConversationEngine:
        return ConversationEngine(message_store, checkpoint_store, gateway, **kwargs)

    return _make
