import pytest

from msgsync.adapters.memory.store import InMemoryMessageStore
from msgsync.domain.synchronizer import MessageListSynchronizer


class ScriptedStore:
    """Store stub returning whatever rows the test hands it."""

    def __init__(self, rows=None):
        self.rows = rows
        self.fetch_calls = 0
        self.inserted = []

    async def fetch_all(self):
        self.fetch_calls += 1
        return self.rows

    async def insert_one(self, content):
        self.inserted.append(content)


@pytest.fixture
def scripted_store():
    return ScriptedStore(rows=[])


@pytest.fixture
def memory_store():
    return InMemoryMessageStore(table="messages")


@pytest.fixture
def sync(memory_store):
    return MessageListSynchronizer(memory_store, memory_store, table="messages")
