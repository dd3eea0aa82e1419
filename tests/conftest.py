"""
Shared fixtures: in-memory stand-ins for the document store and its collection,
and a ConversationStore wired to them.
"""

import itertools
from datetime import datetime, timedelta
from unittest.mock import AsyncMock, MagicMock
from zoneinfo import ZoneInfo

import pytest
from pymongo.errors import DuplicateKeyError

from conversation_store.configs import StoreSettings
from conversation_store.models import DocumentNotFoundError, DocumentStore, DocumentStoreError
from conversation_store.services import ConversationStore


def _matches(doc, filters):
    for field, condition in filters.items():
        if isinstance(condition, dict):
            for op, expected in condition.items():
                if op == "$exists":
                    if (field in doc) != expected:
                        return False
                elif op == "$ne":
                    if doc.get(field) == expected:
                        return False
                else:
                    raise NotImplementedError(op)
        elif field not in doc or doc[field] != condition:
            return False
    return True


class InMemoryDocumentStore:
    """Implements the DocumentStore contract over a dict keyed by (id, partition key)."""

    def __init__(self, partition_field="userId"):
        self.partition_field = partition_field
        self.docs = {}
        self.calls = []
        self.failures = {}
        self.failing_deletes = set()
        self.closed = False

    def fail(self, method, error=None):
        self.failures[method] = error or DocumentStoreError(f"{method} failed")

    def _record(self, method):
        self.calls.append(method)
        if method in self.failures:
            raise self.failures[method]

    async def read_item(self, item_id, partition_key):
        self._record("read_item")
        try:
            return dict(self.docs[(item_id, partition_key)])
        except KeyError:
            raise DocumentNotFoundError(f"Document {item_id} not found")

    async def create_item(self, doc):
        self._record("create_item")
        key = (doc["id"], doc[self.partition_field])
        if key in self.docs:
            raise DocumentStoreError("Document already exists")
        self.docs[key] = dict(doc)
        return dict(doc)

    async def upsert_item(self, doc):
        self._record("upsert_item")
        self.docs[(doc["id"], doc[self.partition_field])] = dict(doc)
        return dict(doc)

    async def delete_item(self, item_id, partition_key):
        self._record("delete_item")
        if item_id in self.failing_deletes:
            raise DocumentStoreError(f"Delete of {item_id} failed")
        if self.docs.pop((item_id, partition_key), None) is None:
            raise DocumentNotFoundError(f"Document {item_id} not found")

    async def query_items(self, filters, partition_key=None, fields=None, sort=None, limit=None):
        self._record("query_items")
        criteria = dict(filters)
        if partition_key is not None:
            criteria[self.partition_field] = partition_key
        results = [dict(doc) for doc in self.docs.values() if _matches(doc, criteria)]
        for field, direction in reversed(sort or []):
            results.sort(key=lambda doc: doc.get(field) or "", reverse=direction < 0)
        if limit:
            results = results[:limit]
        if fields:
            keep = set(fields) | {"id"}
            results = [{k: v for k, v in doc.items() if k in keep} for doc in results]
        return results

    async def count_items(self, filters):
        self._record("count_items")
        return sum(1 for doc in self.docs.values() if _matches(doc, filters))

    async def probe(self):
        self._record("probe")

    def close(self):
        self.closed = True


class _Cursor:

    def __init__(self, docs):
        self.docs = docs

    def sort(self, keys):
        for field, direction in reversed(keys):
            self.docs.sort(key=lambda doc: doc.get(field) or "", reverse=direction < 0)
        return self

    def limit(self, count):
        self.docs = self.docs[:count]
        return self

    async def to_list(self, length=None):
        return self.docs


class UniqueIdCollection:
    """
    Motor-style collection keyed strictly by `_id`, which is unique across the whole
    collection like a real MongoDB collection. Drives the real DocumentStore.
    """

    def __init__(self):
        self.docs = {}

    def _find(self, filters):
        return next((doc for doc in self.docs.values() if _matches(doc, filters)), None)

    async def find_one(self, filters):
        found = self._find(filters)
        return dict(found) if found is not None else None

    async def insert_one(self, doc):
        if doc["_id"] in self.docs:
            raise DuplicateKeyError(f"E11000 duplicate key error dup key: {{ _id: {doc['_id']!r} }}")
        self.docs[doc["_id"]] = dict(doc)

    async def replace_one(self, filters, doc, upsert=False):
        found = self._find(filters)
        if found is not None:
            self.docs[found["_id"]] = dict(doc, _id=found["_id"])
        elif upsert:
            await self.insert_one(doc)

    async def delete_one(self, filters):
        found = self._find(filters)
        if found is not None:
            del self.docs[found["_id"]]
        return MagicMock(deleted_count=int(found is not None))

    def find(self, filters, projection=None):
        docs = [dict(doc) for doc in self.docs.values() if _matches(doc, filters)]
        if projection:
            keep = set(projection) | {"_id"}
            docs = [{k: v for k, v in doc.items() if k in keep} for doc in docs]
        return _Cursor(docs)

    async def count_documents(self, filters):
        return sum(1 for doc in self.docs.values() if _matches(doc, filters))


class FakeClock:
    """Returns strictly increasing timestamps, one second apart."""

    def __init__(self, start=None, tz="America/Mexico_City"):
        self.start = start or datetime(2025, 3, 1, 9, 0, tzinfo=ZoneInfo(tz))
        self._ticks = itertools.count()

    def __call__(self):
        return (self.start + timedelta(seconds=next(self._ticks))).isoformat(timespec="microseconds")


@pytest.fixture
def settings():
    return StoreSettings(
        endpoint="mongodb://novabot.mongo.cosmos.azure.com:10255/?ssl=true",
        key="secret-key",
        database_id="nova",
        container_id="conversations",
    )


@pytest.fixture
def document_store():
    return InMemoryDocumentStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def unique_id_collection():
    return UniqueIdCollection()


@pytest.fixture
def collection_store(settings, unique_id_collection):
    """A real DocumentStore over a collection that enforces a global unique `_id`."""
    database = MagicMock()
    database.get_collection.return_value = unique_id_collection
    database.list_collection_names = AsyncMock(return_value=[settings.container_id])
    client = MagicMock()
    client.get_database.return_value = database
    return DocumentStore(client, settings.database_id, settings.container_id, settings.partition_field)


@pytest.fixture
async def store(settings, document_store, clock):
    conversation_store = ConversationStore(settings, store_factory=lambda _: document_store, clock=clock)
    await conversation_store.open()
    yield conversation_store
    await conversation_store.close()


@pytest.fixture
def seed_messages(document_store, clock):
    """Insert message documents directly, bypassing the repositories."""

    def _seed(conversation_id, user_id, count, message_type="user"):
        ids = []
        for i in range(count):
            doc_id = f"msg_seed_{conversation_id}_{len(document_store.docs)}_{i}"
            timestamp = clock()
            document_store.docs[(doc_id, user_id)] = {
                "id": doc_id,
                "messageId": doc_id,
                "conversationId": conversation_id,
                "userId": user_id,
                "userName": None,
                "message": f"message {i}",
                "messageType": message_type,
                "timestamp": timestamp,
                "dateCreated": timestamp,
                "partitionKey": user_id,
                "ttl": 7776000,
            }
            ids.append(doc_id)
        return ids

    return _seed
