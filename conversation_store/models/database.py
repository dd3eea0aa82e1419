import asyncio
import logging
from functools import wraps
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from motor.motor_asyncio import AsyncIOMotorClient  # Async MongoDB driver, also speaks to Cosmos DB's MongoDB API
from pymongo.errors import DuplicateKeyError, PyMongoError

from ..configs import StoreSettings

logger = logging.getLogger(__name__)

APP_NAME = "conversation-store"


class DocumentStoreError(Exception):
    """A store call failed."""


class DocumentNotFoundError(DocumentStoreError):
    """The addressed document does not exist in the partition."""


def _wrap_store_errors(func):
    @wraps(func)
    async def wrapper(*args, **kwargs):
        try:
            return await func(*args, **kwargs)
        except DocumentStoreError:
            raise
        except DuplicateKeyError as e:
            raise DocumentStoreError(f"Document already exists: {e}") from e
        except PyMongoError as e:
            raise DocumentStoreError(str(e)) from e
    return wrapper


class DocumentStore:
    """
    Thin async transport over one collection of a partitioned document database.

    Documents are addressed by (id, partition key). The collection's `_id` is unique across
    all partitions, so it is stored as "<partition key>:<id>" while `id` keeps the logical id;
    `_id` never leaves this class.
    """

    def __init__(self, client: AsyncIOMotorClient, database_id: str, container_id: str, partition_field: str = "userId"):
        self.client = client
        self.database_id = database_id
        self.container_id = container_id
        self.partition_field = partition_field
        self.database = client.get_database(database_id)
        self.container = self.database.get_collection(container_id)

    @classmethod
    def from_settings(cls, settings: StoreSettings) -> "DocumentStore":
        # Client construction is lazy: no network traffic until the first command.
        client = AsyncIOMotorClient(
            settings.endpoint,
            username=settings.username,
            password=settings.key,
            appname=APP_NAME,
        )
        return cls(client, settings.database_id, settings.container_id, settings.partition_field)

    @staticmethod
    def storage_id(item_id: str, partition_key: str) -> str:
        return f"{partition_key}:{item_id}"

    def _to_storage(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        stored = dict(doc)
        stored["_id"] = self.storage_id(doc["id"], doc[self.partition_field])
        return stored

    @staticmethod
    def _from_storage(raw: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(raw)
        stored_id = doc.pop("_id", None)
        if "id" not in doc and stored_id is not None:
            doc["id"] = str(stored_id).split(":", 1)[-1]
        return doc

    def _address(self, item_id: str, partition_key: str) -> Dict[str, Any]:
        return {"_id": self.storage_id(item_id, partition_key), self.partition_field: partition_key}

    @_wrap_store_errors
    async def read_item(self, item_id: str, partition_key: str) -> Dict[str, Any]:
        raw = await self.container.find_one(self._address(item_id, partition_key))
        if raw is None:
            raise DocumentNotFoundError(f"Document {item_id} not found")
        return self._from_storage(raw)

    @_wrap_store_errors
    async def create_item(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a new document; fails if the id is already taken."""
        await self.container.insert_one(self._to_storage(doc))
        return dict(doc)

    @_wrap_store_errors
    async def upsert_item(self, doc: Dict[str, Any]) -> Dict[str, Any]:
        """Replace the document with the same id, or insert it if there is none."""
        address = self._address(doc["id"], doc[self.partition_field])
        await self.container.replace_one(address, self._to_storage(doc), upsert=True)
        return dict(doc)

    @_wrap_store_errors
    async def delete_item(self, item_id: str, partition_key: str) -> None:
        result = await self.container.delete_one(self._address(item_id, partition_key))
        if result.deleted_count == 0:
            raise DocumentNotFoundError(f"Document {item_id} not found")

    @_wrap_store_errors
    async def query_items(
        self,
        filters: Dict[str, Any],
        partition_key: Optional[str] = None,
        fields: Optional[Sequence[str]] = None,
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """
        Run a filtered query. Filter values are passed as data, never spliced into query text.
        Without a partition key the query spans the whole collection.
        """
        criteria = dict(filters)
        if partition_key is not None:
            criteria[self.partition_field] = partition_key

        projection = None
        if fields:
            projection = {field: 1 for field in fields}
            projection["id"] = 1

        cursor = self.container.find(criteria, projection)
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(limit)
        raw_docs = await cursor.to_list(length=None)
        return [self._from_storage(raw) for raw in raw_docs]

    @_wrap_store_errors
    async def count_items(self, filters: Dict[str, Any]) -> int:
        return await self.container.count_documents(filters)

    @_wrap_store_errors
    async def probe(self) -> None:
        """Read database and container metadata."""
        names = await self.database.list_collection_names()
        if self.container_id not in names:
            raise DocumentStoreError(f"Container '{self.container_id}' not found in database '{self.database_id}'")

    def close(self) -> None:
        self.client.close()


class AvailabilityGate:
    """
    Decides whether persistence operations may run.

    Missing configuration closes the gate for the lifetime of the process. With a
    configuration the gate opens immediately and a reachability probe runs in the
    background; a failed probe closes it again.
    """

    def __init__(
        self,
        settings: StoreSettings,
        store_factory: Callable[[StoreSettings], DocumentStore] = DocumentStore.from_settings,
    ):
        self.settings = settings
        self._store_factory = store_factory
        self.store: Optional[DocumentStore] = None
        self.available = False
        self.initialized = False
        self.error: Optional[str] = None
        self._probe_task: Optional[asyncio.Task] = None

    def initialize(self) -> bool:
        if self.initialized or self.error:
            return self.is_available()

        missing = self.settings.missing_fields()
        if missing:
            self.error = f"Missing store configuration: {', '.join(missing)}"
            logger.warning(f"Document store not configured, persistence disabled ({self.error})")
            return False

        try:
            self.store = self._store_factory(self.settings)
        except Exception as e:
            self.error = f"Error initializing document store: {e}"
            logger.error(self.error)
            return False

        self.available = True
        self.initialized = True
        logger.info(
            f"Document store configured: database={self.settings.database_id} "
            f"container={self.settings.container_id} partitionKey={self.settings.partition_key}"
        )
        return True

    def schedule_probe(self) -> Optional[asyncio.Task]:
        """Start the reachability probe without waiting for it."""
        if self.store is not None and self._probe_task is None:
            self._probe_task = asyncio.create_task(self.probe())
        return self._probe_task

    async def probe(self) -> bool:
        if self.store is None:
            return False
        try:
            await self.store.probe()
        except Exception as e:
            self.available = False
            self.error = f"Connectivity error: {e}"
            logger.warning(f"Document store connectivity check failed: {e}")
            return False
        logger.info("Document store connectivity check passed")
        return True

    def is_available(self) -> bool:
        return self.available and self.initialized

    def config_info(self) -> dict:
        """Configuration summary without secrets."""
        return {
            "available": self.available,
            "initialized": self.initialized,
            "database": self.settings.database_id,
            "container": self.settings.container_id,
            "partitionKey": self.settings.partition_key,
            "error": self.error,
        }

    async def close(self) -> None:
        if self._probe_task is not None and not self._probe_task.done():
            self._probe_task.cancel()
            try:
                await self._probe_task
            except asyncio.CancelledError:
                pass
        if self.store is not None:
            self.store.close()
        self.available = False
