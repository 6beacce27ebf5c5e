"""
State storage backends for snapshots, change history and monitored URLs.
Provides in-memory, JSON file and MongoDB implementations behind one async interface.
"""

import json
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional

import structlog
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pydantic import ValidationError
from pymongo.errors import PyMongoError

from utilities.config import WatcherConfig
from watcher.exceptions import StateStoreError
from watcher.models import PersistedState

logger = structlog.get_logger(__name__)

STATE_DOCUMENT_ID = "pagewatch_state"


class StateStore:
    """Base class for persisted state backends."""

    async def load(self) -> PersistedState:
        raise NotImplementedError

    async def save(self, state: PersistedState) -> None:
        raise NotImplementedError

    async def clear(self) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        """Release backend resources."""


class MemoryStateStore(StateStore):
    """Keeps state in process memory; used for tests and ephemeral runs."""

    def __init__(self, state: Optional[PersistedState] = None):
        self._state = state.model_copy(deep=True) if state else PersistedState()

    async def load(self) -> PersistedState:
        return self._state.model_copy(deep=True)

    async def save(self, state: PersistedState) -> None:
        self._state = state.model_copy(deep=True)

    async def clear(self) -> None:
        self._state = PersistedState()


class JsonStateStore(StateStore):
    """
    Stores state as a JSON document on disk.

    Writes go to a temporary file in the same directory which then replaces
    the state file, so a crash never leaves a half-written document.
    """

    def __init__(self, path: str):
        self.path = Path(path)
        self.logger = logger.bind(component="json_state_store", path=str(self.path))

    async def load(self) -> PersistedState:
        """
        Load state from the JSON file.

        Returns:
            Stored state, or an empty state when the file does not exist

        Raises:
            StateStoreError: If the file cannot be read or parsed
        """
        if not self.path.exists():
            self.logger.info("No state file found, starting empty")
            return PersistedState()

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
            state = PersistedState.model_validate(data)
        except (OSError, ValueError, ValidationError) as e:
            self.logger.error("Failed to load state file", error=str(e))
            raise StateStoreError(f"Failed to load state from {self.path}: {e}", e) from e

        self.logger.info(
            "Loaded state file",
            monitored_urls=len(state.monitored_urls),
            snapshots=len(state.snapshots)
        )
        return state

    async def save(self, state: PersistedState) -> None:
        """Write state atomically."""
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(
                dir=str(self.path.parent), prefix=".pagewatch-", suffix=".json"
            )
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(state.model_dump(mode="json"), f, indent=2, ensure_ascii=False)
                os.replace(tmp_path, self.path)
            except BaseException:
                if os.path.exists(tmp_path):
                    os.unlink(tmp_path)
                raise
        except OSError as e:
            self.logger.error("Failed to save state file", error=str(e))
            raise StateStoreError(f"Failed to save state to {self.path}: {e}", e) from e

        self.logger.debug("Saved state file")

    async def clear(self) -> None:
        try:
            if self.path.exists():
                self.path.unlink()
        except OSError as e:
            raise StateStoreError(f"Failed to clear state file {self.path}: {e}", e) from e
        self.logger.info("Cleared state file")


class MongoStateStore(StateStore):
    """
    Stores state as a single MongoDB document.

    URLs are kept in field values, never in field names, so arbitrary URLs
    are safe to store.
    """

    def __init__(
        self,
        connection_url: str,
        database_name: str,
        collection_name: str,
        collection: Optional[AsyncIOMotorCollection] = None
    ):
        """
        Initialize MongoDB state store.

        Args:
            connection_url: MongoDB connection URL
            database_name: Name of the database
            collection_name: Name of the collection
            collection: Pre-built collection, mainly for tests
        """
        self.connection_url = connection_url
        self.database_name = database_name
        self.collection_name = collection_name
        self.client: Optional[AsyncIOMotorClient] = None
        self.collection = collection
        self.logger = logger.bind(component="mongo_state_store")

    def _get_collection(self) -> AsyncIOMotorCollection:
        if self.collection is None:
            self.client = AsyncIOMotorClient(self.connection_url)
            self.collection = self.client[self.database_name][self.collection_name]
            self.logger.info(
                "Connected to MongoDB",
                database=self.database_name,
                collection=self.collection_name
            )
        return self.collection

    @staticmethod
    def to_document(state: PersistedState) -> Dict[str, Any]:
        """Convert state to the stored document layout."""
        data = state.model_dump()
        return {
            "_id": STATE_DOCUMENT_ID,
            "monitored_urls": data["monitored_urls"],
            "snapshots": [
                {"url": url, **snapshot} for url, snapshot in data["snapshots"].items()
            ],
            "history": [
                {"url": url, "records": records} for url, records in data["history"].items()
            ],
        }

    @staticmethod
    def from_document(document: Dict[str, Any]) -> PersistedState:
        """Convert a stored document back to state."""
        return PersistedState(
            monitored_urls=document.get("monitored_urls", []),
            snapshots={
                entry["url"]: {
                    "fingerprint": entry["fingerprint"],
                    "normalized_content": entry["normalized_content"],
                }
                for entry in document.get("snapshots", [])
            },
            history={
                entry["url"]: entry["records"] for entry in document.get("history", [])
            },
        )

    async def load(self) -> PersistedState:
        try:
            document = await self._get_collection().find_one({"_id": STATE_DOCUMENT_ID})
            if document is None:
                self.logger.info("No state document found, starting empty")
                return PersistedState()
            return self.from_document(document)
        except (PyMongoError, KeyError, ValidationError) as e:
            self.logger.error("Failed to load state document", error=str(e))
            raise StateStoreError(f"Failed to load state from MongoDB: {e}", e) from e

    async def save(self, state: PersistedState) -> None:
        document = self.to_document(state)
        try:
            await self._get_collection().replace_one(
                {"_id": STATE_DOCUMENT_ID},
                document,
                upsert=True
            )
        except PyMongoError as e:
            self.logger.error("Failed to save state document", error=str(e))
            raise StateStoreError(f"Failed to save state to MongoDB: {e}", e) from e

        self.logger.debug("Saved state document")

    async def clear(self) -> None:
        try:
            await self._get_collection().delete_one({"_id": STATE_DOCUMENT_ID})
        except PyMongoError as e:
            raise StateStoreError(f"Failed to clear state in MongoDB: {e}", e) from e
        self.logger.info("Cleared state document")

    async def close(self) -> None:
        if self.client:
            self.client.close()
            self.logger.info("Disconnected from MongoDB")


def create_state_store(settings: WatcherConfig) -> StateStore:
    """Build the state store selected by configuration."""
    if settings.state_backend == "memory":
        return MemoryStateStore()
    if settings.state_backend == "mongodb":
        return MongoStateStore(
            settings.mongodb_url,
            settings.mongodb_database,
            settings.mongodb_collection
        )
    return JsonStateStore(settings.state_file)
