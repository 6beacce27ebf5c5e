"""
Unit tests for state storage backends.
"""

import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from pymongo.errors import ServerSelectionTimeoutError

from crawler.storage import (
    STATE_DOCUMENT_ID,
    JsonStateStore,
    MemoryStateStore,
    MongoStateStore,
    create_state_store,
)
from utilities.config import WatcherConfig
from watcher.exceptions import StateStoreError
from watcher.models import ChangeRecord, PersistedState, SnapshotState

URL = "https://a.test/page?x=1.2"


@pytest.fixture
def state():
    return PersistedState(
        monitored_urls=[URL, "https://b.test"],
        snapshots={URL: SnapshotState(fingerprint="42", normalized_content="<p>new</p>")},
        history={
            URL: [
                ChangeRecord(
                    url=URL,
                    timestamp=datetime(2024, 1, 15, 12, tzinfo=timezone.utc),
                    old_content="<p>old</p>",
                    new_content="<p>new</p>"
                )
            ]
        }
    )


class TestMemoryStateStore:
    """Test cases for MemoryStateStore."""

    @pytest.mark.asyncio
    async def test_round_trip(self, state):
        store = MemoryStateStore()
        await store.save(state)
        assert await store.load() == state

    @pytest.mark.asyncio
    async def test_load_returns_copy(self, state):
        store = MemoryStateStore(state)
        loaded = await store.load()
        loaded.monitored_urls.append("https://c.test")

        assert (await store.load()).monitored_urls == [URL, "https://b.test"]

    @pytest.mark.asyncio
    async def test_clear(self, state):
        store = MemoryStateStore(state)
        await store.clear()
        assert await store.load() == PersistedState()


class TestJsonStateStore:
    """Test cases for JsonStateStore."""

    @pytest.mark.asyncio
    async def test_missing_file_is_empty(self, tmp_path):
        store = JsonStateStore(str(tmp_path / "state.json"))
        assert await store.load() == PersistedState()

    @pytest.mark.asyncio
    async def test_round_trip(self, tmp_path, state):
        path = tmp_path / "nested" / "state.json"
        store = JsonStateStore(str(path))

        await store.save(state)

        assert path.exists()
        assert await JsonStateStore(str(path)).load() == state

    @pytest.mark.asyncio
    async def test_no_temp_files_left(self, tmp_path, state):
        store = JsonStateStore(str(tmp_path / "state.json"))
        await store.save(state)
        await store.save(state)

        assert [p.name for p in tmp_path.iterdir()] == ["state.json"]

    @pytest.mark.asyncio
    async def test_file_layout(self, tmp_path, state):
        path = tmp_path / "state.json"
        await JsonStateStore(str(path)).save(state)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["monitored_urls"] == [URL, "https://b.test"]
        assert data["snapshots"][URL]["fingerprint"] == "42"
        assert data["history"][URL][0]["old_content"] == "<p>old</p>"

    @pytest.mark.asyncio
    async def test_corrupt_file(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")

        with pytest.raises(StateStoreError):
            await JsonStateStore(str(path)).load()

    @pytest.mark.asyncio
    async def test_invalid_layout(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text(json.dumps({"monitored_urls": "not a list"}), encoding="utf-8")

        with pytest.raises(StateStoreError):
            await JsonStateStore(str(path)).load()

    @pytest.mark.asyncio
    async def test_clear_removes_file(self, tmp_path, state):
        path = tmp_path / "state.json"
        store = JsonStateStore(str(path))
        await store.save(state)

        await store.clear()

        assert not path.exists()
        assert await store.load() == PersistedState()


class TestMongoStateStore:
    """Test cases for MongoStateStore."""

    @pytest.fixture
    def mock_collection(self):
        collection = MagicMock()
        collection.find_one = AsyncMock(return_value=None)
        collection.replace_one = AsyncMock()
        collection.delete_one = AsyncMock()
        return collection

    @pytest.fixture
    def store(self, mock_collection):
        return MongoStateStore("mongodb://localhost:27017", "pagewatch", "state", collection=mock_collection)

    def test_document_keeps_urls_out_of_keys(self, state):
        document = MongoStateStore.to_document(state)

        assert document["_id"] == STATE_DOCUMENT_ID
        assert document["snapshots"] == [
            {"url": URL, "fingerprint": "42", "normalized_content": "<p>new</p>"}
        ]
        assert document["history"][0]["url"] == URL
        assert MongoStateStore.from_document(document) == state

    @pytest.mark.asyncio
    async def test_load_empty(self, store, mock_collection):
        assert await store.load() == PersistedState()
        mock_collection.find_one.assert_awaited_once_with({"_id": STATE_DOCUMENT_ID})

    @pytest.mark.asyncio
    async def test_load_document(self, store, mock_collection, state):
        mock_collection.find_one.return_value = MongoStateStore.to_document(state)
        assert await store.load() == state

    @pytest.mark.asyncio
    async def test_save_upserts(self, store, mock_collection, state):
        await store.save(state)

        args, kwargs = mock_collection.replace_one.call_args
        assert args[0] == {"_id": STATE_DOCUMENT_ID}
        assert args[1]["monitored_urls"] == [URL, "https://b.test"]
        assert kwargs["upsert"] is True

    @pytest.mark.asyncio
    async def test_clear(self, store, mock_collection):
        await store.clear()
        mock_collection.delete_one.assert_awaited_once_with({"_id": STATE_DOCUMENT_ID})

    @pytest.mark.asyncio
    async def test_driver_errors_are_wrapped(self, store, mock_collection, state):
        mock_collection.find_one.side_effect = ServerSelectionTimeoutError("no servers")
        mock_collection.replace_one.side_effect = ServerSelectionTimeoutError("no servers")

        with pytest.raises(StateStoreError):
            await store.load()
        with pytest.raises(StateStoreError):
            await store.save(state)


class TestCreateStateStore:
    """Test cases for backend selection."""

    def test_backends(self, tmp_path):
        assert isinstance(create_state_store(WatcherConfig(state_backend="memory", _env_file=None)), MemoryStateStore)

        json_store = create_state_store(
            WatcherConfig(state_backend="json", state_file=str(tmp_path / "s.json"), _env_file=None)
        )
        assert isinstance(json_store, JsonStateStore)
        assert json_store.path == tmp_path / "s.json"

        mongo_store = create_state_store(WatcherConfig(state_backend="MongoDB", _env_file=None))
        assert isinstance(mongo_store, MongoStateStore)
        assert mongo_store.collection is None
