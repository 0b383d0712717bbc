import asyncio
import json

import pytest

from contractor_sync.config import AppConfig, ConfigError, load_config
from contractor_sync.context import build_context, get_or_create_device_id
from contractor_sync.errors import StorageError
from contractor_sync.store import (
    DEVICE_ID_KEY,
    JsonFileStore,
    MemoryStore,
    read_json,
    write_json,
)


# --------------------------------------------------------------------
# STORES
# --------------------------------------------------------------------
def test_json_file_store_persists_across_instances(tmp_path):
    path = tmp_path / "nested" / "store.json"
    store = JsonFileStore(path)
    store.set("a", "1")
    store.set("b", "two")
    store.remove("a")
    store.remove("missing")

    reopened = JsonFileStore(path)
    assert reopened.get("a") is None
    assert reopened.get("b") == "two"
    assert not path.with_name("store.json.tmp").exists()


def test_json_file_store_rejects_corrupt_file(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{broken", encoding="utf-8")
    with pytest.raises(StorageError):
        JsonFileStore(path)


def test_json_file_store_rejects_non_object(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("[1, 2]", encoding="utf-8")
    with pytest.raises(StorageError):
        JsonFileStore(path)


def test_read_and_write_json_helpers():
    store = MemoryStore()
    assert read_json(store, "k") is None
    assert write_json(store, "k", {"n": 1}) is True
    assert read_json(store, "k") == {"n": 1}
    store.set("k", "nope{")
    with pytest.raises(StorageError):
        read_json(store, "k")


def test_write_json_reports_storage_failure():
    class FailingStore(MemoryStore):
        def set(self, key, value):
            raise StorageError("quota exceeded")

    assert write_json(FailingStore(), "k", [1]) is False


# --------------------------------------------------------------------
# CONFIG
# --------------------------------------------------------------------
def test_load_config_defaults():
    config = load_config({})
    assert config.cloud_url is None
    assert config.cloud_enabled is False
    assert config.connect_attempts == 10
    assert config.log_level == "WARNING"


def test_load_config_reads_environment(tmp_path):
    config = load_config(
        {
            "CONTRACTOR_SYNC_DATA_FILE": str(tmp_path / "data.json"),
            "CONTRACTOR_SYNC_CLOUD_URL": "https://cloud.example",
            "CONTRACTOR_SYNC_DIRECTORY_KEY": "team",
            "CONTRACTOR_SYNC_TIMEOUT": "2.5",
            "CONTRACTOR_SYNC_CONNECT_ATTEMPTS": "3",
            "CONTRACTOR_SYNC_LOG_LEVEL": "debug",
        }
    )
    assert config.data_file == tmp_path / "data.json"
    assert config.cloud_enabled is True
    assert config.directory_key == "team"
    assert config.timeout == 2.5
    assert config.connect_attempts == 3
    assert config.log_level == "DEBUG"


@pytest.mark.parametrize("value", ["abc", "-1"])
def test_load_config_rejects_bad_numbers(value):
    with pytest.raises(ConfigError):
        load_config({"CONTRACTOR_SYNC_TIMEOUT": value})


# --------------------------------------------------------------------
# CONTEXT
# --------------------------------------------------------------------
def test_device_id_is_issued_once():
    store = MemoryStore()
    first = get_or_create_device_id(store)
    assert first.startswith("device_")
    assert get_or_create_device_id(store) == first
    assert store.get(DEVICE_ID_KEY) == first


def test_build_context_without_cloud_is_local_only(tmp_path):
    config = AppConfig(data_file=tmp_path / "store.json")
    ctx = build_context(config)

    assert ctx.gateway is None
    assert ctx.orchestrator.gateway is None
    assert len(ctx.directory) == 4
    stored = json.loads((tmp_path / "store.json").read_text(encoding="utf-8"))
    assert stored[DEVICE_ID_KEY] == ctx.device_id


def test_build_context_falls_back_to_memory_on_corrupt_file(tmp_path):
    path = tmp_path / "store.json"
    path.write_text("{broken", encoding="utf-8")
    ctx = build_context(AppConfig(data_file=path))
    assert isinstance(ctx.store, MemoryStore)


def test_build_context_keys_gateway_by_device_id(tmp_path):
    config = AppConfig(data_file=tmp_path / "store.json", cloud_url="https://cloud.example")
    ctx = build_context(config)
    assert ctx.gateway is not None
    assert ctx.gateway.directory_key == ctx.device_id
    asyncio.run(ctx.aclose())
