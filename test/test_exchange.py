import json

import pytest

from contractor_sync.errors import PayloadImportError
from contractor_sync.exchange import (
    PAYLOAD_VERSION,
    build_exchange_payload,
    export_data,
    export_exchange_payload,
    import_exchange_payload,
)


def _payload(*records):
    return json.dumps({"contractors": list(records), "version": PAYLOAD_VERSION})


@pytest.fixture
def directory(empty_directory):
    empty_directory.add("Acme", "Dealer")
    empty_directory.add("Globex", "Retail")
    return empty_directory


def test_build_payload_lists_contractors(directory):
    payload = build_exchange_payload(directory)
    assert payload["version"] == PAYLOAD_VERSION
    assert [c["name"] for c in payload["contractors"]] == ["Acme", "Globex"]
    assert "timestamp" in payload


def test_import_adds_new_names_with_fresh_ids(directory):
    summary = import_exchange_payload(
        _payload({"id": 1, "name": "Initech", "category": "Tech"}), directory
    )

    assert summary.imported_count == 1
    new = directory.find_by_name("Initech")
    assert new.id == 3
    assert new.category == "Tech"
    assert directory.get(1).name == "Acme"


def test_import_updates_category_of_exact_name_match(directory):
    summary = import_exchange_payload(
        _payload({"id": 40, "name": "Acme", "category": "Partner"}), directory
    )

    assert summary.updated_count == 1
    assert summary.imported_count == 0
    acme = directory.get(1)
    assert acme.category == "Partner"
    assert len(directory) == 2


def test_import_skips_case_variant_of_existing_name(directory):
    summary = import_exchange_payload(_payload({"id": 7, "name": "ACME"}), directory)
    assert summary.skipped_count == 1
    assert [c.name for c in directory.all()] == ["Acme", "Globex"]


def test_import_skips_malformed_records(directory):
    summary = import_exchange_payload(
        _payload({"id": 1}, {"id": "bad", "name": "X"}, {"id": 2, "name": "Umbrella"}),
        directory,
    )
    assert summary.imported_count == 1
    assert directory.find_by_name("Umbrella") is not None


def test_import_between_devices(directory, clock):
    from contractor_sync.directory import ContractorDirectory
    from contractor_sync.store import MemoryStore

    other = ContractorDirectory(MemoryStore(), seed_defaults=False, clock=clock)
    other.add("Globex", "Wholesale")
    other.add("Hooli")

    import_exchange_payload(export_exchange_payload(other), directory)

    assert [(c.id, c.name) for c in directory.all()] == [(1, "Acme"), (2, "Globex"), (3, "Hooli")]
    assert directory.get(2).category == "Wholesale"


@pytest.mark.parametrize(
    "text",
    [
        "{not json",
        "[]",
        json.dumps({"version": "1.0"}),
        json.dumps({"contractors": {"id": 1}}),
    ],
)
def test_invalid_payload_leaves_directory_unchanged(directory, text):
    before = [(c.id, c.name, c.category) for c in directory.all()]
    with pytest.raises(PayloadImportError):
        import_exchange_payload(text, directory)
    assert [(c.id, c.name, c.category) for c in directory.all()] == before


def test_payload_import_error_does_not_shadow_builtin():
    assert not issubclass(PayloadImportError, ImportError)


def test_export_data_contains_everything(directory, sessions, ledger):
    sessions.start([1])
    sessions.add_code("ABC")
    sessions.close()
    sessions.start([2])
    sessions.add_code("DEF")

    data = json.loads(export_data(directory, ledger, sessions, "device_test"))

    assert data["deviceId"] == "device_test"
    assert len(data["contractors"]) == 2
    assert [r["sequentialNumber"] for r in data["reports"]] == [1]
    assert data["currentSession"]["scannedCodes"][0]["code"] == "DEF"
    assert data["version"] == PAYLOAD_VERSION
