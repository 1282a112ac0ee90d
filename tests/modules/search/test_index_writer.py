from __future__ import annotations

import pytest

from dsindex.modules.search import (
    BulkDeleteFailed,
    BulkWriteFailed,
    IndexWriter,
    SearchEngineError,
    build_documents,
)


@pytest.fixture
def writer(fake_engine, stub_logger) -> IndexWriter:
    return IndexWriter(fake_engine, "datasets", logger=stub_logger)


def test_missing_index_is_created(writer, fake_engine) -> None:
    assert writer.ensure_index() is True

    assert fake_engine.call_names() == ["index_exists", "create_index"]
    vector = fake_engine.created_body["mappings"]["properties"]["vector"]
    assert vector["dimension"] == 512


def test_existing_index_is_left_alone(writer, fake_engine) -> None:
    fake_engine.exists = True

    assert writer.ensure_index() is True
    assert fake_engine.call_names() == ["index_exists"]


def test_recreate_drops_then_creates(writer, fake_engine) -> None:
    fake_engine.exists = True

    assert writer.ensure_index(recreate=True) is True
    assert fake_engine.call_names() == [
        "index_exists",
        "delete_index",
        "create_index",
    ]


def test_create_failure_is_logged_not_raised(
    writer, fake_engine, stub_logger
) -> None:
    fake_engine.fail_create = True

    assert writer.ensure_index() is False
    assert "index-create-failed" in stub_logger.names("error")


def test_documents_are_written_in_sequential_batches(
    writer, fake_engine, make_record
) -> None:
    documents = build_documents(
        [make_record(f"d{index:03d}") for index in range(250)],
        dim=4,
    )

    batches = writer.write_documents(documents, batch_size=100)

    assert batches == 3
    assert [len(bulk) for bulk in fake_engine.bulks] == [200, 200, 100]
    assert fake_engine.bulks[0][0]["update"]["_id"] == "d000"
    assert fake_engine.bulks[2][-2]["update"]["_id"] == "d249"


def test_rejected_item_fails_the_batch(writer, fake_engine, make_record) -> None:
    fake_engine.reject_bulk_at = {1}
    documents = build_documents(
        [make_record(f"d{index}") for index in range(5)],
        dim=4,
    )

    with pytest.raises(BulkWriteFailed) as excinfo:
        writer.write_documents(documents, batch_size=2)

    assert excinfo.value.position == 1
    assert excinfo.value.total == 3
    assert "mapping" in excinfo.value.reason
    assert len(fake_engine.bulks) == 2


def test_transport_error_keeps_cause(writer, fake_engine, make_record) -> None:
    fake_engine.fail_bulk_at = {0}
    documents = build_documents([make_record("d1")], dim=4)

    with pytest.raises(BulkWriteFailed) as excinfo:
        writer.write_documents(documents, batch_size=10)

    assert isinstance(excinfo.value.__cause__, SearchEngineError)
    assert excinfo.value.reason == "timeout"


def test_delete_batches(writer, fake_engine) -> None:
    assert writer.delete_documents(["d5", "d6", "d7"], batch_size=2) == 2
    assert [len(bulk) for bulk in fake_engine.bulks] == [2, 1]


def test_empty_delete_makes_no_calls(writer, fake_engine, stub_logger) -> None:
    assert writer.delete_documents([], batch_size=100) == 0
    assert fake_engine.calls == []
    assert "delete-nothing" in stub_logger.names("info")


def test_delete_failure_raises_delete_error(writer, fake_engine) -> None:
    fake_engine.reject_bulk_at = {0}

    with pytest.raises(BulkDeleteFailed):
        writer.delete_documents(["d1"], batch_size=100)
