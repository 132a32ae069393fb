from __future__ import annotations

from datetime import datetime

import pytest
from pydantic import BaseModel

from identity_api.persistence.repository import (
    MongoRepository,
    PaginationOptions,
    QueryOptions,
)
from tests.fakes import FakeCollection


class _Widget(BaseModel):
    id: str
    name: str
    size: int = 0
    is_active: bool = True
    created_at: datetime | None = None
    updated_at: datetime | None = None
    deleted_at: datetime | None = None


def _repo() -> tuple[MongoRepository[_Widget], FakeCollection]:
    collection = FakeCollection("widgets")
    return MongoRepository(collection, _Widget), collection


def test_create_assigns_string_id_and_timestamps() -> None:
    repo, collection = _repo()

    widget = repo.create({"name": "bolt", "size": 3})

    assert len(widget.id) == 24
    assert widget.created_at is not None
    assert widget.created_at == widget.updated_at
    assert "id" not in collection.docs[0]
    assert repo.find_by_id(widget.id) == widget


def test_invalid_object_id_resolves_to_not_found() -> None:
    repo, _ = _repo()
    repo.create({"name": "bolt"})

    assert repo.find_by_id("not-an-object-id") is None
    assert repo.find_by_id_and_update("nope", {"name": "x"}) is None
    assert repo.find_by_id_and_delete("nope") is None


def test_find_applies_sort_skip_and_limit() -> None:
    repo, _ = _repo()
    repo.create_many([{"name": name, "size": size} for name, size in (("a", 3), ("b", 1), ("c", 2))])

    rows = repo.find({}, QueryOptions(sort=[("size", 1)], skip=1, limit=1))

    assert [row.name for row in rows] == ["c"]


def test_find_one_projected_returns_only_requested_fields() -> None:
    repo, _ = _repo()
    created = repo.create({"name": "bolt", "size": 7})

    projected = repo.find_one_projected({"name": "bolt"}, ["size"])

    assert projected == {"id": created.id, "size": 7}


def test_find_or_create_inserts_once() -> None:
    repo, collection = _repo()

    first = repo.find_or_create({"name": "bolt"}, {"name": "ignored", "size": 5})
    second = repo.find_or_create({"name": "bolt"}, {"size": 9})

    assert first.id == second.id
    assert second.size == 5
    assert len(collection.docs) == 1


def test_pagination_caps_limit_and_reports_totals() -> None:
    repo, _ = _repo()
    repo.create_many([{"name": f"w{index}", "size": index} for index in range(25)])

    page = repo.find_with_pagination(
        {}, PaginationOptions(page=2, limit=10, sort=[("size", 1)])
    )
    capped = PaginationOptions(page=0, limit=500).normalized()

    assert [row.size for row in page.data] == list(range(10, 20))
    assert page.total == 25
    assert page.total_pages == 3
    assert (capped.page, capped.limit) == (1, 100)


def test_update_helpers_touch_updated_at_and_report_counts() -> None:
    repo, _ = _repo()
    widget = repo.create({"name": "bolt", "size": 1})
    repo.create({"name": "nut", "size": 1})

    updated = repo.find_by_id_and_update(widget.id, {"size": 2})
    result = repo.update_many({"size": 1}, {"size": 3})

    assert updated is not None and updated.size == 2
    assert updated.updated_at >= widget.updated_at
    assert result.affected == 1
    assert result.matched == 1


def test_soft_delete_marks_inactive_and_keeps_document() -> None:
    repo, collection = _repo()
    widget = repo.create({"name": "bolt"})

    deleted = repo.soft_delete(widget.id)

    assert deleted is not None
    assert deleted.is_active is False
    assert deleted.deleted_at is not None
    assert len(collection.docs) == 1
    assert repo.count({"is_active": True}) == 0


def test_hard_delete_helpers() -> None:
    repo, _ = _repo()
    keep = repo.create({"name": "keep"})
    repo.create_many([{"name": "drop"}, {"name": "drop"}])

    assert repo.delete_many({"name": "drop"}) == 2
    assert repo.find_one_and_delete({"name": "keep"}) == keep
    assert repo.exists({}) is False


def test_with_transaction_commits_on_return_and_aborts_on_raise() -> None:
    repo, collection = _repo()
    client = collection.database.client

    result = repo.with_transaction(lambda session: repo.create({"name": "bolt"}, session=session))

    def _boom(session):
        raise RuntimeError("boom")

    with pytest.raises(RuntimeError):
        repo.with_transaction(_boom)

    assert result.name == "bolt"
    assert client.transactions == ["started", "committed", "started", "aborted"]
