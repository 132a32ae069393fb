"""Generic MongoDB repository mapping documents to pydantic models."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Generic, Iterable, Mapping, Sequence, TypeVar

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.client_session import ClientSession
from pymongo.collection import Collection

LOGGER = logging.getLogger(__name__)

T = TypeVar("T", bound=BaseModel)
R = TypeVar("R")

Filter = Mapping[str, Any]
SortSpec = list[tuple[str, int]]

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10
MAX_LIMIT = 100
DEFAULT_SORT: SortSpec = [("created_at", -1)]


@dataclass(frozen=True)
class QueryOptions:
    """Cursor options for multi-document reads."""

    sort: SortSpec | None = None
    skip: int = 0
    limit: int = 0
    session: ClientSession | None = None


@dataclass(frozen=True)
class PaginationOptions:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_LIMIT
    sort: SortSpec | None = None

    def normalized(self) -> "PaginationOptions":
        return PaginationOptions(
            page=max(1, int(self.page)),
            limit=min(MAX_LIMIT, max(1, int(self.limit))),
            sort=self.sort,
        )


@dataclass(frozen=True)
class PaginatedResult(Generic[T]):
    data: list[T]
    total: int
    page: int
    total_pages: int


@dataclass(frozen=True)
class UpdateResult:
    affected: int
    matched: int = 0
    raw: dict[str, Any] = field(default_factory=dict)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: str | ObjectId) -> ObjectId | None:
    """Parse an id, returning ``None`` when it is not a valid ObjectId."""
    if isinstance(value, ObjectId):
        return value
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return None


class MongoRepository(Generic[T]):
    """CRUD, pagination, soft delete and transactions over one collection.

    Documents are stored with Mongo's ``_id``; models expose it as a string
    ``id``. ``created_at`` and ``updated_at`` are maintained here.
    """

    def __init__(self, collection: Collection, model: type[T]) -> None:
        self._collection = collection
        self._model = model

    @property
    def collection(self) -> Collection:
        return self._collection

    def _to_model(self, doc: Mapping[str, Any] | None) -> T | None:
        if doc is None:
            return None
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return self._model.model_validate(data)

    def _to_models(self, docs: Iterable[Mapping[str, Any]]) -> list[T]:
        return [model for model in (self._to_model(doc) for doc in docs) if model is not None]

    @staticmethod
    def _id_filter(entity_id: str) -> dict[str, Any] | None:
        oid = to_object_id(entity_id)
        return None if oid is None else {"_id": oid}

    # Create

    def create(self, data: Mapping[str, Any], session: ClientSession | None = None) -> T:
        now = utc_now()
        doc = {key: value for key, value in data.items() if key != "id"}
        doc.setdefault("created_at", now)
        doc.setdefault("updated_at", now)
        result = self._collection.insert_one(doc, session=session)
        doc["_id"] = result.inserted_id
        return self._to_model(doc)  # type: ignore[return-value]

    def create_many(
        self, items: Sequence[Mapping[str, Any]], session: ClientSession | None = None
    ) -> list[T]:
        if not items:
            return []
        now = utc_now()
        docs = []
        for data in items:
            doc = {key: value for key, value in data.items() if key != "id"}
            doc.setdefault("created_at", now)
            doc.setdefault("updated_at", now)
            docs.append(doc)
        result = self._collection.insert_many(docs, session=session)
        for doc, inserted_id in zip(docs, result.inserted_ids):
            doc["_id"] = inserted_id
        return self._to_models(docs)

    # Read

    def find_by_id(self, entity_id: str, session: ClientSession | None = None) -> T | None:
        id_filter = self._id_filter(entity_id)
        if id_filter is None:
            return None
        return self._to_model(self._collection.find_one(id_filter, session=session))

    def find_one(self, where: Filter, session: ClientSession | None = None) -> T | None:
        return self._to_model(self._collection.find_one(dict(where), session=session))

    def find_one_projected(
        self,
        where: Filter,
        fields: Sequence[str],
        session: ClientSession | None = None,
    ) -> dict[str, Any] | None:
        """Return only ``fields`` (plus ``id``) of the first match as a dict."""
        projection = {name: 1 for name in fields}
        doc = self._collection.find_one(dict(where), projection, session=session)
        if doc is None:
            return None
        data = dict(doc)
        data["id"] = str(data.pop("_id"))
        return data

    def find(self, where: Filter, options: QueryOptions | None = None) -> list[T]:
        opts = options or QueryOptions()
        kwargs: dict[str, Any] = {"session": opts.session}
        if opts.sort:
            kwargs["sort"] = opts.sort
        if opts.skip:
            kwargs["skip"] = opts.skip
        if opts.limit:
            kwargs["limit"] = opts.limit
        return self._to_models(self._collection.find(dict(where), **kwargs))

    def find_or_create(
        self,
        where: Filter,
        data: Mapping[str, Any],
        session: ClientSession | None = None,
    ) -> T:
        """Return the first match, inserting ``data`` atomically when none exists."""
        now = utc_now()
        on_insert = {
            key: value for key, value in data.items() if key != "id" and key not in where
        }
        on_insert.setdefault("created_at", now)
        on_insert.setdefault("updated_at", now)
        doc = self._collection.find_one_and_update(
            dict(where),
            {"$setOnInsert": on_insert},
            upsert=True,
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        return self._to_model(doc)  # type: ignore[return-value]

    def find_with_pagination(
        self,
        where: Filter,
        pagination: PaginationOptions | None = None,
        session: ClientSession | None = None,
    ) -> PaginatedResult[T]:
        opts = (pagination or PaginationOptions()).normalized()
        data = self.find(
            where,
            QueryOptions(
                sort=opts.sort or DEFAULT_SORT,
                skip=(opts.page - 1) * opts.limit,
                limit=opts.limit,
                session=session,
            ),
        )
        total = self.count(where, session=session)
        return PaginatedResult(
            data=data,
            total=total,
            page=opts.page,
            total_pages=math.ceil(total / opts.limit) if total else 0,
        )

    # Update

    def find_by_id_and_update(
        self,
        entity_id: str,
        changes: Mapping[str, Any],
        session: ClientSession | None = None,
    ) -> T | None:
        id_filter = self._id_filter(entity_id)
        if id_filter is None:
            return None
        return self.find_one_and_update(id_filter, changes, session=session)

    def find_one_and_update(
        self,
        where: Filter,
        changes: Mapping[str, Any],
        session: ClientSession | None = None,
    ) -> T | None:
        doc = self._collection.find_one_and_update(
            dict(where),
            {"$set": {**changes, "updated_at": utc_now()}},
            return_document=ReturnDocument.AFTER,
            session=session,
        )
        return self._to_model(doc)

    def update_one(
        self,
        where: Filter,
        changes: Mapping[str, Any],
        session: ClientSession | None = None,
    ) -> UpdateResult:
        result = self._collection.update_one(
            dict(where), {"$set": {**changes, "updated_at": utc_now()}}, session=session
        )
        return UpdateResult(
            affected=result.modified_count,
            matched=result.matched_count,
            raw=result.raw_result or {},
        )

    def update_many(
        self,
        where: Filter,
        changes: Mapping[str, Any],
        session: ClientSession | None = None,
    ) -> UpdateResult:
        result = self._collection.update_many(
            dict(where), {"$set": {**changes, "updated_at": utc_now()}}, session=session
        )
        return UpdateResult(
            affected=result.modified_count,
            matched=result.matched_count,
            raw=result.raw_result or {},
        )

    # Delete

    def find_by_id_and_delete(
        self, entity_id: str, session: ClientSession | None = None
    ) -> T | None:
        id_filter = self._id_filter(entity_id)
        if id_filter is None:
            return None
        return self.find_one_and_delete(id_filter, session=session)

    def find_one_and_delete(self, where: Filter, session: ClientSession | None = None) -> T | None:
        return self._to_model(self._collection.find_one_and_delete(dict(where), session=session))

    def delete_one(self, where: Filter, session: ClientSession | None = None) -> None:
        self._collection.delete_one(dict(where), session=session)

    def delete_many(self, where: Filter, session: ClientSession | None = None) -> int:
        return int(self._collection.delete_many(dict(where), session=session).deleted_count)

    def soft_delete(self, entity_id: str, session: ClientSession | None = None) -> T | None:
        """Mark inactive and stamp ``deleted_at`` instead of removing."""
        return self.find_by_id_and_update(
            entity_id, {"is_active": False, "deleted_at": utc_now()}, session=session
        )

    def soft_delete_many(self, where: Filter, session: ClientSession | None = None) -> int:
        result = self.update_many(
            where, {"is_active": False, "deleted_at": utc_now()}, session=session
        )
        return result.affected

    # Utility

    def count(self, where: Filter, session: ClientSession | None = None) -> int:
        return int(self._collection.count_documents(dict(where), session=session))

    def exists(self, where: Filter, session: ClientSession | None = None) -> bool:
        return self._collection.find_one(dict(where), {"_id": 1}, session=session) is not None

    def with_transaction(self, callback: Callable[[ClientSession], R]) -> R:
        """Run ``callback`` inside a transaction; commit on return, abort on raise."""
        client = self._collection.database.client
        with client.start_session() as session:
            try:
                with session.start_transaction():
                    return callback(session)
            except Exception:
                LOGGER.exception(
                    "transaction_aborted",
                    extra={"operation": f"{self._collection.name}.with_transaction"},
                )
                raise
