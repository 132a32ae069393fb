"""Versioned MongoDB schema migrations for user collections."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable

from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from identity_api.core.logging import CORRELATION_ID_CTX

LOGGER = logging.getLogger(__name__)

MigrationFn = Callable[[Any], None]

MIGRATIONS_COLLECTION = "schema_migrations"


def _migration_20261019_01_user_indexes(db: Any) -> None:
    users = db["users"]
    # Email is unique among active accounts only, so a soft-deleted address can sign up again.
    users.create_index(
        "email",
        unique=True,
        partialFilterExpression={"is_active": True},
        name="uniq_users_active_email",
    )
    users.create_index("employee_id", unique=True)
    users.create_index([("created_at", DESCENDING)])


def _migration_20261019_02_user_role_indexes(db: Any) -> None:
    roles = db["user_roles"]
    roles.create_index("user_id")
    roles.create_index([("user_id", ASCENDING), ("role", ASCENDING)], unique=True)


MIGRATIONS: list[tuple[str, MigrationFn]] = [
    ("20261019_01_user_indexes", _migration_20261019_01_user_indexes),
    ("20261019_02_user_role_indexes", _migration_20261019_02_user_role_indexes),
]


def apply_mongo_migrations(db: Any, migrations: list[tuple[str, MigrationFn]] | None = None) -> list[str]:
    """Apply pending migrations in order; return the ids applied by this call."""
    applied: list[str] = []
    migration_collection = db[MIGRATIONS_COLLECTION]
    try:
        migration_collection.create_index("migration_id", unique=True)
        for migration_id, migration_fn in migrations or MIGRATIONS:
            if migration_collection.find_one({"migration_id": migration_id}):
                continue
            migration_fn(db)
            migration_collection.insert_one(
                {
                    "migration_id": migration_id,
                    "applied_at": datetime.now(timezone.utc),
                    "correlation_id": CORRELATION_ID_CTX.get(),
                }
            )
            applied.append(migration_id)
            LOGGER.info("mongo_migration_applied", extra={"operation": migration_id})
    except PyMongoError:
        LOGGER.exception("mongo_migrations_failed", extra={"operation": "apply_mongo_migrations"})
    return applied
