"""MongoDB repositories for users and their role assignments."""

from __future__ import annotations

from datetime import datetime

from pymongo.database import Database

from identity_api.persistence.repository import MongoRepository, QueryOptions
from identity_api.users.models import User, UserRole

USERS_COLLECTION = "users"
USER_ROLES_COLLECTION = "user_roles"


class UserRepository(MongoRepository[User]):
    def __init__(self, db: Database) -> None:
        super().__init__(db[USERS_COLLECTION], User)

    def find_active_by_email(self, email: str) -> User | None:
        return self.find_one({"email": email.strip().lower(), "is_active": True})

    def count_created_between(self, start: datetime, end: datetime) -> int:
        return self.count({"created_at": {"$gte": start, "$lt": end}})


class UserRoleRepository(MongoRepository[UserRole]):
    def __init__(self, db: Database) -> None:
        super().__init__(db[USER_ROLES_COLLECTION], UserRole)

    def roles_for(self, user_id: str) -> list[int]:
        rows = self.find({"user_id": user_id}, QueryOptions(sort=[("role", 1)]))
        return [row.role for row in rows]
