"""Cache key formats for every cached projection."""

from __future__ import annotations


class UserKeys:
    @staticmethod
    def by_id(user_id: str) -> str:
        return f"user:id:{user_id}"

    @staticmethod
    def by_email(email: str) -> str:
        return f"user:email:{email.strip().lower()}"

    @staticmethod
    def page(page: int, limit: int) -> str:
        return f"user:list:{page}:{limit}"

    @staticmethod
    def all_pages() -> str:
        """Glob matching every cached listing page."""
        return "user:list:*"

    @staticmethod
    def signups(year: int, month: int) -> str:
        return f"user:stats:signups:{year}:{month:02d}"


class CacheKeys:
    user = UserKeys
