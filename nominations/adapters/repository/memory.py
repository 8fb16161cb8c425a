"""
In-memory repository adapters - Dict-backed user and household stores.

Used by the unit tests and by local demos that run without PostgreSQL.
Records are copied on the way in and out, so a mutated User is only
visible to later reads after save(), as with the database adapter.
"""

import threading
from dataclasses import replace
from datetime import datetime, timezone
from typing import Any

from nominations.domain.exceptions import DuplicateEmail
from nominations.domain.models import Household, User


class InMemoryUserRepository:
    """
    Implements UserRepository protocol with a dict keyed by user id.

    Emails are unique, mirroring the UNIQUE constraint of the users table.

    Examples:
        >>> repo = InMemoryUserRepository()
        >>> user = repo.create({"email": "a@b.com", "password": "x",
        ...                     "name_first": "A", "name_last": "B"})
        >>> repo.find_by_email("a@b.com").id == user.id
        True
    """

    def __init__(self) -> None:
        self._users: dict[int, User] = {}
        self._next_id = 1
        self._lock = threading.Lock()

    def find_by_email(self, email: str) -> User | None:
        with self._lock:
            for user in self._users.values():
                if user.email == email:
                    return replace(user)
        return None

    def find_by_id(self, user_id: int) -> User | None:
        with self._lock:
            user = self._users.get(user_id)
            return replace(user) if user is not None else None

    def create(self, fields: dict[str, Any]) -> User:
        with self._lock:
            if any(user.email == fields["email"] for user in self._users.values()):
                raise DuplicateEmail(fields["email"])
            user = User(
                id=self._next_id,
                created_at=datetime.now(timezone.utc),
                **fields,
            )
            self._users[user.id] = user
            self._next_id += 1
            return replace(user)

    def save(self, user: User) -> None:
        with self._lock:
            self._users[user.id] = replace(user)

    def list_page(
        self, offset: int, limit: int, pending_approval: bool = False
    ) -> tuple[list[User], int]:
        with self._lock:
            users = sorted(self._users.values(), key=lambda u: u.id)
        if pending_approval:
            users = [u for u in users if u.email_verified and not u.approved]
        return [replace(u) for u in users[offset : offset + limit]], len(users)

    def all(self) -> list[User]:
        """Every stored user, ordered by id."""
        with self._lock:
            return [replace(u) for u in sorted(self._users.values(), key=lambda u: u.id)]


class InMemoryHouseholdRepository:
    """Implements HouseholdRepository protocol over a list of households."""

    def __init__(self, households: list[Household] | None = None) -> None:
        self._households = list(households or [])

    def add(self, household: Household) -> None:
        self._households.append(household)

    def list_page(
        self, offset: int, limit: int, nominator_id: int | None = None
    ) -> tuple[list[Household], int]:
        rows = [
            h
            for h in sorted(self._households, key=lambda h: h.id)
            if h.deleted_at is None and (nominator_id is None or h.nominator_id == nominator_id)
        ]
        return rows[offset : offset + limit], len(rows)
