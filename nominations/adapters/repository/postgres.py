"""
PostgreSQL repository adapters - Implement the user and household ports.

This module provides the PostgreSQL implementations of the domain's
repository ports using psycopg3 with raw SQL.

Concurrency Design - Duplicate Registration:
-------------------------------------------
The workflow checks for an existing email before creating a user, but two
concurrent registrations can both pass that check. The UNIQUE constraint
on users.email is the real guard: the losing INSERT raises UniqueViolation,
which is surfaced as DuplicateEmail so the workflow answers exactly as it
would for a sequential duplicate.

Every other psycopg error is wrapped in PersistenceError after logging,
so driver details never reach the domain or the HTTP response.
"""

import logging
from pathlib import Path
from typing import Any

import psycopg
from psycopg import errors
from psycopg_pool import ConnectionPool

from nominations.domain.exceptions import DuplicateEmail, PersistenceError
from nominations.domain.models import Household, User, UserRole

logger = logging.getLogger(__name__)

# Shipped as package data: nominations/adapters/repository/postgres.py -> nominations/migrations/
MIGRATIONS_DIR = Path(__file__).parents[2] / "migrations"

_USER_COLUMNS = """
    id, email, password, name_first, name_last, rank, phone, affiliation_id, role,
    confirmation_code, confirmation_email, email_verified, approved, active, created_at
"""

_HOUSEHOLD_COLUMNS = """
    id, name_first, name_last, email, preferred_contact_method, nominator_id,
    name_middle, case_number, draft, reviewed, approved, deleted_at,
    dob, race, gender, last4ssn, reason, nomination_email_sent,
    ARRAY(
        SELECT p.number FROM household_phones p
        WHERE p.household_id = households.id ORDER BY p.id
    )
"""

# Columns supplied at registration; the rest take their defaults
_CREATABLE_FIELDS = (
    "email",
    "password",
    "name_first",
    "name_last",
    "rank",
    "phone",
    "affiliation_id",
)


def _row_to_user(row: tuple) -> User:
    return User(
        id=row[0],
        email=row[1],
        password=row[2],
        name_first=row[3],
        name_last=row[4],
        rank=row[5],
        phone=row[6],
        affiliation_id=row[7],
        role=UserRole(row[8]),
        confirmation_code=row[9],
        confirmation_email=row[10],
        email_verified=row[11],
        approved=row[12],
        active=row[13],
        created_at=row[14],
    )


def _row_to_household(row: tuple) -> Household:
    return Household(
        id=row[0],
        name_first=row[1],
        name_last=row[2],
        email=row[3],
        preferred_contact_method=row[4],
        nominator_id=row[5],
        name_middle=row[6],
        case_number=row[7],
        draft=row[8],
        reviewed=row[9],
        approved=row[10],
        deleted_at=row[11],
        dob=row[12],
        race=row[13],
        gender=row[14],
        last4ssn=row[15],
        reason=row[16],
        nomination_email_sent=row[17],
        phones=list(row[18]),
    )


class PostgresUserRepository:
    """
    Implements UserRepository protocol via psycopg3.

    Uses structural subtyping - no explicit inheritance from Protocol.
    All SQL uses parameterized queries.
    """

    def __init__(self, pool: ConnectionPool) -> None:
        """
        Initialize repository with connection pool.

        Args:
            pool: psycopg3 ConnectionPool for database connections
        """
        self._pool = pool

    def find_by_email(self, email: str) -> User | None:
        sql = f"SELECT {_USER_COLUMNS} FROM users WHERE email = %s"
        return self._fetch_one(sql, (email,), "find by email")

    def find_by_id(self, user_id: int) -> User | None:
        sql = f"SELECT {_USER_COLUMNS} FROM users WHERE id = %s"
        return self._fetch_one(sql, (user_id,), "find by id")

    def create(self, fields: dict[str, Any]) -> User:
        """
        Insert a new user; workflow flags take their column defaults.

        Raises:
            DuplicateEmail: users.email UNIQUE constraint violated
            PersistenceError: Any other database failure
        """
        values = [fields.get(name) for name in _CREATABLE_FIELDS]
        sql = f"""
            INSERT INTO users ({", ".join(_CREATABLE_FIELDS)})
            VALUES ({", ".join(["%s"] * len(_CREATABLE_FIELDS))})
            RETURNING {_USER_COLUMNS}
        """
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, values)
                row = cursor.fetchone()
                conn.commit()
        except errors.UniqueViolation as e:
            raise DuplicateEmail(fields.get("email")) from e
        except psycopg.Error as e:
            logger.error("PostgresUserRepository: create failed: %s", e)
            raise PersistenceError("User creation failed") from e

        if row is None:
            raise PersistenceError("User creation failed: no row returned")
        return _row_to_user(row)

    def save(self, user: User) -> None:
        """Write back every mutable column of an existing user."""
        sql = """
            UPDATE users
            SET email = %s, password = %s, name_first = %s, name_last = %s,
                rank = %s, phone = %s, affiliation_id = %s, role = %s,
                confirmation_code = %s, confirmation_email = %s,
                email_verified = %s, approved = %s, active = %s
            WHERE id = %s
        """
        params = (
            user.email,
            user.password,
            user.name_first,
            user.name_last,
            user.rank,
            user.phone,
            user.affiliation_id,
            user.role.value,
            user.confirmation_code,
            user.confirmation_email,
            user.email_verified,
            user.approved,
            user.active,
            user.id,
        )
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, params)
                conn.commit()
        except psycopg.Error as e:
            logger.error("PostgresUserRepository: save failed for user %s: %s", user.id, e)
            raise PersistenceError("User update failed") from e

    def list_page(
        self, offset: int, limit: int, pending_approval: bool = False
    ) -> tuple[list[User], int]:
        where = "WHERE email_verified AND NOT approved" if pending_approval else ""
        page_sql = f"SELECT {_USER_COLUMNS} FROM users {where} ORDER BY id LIMIT %s OFFSET %s"
        count_sql = f"SELECT COUNT(*) FROM users {where}"
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(page_sql, (limit, offset))
                rows = cursor.fetchall()
                cursor.execute(count_sql)
                total = cursor.fetchone()[0]
        except psycopg.Error as e:
            logger.error("PostgresUserRepository: list failed: %s", e)
            raise PersistenceError("User listing failed") from e

        return [_row_to_user(row) for row in rows], total

    def _fetch_one(self, sql: str, params: tuple, action: str) -> User | None:
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(sql, params)
                row = cursor.fetchone()
        except psycopg.Error as e:
            logger.error("PostgresUserRepository: %s failed: %s", action, e)
            raise PersistenceError(f"User lookup failed ({action})") from e

        return _row_to_user(row) if row is not None else None


class PostgresHouseholdRepository:
    """Implements HouseholdRepository protocol via psycopg3."""

    def __init__(self, pool: ConnectionPool) -> None:
        self._pool = pool

    def list_page(
        self, offset: int, limit: int, nominator_id: int | None = None
    ) -> tuple[list[Household], int]:
        """Soft-deleted households are excluded from both page and count."""
        where = "WHERE deleted_at IS NULL"
        params: tuple = ()
        if nominator_id is not None:
            where += " AND nominator_id = %s"
            params = (nominator_id,)

        page_sql = (
            f"SELECT {_HOUSEHOLD_COLUMNS} FROM households {where} "
            "ORDER BY id LIMIT %s OFFSET %s"
        )
        count_sql = f"SELECT COUNT(*) FROM households {where}"
        try:
            with self._pool.connection() as conn, conn.cursor() as cursor:
                cursor.execute(page_sql, (*params, limit, offset))
                rows = cursor.fetchall()
                cursor.execute(count_sql, params)
                total = cursor.fetchone()[0]
        except psycopg.Error as e:
            logger.error("PostgresHouseholdRepository: list failed: %s", e)
            raise PersistenceError("Household listing failed") from e

        return [_row_to_household(row) for row in rows], total


def run_migrations(pool: ConnectionPool) -> None:
    """
    Execute all SQL migration files from the migrations directory.

    Migrations are executed in sorted order (alphabetically by filename).
    Each migration should be idempotent (use IF NOT EXISTS, etc.).

    Args:
        pool: psycopg3 ConnectionPool instance
    """
    migrations_dir = MIGRATIONS_DIR

    if not migrations_dir.exists():
        logger.warning(f"Migrations directory not found: {migrations_dir}")
        return

    sql_files = sorted(migrations_dir.glob("*.sql"))

    if not sql_files:
        logger.info("No migration files found")
        return

    logger.info(f"Running {len(sql_files)} migration(s)")

    for sql_file in sql_files:
        logger.info(f"Executing migration: {sql_file.name}")
        try:
            sql_content = sql_file.read_text()

            with pool.connection() as conn:
                conn.execute(sql_content)

            logger.info(f"Migration complete: {sql_file.name}")
        except Exception as e:
            logger.error(f"Migration failed: {sql_file.name} - {e}")
            raise RuntimeError(f"Database migration failed: {sql_file.name}") from e
