"""Repository adapters - Database and in-memory implementations."""

from .memory import InMemoryHouseholdRepository, InMemoryUserRepository
from .postgres import PostgresHouseholdRepository, PostgresUserRepository, run_migrations

__all__ = [
    "InMemoryHouseholdRepository",
    "InMemoryUserRepository",
    "PostgresHouseholdRepository",
    "PostgresUserRepository",
    "run_migrations",
]
