"""
Shared test fixtures and configuration.

This module provides pytest fixtures for:
- In-memory user store, mailer mock, and notification outbox
- A registration workflow wired to them
- A v1 test app and client over the same in-memory adapters
- A seeded administrator
- A migrated PostgreSQL pool for the integration and adversarial suites

Data builders live in tests/factories.py.
"""

from collections.abc import Generator
from unittest.mock import Mock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient
from psycopg_pool import ConnectionPool, PoolTimeout

from nominations.adapters.outbox import InMemoryOutbox
from nominations.adapters.repository.memory import (
    InMemoryHouseholdRepository,
    InMemoryUserRepository,
)
from nominations.adapters.repository.postgres import run_migrations
from nominations.api.dependencies import (
    get_household_repository,
    get_user_repository,
    get_workflow,
)
from nominations.api.v1 import router
from nominations.config.settings import Settings, get_settings
from nominations.create_admin import create_admin
from nominations.domain.credentials import BcryptPasswordPolicy
from nominations.domain.models import User
from nominations.domain.ports import WorkflowConfig
from nominations.domain.registration import RegistrationWorkflow
from tests.factories import ADMIN_ADDRESS, STRONG_PASSWORD


@pytest.fixture
def user_repository() -> InMemoryUserRepository:
    return InMemoryUserRepository()


@pytest.fixture
def mailer() -> Mock:
    return Mock()


@pytest.fixture
def outbox() -> InMemoryOutbox:
    """Outbox whose retry backoff never really sleeps."""
    return InMemoryOutbox(max_attempts=3, sleep=Mock())


@pytest.fixture
def workflow(
    user_repository: InMemoryUserRepository, mailer: Mock, outbox: InMemoryOutbox
) -> RegistrationWorkflow:
    """Workflow over in-memory adapters with a mocked mailer."""
    return RegistrationWorkflow(
        repository=user_repository,
        mailer=mailer,
        dispatcher=outbox,
        config=WorkflowConfig(admin_address=ADMIN_ADDRESS),
    )


@pytest.fixture
def household_repository() -> InMemoryHouseholdRepository:
    return InMemoryHouseholdRepository()


@pytest.fixture
def policy() -> BcryptPasswordPolicy:
    """Low-cost bcrypt so API tests hash quickly."""
    return BcryptPasswordPolicy(cost=4)


@pytest.fixture
def app(
    user_repository: InMemoryUserRepository,
    household_repository: InMemoryHouseholdRepository,
    mailer: Mock,
    outbox: InMemoryOutbox,
    policy: BcryptPasswordPolicy,
) -> FastAPI:
    """v1 router over in-memory adapters, without the database lifespan."""
    api_workflow = RegistrationWorkflow(
        repository=user_repository,
        mailer=mailer,
        dispatcher=outbox,
        config=WorkflowConfig(admin_address=ADMIN_ADDRESS),
        password_policy=policy,
    )
    test_app = FastAPI()
    test_app.include_router(router, prefix="/v1")
    test_app.state.outbox = outbox
    test_app.dependency_overrides[get_workflow] = lambda: api_workflow
    test_app.dependency_overrides[get_user_repository] = lambda: user_repository
    test_app.dependency_overrides[get_household_repository] = lambda: household_repository
    test_app.dependency_overrides[get_settings] = lambda: Settings(page_size=2)
    return test_app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture
def admin(user_repository: InMemoryUserRepository, policy: BcryptPasswordPolicy) -> User:
    user, _ = create_admin(user_repository, policy, ADMIN_ADDRESS, STRONG_PASSWORD)
    return user


@pytest.fixture(scope="session")
def pg_pool() -> Generator[ConnectionPool, None, None]:
    """
    Migrated PostgreSQL pool from DATABASE_URL.

    Tests using it are skipped when the database cannot be reached.
    """
    pool = ConnectionPool(
        conninfo=get_settings().database_url, min_size=1, max_size=10, open=True
    )
    try:
        pool.wait(timeout=3.0)
    except PoolTimeout:
        pool.close()
        pytest.skip("PostgreSQL is not reachable")
    run_migrations(pool)
    yield pool
    pool.close()


@pytest.fixture
def clean_tables(pg_pool: ConnectionPool) -> None:
    """Empty households and users before a test."""
    with pg_pool.connection() as conn:
        conn.execute("TRUNCATE household_phones, households, users RESTART IDENTITY CASCADE")
