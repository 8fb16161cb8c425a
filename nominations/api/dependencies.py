"""
FastAPI dependencies - Dependency injection factories.

This module provides Depends() factories for injecting the registration
workflow, repositories, and the authenticated user into routes.
"""

from functools import lru_cache

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from psycopg_pool import ConnectionPool

from nominations.adapters.mail import ConsoleMailer, SmtpMailer
from nominations.adapters.outbox import InMemoryOutbox
from nominations.adapters.repository.postgres import (
    PostgresHouseholdRepository,
    PostgresUserRepository,
)
from nominations.config.settings import Settings, get_settings
from nominations.domain.credentials import BcryptPasswordPolicy
from nominations.domain.models import User
from nominations.domain.ports import HouseholdRepository, Mailer, UserRepository, WorkflowConfig
from nominations.domain.registration import RegistrationWorkflow


def get_pool(request: Request) -> ConnectionPool:
    """
    Get connection pool from app state.

    The pool is created during app lifespan startup and stored in app.state.
    """
    return request.app.state.pool


def get_user_repository(request: Request) -> UserRepository:
    """Create user repository with connection pool from app state."""
    return PostgresUserRepository(get_pool(request))


def get_household_repository(request: Request) -> HouseholdRepository:
    """Create household repository with connection pool from app state."""
    return PostgresHouseholdRepository(get_pool(request))


def get_outbox(request: Request) -> InMemoryOutbox:
    """Notification outbox shared by every request (created at startup)."""
    return request.app.state.outbox


@lru_cache
def _build_mailer(
    backend: str,
    host: str,
    port: int,
    from_address: str,
    from_name: str,
    username: str | None,
    password: str | None,
    use_tls: bool,
) -> Mailer:
    if backend == "smtp":
        return SmtpMailer(
            host=host,
            port=port,
            from_address=from_address,
            from_name=from_name,
            username=username,
            password=password,
            use_tls=use_tls,
        )
    return ConsoleMailer()


def get_mailer(settings: Settings = Depends(get_settings)) -> Mailer:
    """Get the configured mailer (one instance per configuration)."""
    return _build_mailer(
        settings.mail_backend,
        settings.smtp_host,
        settings.smtp_port,
        settings.mail_from_address,
        settings.mail_from_name,
        settings.smtp_username,
        settings.smtp_password,
        settings.smtp_use_tls,
    )


def get_workflow(
    repository: UserRepository = Depends(get_user_repository),
    mailer: Mailer = Depends(get_mailer),
    outbox: InMemoryOutbox = Depends(get_outbox),
    settings: Settings = Depends(get_settings),
) -> RegistrationWorkflow:
    """
    Create the registration workflow with injected dependencies.

    Wires together the user store, mailer, outbox and password policy.
    """
    return RegistrationWorkflow(
        repository=repository,
        mailer=mailer,
        dispatcher=outbox,
        config=WorkflowConfig(
            admin_address=settings.admin_address,
            root_url_template=settings.root_url_template,
        ),
        password_policy=BcryptPasswordPolicy(
            min_length=settings.password_min_length,
            cost=settings.bcrypt_cost,
        ),
    )


def get_root_url(request: Request) -> str:
    """Origin of the incoming request, used for links in outgoing email."""
    return str(request.base_url).rstrip("/")


# HTTP BASIC AUTH security scheme for OpenAPI documentation
http_basic = HTTPBasic()


def get_current_user(
    credentials: HTTPBasicCredentials = Depends(http_basic),
    workflow: RegistrationWorkflow = Depends(get_workflow),
) -> User:
    """
    Authenticate the caller from HTTP BASIC AUTH (email:password).

    Only approved, active accounts pass. Every failure is the same 401
    so callers cannot tell unknown, unverified, and unapproved apart.
    """
    user = workflow.authenticate(credentials.username, credentials.password)
    if user is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid credentials",
            headers={"WWW-Authenticate": "Basic"},
        )
    return user


def require_admin(user: User = Depends(get_current_user)) -> User:
    """Allow only administrators through."""
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Administrator access required",
        )
    return user
