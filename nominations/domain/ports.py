"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure, plus the small value types that cross them.
Adapters implement these protocols structurally.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from .models import Household, User


class RegistrationState(str, Enum):
    """
    Registration lifecycle states, derived from a user's workflow flags.

    State Transitions (forward-only):
    - UNREGISTERED -> REGISTERED        (register)
    - REGISTERED -> VERIFICATION_SENT   (verification email delivered)
    - VERIFICATION_SENT -> EMAIL_VERIFIED (confirm_email)
    - EMAIL_VERIFIED -> APPROVED_ACTIVE (approve)

    UNREGISTERED has no user record and is never returned for a User.
    """

    UNREGISTERED = "UNREGISTERED"
    REGISTERED = "REGISTERED"
    VERIFICATION_SENT = "VERIFICATION_SENT"
    EMAIL_VERIFIED = "EMAIL_VERIFIED"
    APPROVED_ACTIVE = "APPROVED_ACTIVE"


class StepErrorKind(Enum):
    """Why a workflow step refused to transition."""

    EMAIL_TAKEN = "email_taken"
    INVALID_PASSWORD = "invalid_password"
    UNKNOWN_ERROR = "unknown_error"
    CODE_MISMATCH = "code_mismatch"
    UNKNOWN_USER = "unknown_user"


@dataclass(frozen=True)
class StepError:
    """
    Failure result of a workflow step.

    Steps return None on success and a StepError otherwise. `field`
    names the offending input when the caller can correct it.
    """

    kind: StepErrorKind
    message: str
    field: str | None = None


class TaskKind(str, Enum):
    """Background notifications the workflow can request."""

    SEND_VERIFICATION = "send_verification"
    SEND_APPROVAL = "send_approval"


@dataclass
class NotificationTask:
    """A unit of deferred work: which notification, for whom, from where."""

    kind: TaskKind
    user_id: int
    root_url: str
    attempts: int = 0


@dataclass(frozen=True)
class WorkflowConfig:
    """
    Static configuration handed to the workflow at construction.

    `root_url_template` is formatted with `root_url=` (the caller's
    origin) to produce the base of every link placed in an email.
    """

    admin_address: str
    root_url_template: str = "{root_url}"


class UserRepository(Protocol):
    """Port interface for user persistence."""

    def find_by_email(self, email: str) -> User | None:
        """Exact-match lookup. Returns None when absent."""
        ...

    def find_by_id(self, user_id: int) -> User | None:
        """Returns None when absent."""
        ...

    def create(self, fields: dict[str, Any]) -> User:
        """
        Insert a user with workflow flags at their defaults.

        Raises:
            DuplicateEmail: The email's unique constraint was violated
            PersistenceError: Any other store failure
        """
        ...

    def save(self, user: User) -> None:
        """Persist every mutable field of an existing user."""
        ...

    def list_page(
        self, offset: int, limit: int, pending_approval: bool = False
    ) -> tuple[list[User], int]:
        """
        Fetch one page of users ordered by id, plus the total count.

        With pending_approval, only verified users not yet approved.
        """
        ...


class HouseholdRepository(Protocol):
    """Port interface for household reads."""

    def list_page(
        self, offset: int, limit: int, nominator_id: int | None = None
    ) -> tuple[list[Household], int]:
        """
        Fetch one page of non-deleted households plus the total count.

        When nominator_id is given, only that nominator's households.
        """
        ...


class Mailer(Protocol):
    """Port interface for email delivery."""

    def send(self, template: str, to: str, context: dict[str, Any]) -> None:
        """
        Render `template` with `context` and deliver it to `to`.

        Raises:
            DeliveryFailed: The message could not be handed off
        """
        ...


class PasswordPolicy(Protocol):
    """Port interface for password strength and hashing."""

    def validate(self, raw_password: str) -> str | None:
        """Return a human-readable reason the password is rejected, or None."""
        ...

    def hash(self, raw_password: str) -> str:
        ...

    def verify(self, raw_password: str, hashed: str) -> bool:
        ...


class CodeGenerator(Protocol):
    """Port interface for confirmation code generation."""

    def generate(self) -> str:
        """Return an unguessable, URL-safe token."""
        ...


class TaskDispatcher(Protocol):
    """Port interface for handing off background notifications."""

    def dispatch(self, task: NotificationTask) -> None:
        """Accept the task for later execution. Must not block on delivery."""
        ...
