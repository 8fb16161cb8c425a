"""
Domain entities - Typed records for users and households.

Plain dataclasses shared by the workflow and every adapter. Stores hand
these out and accept them back; nothing here talks to a database.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class UserRole(str, Enum):
    """Dashboard roles. Admins approve users and see every household."""

    NOMINATOR = "nominator"
    ADMIN = "admin"


@dataclass
class User:
    """
    A nominator or administrator account.

    `password` always holds the bcrypt hash. The five workflow flags
    start false/None and are only changed by the registration workflow.
    """

    id: int
    email: str
    password: str
    name_first: str
    name_last: str
    rank: str | None = None
    phone: str | None = None
    affiliation_id: int | None = None
    role: UserRole = UserRole.NOMINATOR
    confirmation_code: str | None = None
    confirmation_email: bool = False
    email_verified: bool = False
    approved: bool = False
    active: bool = False
    created_at: datetime | None = None

    @property
    def name_full(self) -> str:
        return f"{self.name_first} {self.name_last}"

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass(frozen=True)
class UserRegistrationInput:
    """Fields a registrant submits. `raw_password` is never stored."""

    email: str
    raw_password: str
    name_first: str
    name_last: str
    rank: str | None = None
    phone: str | None = None
    affiliation_id: int | None = None


RACE_OPTIONS = (
    "American Indian",
    "Alaskan Native",
    "Asian",
    "African American",
    "Hispanic",
    "Pacific Islander",
    "White",
    "Other",
)


@dataclass
class Household:
    """A nominated household as listed on the dashboard."""

    id: int
    name_first: str
    name_last: str
    email: str
    preferred_contact_method: str
    nominator_id: int | None = None
    name_middle: str | None = None
    case_number: str | None = None
    draft: bool = True
    reviewed: bool = False
    approved: bool = False
    dob: str | None = None
    race: str | None = None  # one of RACE_OPTIONS
    gender: str | None = None
    last4ssn: str | None = None
    reason: str = ""
    nomination_email_sent: bool = False
    phones: list[str] = field(default_factory=list)
    deleted_at: datetime | None = None

    @property
    def name_full(self) -> str:
        return f"{self.name_first} {self.name_last}"

    @property
    def phone_numbers(self) -> str:
        return ", ".join(self.phones)
