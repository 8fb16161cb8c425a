"""
API request and response models.

Pydantic models for FastAPI endpoint validation and OpenAPI schema generation.
"""

from typing import Generic, TypeVar

from pydantic import BaseModel, EmailStr, Field

from nominations.domain.models import Household, User, UserRegistrationInput
from nominations.domain.pagination import Page

T = TypeVar("T")


class RegisterRequest(BaseModel):
    """Request model for nominator registration."""

    email: EmailStr
    raw_password: str = Field(..., description="Checked against the password policy")
    name_first: str = Field(..., min_length=1)
    name_last: str = Field(..., min_length=1)
    rank: str | None = None
    phone: str | None = None
    affiliation_id: int | None = None

    def to_domain(self) -> UserRegistrationInput:
        return UserRegistrationInput(
            email=str(self.email),
            raw_password=self.raw_password,
            name_first=self.name_first,
            name_last=self.name_last,
            rank=self.rank,
            phone=self.phone,
            affiliation_id=self.affiliation_id,
        )


class RegisterResponse(BaseModel):
    """Response model for successful registration."""

    message: str
    email: str


class ConfirmEmailRequest(BaseModel):
    """Request model for email confirmation."""

    user_id: int
    confirmation_code: str


class MessageResponse(BaseModel):
    """Response model for steps that only report success."""

    message: str


class ErrorResponse(BaseModel):
    """Standard error response model."""

    detail: str
    field: str | None = None


class UserResponse(BaseModel):
    """Public view of a user. Never includes the hash or confirmation code."""

    id: int
    email: str
    name_first: str
    name_last: str
    rank: str | None = None
    phone: str | None = None
    affiliation_id: int | None = None
    role: str
    confirmation_email: bool
    email_verified: bool
    approved: bool
    active: bool

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            email=user.email,
            name_first=user.name_first,
            name_last=user.name_last,
            rank=user.rank,
            phone=user.phone,
            affiliation_id=user.affiliation_id,
            role=user.role.value,
            confirmation_email=user.confirmation_email,
            email_verified=user.email_verified,
            approved=user.approved,
            active=user.active,
        )


class HouseholdResponse(BaseModel):
    """Household row as shown on the dashboard. Never includes dob or last4ssn."""

    id: int
    name_full: str
    email: str
    preferred_contact_method: str
    case_number: str | None = None
    nominator_id: int | None = None
    draft: bool
    reviewed: bool
    approved: bool
    gender: str | None = None
    race: str | None = None
    reason: str = ""
    phone_numbers: str = ""

    @classmethod
    def from_household(cls, household: Household) -> "HouseholdResponse":
        return cls(
            id=household.id,
            name_full=household.name_full,
            email=household.email,
            preferred_contact_method=household.preferred_contact_method,
            case_number=household.case_number,
            nominator_id=household.nominator_id,
            draft=household.draft,
            reviewed=household.reviewed,
            approved=household.approved,
            gender=household.gender,
            race=household.race,
            reason=household.reason,
            phone_numbers=household.phone_numbers,
        )


class PageResponse(BaseModel, Generic[T]):
    """Data table page, in the shape the dashboard tables consume."""

    total_size: int = Field(serialization_alias="totalSize")
    per_page: int
    page: int
    last_page: int
    next_page_url: str | None = None
    prev_page_url: str | None = None
    from_index: int = Field(serialization_alias="from")
    to_index: int = Field(serialization_alias="to")
    items: list[T]

    @classmethod
    def from_page(cls, page: Page, items: list[T]) -> "PageResponse[T]":
        return cls(
            total_size=page.total_size,
            per_page=page.per_page,
            page=page.page,
            last_page=page.last_page,
            next_page_url=page.next_page_url,
            prev_page_url=page.prev_page_url,
            from_index=page.from_index,
            to_index=page.to_index,
            items=items,
        )


class NotificationRetryResponse(BaseModel):
    """Response model for re-queuing dead-lettered notifications."""

    message: str
    requeued: int
