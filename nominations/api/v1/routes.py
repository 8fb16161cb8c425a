"""
API v1 routes.

Defines REST endpoints for nominator registration and the dashboard tables.
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.responses import JSONResponse

from nominations.adapters.outbox import InMemoryOutbox
from nominations.api.dependencies import (
    get_current_user,
    get_household_repository,
    get_outbox,
    get_root_url,
    get_user_repository,
    get_workflow,
    require_admin,
)
from nominations.api.models import (
    ConfirmEmailRequest,
    ErrorResponse,
    HouseholdResponse,
    MessageResponse,
    NotificationRetryResponse,
    PageResponse,
    RegisterRequest,
    RegisterResponse,
    UserResponse,
)
from nominations.config.settings import Settings, get_settings
from nominations.domain.models import User
from nominations.domain.pagination import offset_for, paginate, parse_page
from nominations.domain.ports import HouseholdRepository, StepError, StepErrorKind, UserRepository
from nominations.domain.registration import RegistrationWorkflow

router = APIRouter(tags=["v1"])

_ERROR_STATUS = {
    StepErrorKind.EMAIL_TAKEN: status.HTTP_409_CONFLICT,
    StepErrorKind.INVALID_PASSWORD: status.HTTP_400_BAD_REQUEST,
    StepErrorKind.UNKNOWN_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    StepErrorKind.CODE_MISMATCH: status.HTTP_400_BAD_REQUEST,
    StepErrorKind.UNKNOWN_USER: status.HTTP_404_NOT_FOUND,
}


def _error_response(error: StepError) -> JSONResponse:
    body = ErrorResponse(detail=error.message, field=error.field)
    return JSONResponse(
        status_code=_ERROR_STATUS[error.kind],
        content=body.model_dump(exclude_none=True),
    )


def _page_base_url(request: Request) -> str:
    return str(request.url.replace(query=""))


@router.post(
    "/auth/register",
    response_model=RegisterResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"model": ErrorResponse, "description": "Password rejected by policy"},
        409: {"model": ErrorResponse, "description": "Email already registered"},
        500: {"model": ErrorResponse, "description": "Unknown error"},
    },
    summary="Register a new nominator",
    description="Create an unverified account. A confirmation code is emailed "
    "in the background once the response has been sent.",
)
async def register(
    request_data: RegisterRequest,
    background_tasks: BackgroundTasks,
    root_url: str = Depends(get_root_url),
    workflow: RegistrationWorkflow = Depends(get_workflow),
    outbox: InMemoryOutbox = Depends(get_outbox),
) -> RegisterResponse | JSONResponse:
    """
    Register a nominator and queue the verification email.

    Field errors come back as `{"detail": ..., "field": "email" | "password"}`.
    """
    user_info = request_data.to_domain()
    error = workflow.register(root_url, user_info)
    if error is not None:
        return _error_response(error)

    background_tasks.add_task(outbox.drain, workflow.run_task)
    return RegisterResponse(
        message="Check your email to continue the registration process",
        email=user_info.email,
    )


@router.post(
    "/auth/confirm_email",
    response_model=MessageResponse,
    responses={400: {"model": ErrorResponse, "description": "Confirmation code does not match"}},
    summary="Confirm email address",
    description="Submit the confirmation code from the verification email. "
    "On success an administrator is notified in the background.",
)
async def confirm_email(
    request_data: ConfirmEmailRequest,
    background_tasks: BackgroundTasks,
    root_url: str = Depends(get_root_url),
    workflow: RegistrationWorkflow = Depends(get_workflow),
    outbox: InMemoryOutbox = Depends(get_outbox),
) -> MessageResponse | JSONResponse:
    """Verify a confirmation code and queue the admin approval request."""
    error = workflow.confirm_email(
        root_url, request_data.user_id, request_data.confirmation_code
    )
    if error is not None:
        return _error_response(error)

    background_tasks.add_task(outbox.drain, workflow.run_task)
    return MessageResponse(message="Email confirmed; awaiting administrator approval")


@router.get(
    "/auth/me",
    response_model=UserResponse,
    responses={401: {"model": ErrorResponse, "description": "Invalid credentials"}},
    summary="Current user",
)
async def me(user: User = Depends(get_current_user)) -> UserResponse:
    return UserResponse.from_user(user)


@router.post(
    "/users/{user_id}/approve",
    response_model=MessageResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        403: {"model": ErrorResponse, "description": "Administrator access required"},
        404: {"model": ErrorResponse, "description": "Unknown user"},
    },
    summary="Approve a user",
    description="Approve and activate a verified user. Approving twice is harmless.",
)
async def approve(
    user_id: int,
    _admin: User = Depends(require_admin),
    workflow: RegistrationWorkflow = Depends(get_workflow),
) -> MessageResponse | JSONResponse:
    error = workflow.approve(user_id)
    if error is not None:
        return _error_response(error)
    return MessageResponse(message="User approved")


@router.post(
    "/notifications/retry",
    response_model=NotificationRetryResponse,
    responses={
        401: {"model": ErrorResponse, "description": "Invalid credentials"},
        403: {"model": ErrorResponse, "description": "Administrator access required"},
    },
    summary="Retry failed notifications",
    description="Re-queue every dead-lettered verification and approval email "
    "and deliver them in the background.",
)
async def retry_notifications(
    background_tasks: BackgroundTasks,
    _admin: User = Depends(require_admin),
    workflow: RegistrationWorkflow = Depends(get_workflow),
    outbox: InMemoryOutbox = Depends(get_outbox),
) -> NotificationRetryResponse:
    requeued = outbox.retry_dead_letters()
    if requeued:
        background_tasks.add_task(outbox.drain, workflow.run_task)
    return NotificationRetryResponse(message="Notifications re-queued", requeued=requeued)


@router.get(
    "/users",
    response_model=PageResponse[UserResponse],
    summary="List users",
)
async def list_users(
    request: Request,
    page: str | None = None,
    _admin: User = Depends(require_admin),
    repository: UserRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_settings),
) -> PageResponse[UserResponse]:
    return _user_page(request, page, repository, settings.page_size, pending_approval=False)


@router.get(
    "/users/needing/approval",
    response_model=PageResponse[UserResponse],
    summary="List users waiting for approval",
    description="Users who confirmed their email and have not been approved yet.",
)
async def list_users_needing_approval(
    request: Request,
    page: str | None = None,
    _admin: User = Depends(require_admin),
    repository: UserRepository = Depends(get_user_repository),
    settings: Settings = Depends(get_settings),
) -> PageResponse[UserResponse]:
    return _user_page(request, page, repository, settings.page_size, pending_approval=True)


@router.get(
    "/households",
    response_model=PageResponse[HouseholdResponse],
    summary="List households",
    description="Administrators see every household; nominators see their own.",
)
async def list_households(
    request: Request,
    page: str | None = None,
    user: User = Depends(get_current_user),
    repository: HouseholdRepository = Depends(get_household_repository),
    settings: Settings = Depends(get_settings),
) -> PageResponse[HouseholdResponse]:
    current = parse_page(page)
    rows, total = repository.list_page(
        offset_for(current, settings.page_size),
        settings.page_size,
        nominator_id=None if user.is_admin else user.id,
    )
    result = paginate(rows, total, current, settings.page_size, _page_base_url(request))
    return PageResponse[HouseholdResponse].from_page(
        result, [HouseholdResponse.from_household(h) for h in result.items]
    )


def _user_page(
    request: Request,
    page: str | None,
    repository: UserRepository,
    per_page: int,
    pending_approval: bool,
) -> PageResponse[UserResponse]:
    current = parse_page(page)
    rows, total = repository.list_page(
        offset_for(current, per_page), per_page, pending_approval=pending_approval
    )
    result = paginate(rows, total, current, per_page, _page_base_url(request))
    return PageResponse[UserResponse].from_page(
        result, [UserResponse.from_user(u) for u in result.items]
    )
