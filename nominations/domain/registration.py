"""
Registration domain service - Nominator onboarding state machine.

This module contains the core business logic taking a nominator from
signup, through email verification, to administrator approval.

Registration State Machine (Forward-Only Transitions)
=====================================================

States (derived from the user's workflow flags):
- REGISTERED: user row exists, no verification email delivered yet
- VERIFICATION_SENT: confirmation_email is true, awaiting the code
- EMAIL_VERIFIED: email_verified is true, awaiting an administrator
- APPROVED_ACTIVE: approved and active, the account can log in

Steps:
    1. register           UNREGISTERED -> REGISTERED, queues step 2
    2. send_verification  REGISTERED -> VERIFICATION_SENT (background)
    3. confirm_email      VERIFICATION_SENT -> EMAIL_VERIFIED, queues step 4
    4. send_approval      notifies the admin address (background)
    5. approve            EMAIL_VERIFIED -> APPROVED_ACTIVE

Steps 1, 3 and 5 return None on success or a StepError. Steps 2 and 4
run from the notification outbox; their exceptions propagate to the
worker, which logs and retries them.

Note: duplicate emails are checked here and again by the store's UNIQUE
constraint, which is what actually closes the concurrent-register race.
"""

import logging
import secrets
from dataclasses import dataclass, field

from .credentials import BcryptPasswordPolicy, TokenCodeGenerator
from .exceptions import DuplicateEmail, PersistenceError
from .models import User, UserRegistrationInput
from .ports import (
    CodeGenerator,
    Mailer,
    NotificationTask,
    PasswordPolicy,
    RegistrationState,
    StepError,
    StepErrorKind,
    TaskDispatcher,
    TaskKind,
    UserRepository,
    WorkflowConfig,
)

logger = logging.getLogger(__name__)

EMAIL_TAKEN = StepError(
    StepErrorKind.EMAIL_TAKEN,
    "An account with that email already exists",
    field="email",
)
UNKNOWN_ERROR = StepError(StepErrorKind.UNKNOWN_ERROR, "unknown error")
CODE_MISMATCH = StepError(StepErrorKind.CODE_MISMATCH, "confirmation code does not match")
UNKNOWN_USER = StepError(StepErrorKind.UNKNOWN_USER, "unknown user")

CONFIRM_EMAIL_PATH = "/auth/confirm_email"
APPROVAL_PATH = "/users/needing/approval"

# Checked against when the email is unknown so authenticate() always runs bcrypt.
_DUMMY_BCRYPT_HASH = BcryptPasswordPolicy().hash("dummy_password_for_timing_safety")


def registration_state(user: User) -> RegistrationState:
    """Derive where a user sits in the registration lifecycle."""
    if user.approved and user.active:
        return RegistrationState.APPROVED_ACTIVE
    if user.email_verified:
        return RegistrationState.EMAIL_VERIFIED
    if user.confirmation_email:
        return RegistrationState.VERIFICATION_SENT
    return RegistrationState.REGISTERED


@dataclass
class RegistrationWorkflow:
    """
    Domain service for nominator registration.

    Orchestrates the five registration steps against the injected
    ports. Holds no state of its own between calls.
    """

    repository: UserRepository
    mailer: Mailer
    dispatcher: TaskDispatcher
    config: WorkflowConfig
    password_policy: PasswordPolicy = field(default_factory=BcryptPasswordPolicy)
    code_generator: CodeGenerator = field(default_factory=TokenCodeGenerator)

    # Step 1
    def register(self, root_url: str, user_info: UserRegistrationInput) -> StepError | None:
        """
        Create an unverified account and queue its verification email.

        Args:
            root_url: Origin used to build links in outgoing email
            user_info: Submitted registration fields

        Returns:
            None on success, otherwise a StepError (email, password, or
            a generic unknown error that hides store details)
        """
        if self.repository.find_by_email(user_info.email) is not None:
            return EMAIL_TAKEN

        reason = self.password_policy.validate(user_info.raw_password)
        if reason is not None:
            return StepError(
                StepErrorKind.INVALID_PASSWORD,
                f"Invalid password: {reason}",
                field="password",
            )

        hashed_password = self.password_policy.hash(user_info.raw_password)
        try:
            user = self.repository.create(
                {
                    "name_first": user_info.name_first,
                    "name_last": user_info.name_last,
                    "rank": user_info.rank,
                    "phone": user_info.phone,
                    "affiliation_id": user_info.affiliation_id,
                    "email": user_info.email,
                    "password": hashed_password,
                }
            )
        except DuplicateEmail:
            return EMAIL_TAKEN
        except PersistenceError:
            logger.exception("User creation failed for registration")
            return UNKNOWN_ERROR

        logger.info("User %s registered", user.id)
        self.dispatcher.dispatch(
            NotificationTask(TaskKind.SEND_VERIFICATION, user.id, root_url)
        )
        return None

    # Step 2
    def send_verification(self, root_url: str, user: User) -> None:
        """
        Issue a fresh confirmation code and email it to the user.

        The code is saved before sending; confirmation_email is only set
        once the mailer returns. A DeliveryFailed leaves the flag false.

        A retried send reuses the stored code, since an earlier attempt
        may have delivered it even though it raised afterwards.
        """
        if user.confirmation_code is not None and not user.confirmation_email:
            confirmation_code = user.confirmation_code
        else:
            confirmation_code = self.code_generator.generate()
            user.confirmation_code = confirmation_code
            self.repository.save(user)

        self.mailer.send(
            "verify-email",
            user.email,
            {
                "user": user,
                "confirmation_code": confirmation_code,
                "confirm_email_url": self._link(root_url, CONFIRM_EMAIL_PATH),
            },
        )

        user.confirmation_email = True
        self.repository.save(user)
        logger.info("Verification email sent to user %s", user.id)

    # Step 3
    def confirm_email(
        self, root_url: str, user_id: int, confirmation_code: str
    ) -> StepError | None:
        """
        Mark the user's email verified and queue the admin notification.

        An unknown user and a wrong code produce the same error so the
        response does not reveal which accounts exist. A mismatched code
        only blocks users who were sent a code and are not yet verified.
        """
        user = self.repository.find_by_id(user_id)
        if user is None:
            return CODE_MISMATCH

        if (
            user.confirmation_email
            and not self._code_matches(user, confirmation_code)
            and not user.email_verified
        ):
            logger.info("Confirmation code mismatch for user %s", user.id)
            return CODE_MISMATCH

        user.email_verified = True
        user.confirmation_code = None
        self.repository.save(user)
        logger.info("User %s verified their email", user.id)

        self.dispatcher.dispatch(NotificationTask(TaskKind.SEND_APPROVAL, user.id, root_url))
        return None

    # Step 4
    def send_approval(self, root_url: str, user: User) -> None:
        """Tell the administrators a verified user is waiting for approval."""
        self.mailer.send(
            "admin-approval",
            self.config.admin_address,
            {"url": self._link(root_url, APPROVAL_PATH), "user": user},
        )
        logger.info("Approval request for user %s sent to admin", user.id)

    # Step 5
    def approve(self, user_id: int) -> StepError | None:
        """Approve and activate a user. Approving twice is harmless."""
        user = self.repository.find_by_id(user_id)
        if user is None:
            return UNKNOWN_USER

        user.approved = True
        user.active = True
        self.repository.save(user)
        logger.info("User %s approved", user.id)
        return None

    def authenticate(self, email: str, password: str) -> User | None:
        """
        Return the user for valid credentials on an active account.

        bcrypt runs even for unknown emails to keep response time flat.
        """
        user = self.repository.find_by_email(email)
        stored_hash = user.password if user is not None else _DUMMY_BCRYPT_HASH
        password_valid = self.password_policy.verify(password, stored_hash)

        if user is None or not password_valid or not user.active:
            return None
        return user

    def run_task(self, task: NotificationTask) -> None:
        """
        Execute a queued notification. Used as the outbox drain handler.

        Tasks for users that no longer exist are dropped.
        """
        user = self.repository.find_by_id(task.user_id)
        if user is None:
            logger.warning("Dropping %s task for missing user %s", task.kind.value, task.user_id)
            return

        if task.kind == TaskKind.SEND_VERIFICATION:
            self.send_verification(task.root_url, user)
        elif task.kind == TaskKind.SEND_APPROVAL:
            self.send_approval(task.root_url, user)

    def _link(self, root_url: str, path: str) -> str:
        base = self.config.root_url_template.format(root_url=root_url.rstrip("/"))
        return f"{base.rstrip('/')}{path}"

    def _code_matches(self, user: User, supplied: str) -> bool:
        if user.confirmation_code is None:
            return False
        return secrets.compare_digest(user.confirmation_code.encode(), supplied.encode())
