"""
Domain layer - Pure business logic with zero framework imports.

This package contains the nominator registration workflow, the entities
it works on, and the port interfaces it needs from infrastructure,
keeping the web framework and database driver out of the core.
"""

from .credentials import BcryptPasswordPolicy, TokenCodeGenerator
from .exceptions import DeliveryFailed, DuplicateEmail, PersistenceError, RegistrationError
from .models import Household, User, UserRegistrationInput, UserRole
from .pagination import Page, paginate, parse_page
from .ports import (
    CodeGenerator,
    HouseholdRepository,
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
from .registration import RegistrationWorkflow, registration_state

__all__ = [
    "BcryptPasswordPolicy",
    "CodeGenerator",
    "DeliveryFailed",
    "DuplicateEmail",
    "Household",
    "HouseholdRepository",
    "Mailer",
    "NotificationTask",
    "Page",
    "PasswordPolicy",
    "PersistenceError",
    "RegistrationError",
    "RegistrationState",
    "RegistrationWorkflow",
    "StepError",
    "StepErrorKind",
    "TaskDispatcher",
    "TaskKind",
    "TokenCodeGenerator",
    "User",
    "UserRegistrationInput",
    "UserRepository",
    "UserRole",
    "WorkflowConfig",
    "paginate",
    "parse_page",
    "registration_state",
]
